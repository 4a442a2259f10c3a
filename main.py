#!/usr/bin/env python3
"""
TLS Certificate Check - Main Application Entry Point
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

import click
import uvicorn
from fastapi import FastAPI

from tls_cert_check import __version__
from tls_cert_check.api import create_app
from tls_cert_check.config import Config, load_config
from tls_cert_check.emitter import SslEventEmitter
from tls_cert_check.logger import setup_logging
from tls_cert_check.metrics import MetricsCollector
from tls_cert_check.router import MultiRouter, Router, StreamRouter
from tls_cert_check.scheduler import SslCheckScheduler


class TLSCertCheck:
    """Main application class for TLS Certificate Check."""

    def __init__(self, config_path: Optional[str] = None, dry_run: bool = False):
        self.config: Optional[Config] = None
        self.scheduler: Optional[SslCheckScheduler] = None
        self.metrics: Optional[MetricsCollector] = None
        self.router: Optional[Router] = None
        self.app: Optional[FastAPI] = None
        self.config_path = config_path
        self.dry_run = dry_run
        self._shutdown_event = asyncio.Event()
        self.logger = logging.getLogger(__name__)

    def initialize(self) -> None:
        """Initialize all application components."""
        try:
            self.config = load_config(self.config_path)

            setup_logging(self.config)
            self.logger.info("Initializing TLS Certificate Check")

            self.metrics = MetricsCollector(event_prefix=self.config.event_prefix)

            routers: List[Router] = [StreamRouter(path=self.config.output_file)]
            if self.config.server_enabled and not self.dry_run:
                routers.append(self.metrics)
            self.router = MultiRouter(routers)

            emitter = SslEventEmitter.from_config(self.config, self.router)
            self.scheduler = SslCheckScheduler(
                config=self.config, emitter=emitter, metrics=self.metrics
            )

            if self.config.server_enabled and not self.dry_run:
                self.app = create_app(
                    scheduler=self.scheduler, metrics=self.metrics, config=self.config
                )

            self.logger.info("TLS Certificate Check initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize application: {e}")
            raise

    async def run(self) -> None:
        """Run the checks, with the metrics server when enabled, or a single dry-run check."""
        if not self.scheduler:
            self.initialize()

        assert self.config is not None, "Config should be initialized"
        assert self.scheduler is not None, "Scheduler should be initialized"

        if self.dry_run:
            self.logger.info("Running in dry-run mode - single check")
            await self.scheduler.check()
            self.logger.info("Dry-run check completed")
            await self.shutdown()
            return

        await self.scheduler.start()

        if self.app is None:
            loop = asyncio.get_running_loop()
            for sig in [signal.SIGTERM, signal.SIGINT]:
                loop.add_signal_handler(sig, self._shutdown_event.set)
            try:
                await self._shutdown_event.wait()
            finally:
                await self.shutdown()
            return

        self.logger.info(
            f"Starting metrics server on {self.config.bind_address}:{self.config.port}"
        )
        server = uvicorn.Server(
            uvicorn.Config(
                app=self.app,
                host=self.config.bind_address,
                port=self.config.port,
                log_level=self.config.log_level.lower(),
                access_log=False,
            )
        )

        try:
            await server.serve()
        except KeyboardInterrupt:
            self.logger.info("Received interrupt signal")
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Gracefully shutdown all components."""
        self.logger.info("Starting graceful shutdown")

        if self.scheduler:
            await self.scheduler.stop()

        if self.router:
            self.router.close()

        self.logger.info("Graceful shutdown completed")


@click.command()
@click.option(
    "--config",
    "-f",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option("--version", "-v", is_flag=True, help="Show version information")
@click.option("--dry-run", is_flag=True, help="Run a single check and exit")
def main(config: Optional[Path], version: bool, dry_run: bool) -> None:
    """TLS Certificate Check - Report TLS certificate status and days until expiry."""
    if version:
        print(f"TLS Certificate Check v{__version__}")
        return

    try:
        app = TLSCertCheck(str(config) if config else None, dry_run=dry_run)
        asyncio.run(app.run())
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        sys.exit(0)
    except Exception as e:
        print(f"Application failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
