"""
Check scheduler for TLS Certificate Check.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

from tls_cert_check.config import Config
from tls_cert_check.emitter import SslEventEmitter
from tls_cert_check.logger import (
    get_logger,
    log_check_complete,
    log_check_failure,
    log_check_start,
    log_probe_result,
)
from tls_cert_check.metrics import MetricsCollector
from tls_cert_check.probes import probe_for
from tls_cert_check.ssl_info import SslInfo

# Long intervals get one early check so the first results show up quickly
STARTUP_CHECK_THRESHOLD = 60
STARTUP_CHECK_DELAY = 1


class SslCheckScheduler:
    """
    Run a check of every configured target each ``interval`` seconds.

    Targets are processed one after the other. A failure on one target is
    logged and the check moves on to the next one. Checks never overlap.
    """

    def __init__(
        self,
        config: Config,
        emitter: SslEventEmitter,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config
        self.emitter = emitter
        self.metrics = metrics
        self.logger = get_logger("scheduler")

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._check_lock: Optional[asyncio.Lock] = None  # created lazily in async context
        self._last_check: Optional[float] = None
        self._last_results: List[SslInfo] = []

        self.logger.info(
            f"Scheduler initialized - Interval: {config.interval}s, Timeout: {config.timeout}s"
        )

        if not config.targets():
            self.logger.warning("hosts and paths are empty, nothing to check")

    async def start(self) -> None:
        """Start the periodic checks."""
        if self._running:
            self.logger.warning("Scheduler is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        self.logger.info(f"Started certificate checks - Interval: {self.config.interval}s")

    async def stop(self) -> None:
        """Stop the periodic checks."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        self.logger.info("Scheduler stopped")

    async def check(self) -> List[SslInfo]:
        """
        Run one check over all targets.

        Returns:
            Probe results of the targets that were processed
        """
        if self._check_lock is None:
            self._check_lock = asyncio.Lock()

        async with self._check_lock:
            start_time = time.time()
            targets = self.config.targets()
            results: List[SslInfo] = []
            errors = 0

            log_check_start(self.logger, len(targets))

            for target in targets:
                try:
                    ssl_info = await probe_for(target, self.config).probe(target)
                    results.append(ssl_info)
                    log_probe_result(self.logger, str(target), ssl_info.error_kind)
                    if ssl_info.error is not None:
                        errors += 1
                    self.emitter.emit(ssl_info)
                except Exception as e:
                    errors += 1
                    log_check_failure(self.logger, str(target), e)

            duration = time.time() - start_time
            self._last_check = time.time()
            self._last_results = results

            if self.metrics:
                self.metrics.update_check_metrics(duration, len(targets), errors)

            log_check_complete(self.logger, duration, len(targets), errors)
            return results

    async def _run_loop(self) -> None:
        """Main check loop."""
        loop = asyncio.get_running_loop()
        interval = self.config.interval
        next_run = loop.time() + interval

        if interval > STARTUP_CHECK_THRESHOLD:
            await asyncio.sleep(STARTUP_CHECK_DELAY)
            await self._safe_check()

        while self._running:
            await asyncio.sleep(max(0.0, next_run - loop.time()))
            await self._safe_check()
            next_run += interval
            # Skip runs missed while a slow check was in progress
            if next_run < loop.time():
                next_run = loop.time() + interval

    async def _safe_check(self) -> None:
        try:
            await self.check()
        except Exception as e:
            self.logger.error(f"Error in check loop: {e}")

    async def get_health_status(self) -> Dict[str, Any]:
        """Get scheduler health status."""
        return {
            "check_status": "running" if self._running else "stopped",
            "check_interval": self.config.interval,
            "targets": [str(target) for target in self.config.targets()],
            "last_check_timestamp": self._last_check,
            "last_check_errors": sum(1 for info in self._last_results if info.error is not None),
        }
