"""
FastAPI application for TLS Certificate Check.
"""

import ipaddress
from typing import Any, Awaitable, Callable, Dict

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from tls_cert_check import __version__
from tls_cert_check.config import Config
from tls_cert_check.logger import get_logger
from tls_cert_check.metrics import MetricsCollector
from tls_cert_check.scheduler import SslCheckScheduler

REDACTED_KEYS = ("key", "allowed_ips")


def _is_allowed(client_ip: str, allowed_ips: list) -> bool:
    for allowed_ip in allowed_ips:
        try:
            if "/" in allowed_ip:
                if ipaddress.ip_address(client_ip) in ipaddress.ip_network(
                    allowed_ip, strict=False
                ):
                    return True
            elif client_ip == allowed_ip:
                return True
        except ValueError:
            continue
    return False


def create_app(
    scheduler: SslCheckScheduler,
    metrics: MetricsCollector,
    config: Config,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        scheduler: Check scheduler instance
        metrics: Metrics collector instance
        config: Configuration instance

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="TLS Certificate Check",
        description="Periodic TLS endpoint and certificate file checks",
        version=__version__,
        docs_url=None,
        redoc_url=None,
    )

    logger = get_logger("api")

    @app.middleware("http")
    async def ip_whitelist_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Middleware to enforce IP whitelisting."""
        if not config.enable_ip_whitelist:
            return await call_next(request)

        client_ip = request.client.host if request.client else None
        if not client_ip:
            logger.warning("Unable to determine client IP address, allowing request")
            return await call_next(request)

        if not _is_allowed(client_ip, config.allowed_ips):
            logger.warning(f"Access denied for IP address: {client_ip}")
            return JSONResponse(
                status_code=403,
                content={
                    "error": "Access forbidden",
                    "message": "Your IP address is not allowed to access this service",
                    "client_ip": client_ip,
                },
            )

        return await call_next(request)

    @app.get("/metrics", response_class=PlainTextResponse)
    async def get_metrics() -> PlainTextResponse:
        try:
            metrics_data: str = metrics.get_metrics()
            return PlainTextResponse(content=metrics_data, media_type=metrics.get_content_type())
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            raise HTTPException(status_code=500, detail="Failed to generate metrics") from e

    @app.get("/healthz", response_class=JSONResponse)
    async def get_health() -> JSONResponse:
        try:
            health_status = {
                **(await scheduler.get_health_status()),
                **metrics.get_registry_status(),
                "status": "healthy",
                "version": __version__,
            }
            return JSONResponse(content=health_status)
        except Exception as e:
            logger.error(f"Failed to get health status: {e}")
            return JSONResponse(content={"status": "error", "error": str(e)}, status_code=500)

    @app.post("/check", response_class=JSONResponse)
    async def trigger_check() -> JSONResponse:
        try:
            logger.info("Manual check triggered via API")
            results = await scheduler.check()
            return JSONResponse(
                content={"status": "completed", "results": [info.to_dict() for info in results]}
            )
        except Exception as e:
            logger.error(f"Manual check failed: {e}")
            raise HTTPException(status_code=500, detail=f"Check failed: {e}") from e

    @app.get("/config", response_class=JSONResponse)
    async def get_config() -> JSONResponse:
        config_dict: Dict[str, Any] = config.model_dump(mode="json")
        for key in REDACTED_KEYS:
            if config_dict.get(key):
                config_dict[key] = "***REDACTED***"
        return JSONResponse(content=config_dict)

    return app
