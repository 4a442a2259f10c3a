"""
Standardized logging configuration for TLS Certificate Check.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from tls_cert_check.config import Config


class CustomFormatter(logging.Formatter):
    """Custom formatter with colored output for console."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def __init__(self, use_color: bool = True) -> None:
        self.use_color = use_color
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with optional colors."""
        if self.use_color and record.levelname in self.COLORS:
            color = self.COLORS[record.levelname]
            reset = self.COLORS["RESET"]
            level_name = f"{color}{record.levelname:<8}{reset}"
        else:
            level_name = f"{record.levelname:<8}"

        timestamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        message = record.getMessage()

        if record.exc_info:
            if not message.endswith("\n"):
                message += "\n"
            message += self.formatException(record.exc_info)

        return f"{timestamp} | {level_name} | {record.name:<24} | {message}"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    EXTRA_FIELDS = ("target", "error_kind", "check_duration", "targets_checked", "check_errors")

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        import json
        from datetime import datetime

        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in self.EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


def setup_logging(config: Config) -> None:
    """
    Setup logging configuration.

    Console output goes to stderr, stdout is reserved for emitted records.

    Args:
        config: Configuration object
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.log_level))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, config.log_level))
    use_color = hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
    console_handler.setFormatter(CustomFormatter(use_color=use_color))
    root_logger.addHandler(console_handler)

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            config.log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"  # 10MB
        )
        file_handler.setLevel(getattr(logging, config.log_level))
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    app_logger = logging.getLogger("tls_cert_check")
    app_logger.info(f"Logging initialized - Level: {config.log_level}")

    if config.log_file:
        app_logger.info(f"Log file: {config.log_file}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(f"tls_cert_check.{name}")


# Logging helpers for check operations
def log_check_start(logger: logging.Logger, target_count: int) -> None:
    """Log check start."""
    logger.debug("Starting certificate check", extra={"targets_checked": target_count})


def log_probe_result(logger: logging.Logger, target: str, error_kind: Optional[str]) -> None:
    """Log a single probe outcome."""
    if error_kind:
        logger.info(
            f"Probe of {target} failed: {error_kind}",
            extra={"target": target, "error_kind": error_kind},
        )
    else:
        logger.debug(f"Probe of {target} succeeded", extra={"target": target})


def log_check_failure(logger: logging.Logger, target: str, error: Exception) -> None:
    """Log an unexpected failure while processing one target."""
    logger.warning(
        f"Check of {target} failed: {error}",
        extra={"target": target, "error_kind": type(error).__name__},
    )


def log_check_complete(
    logger: logging.Logger, duration: float, checked: int, errors: int
) -> None:
    """Log check completion."""
    logger.info(
        f"Certificate check completed - Duration: {duration:.2f}s, "
        f"Targets: {checked}, Errors: {errors}",
        extra={"check_duration": duration, "targets_checked": checked, "check_errors": errors},
    )


def log_metrics_collection(
    logger: logging.Logger, metric_name: str, value: float, labels: Optional[dict] = None
) -> None:
    """Log metrics collection."""
    extra = {"metric_name": metric_name, "metric_value": value}
    if labels:
        extra["metric_labels"] = labels

    logger.debug(f"Metric collected: {metric_name}={value}", extra=extra)
