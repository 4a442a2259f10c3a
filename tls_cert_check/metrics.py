"""
Prometheus metrics for TLS Certificate Check.
"""

import socket
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from tls_cert_check.emitter import METRIC_EXPIRENCY, METRIC_STATUS
from tls_cert_check.logger import get_logger, log_metrics_collection
from tls_cert_check.router import Record, Router

LABELS = ["host", "port", "path", "ssl_dn", "serial"]


class MetricsCollector(Router):
    """
    Prometheus collector fed by metric records.

    Acts as a router: ``ssl_status`` and ``ssl_expirency`` records update the
    gauge of the same name, log records are ignored. Only the latest series of
    each target is kept, so a renewed certificate replaces the old serial.
    """

    def __init__(self, event_prefix: str = "") -> None:
        self.logger = get_logger("metrics")
        self.registry = CollectorRegistry()
        self.event_prefix = event_prefix

        self.ssl_status = Gauge(
            METRIC_STATUS,
            "Probe status (1 = OK, 0 = KO)",
            LABELS,
            registry=self.registry,
        )

        self.ssl_expirency = Gauge(
            METRIC_EXPIRENCY,
            "Days until certificate expiry",
            LABELS,
            registry=self.registry,
        )

        self.ssl_check_duration_seconds = Histogram(
            "ssl_check_duration_seconds",
            "Duration of one check over all targets",
            registry=self.registry,
        )

        self.ssl_check_last_run_timestamp = Gauge(
            "ssl_check_last_run_timestamp",
            "Last check completion time (Unix timestamp)",
            registry=self.registry,
        )

        self.ssl_check_targets = Gauge(
            "ssl_check_targets", "Targets processed by the last check", registry=self.registry
        )

        self.ssl_check_errors = Gauge(
            "ssl_check_errors",
            "Targets with a failed probe in the last check",
            registry=self.registry,
        )

        self.app_info = Info("app", "Application information", registry=self.registry)

        self._gauges = {METRIC_STATUS: self.ssl_status, METRIC_EXPIRENCY: self.ssl_expirency}
        self._series: Dict[Tuple[str, str, str, str], Tuple[str, ...]] = {}

        self._set_app_info()

    def _set_app_info(self) -> None:
        from tls_cert_check import __version__

        self.app_info.info({"version": __version__, "hostname": socket.gethostname()})

    def emit(self, tag: str, time: datetime, record: Record) -> None:
        metric_name = record.get("metric_name")
        gauge = self._gauges.get(metric_name) if metric_name else None
        if gauge is None:
            return

        value = record.get("metric_value")
        labels = self._labels(record)
        target_key = (metric_name, labels[0], labels[1], labels[2])

        previous = self._series.get(target_key)
        if previous is not None and previous != labels:
            try:
                gauge.remove(*previous)
            except KeyError:
                self.logger.debug(f"Series already removed: {previous}")
        self._series[target_key] = labels

        if metric_name == METRIC_STATUS and not value:
            self._drop_series(METRIC_EXPIRENCY, target_key[1:])

        if value is None:
            return
        gauge.labels(*labels).set(value)
        log_metrics_collection(self.logger, metric_name, value, dict(zip(LABELS, labels)))

    def _drop_series(self, metric_name: str, target: Tuple[str, str, str]) -> None:
        labels = self._series.pop((metric_name,) + target, None)
        if labels is not None:
            try:
                self._gauges[metric_name].remove(*labels)
            except KeyError:
                self.logger.debug(f"Series already removed: {labels}")

    def _labels(self, record: Record) -> Tuple[str, ...]:
        values = []
        for label in LABELS:
            value = record.get(f"{self.event_prefix}{label}")
            values.append("" if value is None else str(value))
        return tuple(values)

    def update_check_metrics(self, duration: float, targets: int, errors: int) -> None:
        """Record the outcome of one check."""
        self.ssl_check_duration_seconds.observe(duration)
        self.ssl_check_last_run_timestamp.set_to_current_time()
        self.ssl_check_targets.set(targets)
        self.ssl_check_errors.set(errors)

    def get_metrics(self) -> str:
        """Metrics in Prometheus text format."""
        return generate_latest(self.registry).decode("utf-8")

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST

    def get_registry_status(self) -> Dict[str, Any]:
        """Get Prometheus registry status for health checks."""
        return {"prometheus_registry": {"status": "healthy", "tracked_series": len(self._series)}}

    def get_value(self, metric_name: str, **labels: Optional[str]) -> Optional[float]:
        """Current sample value of a gauge, ``None`` when absent."""
        sample_labels = {label: labels.get(label) or "" for label in LABELS}
        return self.registry.get_sample_value(metric_name, sample_labels)
