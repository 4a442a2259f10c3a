"""
Record emission for TLS Certificate Check.

Turns one ``SslInfo`` into zero to three records:

- a log record when ``log_events`` is enabled
- an ``ssl_status`` metric record when ``metric_events`` is enabled
- an ``ssl_expirency`` metric record when ``metric_events`` is enabled and the
  probe succeeded
"""

from typing import Any, Dict, List

from tls_cert_check.config import Config
from tls_cert_check.router import Router
from tls_cert_check.ssl_info import TIMESTAMP_FORMATTERS, SslInfo, TimestampFormat

METRIC_STATUS = "ssl_status"
METRIC_EXPIRENCY = "ssl_expirency"


class SslEventEmitter:
    """Build records from probe results and hand them to a router."""

    def __init__(
        self,
        router: Router,
        tag: str,
        log_events: bool = True,
        metric_events: bool = False,
        event_prefix: str = "",
        timestamp_format: TimestampFormat = TimestampFormat.ISO,
    ):
        self.router = router
        self.tag = tag
        self.log_events = log_events
        self.metric_events = metric_events
        self.event_prefix = event_prefix
        self.timestamp_format = timestamp_format
        self._format_timestamp = TIMESTAMP_FORMATTERS[timestamp_format]

    @classmethod
    def from_config(cls, config: Config, router: Router) -> "SslEventEmitter":
        return cls(
            router=router,
            tag=config.tag,
            log_events=config.log_events,
            metric_events=config.metric_events,
            event_prefix=config.event_prefix,
            timestamp_format=config.timestamp_format,
        )

    def records(self, ssl_info: SslInfo) -> List[Dict[str, Any]]:
        """Records for one probe result, in emission order."""
        records = []
        if self.log_events:
            records.append(self.log_record(ssl_info))
        if self.metric_events:
            records.append(self.metric_status_record(ssl_info))
            if ssl_info.error is None and ssl_info.certificate is not None:
                records.append(self.metric_expirency_record(ssl_info))
        return records

    def emit(self, ssl_info: SslInfo) -> int:
        """
        Emit every record for ``ssl_info``.

        Records are timed with the probe's ``measured_at``.

        Returns:
            Number of records emitted
        """
        records = self.records(ssl_info)
        for record in records:
            self.router.emit(self.tag, ssl_info.measured_at, record)
        return len(records)

    def log_record(self, ssl_info: SslInfo) -> Dict[str, Any]:
        record = {
            "timestamp": self._format_timestamp(ssl_info.measured_at),
            "status": ssl_info.status,
            "host": ssl_info.host,
            "port": ssl_info.port,
            "path": ssl_info.path,
            "ssl_version": ssl_info.protocol_version,
            "ssl_dn": ssl_info.subject,
            "ssl_not_after": ssl_info.not_after,
            "expire_in_days": ssl_info.expire_in_days,
            "serial": ssl_info.serial,
        }
        if ssl_info.error is not None:
            record["error_class"] = ssl_info.error_kind
        return record

    def metric_status_record(self, ssl_info: SslInfo) -> Dict[str, Any]:
        return self._metric_record(
            ssl_info,
            METRIC_STATUS,
            ssl_info.status,
            {
                "host": ssl_info.host,
                "port": ssl_info.port,
                "path": ssl_info.path,
                "ssl_dn": ssl_info.subject,
                "ssl_version": ssl_info.protocol_version,
                "ssl_not_after": ssl_info.not_after,
                "serial": ssl_info.serial,
            },
        )

    def metric_expirency_record(self, ssl_info: SslInfo) -> Dict[str, Any]:
        return self._metric_record(
            ssl_info,
            METRIC_EXPIRENCY,
            ssl_info.expire_in_days,
            {
                "host": ssl_info.host,
                "port": ssl_info.port,
                "path": ssl_info.path,
                "ssl_dn": ssl_info.subject,
                "serial": ssl_info.serial,
            },
        )

    def _metric_record(
        self, ssl_info: SslInfo, name: str, value: Any, fields: Dict[str, Any]
    ) -> Dict[str, Any]:
        record = {
            "timestamp": self._format_timestamp(ssl_info.measured_at),
            "metric_name": name,
            "metric_value": value,
        }
        for key, field_value in fields.items():
            record[f"{self.event_prefix}{key}"] = field_value
        return record
