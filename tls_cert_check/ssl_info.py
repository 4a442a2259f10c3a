"""
SSL information model for TLS Certificate Check.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union

from cryptography import x509

from tls_cert_check.errors import ProbeError

STATUS_OK = 1
STATUS_KO = 0

SECONDS_PER_DAY = 86400

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive datetimes are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_iso(value: datetime) -> str:
    """Format a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    value = _as_utc(value)
    return f"{value.strftime('%Y-%m-%dT%H:%M:%S')}.{value.microsecond // 1000:03d}Z"


def format_epoch_millis(value: datetime) -> int:
    """Integer milliseconds since the Unix epoch."""
    return (_as_utc(value) - _EPOCH) // timedelta(milliseconds=1)


class TimestampFormat(str, Enum):
    """Rendering modes for record timestamps."""

    ISO = "iso"
    EPOCH_MILLIS = "epochmillis"

    @classmethod
    def _missing_(cls, value: object) -> Optional["TimestampFormat"]:
        if isinstance(value, str) and value.lower() in ("epoch-milliseconds", "epoch_millis"):
            return cls.EPOCH_MILLIS
        return None


TIMESTAMP_FORMATTERS: Dict[TimestampFormat, Callable[[datetime], Union[str, int]]] = {
    TimestampFormat.ISO: format_iso,
    TimestampFormat.EPOCH_MILLIS: format_epoch_millis,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SslInfo:
    """
    Result of one probe, network or file.

    Network probes fill ``host``/``port``; file probes fill ``path`` and use the
    local hostname as ``host``. Every accessor derived from the certificate
    returns ``None`` when no certificate was obtained.
    """

    host: Optional[str] = None
    port: Optional[int] = None
    path: Optional[str] = None
    certificate: Optional[x509.Certificate] = None
    certificate_chain: Tuple[x509.Certificate, ...] = ()
    protocol_version: Optional[str] = None
    error: Optional[ProbeError] = None
    measured_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "measured_at", _as_utc(self.measured_at))
        object.__setattr__(self, "certificate_chain", tuple(self.certificate_chain))

    @property
    def status(self) -> int:
        return STATUS_KO if self.error is not None else STATUS_OK

    @property
    def subject(self) -> Optional[str]:
        if self.certificate is None:
            return None
        return self.certificate.subject.rfc4514_string()

    @property
    def not_after_datetime(self) -> Optional[datetime]:
        if self.certificate is None:
            return None
        return self.certificate.not_valid_after_utc

    @property
    def not_after(self) -> Optional[str]:
        not_after = self.not_after_datetime
        if not_after is None:
            return None
        return format_iso(not_after)

    @property
    def expire_in_days(self) -> Optional[int]:
        """Whole days from ``measured_at`` to expiry, negative once expired."""
        not_after = self.not_after_datetime
        if not_after is None:
            return None
        return math.floor((not_after - self.measured_at).total_seconds() / SECONDS_PER_DAY)

    @property
    def serial(self) -> Optional[str]:
        if self.certificate is None:
            return None
        return format(self.certificate.serial_number, "x")

    @property
    def error_kind(self) -> Optional[str]:
        if self.error is None:
            return None
        return self.error.kind.value

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        return self.error.message

    def to_dict(self) -> Dict[str, Any]:
        """JSON friendly summary of the probe result."""
        return {
            "host": self.host,
            "port": self.port,
            "path": self.path,
            "status": self.status,
            "measured_at": format_iso(self.measured_at),
            "ssl_version": self.protocol_version,
            "ssl_dn": self.subject,
            "ssl_not_after": self.not_after,
            "expire_in_days": self.expire_in_days,
            "serial": self.serial,
            "chain_length": len(self.certificate_chain),
            "error_kind": self.error_kind,
            "error_message": self.error_message,
        }
