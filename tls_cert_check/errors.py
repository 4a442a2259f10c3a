"""
Probe error classification for TLS Certificate Check.

Probe failures never propagate out of a probe: they are converted into a
``ProbeError`` carrying a stable ``ErrorKind`` label that operators can filter on.
"""

import asyncio
import socket
from dataclasses import dataclass
from enum import Enum

from cryptography.exceptions import UnsupportedAlgorithm
from OpenSSL import SSL, crypto


class ErrorKind(str, Enum):
    """Stable labels for probe failure categories."""

    # Connection level
    DNS_FAILURE = "dns_failure"
    CONNECTION_REFUSED = "connection_refused"
    CONNECTION_ERROR = "connection_error"
    TIMEOUT = "timeout"

    # TLS level
    TLS_HANDSHAKE = "tls_handshake"
    CERTIFICATE_VERIFY = "certificate_verify"
    NO_PEER_CERTIFICATE = "no_peer_certificate"

    # File level
    FILE_NOT_FOUND = "file_not_found"
    FILE_UNREADABLE = "file_unreadable"
    CERTIFICATE_MALFORMED = "certificate_malformed"

    UNKNOWN = "unknown"

    @property
    def level(self) -> str:
        """Coarse failure level: connection, tls, file or unknown."""
        return _LEVELS.get(self, "unknown")


_LEVELS = {
    ErrorKind.DNS_FAILURE: "connection",
    ErrorKind.CONNECTION_REFUSED: "connection",
    ErrorKind.CONNECTION_ERROR: "connection",
    ErrorKind.TIMEOUT: "connection",
    ErrorKind.TLS_HANDSHAKE: "tls",
    ErrorKind.CERTIFICATE_VERIFY: "tls",
    ErrorKind.NO_PEER_CERTIFICATE: "tls",
    ErrorKind.FILE_NOT_FOUND: "file",
    ErrorKind.FILE_UNREADABLE: "file",
    ErrorKind.CERTIFICATE_MALFORMED: "file",
}


VERIFY_FAILED_REASON = "certificate verify failed"


def describe_exception(exc: BaseException) -> str:
    """Human-readable message; OpenSSL error queues are joined by reason."""
    if isinstance(exc, SSL.Error) and exc.args and isinstance(exc.args[0], list):
        reasons = [entry[-1] for entry in exc.args[0] if isinstance(entry, tuple) and entry]
        if reasons:
            return "; ".join(str(reason) for reason in reasons)
    return str(exc) or type(exc).__name__


def classify_exception(exc: BaseException) -> ErrorKind:
    """
    Map an exception raised while probing to an ``ErrorKind``.

    Most network errors are ``OSError`` subclasses, so the specific checks
    must run before the generic ``OSError`` fallback.
    """
    if isinstance(exc, (asyncio.TimeoutError, socket.timeout, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, socket.gaierror):
        return ErrorKind.DNS_FAILURE
    if isinstance(exc, crypto.X509StoreContextError):
        return ErrorKind.CERTIFICATE_VERIFY
    if isinstance(exc, SSL.Error):
        if VERIFY_FAILED_REASON in describe_exception(exc):
            return ErrorKind.CERTIFICATE_VERIFY
        return ErrorKind.TLS_HANDSHAKE
    if isinstance(exc, ConnectionRefusedError):
        return ErrorKind.CONNECTION_REFUSED
    if isinstance(exc, FileNotFoundError):
        return ErrorKind.FILE_NOT_FOUND
    if isinstance(exc, (IsADirectoryError, PermissionError)):
        return ErrorKind.FILE_UNREADABLE
    if isinstance(exc, OSError):
        return ErrorKind.CONNECTION_ERROR
    if isinstance(exc, (ValueError, UnsupportedAlgorithm)):
        return ErrorKind.CERTIFICATE_MALFORMED
    return ErrorKind.UNKNOWN


@dataclass(frozen=True)
class ProbeError:
    """A classified probe failure."""

    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ProbeError":
        message = describe_exception(exc)
        return cls(kind=classify_exception(exc), message=message)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"
