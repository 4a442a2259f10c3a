"""
TLS Certificate Check

Periodically probes TLS endpoints and local certificate files and emits
status and days-until-expiry records.
"""

__version__ = "1.0.0"
__author__ = "TLS Certificate Check Team"
__description__ = "Periodic TLS endpoint and certificate file checks"

from tls_cert_check.config import Config
from tls_cert_check.emitter import SslEventEmitter
from tls_cert_check.scheduler import SslCheckScheduler
from tls_cert_check.ssl_info import SslInfo

__all__ = [
    "Config",
    "SslCheckScheduler",
    "SslEventEmitter",
    "SslInfo",
]
