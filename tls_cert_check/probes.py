"""
Network and file probes for TLS Certificate Check.

Probe failures (network, TLS, file and verification errors) are classified
and stored on the returned ``SslInfo``.
"""

import asyncio
import ipaddress
import os
import socket
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from OpenSSL import SSL, crypto

from tls_cert_check.config import Config
from tls_cert_check.errors import ErrorKind, ProbeError
from tls_cert_check.logger import get_logger
from tls_cert_check.ssl_info import SslInfo
from tls_cert_check.targets import FILE, Target
from tls_cert_check.truststore import build_ssl_context, build_store

READ_SIZE = 65536


class Probe:
    """Base class for probe strategies."""

    def __init__(self, config: Config):
        self.config = config
        self.logger = get_logger("probe")

    async def probe(self, target: Target) -> SslInfo:
        raise NotImplementedError


class NetworkProbe(Probe):
    """
    Probe a TLS endpoint.

    The handshake runs over asyncio streams through an in-memory TLS session,
    so the full peer chain is available on every interpreter. Connect and
    handshake share one ``timeout`` budget. The context caps the negotiated
    version at ``ssl_max_version`` (TLSv1.2 by default).
    """

    async def probe(self, target: Target) -> SslInfo:
        measured_at = datetime.now(timezone.utc)
        host = target.host
        port = target.port

        try:
            context = build_ssl_context(
                ca_path=self.config.ca_path,
                ca_file=self.config.ca_file,
                verify_mode=self.config.verify_mode,
                cert=self.config.cert,
                key=self.config.key,
                min_version=self.config.ssl_min_version,
                max_version=self.config.ssl_max_version,
            )
            certificate, chain, version = await asyncio.wait_for(
                self._handshake(host, port, context), timeout=self.config.timeout
            )
        except Exception as e:
            return SslInfo(
                host=host, port=port, error=ProbeError.from_exception(e), measured_at=measured_at
            )

        error = None
        if certificate is None:
            error = ProbeError(ErrorKind.NO_PEER_CERTIFICATE, "peer did not present a certificate")

        return SslInfo(
            host=host,
            port=port,
            certificate=certificate,
            certificate_chain=chain,
            protocol_version=version,
            error=error,
            measured_at=measured_at,
        )

    async def _handshake(
        self, host: str, port: int, context: SSL.Context
    ) -> Tuple[Optional[x509.Certificate], List[x509.Certificate], Optional[str]]:
        reader, writer = await asyncio.open_connection(host, port)
        try:
            connection = SSL.Connection(context, None)
            if self.config.sni and not _is_ip_address(host):
                connection.set_tlsext_host_name(host.encode("idna"))
            connection.set_connect_state()

            while True:
                try:
                    connection.do_handshake()
                    break
                except SSL.WantReadError:
                    await _flush(connection, writer)
                    data = await reader.read(READ_SIZE)
                    if not data:
                        raise ConnectionResetError("connection closed during TLS handshake")
                    connection.bio_write(data)

            certificate = connection.get_peer_certificate(as_cryptography=True)
            chain = connection.get_peer_cert_chain(as_cryptography=True) or []
            version = connection.get_protocol_version_name()

            connection.shutdown()
            await _flush(connection, writer)
            return certificate, list(chain), version
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                self.logger.debug(f"Error closing connection to {host}:{port}: {e}")


def _is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


async def _flush(connection: SSL.Connection, writer: asyncio.StreamWriter) -> None:
    """Send whatever the TLS session has queued for the peer."""
    while True:
        try:
            data = connection.bio_read(READ_SIZE)
        except SSL.WantReadError:
            break
        writer.write(data)
    await writer.drain()


class FileProbe(Probe):
    """Probe a local certificate file against the trust store, without network I/O."""

    async def probe(self, target: Target) -> SslInfo:
        return self.check_file(target.path)

    def check_file(self, path: str) -> SslInfo:
        measured_at = datetime.now(timezone.utc)
        absolute_path = os.path.abspath(os.path.expanduser(path))
        host = socket.gethostname()

        try:
            certificate = load_certificate(Path(absolute_path))
        except OSError as e:
            error = ProbeError.from_exception(e)
            if error.kind.level != "file":
                error = ProbeError(ErrorKind.FILE_UNREADABLE, error.message)
            return SslInfo(host=host, path=absolute_path, error=error, measured_at=measured_at)
        except (ValueError, UnsupportedAlgorithm) as e:
            return SslInfo(
                host=host,
                path=absolute_path,
                error=ProbeError.from_exception(e),
                measured_at=measured_at,
            )

        chain: List[x509.Certificate] = [certificate]
        error = None
        try:
            store = build_store(ca_path=self.config.ca_path, ca_file=self.config.ca_file)
            store_context = crypto.X509StoreContext(store, crypto.X509.from_cryptography(certificate))
            chain = [cert.to_cryptography() for cert in store_context.get_verified_chain()]
        except crypto.X509StoreContextError as e:
            error = ProbeError(ErrorKind.CERTIFICATE_VERIFY, str(e))
        except crypto.Error as e:
            error = ProbeError.from_exception(e)

        return SslInfo(
            host=host,
            path=absolute_path,
            certificate=certificate,
            certificate_chain=chain,
            error=error,
            measured_at=measured_at,
        )


def load_certificate(file_path: Path) -> x509.Certificate:
    """Load a PEM or DER certificate file."""
    with open(file_path, "rb") as f:
        cert_data = f.read()

    try:
        return x509.load_pem_x509_certificate(cert_data)
    except ValueError:
        try:
            return x509.load_der_x509_certificate(cert_data)
        except ValueError as e:
            raise ValueError(f"Could not parse as PEM or DER: {e}") from e


def probe_for(target: Target, config: Config) -> Probe:
    """Pick the probe strategy for a target."""
    if target.kind == FILE:
        return FileProbe(config)
    return NetworkProbe(config)
