"""
Trust store construction for TLS Certificate Check.

Both builders start from the platform default CAs and add the optional
``ca_path`` directory and ``ca_file`` bundle. Unreadable locations raise.
"""

import ssl
from typing import Optional

from OpenSSL import SSL, crypto

from tls_cert_check.config import DEFAULT_MAX_VERSION, VerifyMode

PROTOCOL_VERSIONS = {
    "TLSv1": SSL.TLS1_VERSION,
    "TLSv1_1": SSL.TLS1_1_VERSION,
    "TLSv1_2": SSL.TLS1_2_VERSION,
    "TLSv1_3": SSL.TLS1_3_VERSION,
}


def build_store(ca_path: Optional[str] = None, ca_file: Optional[str] = None) -> crypto.X509Store:
    """
    Build an X509 store used to verify local certificate files.

    Args:
        ca_path: Directory of hashed CA certificates
        ca_file: CA bundle file

    Returns:
        Store loaded with default and extra CAs

    Raises:
        OpenSSL.crypto.Error: a given location can not be loaded
    """
    store = crypto.X509Store()

    # Platform defaults; either location is None when missing on this host
    defaults = ssl.get_default_verify_paths()
    if defaults.cafile or defaults.capath:
        store.load_locations(defaults.cafile, defaults.capath)

    if ca_path:
        store.load_locations(None, ca_path)
    if ca_file:
        store.load_locations(ca_file)
    return store


def _verify_callback(
    connection: SSL.Connection, certificate: crypto.X509, errno: int, depth: int, ok: int
) -> bool:
    return bool(ok)


def _accept_any(
    connection: SSL.Connection, certificate: crypto.X509, errno: int, depth: int, ok: int
) -> bool:
    return True


def build_ssl_context(
    ca_path: Optional[str] = None,
    ca_file: Optional[str] = None,
    verify_mode: VerifyMode = VerifyMode.PEER,
    cert: Optional[str] = None,
    key: Optional[str] = None,
    min_version: Optional[str] = None,
    max_version: Optional[str] = DEFAULT_MAX_VERSION,
) -> SSL.Context:
    """
    Build the client TLS context used by network probes.

    Hostnames are never matched against the certificate: ``peer`` only checks
    the chain against the trust store.

    Args:
        ca_path: Directory of hashed CA certificates
        ca_file: CA bundle file
        verify_mode: ``none`` or ``peer``
        cert: Client certificate chain, used only together with ``key``
        key: Client private key
        min_version: Lowest TLS version name to negotiate, e.g. ``TLSv1_2``
        max_version: Highest TLS version name to negotiate

    Returns:
        Configured pyOpenSSL context
    """
    context = SSL.Context(SSL.TLS_CLIENT_METHOD)
    if verify_mode == VerifyMode.NONE:
        context.set_verify(SSL.VERIFY_NONE, _accept_any)
    else:
        context.set_verify(SSL.VERIFY_PEER, _verify_callback)

    context.set_default_verify_paths()
    if ca_path or ca_file:
        context.load_verify_locations(ca_file, ca_path)

    if cert and key:
        context.use_certificate_chain_file(cert)
        context.use_privatekey_file(key)

    if min_version:
        context.set_min_proto_version(PROTOCOL_VERSIONS[min_version])
    if max_version:
        context.set_max_proto_version(PROTOCOL_VERSIONS[max_version])

    return context
