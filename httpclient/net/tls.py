import ipaddress
import logging
import os
from enum import Enum
from functools import lru_cache

import certifi
from OpenSSL import SSL

from httpclient import exceptions

logger = logging.getLogger(__name__)


class Verify(Enum):
    VERIFY_NONE = SSL.VERIFY_NONE
    VERIFY_PEER = SSL.VERIFY_PEER


DEFAULT_MIN_VERSION = SSL.TLS1_2_VERSION
# Many servers close the connection without sending close_notify after the body,
# OpenSSL 3 would report that as an error.
DEFAULT_OPTIONS = SSL.OP_NO_COMPRESSION | getattr(
    SSL._lib, "SSL_OP_IGNORE_UNEXPECTED_EOF", 0  # type: ignore
)

# Matching on the CN is disabled in both Chrome and Firefox, so we disable it, too.
# https://www.chromestatus.com/feature/4981025180483584
DEFAULT_HOSTFLAGS = (
    SSL._lib.X509_CHECK_FLAG_NO_PARTIAL_WILDCARDS  # type: ignore
    | getattr(SSL._lib, "X509_CHECK_FLAG_NEVER_CHECK_SUBJECT", 0)  # type: ignore
)


@lru_cache(256)
def create_client_context(
    *,
    ca_pemfile: str | None = None,
    passphrase: str | None = None,
    verify: Verify = Verify.VERIFY_PEER,
) -> SSL.Context:
    """
    Creates a TLS client context.

    Contexts carry no connection state, so they are cached and shared between
    requests.

    Args:
        ca_pemfile: Path to a PEM file of trusted CA certificates. If None, the
            OpenSSL default verify paths and the certifi bundle are trusted.
        passphrase: Handed to OpenSSL whenever it asks for a password while
            loading key material.
        verify: Whether to verify the peer's certificate chain.

    Raises:
        TlsException, if the trusted certificates cannot be loaded.
    """
    context = SSL.Context(SSL.TLS_CLIENT_METHOD)
    context.set_min_proto_version(DEFAULT_MIN_VERSION)
    context.set_options(DEFAULT_OPTIONS)

    if passphrase:
        secret = passphrase.encode("utf8")
        context.set_passwd_cb(lambda *args: secret)

    context.set_verify(verify.value, None)

    try:
        if ca_pemfile is None:
            context.set_default_verify_paths()
            context.load_verify_locations(certifi.where())
        else:
            context.load_verify_locations(ca_pemfile)
    except SSL.Error as e:
        raise exceptions.TlsException(
            f"Cannot load trusted certificates ({ca_pemfile=}): {e}"
        ) from e

    return context


def default_client_context(
    ca_path: str | None, passphrase: str | None = None
) -> SSL.Context:
    """
    The trust context used when a request does not bring its own.

    If `ca_path` points to an existing file, only that CA bundle is trusted.
    Otherwise we fall back to the platform trust store.
    """
    if ca_path and os.path.isfile(ca_path):
        logger.debug(f"Using CA bundle {ca_path}")
        return create_client_context(ca_pemfile=ca_path, passphrase=passphrase)
    if ca_path:
        logger.debug(f"CA bundle {ca_path} does not exist, using platform trust.")
    return create_client_context()


def configure_client_connection(conn: SSL.Connection, server_name: str) -> None:
    """
    Sets SNI and enables hostname verification for `server_name` on a fresh
    client connection. Verification only applies if the context verifies
    peers at all.
    """
    verify = conn.get_context().get_verify_mode() != SSL.VERIFY_NONE
    # Manually enable hostname verification on the connection object.
    # https://wiki.openssl.org/index.php/Hostname_validation
    param = SSL._lib.SSL_get0_param(conn._ssl)  # type: ignore
    SSL._lib.X509_VERIFY_PARAM_set_hostflags(param, DEFAULT_HOSTFLAGS)  # type: ignore

    try:
        ip: bytes = ipaddress.ip_address(server_name).packed
    except ValueError:
        host_name = server_name.encode("idna")
        conn.set_tlsext_host_name(host_name)
        if verify:
            ok = SSL._lib.X509_VERIFY_PARAM_set1_host(  # type: ignore
                param, host_name, len(host_name)
            )
            SSL._openssl_assert(ok == 1)  # type: ignore
    else:
        # RFC 6066: Literal IPv4 and IPv6 addresses are not permitted in "HostName",
        # so we don't call set_tlsext_host_name.
        if verify:
            ok = SSL._lib.X509_VERIFY_PARAM_set1_ip(param, ip, len(ip))  # type: ignore
            SSL._openssl_assert(ok == 1)  # type: ignore

    conn.set_connect_state()
