"""
Every exception httpclient raises for a failed request is a subclass of
HttpClientException. Low-level socket.error and OpenSSL.SSL.Error instances are
translated at the file-like boundary (see httpclient.net.tcp) and never
propagate to users directly.

All of these are terminal for the current request. We do not retry.

See also: http://lucumr.pocoo.org/2014/10/16/on-error-handling/
"""


class HttpClientException(Exception):
    """
    Base class for all exceptions thrown by httpclient.
    """

    def __init__(self, message=None):
        super().__init__(message)


class ConnectError(HttpClientException):
    """
    The socket could not be opened, or broke down while we were using it.

    `errno` carries the OS-level error code if there was one.
    """

    def __init__(self, message=None, errno: int | None = None):
        super().__init__(message)
        self.errno = errno


class TlsException(ConnectError):
    """The TLS handshake failed or the peer certificate was rejected."""


class TcpDisconnect(ConnectError):
    """The remote end reset or closed the connection during I/O."""


class TcpTimeout(HttpClientException, TimeoutError):
    """
    A connect or read deadline was exceeded.

    This is also an instance of the built-in TimeoutError, so callers can
    distinguish timeouts without importing httpclient.
    """


class ProxyTunnelError(HttpClientException):
    """The proxy answered our CONNECT request with something other than 200."""

    def __init__(self, code: int, reason: str):
        super().__init__(f"Proxy refused tunnel: {code} {reason}")
        self.code = code
        self.reason = reason


class ProtocolParseError(HttpClientException):
    """
    The peer sent something we cannot make sense of: a missing or malformed
    status line, broken message framing or an undecodable content encoding.
    """
