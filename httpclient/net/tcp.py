import logging
import socket
import time
from dataclasses import dataclass

from OpenSSL import SSL

from httpclient import exceptions
from httpclient.net import check
from httpclient.net import tls

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionTarget:
    """
    Where a request goes: host, port and whether to speak TLS once connected.
    """

    host: str
    port: int
    use_tls: bool = False

    def __post_init__(self):
        if not check.is_valid_host(self.host):
            raise ValueError(f"Invalid host: {self.host!r}")
        if not check.is_valid_port(self.port):
            raise ValueError(f"Invalid port: {self.port!r}")

    @property
    def address(self) -> tuple[str, int]:
        return self.host, self.port

    @property
    def authority(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    @property
    def default_port(self) -> int:
        return 443 if self.use_tls else 80

    def __str__(self):
        return self.authority


class _FileLike:
    BLOCKSIZE = 1024 * 32

    def __init__(self, o):
        self.o = o

    def set_descriptor(self, o):
        self.o = o

    def __getattr__(self, attr):
        return getattr(self.o, attr)

    def _wait(self, start: float) -> None:
        # The underlying socket has a timeout, which makes it non-blocking for OpenSSL.
        # 300 is OpenSSL default timeout
        sock = getattr(self.o, "_sock", self.o)
        timeout = sock.gettimeout() or 300
        if (time.time() - start) < timeout:
            time.sleep(0.01)
        else:
            raise exceptions.TcpTimeout()


class Writer(_FileLike):
    def flush(self):
        """
        May raise exceptions.TcpDisconnect
        """
        if hasattr(self.o, "flush"):
            try:
                self.o.flush()
            except OSError as v:
                raise exceptions.TcpDisconnect(str(v), v.errno)

    def write(self, v: bytes) -> None:
        """
        Writes all of v.

        May raise exceptions.TcpDisconnect or exceptions.TcpTimeout
        """
        view = memoryview(v)
        start = time.time()
        while view:
            try:
                if isinstance(self.o, SSL.Connection):
                    n = self.o.send(view)
                else:
                    n = self.o.write(view)
            except (SSL.WantWriteError, SSL.WantReadError):
                self._wait(start)
                continue
            except socket.timeout:
                raise exceptions.TcpTimeout("Timed out while writing")
            except OSError as e:
                raise exceptions.TcpDisconnect(str(e), e.errno)
            except SSL.Error as e:
                raise exceptions.TcpDisconnect(str(e))
            if n is None:
                # non-blocking socket.SocketIO could not write anything
                self._wait(start)
                continue
            view = view[n:]


class Reader(_FileLike):
    def read(self, length: int) -> bytes:
        """
        If length is -1, we read until connection closes.
        """
        result = b""
        start = time.time()
        while length == -1 or length > 0:
            if length == -1 or length > self.BLOCKSIZE:
                rlen = self.BLOCKSIZE
            else:
                rlen = length
            try:
                data = self.o.read(rlen)
            except SSL.ZeroReturnError:
                # TLS connection was shut down cleanly
                break
            except (SSL.WantWriteError, SSL.WantReadError):
                # From the OpenSSL docs:
                # If the underlying BIO is non-blocking, SSL_read() will also return when the
                # underlying BIO could not satisfy the needs of SSL_read() to continue the
                # operation. In this case a call to SSL_get_error with the return value of
                # SSL_read() will yield SSL_ERROR_WANT_READ or SSL_ERROR_WANT_WRITE.
                self._wait(start)
                continue
            except socket.timeout:
                raise exceptions.TcpTimeout("Timed out while reading")
            except OSError as e:
                raise exceptions.TcpDisconnect(str(e), e.errno)
            except SSL.SysCallError as e:
                if e.args == (-1, "Unexpected EOF"):
                    break
                raise exceptions.TlsException(str(e))
            except SSL.Error as e:
                raise exceptions.TlsException(str(e))
            if data is None:
                # non-blocking socket.SocketIO without data
                self._wait(start)
                continue
            if not data:
                break
            start = time.time()
            result += data
            if length != -1:
                length -= len(data)
        return result

    def readline(self, size: int | None = None) -> bytes:
        """
        Reads a single line, one byte at a time. We never consume anything
        past the line terminator, so whatever follows stays in the socket.
        """
        result = b""
        bytes_read = 0
        while True:
            if size is not None and bytes_read >= size:
                break
            ch = self.read(1)
            bytes_read += 1
            if not ch:
                break
            else:
                result += ch
                if ch == b"\n":
                    break
        return result


def close_socket(sock):
    """
    Closes our half first so that the peer sees a clean FIN rather than a RST,
    then releases the socket.
    """
    try:
        sock.shutdown(socket.SHUT_WR)
        sock.shutdown(socket.SHUT_RD)
    except OSError:
        # "Transport endpoint is not connected" if the peer is gone already
        pass
    sock.close()


def create_connection(address: tuple[str, int], timeout: float | None = None) -> socket.socket:
    # Based on the official socket.create_connection implementation of Python 3.6.
    # https://github.com/python/cpython/blob/3cc5817cfaf5663645f4ee447eaed603d2ad290a/Lib/socket.py
    host, port = address
    try:
        infos = socket.getaddrinfo(host, port, 0, socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise exceptions.ConnectError(
            f'Cannot resolve "{host}": {e.strerror}', e.errno
        ) from e

    err: OSError | None = None
    for af, socktype, proto, canonname, sa in infos:
        sock = None
        try:
            sock = socket.socket(af, socktype, proto)
            sock.settimeout(timeout)
            sock.connect(sa)
            return sock
        except OSError as e:
            err = e
            if sock is not None:
                sock.close()

    if isinstance(err, socket.timeout):
        raise exceptions.TcpTimeout(f'Timed out connecting to "{host}:{port}"')
    elif err is not None:
        raise exceptions.ConnectError(
            f'Error connecting to "{host}:{port}": {err}', err.errno
        ) from err
    else:
        raise exceptions.ConnectError(  # pragma: no cover
            "getaddrinfo returns an empty list"
        )


class Connection:
    """
    An open client connection. The connection owns its socket; nothing else
    keeps a reference to it, so every request gets its own.
    """

    def __init__(self, sock: socket.socket, address: tuple[str, int]):
        self.connection: socket.socket | SSL.Connection = sock
        self.address = address
        # Ideally, we would use the Buffered IO in Python 3 by default.
        # We need to be sure not to read anything past a header block though,
        # so we use unbuffered sockets directly.
        self.rfile = Reader(socket.SocketIO(sock, "rb"))
        self.wfile = Writer(socket.SocketIO(sock, "wb"))
        self.tls_established = False
        self.sni: str | None = None
        self.cert = None
        self.closed = False

    def __repr__(self):
        tls_state = ", tls" if self.tls_established else ""
        return f"<Connection {self.address[0]}:{self.address[1]}{tls_state}>"

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def convert_to_tls(
        self, context: SSL.Context, server_name: str, timeout: float | None = None
    ) -> None:
        """
        Performs a client-side TLS handshake on the current socket, which may
        already be a tunnel through a proxy.

        Raises:
            TlsException, if the handshake fails or the certificate is rejected.
            TcpTimeout, if the handshake does not complete within `timeout`.
        """
        conn = SSL.Connection(context, self.connection)
        tls.configure_client_connection(conn, server_name)
        self.sni = server_name

        old_timeout = self.connection.gettimeout()
        self.connection.settimeout(timeout)
        start = time.time()
        while True:
            try:
                conn.do_handshake()
                break
            except (SSL.WantReadError, SSL.WantWriteError):
                if timeout is not None and time.time() - start >= timeout:
                    raise exceptions.TcpTimeout(
                        f"TLS handshake with {server_name} timed out"
                    )
                time.sleep(0.01)
            except socket.timeout:
                raise exceptions.TcpTimeout(
                    f"TLS handshake with {server_name} timed out"
                )
            except OSError as e:
                raise exceptions.TlsException(
                    f"TLS handshake error: {e!r}", e.errno
                ) from e
            except SSL.Error as e:
                raise exceptions.TlsException(f"TLS handshake error: {e!r}") from e
        self.connection.settimeout(old_timeout)

        self.connection = conn
        self.cert = conn.get_peer_certificate()
        self.tls_established = True
        self.rfile.set_descriptor(conn)
        self.wfile.set_descriptor(conn)
        logger.debug(f"TLS established with {server_name} ({conn.get_cipher_name()})")

    def settimeout(self, n: float | None) -> None:
        self.connection.settimeout(n)

    def gettimeout(self) -> float | None:
        return self.connection.gettimeout()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Make sure to close the real socket, not the SSL proxy.
        # OpenSSL is really good at screwing up, i.e. when trying to recv from a failed connection,
        # it tries to renegotiate...
        if isinstance(self.connection, SSL.Connection):
            close_socket(self.connection._socket)
        else:
            close_socket(self.connection)


def connect(
    target: ConnectionTarget,
    context: SSL.Context | None = None,
    connect_timeout: float | None = None,
    read_timeout: float | None = None,
) -> Connection:
    """
    Opens a connection to `target`, upgrading it to TLS if `target.use_tls`.

    `connect_timeout` bounds the TCP connect and the TLS handshake,
    `read_timeout` becomes the idle timeout for all later I/O.

    Raises:
        ConnectError, if the socket cannot be opened.
        TlsException, if the TLS handshake fails.
        TcpTimeout, if connecting takes longer than `connect_timeout`.
    """
    sock = create_connection(target.address, connect_timeout)
    conn = Connection(sock, target.address)
    logger.debug(f"Connected to {target.authority}")
    try:
        if target.use_tls:
            conn.convert_to_tls(
                context or tls.create_client_context(),
                target.host,
                timeout=connect_timeout,
            )
        conn.settimeout(read_timeout)
    except BaseException:
        conn.close()
        raise
    return conn
