import datetime
import ipaddress
import socket
import threading
from dataclasses import dataclass
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID
from cryptography.x509.oid import NameOID
from OpenSSL import SSL


@dataclass
class CertFiles:
    ca: Path
    cert: Path
    key: Path


def _name(cn: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, cn)])


def make_certs(directory: Path) -> CertFiles:
    """
    Mints a throwaway CA and a server certificate for localhost and 127.0.0.1.
    """
    now = datetime.datetime.now(datetime.timezone.utc)
    ca_key = ec.generate_private_key(ec.SECP256R1())
    ca_cert = (
        x509.CertificateBuilder()
        .subject_name(_name("httpclient test CA"))
        .issuer_name(_name("httpclient test CA"))
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(ca_key.public_key()),
            critical=False,
        )
        .sign(ca_key, hashes.SHA256())
    )

    key = ec.generate_private_key(ec.SECP256R1())
    cert = (
        x509.CertificateBuilder()
        .subject_name(_name("localhost"))
        .issuer_name(ca_cert.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName("localhost"),
                    x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
                ]
            ),
            critical=False,
        )
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_key.public_key()),
            critical=False,
        )
        .sign(ca_key, hashes.SHA256())
    )

    files = CertFiles(
        ca=directory / "ca.pem",
        cert=directory / "server.pem",
        key=directory / "server.key",
    )
    files.ca.write_bytes(ca_cert.public_bytes(serialization.Encoding.PEM))
    files.cert.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    files.key.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return files


@pytest.fixture(scope="session")
def certs(tmp_path_factory) -> CertFiles:
    return make_certs(tmp_path_factory.mktemp("certs"))


@pytest.fixture(scope="session")
def server_tls_context(certs) -> SSL.Context:
    context = SSL.Context(SSL.TLS_SERVER_METHOD)
    context.use_certificate_file(str(certs.cert))
    context.use_privatekey_file(str(certs.key))
    return context


class Peer:
    """
    The server side of a test connection, plain or TLS.
    """

    def __init__(self, connection):
        self.connection = connection

    def recv(self, n: int) -> bytes:
        try:
            return self.connection.recv(n)
        except (SSL.ZeroReturnError, SSL.SysCallError):
            return b""

    def readline(self) -> bytes:
        line = b""
        while not line.endswith(b"\n"):
            ch = self.recv(1)
            if not ch:
                break
            line += ch
        return line

    def read_head(self) -> bytes:
        head = b""
        while not head.endswith(b"\r\n\r\n"):
            ch = self.recv(1)
            if not ch:
                break
            head += ch
        return head

    def read_exactly(self, n: int) -> bytes:
        data = b""
        while len(data) < n:
            chunk = self.recv(n - len(data))
            if not chunk:
                break
            data += chunk
        return data

    def read_request(self) -> tuple[bytes, bytes]:
        """Returns the request head and the body, framed by Content-Length."""
        head = self.read_head()
        length = 0
        for line in head.split(b"\r\n")[1:]:
            name, _, value = line.partition(b":")
            if name.strip().lower() == b"content-length":
                length = int(value)
        return head, self.read_exactly(length)

    def sendall(self, data: bytes) -> None:
        self.connection.sendall(data)

    def start_tls(self, context: SSL.Context) -> None:
        # OpenSSL needs a blocking socket here
        self.connection.settimeout(None)
        conn = SSL.Connection(context, self.connection)
        conn.set_accept_state()
        conn.do_handshake()
        self.connection = conn


class TServer:
    """
    A threaded test server. Every accepted connection is passed to
    `handler(peer, server)` in its own thread. Requests the handler records
    end up in `server.received`, exceptions in `server.errors`.
    """

    def __init__(self, handler, tls_context: SSL.Context | None = None):
        self.handler = handler
        self.tls_context = tls_context
        self.received: list[bytes] = []
        self.errors: list[BaseException] = []
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(16)
        self.port = self.sock.getsockname()[1]
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    @property
    def address(self) -> tuple[str, int]:
        return "127.0.0.1", self.port

    def _serve(self):
        while True:
            try:
                client, _ = self.sock.accept()
            except OSError:
                return
            threading.Thread(target=self._handle, args=(client,), daemon=True).start()

    def _handle(self, client: socket.socket):
        client.settimeout(5)
        peer = Peer(client)
        try:
            if self.tls_context is not None:
                peer.start_tls(self.tls_context)
            self.handler(peer, self)
        except Exception as e:
            self.errors.append(e)
        finally:
            try:
                client.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            client.close()

    def shutdown(self):
        try:
            # wakes up the accept() call
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.sock.close()


@pytest.fixture
def tserver():
    """
    Factory for test servers: tserver(handler, tls_context=None).
    All servers are shut down after the test.
    """
    servers = []

    def make(handler, tls_context=None) -> TServer:
        server = TServer(handler, tls_context)
        servers.append(server)
        return server

    yield make
    for server in servers:
        server.shutdown()


def _respond(response: bytes):
    """A handler that reads one request and answers with `response`."""

    def handler(peer: Peer, server: TServer):
        head, body = peer.read_request()
        server.received.append(head + body)
        peer.sendall(response)

    return handler


def _tunnel(origin=None, answer=b"HTTP/1.1 200 Connection Established\r\n\r\n", tls_context=None):
    """
    A handler that plays a CONNECT proxy. After answering the CONNECT request,
    the same connection is handed to `origin`, upgraded to TLS first if
    `tls_context` is given.
    """

    def handler(peer: Peer, server: TServer):
        head = peer.read_head()
        server.received.append(head)
        peer.sendall(answer)
        if origin is not None:
            if tls_context is not None:
                peer.start_tls(tls_context)
            origin(peer, server)

    return handler


@pytest.fixture
def closed_port() -> int:
    """A local port nobody listens on."""
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


@pytest.fixture
def respond():
    return _respond


@pytest.fixture
def tunnel():
    return _tunnel
