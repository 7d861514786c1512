import logging
import re
from collections.abc import Iterable
from collections.abc import Iterator

from httpclient import exceptions
from httpclient.http import encoding
from httpclient.http.headers import Headers
from httpclient.http.response import InboundResponse

logger = logging.getLogger(__name__)

# Status line plus all header lines.
MAX_HEAD_SIZE = 64 * 1024
MAX_CHUNK_LINE = 1024


def read_head(rfile) -> list[bytes]:
    """
    Read an HTTP/1 head (status line + header lines) from a file-like object,
    up to and including the terminating blank line. Nothing past the blank
    line is consumed, as long as rfile.readline does not over-read.

    Leading blank lines are skipped.

    Returns:
        The lines of the head without line terminators, status line first.

    Raises:
        ProtocolParseError, if the stream ends before a status line was read
        or the head exceeds MAX_HEAD_SIZE.
    """
    lines: list[bytes] = []
    size = 0
    while True:
        line = rfile.readline(MAX_HEAD_SIZE - size + 1)
        size += len(line)
        if size > MAX_HEAD_SIZE:
            raise exceptions.ProtocolParseError(
                f"HTTP head exceeds {MAX_HEAD_SIZE} bytes"
            )
        if not line:
            if not lines:
                raise exceptions.ProtocolParseError(
                    "Server closed the connection before sending a status line"
                )
            break
        if not lines and not line.strip():
            # blank lines before the status line are tolerated
            continue
        if line in (b"\r\n", b"\n"):
            break
        lines.append(line.rstrip(b"\r\n"))
    return lines


def raise_if_http_version_unknown(http_version: str) -> None:
    if not re.match(r"^HTTP/\d\.\d$", http_version):
        raise ValueError(f"Unknown HTTP version: {http_version!r}")


def _read_response_line(line: bytes) -> tuple[str, int, str]:
    try:
        parts = line.decode("latin-1").strip().split(None, 2)
        if len(parts) == 2:  # handle missing message gracefully
            parts.append("")

        http_version, status_code_str, reason = parts
        status_code = int(status_code_str)
        raise_if_http_version_unknown(http_version)
    except ValueError as e:
        raise exceptions.ProtocolParseError(f"Bad HTTP response line: {line!r}") from e

    return http_version, status_code, reason


def _read_headers(lines: Iterable[bytes]) -> Headers:
    """
    Read a set of header lines. Header names are lowercased, folded
    continuation lines are joined with a single space.
    Lines without a colon are skipped.
    """
    ret: list[list[str]] = []
    for raw in lines:
        line = raw.decode("latin-1")
        if line[:1] in (" ", "\t"):
            if not ret:
                logger.warning(f"Skipping continuation line without a header: {raw!r}")
                continue
            if not line.strip():
                continue
            # continued header
            ret[-1][1] = f"{ret[-1][1]} {line.strip()}"
        else:
            name, sep, value = line.partition(":")
            name = name.strip()
            if not sep or not name:
                logger.warning(f"Skipping invalid header line: {raw!r}")
                continue
            ret.append([name.lower(), value.strip()])
    return Headers((name, value) for name, value in ret)


def read_response_head(lines: list[bytes]) -> tuple[str, int, str, Headers]:
    """
    Parse a response head as returned by read_head.

    Raises:
        ProtocolParseError, if the status line is malformed.
    """
    http_version, status_code, reason = _read_response_line(lines[0])
    headers = _read_headers(lines[1:])
    return http_version, status_code, reason, headers


def expected_body_size(method: str | None, status_code: int, headers: Headers) -> int | None:
    """
    Returns:
        The expected body length:
        - a positive integer, if the size is known in advance
        - None, if the size in unknown in advance (chunked encoding)
        - -1, if all data should be read until end of stream.

    Raises:
        ProtocolParseError, if the content length header is invalid
    """
    # https://tools.ietf.org/html/rfc7230#section-3.3
    if method and method.upper() == "HEAD":
        return 0
    if 100 <= status_code <= 199:
        return 0
    if status_code in (204, 304):
        return 0

    if "transfer-encoding" in headers:
        te = headers["transfer-encoding"].lower()
        codings = [c.strip() for c in te.split(",")]
        if codings[-1] == "chunked":
            return None
        return -1

    if "content-length" in headers:
        sizes = headers.get_all("content-length")
        if any(x != sizes[0] for x in sizes):
            raise exceptions.ProtocolParseError(
                f"Conflicting Content-Length headers: {sizes!r}"
            )
        try:
            size = int(sizes[0])
        except ValueError:
            raise exceptions.ProtocolParseError(
                f"Invalid Content-Length header: {sizes[0]!r}"
            )
        if size < 0:
            raise exceptions.ProtocolParseError(
                f"Negative Content-Length header: {sizes[0]!r}"
            )
        return size

    return -1


def read_body(rfile, expected_size: int | None, max_chunk_size: int = 4096) -> Iterator[bytes]:
    """
    Read an HTTP message body

    Args:
        rfile: The input stream
        expected_size: The expected body size (see expected_body_size)
        max_chunk_size: Maximum chunk size that gets yielded

    Returns:
        A generator that yields byte chunks of the content.

    Raises:
        ProtocolParseError, if the body is shorter than announced
            or chunked encoding is malformed.
    """
    if expected_size is None:
        yield from _read_chunked(rfile)
    elif expected_size >= 0:
        bytes_left = expected_size
        while bytes_left:
            chunk_size = min(bytes_left, max_chunk_size)
            content = rfile.read(chunk_size)
            if not content:
                raise exceptions.ProtocolParseError(
                    f"Unexpected EOF, {bytes_left} of {expected_size} body bytes missing"
                )
            yield content
            bytes_left -= len(content)
    else:
        while True:
            content = rfile.read(max_chunk_size)
            if not content:
                return
            yield content


def _read_chunked(rfile) -> Iterator[bytes]:
    """
    Read a HTTP body with chunked transfer encoding. Chunk extensions and
    trailers are discarded.
    """
    while True:
        line = rfile.readline(MAX_CHUNK_LINE)
        if line == b"":
            raise exceptions.ProtocolParseError("Connection closed prematurely")
        if line in (b"\r\n", b"\n"):
            continue
        try:
            length = int(line.split(b";", 1)[0].strip(), 16)
            if length < 0:
                raise ValueError()
        except ValueError:
            raise exceptions.ProtocolParseError(
                f"Invalid chunked encoding length: {line!r}"
            )
        if length == 0:
            # trailers, terminated by a blank line
            while True:
                trailer = rfile.readline(MAX_CHUNK_LINE)
                if trailer in (b"", b"\r\n", b"\n"):
                    return
        chunk = rfile.read(length)
        if len(chunk) != length:
            raise exceptions.ProtocolParseError("Connection closed prematurely")
        suffix = rfile.readline(5)
        if suffix not in (b"\r\n", b"\n"):
            raise exceptions.ProtocolParseError("Malformed chunked body")
        yield chunk


def read_response(rfile, method: str | None = None) -> InboundResponse:
    """
    Read a complete response from rfile, decoding its body.

    Informational (1xx) responses other than 101 are skipped.

    Raises:
        ProtocolParseError, if the response is malformed or its content
            encoding cannot be decoded.
        TcpDisconnect, TcpTimeout, if reading fails.
    """
    while True:
        http_version, status_code, reason, headers = read_response_head(read_head(rfile))
        if 100 <= status_code <= 199 and status_code != 101:
            logger.debug(f"Skipping informational response {status_code} {reason}")
            continue
        break
    logger.debug(f"<< {http_version} {status_code} {reason}")

    size = expected_body_size(method, status_code, headers)
    raw = b"".join(read_body(rfile, size))

    if "content-encoding" in headers:
        try:
            raw = encoding.decode(raw, headers["content-encoding"])
        except ValueError as e:
            raise exceptions.ProtocolParseError(str(e)) from e

    return InboundResponse.from_parts(http_version, status_code, reason, headers, raw)
