import logging

from httpclient.http.headers import Headers

logger = logging.getLogger(__name__)

# Headers we always write ourselves, explicit values for them are dropped.
MANAGED_HEADERS = frozenset(
    ["host", "content-type", "content-length", "accept-encoding", "connection"]
)
ACCEPT_ENCODING = "gzip, deflate"


def _assemble_request_line(request) -> bytes:
    return f"{request.method.value} {request.path} HTTP/1.1".encode("latin-1")


def _assemble_request_headers(request) -> list[tuple[str, str]]:
    """
    Returns the header fields of a request in wire order: the managed headers
    first, then everything set explicitly, in insertion order.
    """
    fields = [("Host", request.host_header)]
    if request.has_body:
        fields.append(
            ("Content-Type", f"{request.content_type};charset={request.charset}")
        )
        fields.append(("Content-Length", str(len(request.body))))
    superseded = MANAGED_HEADERS
    if request.accept:
        fields.append(("Accept", ", ".join(request.accept)))
        superseded = superseded | {"accept"}
    fields.append(("Accept-Encoding", ACCEPT_ENCODING))
    fields.append(("Connection", "close"))

    for name, value in request.header_fields:
        if name.lower() in superseded:
            logger.debug(f"Dropping explicit {name} header, it is managed by the client.")
            continue
        fields.append((name, value))
    return fields


def assemble_request_head(request) -> bytes:
    first_line = _assemble_request_line(request)
    headers = bytes(Headers(_assemble_request_headers(request)))
    return b"%s\r\n%s\r\n" % (first_line, headers)


def assemble_request(request) -> bytes:
    head = assemble_request_head(request)
    if request.has_body:
        return head + request.body
    return head


def write_request(wfile, request) -> None:
    """
    Serializes the request onto wfile.

    Raises:
        TcpDisconnect, TcpTimeout, if writing fails.
    """
    data = assemble_request(request)
    logger.debug(f">> {request.method.value} {request.target}{request.path} ({len(data)} bytes)")
    wfile.write(data)
    if hasattr(wfile, "flush"):
        wfile.flush()
