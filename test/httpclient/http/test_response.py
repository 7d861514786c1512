from httpclient.http.headers import Headers
from httpclient.http.response import InboundResponse


def tresp(headers=(), body=b"", status_code=200, reason="OK") -> InboundResponse:
    return InboundResponse.from_parts("HTTP/1.1", status_code, reason, Headers(headers), body)


def test_defaults():
    r = InboundResponse()
    assert r.status_code == 0
    assert r.charset == "ISO-8859-1"
    assert r.content_type is None
    assert r.get_header("content-type") is None
    assert r.raw_body == b""


def test_get_header():
    r = tresp([("content-type", "text/plain"), ("x-multi", "a"), ("x-multi", "b")])
    assert r.get_header("Content-Type") == "text/plain"
    assert r.get_header("CONTENT-TYPE") == "text/plain"
    assert r.get_header("X-Multi") == "a, b"
    assert r.get_header("X-Missing") is None


def test_content_type_and_charset():
    r = tresp([("content-type", "Application/JSON; charset=utf-8")], b'{"a":1}')
    assert r.content_type == "application/json"
    assert r.charset == "utf-8"
    assert r.entity["a"] == 1

    r = tresp([("content-type", "text/plain")], b"x")
    assert r.content_type == "text/plain"
    assert r.charset == "ISO-8859-1"
    assert r.entity == b"x"

    r = tresp([], b"raw")
    assert r.content_type is None
    assert r.entity == b"raw"


def test_text():
    r = tresp([("content-type", "text/plain; charset=utf-8")], "J\xfcrgen".encode("utf-8"))
    assert r.text == "J\xfcrgen"

    r = tresp([("content-type", "text/plain")], b"caf\xe9")
    assert r.text == "caf\xe9"

    r = tresp([("content-type", "text/plain; charset=bogus")], b"caf\xe9")
    assert r.text == "caf\xe9"


def test_repr():
    r = tresp([("content-type", "text/plain")], b"abc", 404, "Not Found")
    assert "404" in repr(r)
    assert "text/plain" in repr(r)
