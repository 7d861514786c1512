from dataclasses import dataclass
from dataclasses import field
from typing import Any

from httpclient.http import entity as entity_decoding
from httpclient.http.headers import DEFAULT_CHARSET
from httpclient.http.headers import Headers
from httpclient.http.headers import parse_content_type


@dataclass
class InboundResponse:
    """
    A parsed HTTP/1 response.

    `raw_body` holds the body after content decoding, `entity` its
    interpretation according to the media type (see httpclient.http.entity).
    A status code of 0 means no status line has been parsed.
    """

    status_code: int = 0
    reason: str = ""
    http_version: str = ""
    headers: Headers = field(default_factory=Headers)
    raw_body: bytes = b""
    content_type: str | None = None
    charset: str = DEFAULT_CHARSET
    entity: Any = None

    @classmethod
    def from_parts(
        cls,
        http_version: str,
        status_code: int,
        reason: str,
        headers: Headers,
        raw_body: bytes,
    ) -> "InboundResponse":
        content_type = None
        charset = DEFAULT_CHARSET
        if "content-type" in headers:
            content_type, params = parse_content_type(headers["content-type"])
            if params.get("charset"):
                charset = params["charset"]
        return cls(
            status_code=status_code,
            reason=reason,
            http_version=http_version,
            headers=headers,
            raw_body=raw_body,
            content_type=content_type,
            charset=charset,
            entity=entity_decoding.decode(raw_body, content_type, charset),
        )

    def __repr__(self):
        return f"<InboundResponse {self.status_code} {self.reason} ({self.content_type or 'no content type'}, {len(self.raw_body)} bytes)>"

    def get_header(self, name: str) -> str | None:
        return self.headers.get(name)

    @property
    def text(self) -> str:
        """
        The body decoded with the response charset. Undecodable bytes are replaced.
        """
        try:
            return self.raw_body.decode(self.charset, errors="replace")
        except LookupError:
            return self.raw_body.decode(DEFAULT_CHARSET)
