"""
Turns a response body into something more useful, depending on its media type.

    application/json                     -> the decoded JSON value
    text/xml, application/xml            -> a flat dict of key=value&key=value pairs
    application/x-www-form-urlencoded    -> a dict of form fields
    everything else                      -> the raw bytes
"""

import json
import logging
import urllib.parse
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


def decode_json(content: bytes, charset: str) -> Any:
    # json.loads detects UTF-8/16/32 on its own, the declared charset is only
    # relevant for bodies that are not valid UTF at all.
    try:
        return json.loads(content)
    except UnicodeDecodeError:
        return json.loads(content.decode(charset))


def decode_flat_pairs(content: bytes, charset: str) -> dict[str, str]:
    """
    Splits a body of the form `a=1&b=2` into a dict.
    Only values are percent-decoded. A pair without "=" maps to "".
    """
    text = content.decode(charset, errors="replace").strip()
    ret: dict[str, str] = {}
    if not text:
        return ret
    for part in text.split("&"):
        key, _, value = part.partition("=")
        ret[key] = urllib.parse.unquote_plus(value, encoding=charset, errors="replace")
    return ret


def decode_form(content: bytes, charset: str) -> dict[str, str]:
    text = content.decode(charset, errors="replace")
    return dict(
        urllib.parse.parse_qsl(
            text, keep_blank_values=True, encoding=charset, errors="replace"
        )
    )


decoders: dict[str, Callable[[bytes, str], Any]] = {
    "application/json": decode_json,
    "text/xml": decode_flat_pairs,
    "application/xml": decode_flat_pairs,
    "application/x-www-form-urlencoded": decode_form,
}


def decode(content: bytes, media_type: str | None, charset: str) -> Any:
    """
    Returns the entity for a response body.

    Bodies that cannot be decoded are logged and returned unchanged.
    """
    decoder = decoders.get((media_type or "").lower())
    if decoder is None or not content:
        return content
    try:
        return decoder(content, charset)
    except (ValueError, LookupError) as e:
        logger.warning(f"Cannot decode {media_type} body: {e}")
        return content
