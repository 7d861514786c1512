"""
Reverses the Content-Encoding of response bodies.

Only the codings we advertise in Accept-Encoding (gzip and deflate) are
decoded. Anything else is handed to the caller as is.
"""

import gzip
import logging
import zlib

logger = logging.getLogger(__name__)


def _identity(content: bytes) -> bytes:
    return content


def _gunzip(content: bytes) -> bytes:
    return gzip.decompress(content)


def _inflate(content: bytes) -> bytes:
    # Some servers send a raw DEFLATE stream without the zlib header and
    # checksum. See http://bugs.python.org/issue5784
    try:
        return zlib.decompress(content)
    except zlib.error:
        return zlib.decompress(content, -zlib.MAX_WBITS)


decoders = {
    "": _identity,
    "none": _identity,
    "identity": _identity,
    "gzip": _gunzip,
    "x-gzip": _gunzip,
    "deflate": _inflate,
}


def decode(encoded: bytes, content_encoding: str) -> bytes:
    """
    Reverse a Content-Encoding header value. Multiple codings are listed in
    the order they were applied, so they are undone back to front.
    Decoding stops at the first coding we don't know.

    Raises:
        ValueError, if a known coding cannot be decoded.
    """
    if not encoded:
        return encoded

    codings = [c.strip().lower() for c in content_encoding.split(",")]
    for coding in reversed(codings):
        try:
            decoder = decoders[coding]
        except KeyError:
            logger.debug(f"Not decoding unknown content encoding {coding!r}")
            return encoded
        try:
            encoded = decoder(encoded)
        except (OSError, EOFError, zlib.error) as e:
            raise ValueError(
                f"{type(e).__name__} when decoding {encoded[:10]!r} with {coding!r}: {e}"
            ) from e
    return encoded
