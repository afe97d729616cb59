import logging
from typing import Optional
from urllib.parse import quote

import httpx

from mirror_proxy.config import MirrorConfig

logger = logging.getLogger("uvicorn.error")

DEFAULT_CHARSET = "utf-8"

# Encodings the text path can undo; br relies on the brotli extra of httpx
DECODABLE_ENCODINGS = {"identity", "gzip", "x-gzip", "deflate", "br"}


def is_rewritable(content_type: str, config: MirrorConfig) -> bool:
    """Case-sensitive substring match against the text allow-list."""
    if not content_type:
        return False
    return any(allowed in content_type for allowed in config.text_content_types)


def get_charset(content_type: str) -> str:
    for param in content_type.split(";")[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset":
            return value.strip().strip("\"'") or DEFAULT_CHARSET
    return DEFAULT_CHARSET


def rewrite_text(text: str, upstream_host: str, mirror_host: str) -> str:
    """Replace the upstream host with the mirror host, literal and percent-encoded."""
    text = text.replace(upstream_host, mirror_host)
    encoded_upstream = quote(upstream_host, safe="")
    if encoded_upstream != upstream_host:
        text = text.replace(encoded_upstream, quote(mirror_host, safe=""))
    return text


def rewrite_content(
    content: bytes, content_type: str, upstream_host: str, mirror_host: str
) -> Optional[bytes]:
    """
    Decode, rewrite and re-encode a text body.

    Returns None when the body cannot be decoded with its declared charset;
    the caller then relays the bytes it already holds.
    """
    charset = get_charset(content_type)
    try:
        text = content.decode(charset)
        return rewrite_text(text, upstream_host, mirror_host).encode(charset)
    except (UnicodeError, LookupError) as e:
        logger.warning(
            f"[Mirror] Cannot decode {content_type!r} body as {charset}, passing through: {e}"
        )
        return None


def decompress_body(raw: bytes, content_encoding: str) -> Optional[bytes]:
    """
    Undo the transfer compression declared by ``Content-Encoding``.

    Returns None when an encoding is unknown or the bytes do not match it,
    so the caller can relay ``raw`` with its original headers.
    """
    encodings = [e.strip().lower() for e in content_encoding.split(",") if e.strip()]
    if not encodings:
        return raw
    unknown = [e for e in encodings if e not in DECODABLE_ENCODINGS]
    if unknown:
        logger.warning(f"[Mirror] Unsupported content-encoding {unknown}, passing through")
        return None
    try:
        # httpx decodes (and validates) the body while building the response
        return httpx.Response(
            200, headers={"Content-Encoding": content_encoding}, content=raw
        ).content
    except httpx.DecodingError as e:
        logger.warning(
            f"[Mirror] Cannot decompress {content_encoding!r} body, passing through: {e}"
        )
        return None
