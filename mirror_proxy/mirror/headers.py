"""
Header sanitization for both directions of the mirror.

Request side: client-identifying headers added by the edge are dropped and
``Host`` is forced to the upstream host so virtual-host routing on the
upstream resolves regardless of the mirror domain.

Response side: headers that would impose the upstream's security policy on
mirror-served content are dropped, and successful responses get a public
cache policy.
"""

from typing import Iterable, Tuple

import httpx

from mirror_proxy.config import MirrorConfig
from mirror_proxy.utils import is_success

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Recomputed by the client from the forwarded body
REQUEST_FRAMING_HEADERS = {"content-length", "host"}


def _header_name(name) -> str:
    if isinstance(name, bytes):
        return name.decode("latin-1").lower()
    return name.lower()


def prepare_headers(incoming: Iterable[Tuple], config: MirrorConfig) -> httpx.Headers:
    """
    Build outbound request headers from the caller's headers.

    ``incoming`` may hold str or raw bytes pairs; repeated headers are kept.
    """
    forwarded = []
    for name, value in incoming:
        name_lower = _header_name(name)
        if name_lower in HOP_BY_HOP_HEADERS or name_lower in REQUEST_FRAMING_HEADERS:
            continue
        if name_lower in config.strip_request_headers:
            continue
        forwarded.append((name, value))

    headers = httpx.Headers(forwarded)
    headers["Host"] = config.upstream_host
    return headers


def sanitize_response_headers(
    upstream_headers: httpx.Headers, status_code: int, config: MirrorConfig
) -> httpx.Headers:
    """Copy upstream response headers minus the denylist, plus cache policy."""
    kept = [
        (name, value)
        for name, value in upstream_headers.raw
        if _header_name(name) not in HOP_BY_HOP_HEADERS
        and _header_name(name) not in config.strip_response_headers
    ]
    headers = httpx.Headers(kept)
    if is_success(status_code):
        headers["Cache-Control"] = f"public, max-age={config.cache_ttl}"
    return headers


def drop_header(headers: httpx.Headers, name: str) -> None:
    if name in headers:
        del headers[name]
