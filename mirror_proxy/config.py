"""
Pipeline configuration.

``MirrorConfig`` is passed to every pipeline component at construction time.
``MirrorConfig.from_env()`` fills it from :mod:`mirror_proxy.vars`.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple
from urllib.parse import urlsplit

from mirror_proxy import vars as env

DEFAULT_CACHE_TTL = 3600

# Matched by substring containment against the declared content type
TEXT_CONTENT_TYPES: Tuple[str, ...] = (
    "text/html",
    "text/css",
    "javascript",
    "application/json",
    "xml",
    "text/plain",
)


@dataclass(frozen=True)
class MirrorConfig:
    upstream_origin: str = "https://ropean.github.io"
    cache_ttl: int = DEFAULT_CACHE_TTL
    cache_enabled: bool = True
    rewrite_content: bool = True
    upstream_timeout: Optional[float] = None
    strip_request_headers: Tuple[str, ...] = (
        "cf-connecting-ip",
        "cf-ipcountry",
        "cf-ray",
        "cf-visitor",
    )
    strip_response_headers: Tuple[str, ...] = (
        "content-security-policy",
        "x-frame-options",
    )
    cache_key_headers: Tuple[str, ...] = ("accept-encoding",)
    text_content_types: Tuple[str, ...] = field(default=TEXT_CONTENT_TYPES)

    def __post_init__(self):
        origin = self.upstream_origin.rstrip("/")
        parsed = urlsplit(origin)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"Invalid upstream origin: {self.upstream_origin!r}")
        object.__setattr__(self, "upstream_origin", origin)

    @property
    def upstream_host(self) -> str:
        """Host (and port, if any) of the upstream origin."""
        return urlsplit(self.upstream_origin).netloc

    @property
    def upstream_scheme(self) -> str:
        return urlsplit(self.upstream_origin).scheme

    @classmethod
    def from_env(cls) -> "MirrorConfig":
        timeout = env.MIRROR_UPSTREAM_TIMEOUT
        return cls(
            upstream_origin=env.UPSTREAM_ORIGIN,
            cache_ttl=env.MIRROR_CACHE_TTL,
            cache_enabled=env.MIRROR_CACHE_ENABLED,
            rewrite_content=env.MIRROR_REWRITE_CONTENT,
            upstream_timeout=float(timeout) if timeout else None,
            strip_request_headers=tuple(env.MIRROR_STRIP_REQUEST_HEADERS),
            strip_response_headers=tuple(env.MIRROR_STRIP_RESPONSE_HEADERS),
            cache_key_headers=tuple(env.MIRROR_CACHE_KEY_HEADERS),
        )
