import logging
from typing import Optional
from urllib.parse import SplitResult, urljoin, urlsplit, urlunsplit

import httpx

from mirror_proxy.config import MirrorConfig
from mirror_proxy.utils import is_redirect

logger = logging.getLogger("uvicorn.error")

DEFAULT_PORTS = {"http": 80, "https": 443}


def _authority(parts: SplitResult) -> str:
    """host[:port] with the default port for the scheme left out."""
    host = (parts.hostname or "").lower()
    port = parts.port
    if port is None or DEFAULT_PORTS.get(parts.scheme) == port:
        return host
    return f"{host}:{port}"


def rewrite_location_header(
    location: str, mirror_scheme: str, mirror_host: str, config: MirrorConfig
) -> str:
    """
    Point a Location back at the mirror when it targets the upstream itself.

    Relative locations are resolved against the upstream origin first.
    Locations on any other host, and locations that do not parse, are
    returned unchanged.
    """
    if not location:
        return location

    try:
        resolved = urlsplit(urljoin(config.upstream_origin + "/", location))
        target = _authority(resolved)
        upstream = _authority(urlsplit(config.upstream_origin))
    except ValueError as e:
        logger.warning(f"[Mirror] Leaving unparseable Location {location!r}: {e}")
        return location

    if target != upstream:
        return location

    return urlunsplit(
        (mirror_scheme, mirror_host, resolved.path, resolved.query, resolved.fragment)
    )


def apply_redirect_rewrite(
    headers: httpx.Headers,
    status_code: int,
    mirror_scheme: str,
    mirror_host: str,
    config: MirrorConfig,
) -> Optional[str]:
    """Rewrite ``Location`` in place for 3xx responses; return the new value."""
    if not is_redirect(status_code):
        return None
    location = headers.get("location")
    if not location:
        return None

    rewritten = rewrite_location_header(location, mirror_scheme, mirror_host, config)
    if rewritten == location:
        return None
    headers["Location"] = rewritten
    return rewritten
