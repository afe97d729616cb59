from fastapi import Request


def get_raw_path(request: Request) -> str:
    """Path exactly as received, without percent-decoding."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.decode("latin-1")
    return request.url.path


def get_mirror_host(request: Request) -> str:
    return request.headers.get("host") or request.url.netloc


def map_upstream_url(upstream_origin: str, path: str, query: str) -> str:
    """Upstream origin + path + query, otherwise unchanged."""
    if not path.startswith("/"):
        path = "/" + path
    url = f"{upstream_origin}{path}"
    if query:
        url = f"{url}?{query}"
    return url


def get_target_url(request: Request, upstream_origin: str) -> str:
    """Construct the upstream URL for an inbound request."""
    return map_upstream_url(
        upstream_origin, get_raw_path(request), str(request.url.query)
    )


def get_inbound_url(request: Request) -> str:
    """Absolute URL the caller used to reach the mirror."""
    return map_upstream_url(
        f"{request.url.scheme}://{get_mirror_host(request)}",
        get_raw_path(request),
        str(request.url.query),
    )
