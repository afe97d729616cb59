import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "mirror-proxy")
HOST = os.environ.get("HOSTNAME", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))

UPSTREAM_ORIGIN = os.environ.get("UPSTREAM_ORIGIN", "https://ropean.github.io").rstrip(
    "/"
)
# Unset means the httpx default timeout applies
MIRROR_UPSTREAM_TIMEOUT = os.environ.get("MIRROR_UPSTREAM_TIMEOUT", "")

MIRROR_CACHE_TTL = int(os.environ.get("MIRROR_CACHE_TTL", "3600"))
MIRROR_CACHE_ENABLED = os.environ.get("MIRROR_CACHE_ENABLED", "true").lower() == "true"
MIRROR_CACHE_STORE = os.getenv("MIRROR_CACHE_STORE", "InMemoryCacheStore")
MIRROR_CACHE_MAX_ENTRIES = int(os.environ.get("MIRROR_CACHE_MAX_ENTRIES", "1024"))
MIRROR_REWRITE_CONTENT = (
    os.environ.get("MIRROR_REWRITE_CONTENT", "true").lower() == "true"
)


def _parse_header_list(raw: str) -> list[str]:
    return [h.strip().lower() for h in raw.split(",") if h.strip()]


MIRROR_CACHE_KEY_HEADERS = _parse_header_list(
    os.getenv("MIRROR_CACHE_KEY_HEADERS", "accept-encoding")
)
# Client-identifying headers added by the edge in front of the mirror
MIRROR_STRIP_REQUEST_HEADERS = _parse_header_list(
    os.getenv(
        "MIRROR_STRIP_REQUEST_HEADERS",
        "cf-connecting-ip,cf-ipcountry,cf-ray,cf-visitor",
    )
)
MIRROR_STRIP_RESPONSE_HEADERS = _parse_header_list(
    os.getenv(
        "MIRROR_STRIP_RESPONSE_HEADERS", "content-security-policy,x-frame-options"
    )
)

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
