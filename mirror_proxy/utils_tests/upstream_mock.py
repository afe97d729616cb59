"""Helpers for driving the mirror pipeline without a network."""

from typing import Callable, Dict, List, Optional, Union

import httpx
from fastapi import Request

UPSTREAM_ORIGIN = "https://ropean.github.io"
UPSTREAM_HOST = "ropean.github.io"
MIRROR_HOST = "git.ropean.org"


def make_request(
    path: str = "/",
    method: str = "GET",
    query: str = "",
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
    host: str = MIRROR_HOST,
    scheme: str = "https",
) -> Request:
    """Build a Starlette request as the ASGI server would hand it over."""
    raw_headers = [(b"host", host.encode("latin-1"))]
    for name, value in (headers or {}).items():
        raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))

    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": scheme,
        "path": path,
        "raw_path": path.encode("latin-1"),
        "query_string": query.encode("latin-1"),
        "root_path": "",
        "headers": raw_headers,
        "server": (host.split(":")[0], 443 if scheme == "https" else 80),
        "client": ("203.0.113.7", 50000),
    }
    sent = False

    async def receive():
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


def upstream_response(
    status_code: int = 200,
    headers: Optional[Union[Dict[str, str], List]] = None,
    body: bytes = b"",
) -> httpx.Response:
    """An unread upstream response, like the ones a real transport yields."""
    return httpx.Response(
        status_code, headers=headers, stream=httpx.ByteStream(body)
    )


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]


def respond_with(
    status_code: int = 200,
    headers: Optional[Union[Dict[str, str], List]] = None,
    body: bytes = b"",
) -> RecordingTransport:
    return RecordingTransport(lambda request: upstream_response(status_code, headers, body))


def fail_with(exc: Exception) -> RecordingTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc

    return RecordingTransport(handler)


async def read_body(mirrored) -> bytes:
    """Consume a MirroredResponse body the way the framing layer would."""
    if isinstance(mirrored.body, (bytes, bytearray)):
        return bytes(mirrored.body)
    chunks = []
    async for chunk in mirrored.body:
        chunks.append(chunk)
    return b"".join(chunks)
