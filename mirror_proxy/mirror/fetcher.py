import logging
from typing import AsyncIterator, Optional

import httpx
from fastapi import Request
from opentelemetry import trace

from mirror_proxy.config import MirrorConfig
from mirror_proxy.mirror.content import (
    decompress_body,
    is_rewritable,
    rewrite_content,
)
from mirror_proxy.mirror.errors import UpstreamTargetError, UpstreamUnavailableError
from mirror_proxy.mirror.headers import (
    drop_header,
    prepare_headers,
    sanitize_response_headers,
)
from mirror_proxy.mirror.models import MirroredResponse
from mirror_proxy.mirror.redirects import apply_redirect_rewrite
from mirror_proxy.mirror.url_mapper import get_mirror_host, get_target_url
from mirror_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)

logger = logging.getLogger("uvicorn.error")


def create_upstream_client(
    config: MirrorConfig, transport: Optional[httpx.AsyncBaseTransport] = None
) -> httpx.AsyncClient:
    """Shared client in manual redirect mode; 3xx responses reach the rewriter."""
    kwargs = {"follow_redirects": False, "transport": transport}
    if config.upstream_timeout is not None:
        kwargs["timeout"] = httpx.Timeout(config.upstream_timeout)
    return httpx.AsyncClient(**kwargs)


async def relay_body(response: httpx.Response) -> AsyncIterator[bytes]:
    """Relay the raw upstream bytes, closing the upstream response afterwards."""
    try:
        async for chunk in response.aiter_raw():
            yield chunk
    except httpx.RequestError as e:
        log_exception_with_details(
            logger, f"[Mirror] Upstream body aborted for {response.request.url}:", e
        )
        raise
    finally:
        await response.aclose()


class UpstreamFetcher:
    """
    Issues the proxied request and turns the upstream answer into a
    MirroredResponse.

    Order per request: URL mapping, outbound header sanitizing, a single
    upstream call, response header sanitizing, redirect rewriting and, for
    text bodies, content rewriting. There are no retries.
    """

    def __init__(self, config: MirrorConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client

    async def fetch(self, request: Request) -> MirroredResponse:
        span = trace.get_current_span()
        target_url = get_target_url(request, self.config.upstream_origin)
        span.set_attribute("mirror.upstream_url", target_url)

        headers = prepare_headers(request.headers.raw, self.config)
        body = await request.body()

        try:
            upstream_request = self.client.build_request(
                method=request.method,
                url=target_url,
                headers=headers,
                content=body or None,
            )
        except (httpx.InvalidURL, ValueError) as e:
            span.set_attribute("mirror.error", "invalid_target")
            raise UpstreamTargetError(format_exception_message(e)) from e

        logger.debug(f"[Mirror] {request.method} {request.url.path} -> {target_url}")

        try:
            upstream_response = await self.client.send(upstream_request, stream=True)
        except httpx.RequestError as e:
            log_exception_with_details(logger, f"[Mirror] Upstream call to {target_url} failed:", e)
            span.set_attribute("mirror.error", type(e).__name__)
            raise UpstreamUnavailableError(format_exception_message(e)) from e

        span.set_attribute("mirror.status_code", upstream_response.status_code)
        return await self.build_response(request, upstream_response)

    async def build_response(
        self, request: Request, upstream_response: httpx.Response
    ) -> MirroredResponse:
        span = trace.get_current_span()
        status_code = upstream_response.status_code
        mirror_host = get_mirror_host(request)

        headers = sanitize_response_headers(
            upstream_response.headers, status_code, self.config
        )
        rewritten_location = apply_redirect_rewrite(
            headers, status_code, request.url.scheme, mirror_host, self.config
        )
        if rewritten_location:
            span.set_attribute("mirror.rewritten_location", rewritten_location)

        mirrored = MirroredResponse(
            status_code=status_code,
            headers=headers,
            body=b"",
            reason_phrase=upstream_response.reason_phrase,
            rewritten_location=rewritten_location,
        )

        # Decided before the body is touched; the body is read exactly once
        content_type = headers.get("content-type", "")
        if not self._takes_text_path(request.method, content_type):
            mirrored.body = relay_body(upstream_response)
            return mirrored

        try:
            raw = b"".join([chunk async for chunk in upstream_response.aiter_raw()])
        except httpx.RequestError as e:
            log_exception_with_details(
                logger, f"[Mirror] Reading upstream body from {upstream_response.request.url} failed:", e
            )
            raise UpstreamUnavailableError(format_exception_message(e)) from e
        finally:
            await upstream_response.aclose()

        rewritten = None
        content = decompress_body(raw, headers.get("content-encoding", ""))
        if content is not None:
            rewritten = rewrite_content(
                content, content_type, self.config.upstream_host, mirror_host
            )

        if rewritten is None:
            # Undecodable: relay the raw bytes with their original framing
            mirrored.body = raw
        else:
            # The length changed and the body is no longer transfer-compressed
            drop_header(headers, "content-length")
            drop_header(headers, "content-encoding")
            mirrored.body = rewritten
        mirrored.content_rewritten = rewritten is not None
        span.set_attribute("mirror.content_rewritten", mirrored.content_rewritten)
        return mirrored

    def _takes_text_path(self, method: str, content_type: str) -> bool:
        return (
            self.config.rewrite_content
            and method != "HEAD"
            and is_rewritable(content_type, self.config)
        )
