from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response
from opentelemetry import trace

from mirror_proxy.cache.accelerator import CacheAccelerator
from mirror_proxy.mirror.errors import MirrorError
from mirror_proxy.mirror.url_mapper import get_mirror_host
from mirror_proxy.utils.traced_requests import traced_request

router = APIRouter()
tracer = trace.get_tracer(__name__)

MIRROR_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


def get_accelerator(request: Request) -> CacheAccelerator:
    """The pipeline built by the application lifespan."""
    return request.app.state.accelerator


def mirror_error_response(error: MirrorError) -> Response:
    return PlainTextResponse(
        f"Mirror Error: {error.message}",
        status_code=error.status_code,
        media_type="text/plain; charset=utf-8",
    )


async def mirror_request(request: Request, accelerator: CacheAccelerator) -> Response:
    with traced_request(
        tracer,
        "mirror_request",
        f"[Mirror] {request.method} {request.url.path}",
        extra_attrs={
            "mirror.method": request.method,
            "mirror.host": get_mirror_host(request),
        },
    ) as span:
        try:
            mirrored = await accelerator.handle(request)
        except MirrorError as e:
            span.set_attribute("mirror.error", e.message)
            return mirror_error_response(e)

        span.set_attribute("mirror.status_code", mirrored.status_code)
        return mirrored.to_response()


# Register catch-all route for mirroring
@router.api_route("/{path:path}", methods=MIRROR_METHODS)
async def mirror_all(
    request: Request,
    path: str,
    accelerator: CacheAccelerator = Depends(get_accelerator),
):
    """Catch-all route that mirrors every request to the upstream origin."""
    return await mirror_request(request, accelerator)
