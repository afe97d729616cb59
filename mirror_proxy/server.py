from contextlib import asynccontextmanager
from typing import Optional, Sequence

import httpx
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from mirror_proxy.cache.accelerator import CacheAccelerator
from mirror_proxy.cache.scheduler import AsyncioTaskScheduler
from mirror_proxy.cache.store import CacheStoreBase, cache_store
from mirror_proxy.config import MirrorConfig
from mirror_proxy.mirror.fetcher import UpstreamFetcher, create_upstream_client
from mirror_proxy.mirror.route import router
from mirror_proxy.vars import (
    MIRROR_CACHE_MAX_ENTRIES,
    MIRROR_CACHE_STORE,
    OTLP_ENDPOINT,
    OTLP_HEADERS,
    SERVICE_NAME,
)


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that drops the per-chunk ASGI body spans emitted while
    large passthrough bodies are streamed.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def build_accelerator(
    config: MirrorConfig,
    client: httpx.AsyncClient,
    store: CacheStoreBase,
    scheduler: AsyncioTaskScheduler,
) -> CacheAccelerator:
    return CacheAccelerator(config, UpstreamFetcher(config, client), store, scheduler)


def create_app(
    config: Optional[MirrorConfig] = None,
    store: Optional[CacheStoreBase] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    instrument: bool = False,
) -> FastAPI:
    """
    Build the mirror application.

    The upstream client and the cache writer live for the lifetime of the
    app; pending cache writes are drained before the client is closed.
    """
    config = config or MirrorConfig.from_env()
    if store is None:
        store = cache_store(MIRROR_CACHE_STORE, max_entries=MIRROR_CACHE_MAX_ENTRIES)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = create_upstream_client(config, transport)
        scheduler = AsyncioTaskScheduler()
        app.state.accelerator = build_accelerator(config, client, store, scheduler)
        try:
            yield
        finally:
            await scheduler.drain()
            await client.aclose()

    app = FastAPI(lifespan=lifespan)
    if instrument:
        # /metrics must be registered before the catch-all mirror route
        Instrumentator().instrument(app).expose(app)
    app.include_router(router)
    return app


app = create_app(instrument=True)

# Configure tracing
trace.set_tracer_provider(
    TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
)
tracer_provider = trace.get_tracer_provider()
if OTLP_ENDPOINT:
    otlp_exporter = OTLPSpanExporter(
        endpoint=OTLP_ENDPOINT,
        headers=OTLP_HEADERS or None,
    )
    tracer_provider.add_span_processor(
        BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
    )

FastAPIInstrumentor.instrument_app(app, excluded_urls="metrics")

# Add app_name to the metrics
app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})
