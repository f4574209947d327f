"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from busrace.api import buses, diagnostics, stops
from busrace.config import settings
from busrace.core.bus_cache import OperatorCache
from busrace.core.entur_client import EnturClient
from busrace.core.errors import BusRaceError, RateLimitError
from busrace.core.publisher import UpdatePublisher
from busrace.core.rate_limiter import SlidingWindowLimiter
from busrace.core.scheduler import create_scheduler
from busrace.core.stop_catalog import StopCatalog

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    entur = EnturClient(
        endpoint=settings.entur_vm_endpoint,
        max_size=settings.entur_max_size,
        timeout=settings.entur_timeout_seconds,
    )
    stop_catalog = StopCatalog(settings.stops_path, settings.stops_delimiter)
    limiter = SlidingWindowLimiter(settings.rate_limit_max_calls, settings.rate_limit_window_seconds)
    cache = OperatorCache(
        entur,
        stop_catalog,
        limiter,
        refresh_interval=settings.refresh_interval_seconds,
        nearby_radius_m=settings.nearby_radius_m,
    )
    publisher = UpdatePublisher(cache, interval=settings.stream_interval_seconds)

    app.state.stop_catalog = stop_catalog
    app.state.cache = cache
    app.state.publisher = publisher
    app.state.client_name = settings.entur_client_name

    if not settings.entur_client_name:
        logger.warning("ENTUR_CLIENT_NAME is not set - bus requests will fail")

    scheduler = None
    if settings.prefetch_operators:
        scheduler = create_scheduler(
            cache,
            settings.entur_client_name,
            settings.prefetch_operators,
            settings.prefetch_interval_seconds,
        )
        scheduler.start()
        logger.info(
            "Prefetching %s every %ds",
            ", ".join(settings.prefetch_operators), settings.prefetch_interval_seconds,
        )
    logger.info("Bus Race started")

    yield

    # Shutdown
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    publisher.close()
    await entur.close()
    logger.info("Bus Race shut down")


app = FastAPI(
    title="Bus Race",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(buses.router)
app.include_router(stops.router)
app.include_router(diagnostics.router)


@app.exception_handler(BusRaceError)
async def bus_race_error_handler(request: Request, exc: BusRaceError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse({"error": str(exc)}, status_code=exc.status_code, headers=headers)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
