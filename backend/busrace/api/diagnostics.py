"""Diagnostics API for the cache, rate limit and live streams."""

from fastapi import APIRouter, Depends

from busrace.api.deps import get_cache, get_publisher, get_stop_catalog
from busrace.core.bus_cache import OperatorCache
from busrace.core.publisher import UpdatePublisher
from busrace.core.stop_catalog import StopCatalog

router = APIRouter(prefix="/api/diagnostics", tags=["diagnostics"])


@router.get("")
async def get_diagnostics(
    cache: OperatorCache = Depends(get_cache),
    publisher: UpdatePublisher = Depends(get_publisher),
    catalog: StopCatalog = Depends(get_stop_catalog),
):
    return {
        "operators": cache.snapshot(),
        "rate_limit": {
            "calls_in_window": cache.limiter.in_window(),
            "limit": cache.limiter.limit,
            "window_seconds": cache.limiter.window_sec,
        },
        "subscriptions": publisher.active,
        "stop_catalog_loaded": catalog.loaded,
    }
