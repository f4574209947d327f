"""Bus endpoints: one-shot fetch, event stream and the job trigger."""

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import StreamingResponse

from busrace.api.deps import (
    get_cache,
    get_client_name,
    get_publisher,
    require_client_name,
    require_operator,
)
from busrace.core.bus_cache import OperatorCache
from busrace.core.jobs import fetch_buses_job
from busrace.core.publisher import UpdatePublisher, utc_now_iso
from busrace.schemas.bus import BusesResponse, JobResult

router = APIRouter(tags=["buses"])

STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
}


@router.get("/buses", response_model=BusesResponse, response_model_by_alias=True)
async def get_buses(
    operator: str | None = None,
    cache: OperatorCache = Depends(get_cache),
    client_name: str | None = Depends(get_client_name),
):
    """Current buses for an operator, enriched with nearby stops."""
    operator = require_operator(operator)
    client_name = require_client_name(client_name)
    buses = await cache.get_available_buses(operator, client_name)
    return BusesResponse(operator=operator, available_buses=buses, updated_at=utc_now_iso())


@router.get("/stream")
async def stream_buses(
    request: Request,
    operator: str | None = None,
    publisher: UpdatePublisher = Depends(get_publisher),
    client_name: str | None = Depends(get_client_name),
):
    """Server-sent events: one bus update (or error) per refresh cycle."""
    operator = require_operator(operator)
    client_name = require_client_name(client_name)
    subscription = publisher.subscribe(operator, client_name)
    return StreamingResponse(
        subscription.events(request.is_disconnected),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )


@router.post("/api/jobs/fetch-buses", response_model=JobResult, response_model_by_alias=True)
async def run_fetch_job(
    data: dict[str, Any] | None = Body(default=None),
    cache: OperatorCache = Depends(get_cache),
    client_name: str | None = Depends(get_client_name),
):
    """Trigger a fetch the way the background job does."""
    return await fetch_buses_job(cache, data, client_name)
