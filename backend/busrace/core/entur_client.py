"""Async client for the Entur SIRI vehicle-monitoring REST endpoint."""

import logging
from typing import Any

import httpx

from busrace.core.errors import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.entur.io/realtime/v1/rest/vm"
CLIENT_NAME_HEADER = "ET-Client-Name"


class EnturClient:
    """Fetches raw vehicle-monitoring deliveries for one operator per call.

    Requests are not retried here: every attempt has to be admitted by the
    shared rate-limit window first.
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        max_size: int = 1500,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.max_size = max_size
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_vehicle_monitoring(self, operator: str, client_name: str) -> Any:
        params = {"datasetId": operator, "maxSize": str(self.max_size)}
        try:
            resp = await self._client.get(
                self.endpoint,
                params=params,
                headers={CLIENT_NAME_HEADER: client_name, "Cache-Control": "no-store"},
            )
        except httpx.HTTPError as e:
            logger.warning("Entur request for %s failed: %s", operator, type(e).__name__)
            raise UpstreamError(f"Entur request failed: {e}") from e

        if not resp.is_success:
            text = resp.text.strip()
            logger.warning("Entur returned HTTP %d for %s", resp.status_code, operator)
            raise UpstreamError(text or "Entur request failed.", status=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError("Entur returned a malformed response body.") from e

        logger.info("Fetched vehicle monitoring for %s (%d bytes)", operator, len(resp.content))
        return data
