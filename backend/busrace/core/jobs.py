"""Background-job entry point for fetching an operator's buses."""

import logging
from typing import Any, Mapping

from busrace.core.bus_cache import OperatorCache
from busrace.core.errors import ConfigurationError, OperatorRequiredError
from busrace.core.publisher import utc_now_iso
from busrace.schemas.bus import JobResult

logger = logging.getLogger(__name__)


async def fetch_buses_job(
    cache: OperatorCache, data: Mapping[str, Any] | None, client_name: str | None,
) -> JobResult:
    """Run ``get_available_buses`` for ``data["operator"]``.

    Raises ``OperatorRequiredError`` or ``ConfigurationError`` before any
    fetch when the operator or the client name is missing.
    """
    operator = str((data or {}).get("operator") or "").strip()
    if not operator:
        raise OperatorRequiredError()
    if not client_name:
        raise ConfigurationError("ENTUR_CLIENT_NAME is not configured.")

    buses = await cache.get_available_buses(operator, client_name)
    return JobResult(operator=operator, available_buses=buses, updated_at=utc_now_iso())
