"""FastAPI dependencies resolving the process-scoped pipeline objects."""

from fastapi import Request

from busrace.core.bus_cache import OperatorCache
from busrace.core.errors import ConfigurationError, OperatorRequiredError
from busrace.core.publisher import UpdatePublisher
from busrace.core.stop_catalog import StopCatalog


def get_cache(request: Request) -> OperatorCache:
    return request.app.state.cache


def get_publisher(request: Request) -> UpdatePublisher:
    return request.app.state.publisher


def get_stop_catalog(request: Request) -> StopCatalog:
    return request.app.state.stop_catalog


def get_client_name(request: Request) -> str | None:
    return request.app.state.client_name


def require_operator(operator: str | None) -> str:
    operator = (operator or "").strip()
    if not operator:
        raise OperatorRequiredError()
    return operator


def require_client_name(client_name: str | None) -> str:
    if not client_name:
        raise ConfigurationError("ENTUR_CLIENT_NAME is not configured.")
    return client_name
