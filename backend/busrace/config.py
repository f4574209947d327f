from pathlib import Path
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    entur_client_name: str | None = None
    entur_vm_endpoint: str = "https://api.entur.io/realtime/v1/rest/vm"
    entur_max_size: int = 1500
    entur_timeout_seconds: float = 30.0
    stops_path: str = str(Path(__file__).parent / "data" / "stops.csv")
    stops_delimiter: str = ","
    refresh_interval_seconds: float = 15.0
    rate_limit_window_seconds: float = 60.0
    rate_limit_max_calls: int = 4
    nearby_radius_m: float = 1000.0
    stream_interval_seconds: float = 15.0
    prefetch_operators: Annotated[list[str], NoDecode] = []
    prefetch_interval_seconds: int = 60
    log_level: str = "INFO"

    model_config = {"env_prefix": "", "case_sensitive": False}

    @field_validator("prefetch_operators", mode="before")
    @classmethod
    def _split_operators(cls, value):
        # PREFETCH_OPERATORS=AKT,KOL
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


settings = Settings()
