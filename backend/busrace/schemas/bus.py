from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class StopInfo(WireModel):
    id: str
    name: str
    latitude: float
    longitude: float


class NearbyStop(StopInfo):
    is_destination: bool = False


class BusState(WireModel):
    id: str
    name: str
    current_stop: str
    destination: str
    destination_stop_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    nearby_stops: list[NearbyStop] = []


class BusesResponse(WireModel):
    operator: str
    available_buses: list[BusState]
    updated_at: str
    refreshing: bool = False
    source: str = "direct"


class JobResult(WireModel):
    operator: str
    available_buses: list[BusState]
    updated_at: str


class OperatorInfo(WireModel):
    code: str
    label: str
