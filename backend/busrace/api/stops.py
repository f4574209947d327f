"""Stop catalog and operator list endpoints."""

from fastapi import APIRouter, Depends

from busrace.api.deps import get_stop_catalog
from busrace.core.stop_catalog import StopCatalog
from busrace.schemas.bus import OperatorInfo, StopInfo

router = APIRouter(prefix="/api", tags=["stops"])

OPERATORS = [
    ("AKT", "AKT – Agder (AKT)"),
    ("ATB", "ATB – Trøndelag (AtB)"),
    ("BRA", "BRA – Viken (Brakar)"),
    ("FIN", "FIN – Troms og Finnmark (Snelandia)"),
    ("GJB", "GJB – Vy Gjøvikbanen"),
    ("GOA", "GOA – Go-Ahead"),
    ("INN", "INN – Innlandet (Innlandstrafikk)"),
    ("KOL", "KOL – Rogaland (Kolumbus)"),
    ("MOR", "MOR – Møre og Romsdal (Fram)"),
    ("NBU", "NBU – Connect Bus Flybuss"),
    ("NOR", "NOR – Nordland fylkeskommune"),
    ("NSB", "NSB – Vy"),
    ("OST", "OST – Viken (Østfold kollektivtrafikk)"),
    ("SKY", "SKY – Vestland (Skyss)"),
    ("TRO", "TRO – Troms og Finnmark (Troms fylkestrafikk)"),
    ("VOT", "VOT – Vestfold og Telemark"),
    ("VYG", "VYG – Vy Group"),
    ("VYX", "VYX – Vy Express"),
]


@router.get("/operators", response_model=list[OperatorInfo], response_model_by_alias=True)
async def list_operators():
    """Operator codes accepted by the bus endpoints."""
    return [OperatorInfo(code=code, label=label) for code, label in OPERATORS]


@router.get("/stops", response_model=list[StopInfo], response_model_by_alias=True)
async def list_stops(catalog: StopCatalog = Depends(get_stop_catalog)):
    """All stops in the catalog."""
    stops = await catalog.load()
    return [
        StopInfo(id=s.id, name=s.name, latitude=s.latitude, longitude=s.longitude)
        for s in stops
    ]
