import logging
from pathlib import Path

from pydantic import BaseModel

from ecu_console.data.catalog_loader import load_vehicle_table
from ecu_console.models.session import VehicleProfile

logger = logging.getLogger(__name__)


class VehicleModel(BaseModel):
    id: str
    name: str
    category: str = ""
    segment: str = ""
    years: list[int] = []
    ecu_modules: list[str] = []


class VehicleMatch(BaseModel):
    vehicle: VehicleModel
    score: float


class VehicleService:
    """Model database lookup. Resolves a VIN/model/year triple to its ECU module set."""

    def __init__(self, path: str | Path):
        self._vehicles = [VehicleModel(**v) for v in load_vehicle_table(path)]

    def search(self, query: str, limit: int = 10) -> list[VehicleMatch]:
        query_lower = query.lower().strip()
        if not query_lower:
            return []

        results: list[VehicleMatch] = []
        for vehicle in self._vehicles:
            score = self._match_score(vehicle, query_lower)
            if score > 0:
                results.append(VehicleMatch(vehicle=vehicle, score=score))

        results.sort(key=lambda x: x.score, reverse=True)
        return results[:limit]

    def get_by_id(self, vehicle_id: str) -> VehicleModel | None:
        for v in self._vehicles:
            if v.id == vehicle_id:
                return v
        return None

    def find_model(self, model: str) -> VehicleModel | None:
        wanted = model.lower().strip()
        for v in self._vehicles:
            if wanted in (v.id.lower(), v.name.lower()):
                return v
        return None

    def resolve(self, vin: str, model: str, year: int | None = None) -> VehicleProfile:
        """Unknown models resolve to an empty module set, which session start rejects."""
        info = self.find_model(model)
        if info is None:
            logger.warning(f"No vehicle model matches '{model}'")
            return VehicleProfile(id=vin.upper() or model, vin=vin.upper(), model=model, year=year)
        if year is not None and info.years and year not in info.years:
            logger.warning(f"{info.name} was not offered in {year}, using its module set anyway")
        return VehicleProfile(
            id=vin.upper() or f"{info.id}_{year or 'unknown'}",
            vin=vin.upper(),
            model=info.name,
            year=year,
            ecu_modules=list(info.ecu_modules),
        )

    def _match_score(self, vehicle: VehicleModel, query: str) -> float:
        score = 0.0
        fields = [
            (vehicle.name.lower(), 3.0),
            (vehicle.category.lower(), 1.0),
            (vehicle.segment.lower(), 1.0),
            (vehicle.id.lower(), 1.0),
        ]
        for value, weight in fields:
            if not value:
                continue
            if query in value:
                score += weight * 2
            elif value in query:
                score += weight
            else:
                for token in query.split():
                    if token in value:
                        score += weight * 0.5
        return score
