from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from app.core.enums import VehicleClass
from app.core.exceptions import NotFound
from app.schemas.pricing import BasePrice
from app.utils.money import round2


@dataclass(frozen=True)
class FareComponents:
    base_fare: float
    distance_charge: float
    time_charge: float
    fare: float
    minimum_fare_applied: bool


def compute_fare(
    base_fare: float,
    price_per_km: float,
    price_per_minute: float,
    minimum_fare: float,
    distance_km: float,
    duration_minutes: float,
) -> FareComponents:
    distance_charge = round2(price_per_km * distance_km)
    time_charge = round2(price_per_minute * duration_minutes)
    raw = base_fare + distance_charge + time_charge
    fare = max(raw, minimum_fare)
    return FareComponents(
        base_fare=base_fare,
        distance_charge=distance_charge,
        time_charge=time_charge,
        fare=round2(fare),
        minimum_fare_applied=raw < minimum_fare,
    )


class BasePriceTable:

    def __init__(self, base_prices: Iterable[BasePrice]):
        self._rows = [row for row in base_prices if row.is_active]

    def lookup(
        self,
        region_id: int,
        vehicle_class: VehicleClass,
        at: Optional[datetime] = None,
    ) -> BasePrice:
        for row in self._rows:
            if row.region_id == region_id and row.vehicle_class == vehicle_class and row.is_valid_at(at):
                return row
        raise NotFound("Base price", f"{region_id}/{vehicle_class}")

    @staticmethod
    def fare(row: BasePrice, distance_km: float, duration_minutes: float) -> FareComponents:
        return compute_fare(
            row.base_fare,
            row.price_per_km,
            row.price_per_minute,
            row.minimum_fare,
            distance_km,
            duration_minutes,
        )

    def list_by_region(self, region_id: int, at: Optional[datetime] = None) -> List[BasePrice]:
        """The row lookup() would pick for each vehicle class, in catalogue order"""
        rows = []
        for vehicle_class in VehicleClass:
            try:
                rows.append(self.lookup(region_id, vehicle_class, at))
            except NotFound:
                continue
        return rows
