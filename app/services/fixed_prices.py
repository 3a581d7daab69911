from datetime import datetime, timezone
from typing import Iterable, List, Optional

from app.core.enums import VehicleClass
from app.core.exceptions import NotFound
from app.schemas.pricing import FixedPrice

EPOCH = datetime.min.replace(tzinfo=timezone.utc)
VEHICLE_CLASS_ORDER = {vehicle_class: index for index, vehicle_class in enumerate(VehicleClass)}


def _precedence(row: FixedPrice):
    # higher priority first, then newest
    return (row.priority, row.created_at or EPOCH, row.id)


class FixedPriceTable:

    def __init__(self, fixed_prices: Iterable[FixedPrice]):
        self._rows = [row for row in fixed_prices if row.is_active]

    def lookup(
        self,
        origin_region_id: int,
        destination_region_id: int,
        vehicle_class: VehicleClass,
        at: Optional[datetime] = None,
    ) -> FixedPrice:
        matches = [
            row for row in self._rows
            if row.origin_region_id == origin_region_id
            and row.destination_region_id == destination_region_id
            and row.vehicle_class == vehicle_class
            and row.is_valid_at(at)
        ]
        if not matches:
            raise NotFound("Fixed price", f"{origin_region_id}->{destination_region_id}/{vehicle_class}")
        return max(matches, key=_precedence)

    def list_by_regions(self, origin_region_id: int, destination_region_id: int) -> List[FixedPrice]:
        rows = [
            row for row in self._rows
            if row.origin_region_id == origin_region_id
            and row.destination_region_id == destination_region_id
        ]
        rows.sort(key=_precedence, reverse=True)
        rows.sort(key=lambda row: VEHICLE_CLASS_ORDER[row.vehicle_class])
        return rows
