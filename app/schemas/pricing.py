from datetime import datetime
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.enums import SurchargeApplication, VehicleClass
from app.utils.time import UtcDatetime

Coordinate = Tuple[float, float]  # (lon, lat)

TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
CURRENCY_PATTERN = r"^[A-Z]{3}$"


class CircleGeometry(BaseModel):
    shape: Literal["circle"] = "circle"
    center: Coordinate
    radius_meters: float = Field(gt=0)


class PolygonGeometry(BaseModel):
    """GeoJSON-style polygon: the first ring is the outer boundary, the rest are holes"""
    shape: Literal["polygon"] = "polygon"
    rings: List[List[Coordinate]]

    @field_validator("rings")
    @classmethod
    def close_rings(cls, rings: List[List[Coordinate]]) -> List[List[Coordinate]]:
        if not rings:
            raise ValueError("Polygon requires at least an outer ring")
        closed = []
        for ring in rings:
            if len(set(ring)) < 3:
                raise ValueError("Polygon ring requires at least 3 distinct points")
            if ring[0] != ring[-1]:
                ring = ring + [ring[0]]
            closed.append(ring)
        return closed


Geometry = Annotated[Union[CircleGeometry, PolygonGeometry], Field(discriminator="shape")]


class ValidityWindow(BaseModel):
    valid_from: Optional[UtcDatetime] = None
    valid_until: Optional[UtcDatetime] = None

    def is_valid_at(self, at: Optional[datetime]) -> bool:
        if at is None:
            return True
        if self.valid_from is not None and at < self.valid_from:
            return False
        if self.valid_until is not None and at > self.valid_until:
            return False
        return True


class PriceRegion(BaseModel):
    id: int
    name: str
    tags: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    geometry: Geometry
    is_active: bool = True


class BasePrice(ValidityWindow):
    id: int
    region_id: int
    vehicle_class: VehicleClass
    base_fare: float = Field(ge=0)
    price_per_km: float = Field(ge=0)
    price_per_minute: float = Field(ge=0)
    minimum_fare: float = Field(ge=0)
    currency: str = Field(pattern=CURRENCY_PATTERN)
    is_active: bool = True
    created_at: Optional[UtcDatetime] = None


class FixedPrice(ValidityWindow):
    id: int
    origin_region_id: int
    destination_region_id: int
    vehicle_class: VehicleClass
    name: Optional[str] = None
    fixed_price: float = Field(ge=0)
    currency: str = Field(pattern=CURRENCY_PATTERN)
    estimated_distance_km: Optional[float] = Field(None, ge=0)
    estimated_duration_minutes: Optional[float] = Field(None, ge=0)
    included_waiting_time_minutes: int = Field(15, ge=0)
    additional_waiting_price_per_minute: float = Field(0.0, ge=0)
    priority: int = 0
    is_active: bool = True
    created_at: Optional[UtcDatetime] = None


class SurchargeBase(ValidityWindow):
    id: int
    region_id: int
    name: str
    application: SurchargeApplication
    value: float = Field(ge=0)
    currency: Optional[str] = Field(None, pattern=CURRENCY_PATTERN)
    priority: int = 0
    is_active: bool = True
    description: Optional[str] = None

    @model_validator(mode="after")
    def require_currency_for_fixed_amount(self):
        if self.application == SurchargeApplication.FIXED_AMOUNT and not self.currency:
            raise ValueError("Currency is required for fixed amount surcharges")
        return self


class CutoffTimeSurcharge(SurchargeBase):
    type: Literal["cutoff_time"] = "cutoff_time"
    cutoff_minutes: int = Field(ge=0)


class TimeLeftSurcharge(SurchargeBase):
    type: Literal["time_left"] = "time_left"
    time_left_minutes: int = Field(ge=0)


class TimeRange(BaseModel):
    start_time: str = Field(pattern=TIME_OF_DAY_PATTERN)
    end_time: str = Field(pattern=TIME_OF_DAY_PATTERN)

    @staticmethod
    def to_minutes(value: str) -> int:
        hours, minutes = value.split(":")
        return int(hours) * 60 + int(minutes)

    @property
    def start_minute(self) -> int:
        return self.to_minutes(self.start_time)

    @property
    def end_minute(self) -> int:
        return self.to_minutes(self.end_time)

    @property
    def crosses_midnight(self) -> bool:
        return self.start_minute > self.end_minute


class DateTimeRange(BaseModel):
    start: UtcDatetime
    end: UtcDatetime

    @model_validator(mode="after")
    def check_order(self):
        if self.start > self.end:
            raise ValueError("Date time range start must not be after its end")
        return self


class DateTimeSurcharge(SurchargeBase):
    """Either a recurring daily window (time_range + days_of_week) or an absolute date_time_range"""
    type: Literal["datetime"] = "datetime"
    time_range: Optional[TimeRange] = None
    days_of_week: Optional[List[Annotated[int, Field(ge=0, le=6)]]] = None
    date_time_range: Optional[DateTimeRange] = None

    @model_validator(mode="after")
    def require_single_window(self):
        if self.time_range is None and self.date_time_range is None:
            raise ValueError("Either time range or date time range is required for datetime surcharges")
        if self.time_range is not None and self.date_time_range is not None:
            raise ValueError("Cannot specify both time range and date time range")
        if self.date_time_range is not None and self.days_of_week is not None:
            raise ValueError("Days of week only apply to recurring time ranges")
        return self


Surcharge = Annotated[
    Union[CutoffTimeSurcharge, TimeLeftSurcharge, DateTimeSurcharge],
    Field(discriminator="type"),
]


class PricingSnapshot(BaseModel):
    """Read-only pricing configuration handed to the engine for one calculation"""
    regions: List[PriceRegion] = Field(default_factory=list)
    base_prices: List[BasePrice] = Field(default_factory=list)
    fixed_prices: List[FixedPrice] = Field(default_factory=list)
    surcharges: List[Surcharge] = Field(default_factory=list)
