from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from app.core.enums import Extra, PricingMethod, SurchargeApplication, SurchargeType, VehicleClass
from app.utils.time import LocalDatetime, UtcDatetime


class Place(BaseModel):
    type: Literal["airport", "address"] = "address"
    airport_code: Optional[str] = None
    terminal: Optional[str] = None
    address: Optional[str] = None
    name: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    region_id: Optional[int] = None

    @model_validator(mode="after")
    def check_coordinates(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("Latitude and longitude must be supplied together")
        return self

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def display_name(self) -> Optional[str]:
        return self.name or self.address or self.airport_code


class PriceRequest(BaseModel):
    origin: Place
    destination: Place
    vehicle_class: VehicleClass
    booking_datetime: LocalDatetime
    minutes_until_pickup: Optional[float] = Field(None, ge=0)
    distance_km: Optional[float] = Field(None, ge=0)
    duration_minutes: Optional[float] = Field(None, ge=0)
    extras: List[Extra] = Field(default_factory=list)


class AppliedSurcharge(BaseModel):
    surcharge_id: int
    name: str
    type: SurchargeType
    application: SurchargeApplication
    value: float
    amount: float
    reason: str


class PriceBreakdown(BaseModel):
    vehicle_class: VehicleClass
    pricing_method: PricingMethod
    is_fixed_price: bool
    base_fare: float
    distance_charge: float = 0.0
    time_charge: float = 0.0
    minimum_fare_applied: bool = False
    subtotal: float
    extras: float = 0.0
    extras_breakdown: Dict[str, float] = Field(default_factory=dict)
    surcharges: float = 0.0
    applied_surcharges: List[AppliedSurcharge] = Field(default_factory=list)
    total: float
    currency: str
    estimated_distance_km: Optional[float] = None
    estimated_duration_minutes: Optional[float] = None
    included_waiting_time: Optional[int] = None
    additional_waiting_price: Optional[float] = None
    origin_region_id: Optional[int] = None
    destination_region_id: Optional[int] = None


class QuoteRequest(BaseModel):
    origin: Place
    destination: Place
    pickup_at: LocalDatetime
    pax: int = Field(ge=1)
    bags: int = Field(0, ge=0)
    extras: List[Extra] = Field(default_factory=list)
    preferred_vehicle_class: Optional[VehicleClass] = None
    distance_km: Optional[float] = Field(None, ge=0)
    duration_minutes: Optional[float] = Field(None, ge=0)


class QuotePricing(BaseModel):
    base_fare: float
    distance_charge: Optional[float] = None
    time_charge: Optional[float] = None
    extras: Optional[float] = None
    surcharges: Optional[float] = None
    total: float
    currency: str


class QuoteVehicleOption(BaseModel):
    id: VehicleClass
    name: str
    pax_capacity: int
    bag_capacity: int
    pricing: QuotePricing
    applied_surcharges: List[AppliedSurcharge] = Field(default_factory=list)
    is_fixed_price: bool
    included_waiting_time: Optional[int] = None
    additional_waiting_price: Optional[float] = None


class QuotePolicy(BaseModel):
    cancellation: str
    included_wait: str
    additional_wait_charge: Optional[str] = None
    quote_expires_at: UtcDatetime


class QuoteResponse(BaseModel):
    quote_id: str
    vehicle_classes: List[QuoteVehicleOption]
    policy: QuotePolicy
    origin: Place
    destination: Place
    origin_name: Optional[str] = None
    destination_name: Optional[str] = None
    pickup_at: UtcDatetime
    passengers: int
    luggage: int
    extras: List[Extra] = Field(default_factory=list)
    estimated_distance: Optional[float] = None
    estimated_duration: Optional[float] = None
    created_at: UtcDatetime
    expires_at: UtcDatetime
    is_used: bool = False


class QuoteConsumeRequest(BaseModel):
    vehicle_class: VehicleClass
    booking_reference: Optional[str] = None
