from sqlalchemy import Column, String, Float, Integer, Boolean, DateTime, ForeignKey, Enum, JSON, Text
from sqlalchemy.orm import relationship
from app.models.base import BaseModel
from app.core.enums import RegionShape, SurchargeApplication, SurchargeType, VehicleClass


class PriceRegion(BaseModel):
    __tablename__ = "price_regions"

    name = Column(String(120), nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    description = Column(Text, nullable=True)
    shape = Column(Enum(RegionShape), nullable=False)
    # circle: {"center": [lon, lat], "radius_meters": r}; polygon: {"rings": [[[lon, lat], ...]]}
    geometry = Column(JSON, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class BasePrice(BaseModel):
    __tablename__ = "base_prices"

    region_id = Column(ForeignKey("price_regions.id"), nullable=False, index=True)
    region = relationship("PriceRegion", backref="base_prices")

    vehicle_class = Column(Enum(VehicleClass), nullable=False)
    base_fare = Column(Float, nullable=False)
    price_per_km = Column(Float, nullable=False)
    price_per_minute = Column(Float, nullable=False)
    minimum_fare = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)


class FixedPrice(BaseModel):
    __tablename__ = "fixed_prices"

    origin_region_id = Column(ForeignKey("price_regions.id"), nullable=False, index=True)
    destination_region_id = Column(ForeignKey("price_regions.id"), nullable=False, index=True)
    origin_region = relationship("PriceRegion", foreign_keys=[origin_region_id])
    destination_region = relationship("PriceRegion", foreign_keys=[destination_region_id])

    name = Column(String(120), nullable=True)
    vehicle_class = Column(Enum(VehicleClass), nullable=False)
    fixed_price = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)
    estimated_distance_km = Column(Float, nullable=True)
    estimated_duration_minutes = Column(Float, nullable=True)
    included_waiting_time_minutes = Column(Integer, default=15, nullable=False)
    additional_waiting_price_per_minute = Column(Float, default=0.0, nullable=False)
    priority = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)


class Surcharge(BaseModel):
    __tablename__ = "surcharges"

    region_id = Column(ForeignKey("price_regions.id"), nullable=False, index=True)
    region = relationship("PriceRegion", backref="surcharges")

    name = Column(String(120), nullable=False)
    type = Column(Enum(SurchargeType), nullable=False)
    application = Column(Enum(SurchargeApplication), nullable=False)
    value = Column(Float, nullable=False)
    currency = Column(String(3), nullable=True)
    cutoff_minutes = Column(Integer, nullable=True)
    time_left_minutes = Column(Integer, nullable=True)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)
    days_of_week = Column(JSON, nullable=True)
    start_datetime = Column(DateTime(timezone=True), nullable=True)
    end_datetime = Column(DateTime(timezone=True), nullable=True)
    priority = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    description = Column(Text, nullable=True)
