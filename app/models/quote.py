from sqlalchemy import Column, String, Float, Integer, Boolean, DateTime, JSON
from app.models.base import BaseModel


class Quote(BaseModel):
    __tablename__ = "quotes"

    quote_id = Column(String(36), unique=True, nullable=False, index=True)
    origin = Column(JSON, nullable=False)
    destination = Column(JSON, nullable=False)
    pickup_at = Column(DateTime(timezone=True), nullable=False)
    passengers = Column(Integer, nullable=False)
    luggage = Column(Integer, nullable=False, default=0)
    extras = Column(JSON, nullable=False, default=list)
    vehicle_options = Column(JSON, nullable=False)
    policy = Column(JSON, nullable=False)
    estimated_distance = Column(Float, nullable=True)
    estimated_duration = Column(Float, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    is_used = Column(Boolean, default=False, nullable=False, index=True)
    booking_reference = Column(String(64), nullable=True)
