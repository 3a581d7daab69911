from datetime import datetime, timezone
from typing import Annotated
from zoneinfo import ZoneInfo

from pydantic import AfterValidator

from app.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # naive values are stored and compared as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def localize(value: datetime) -> datetime:
    """Client-supplied wall-clock times without an offset are read in PRICING_TIMEZONE"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=ZoneInfo(settings.PRICING_TIMEZONE))
    return value.astimezone(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> float:
    return (as_utc(end) - as_utc(start)).total_seconds() / 60.0


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
LocalDatetime = Annotated[datetime, AfterValidator(localize)]
