"""Surcharge evaluation: urgency rules and calendar windows, per region"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.core.enums import SurchargeApplication
from app.core.exceptions import InvalidRequest
from app.core.metrics import surcharges_applied, surcharge_config_errors
from app.schemas.pricing import (
    CutoffTimeSurcharge,
    DateTimeSurcharge,
    Surcharge,
    TimeLeftSurcharge,
    TimeRange,
)
from app.schemas.quote import AppliedSurcharge
from app.utils.money import round2
from app.utils.time import as_utc

logger = logging.getLogger(__name__)


def day_of_week(local_dt: datetime) -> int:
    """0=Sunday .. 6=Saturday"""
    return (local_dt.weekday() + 1) % 7


def time_in_range(minute_of_day: int, time_range: TimeRange) -> bool:
    start, end = time_range.start_minute, time_range.end_minute
    if not time_range.crosses_midnight:
        return start <= minute_of_day < end
    return minute_of_day >= start or minute_of_day < end


class SurchargeEvaluator:

    def __init__(self, surcharges: Iterable[Surcharge], timezone: Optional[str] = None):
        self._rows = [row for row in surcharges if row.is_active]
        self._tz = ZoneInfo(timezone or settings.PRICING_TIMEZONE)

    def _matches_cutoff(self, surcharge: CutoffTimeSurcharge, minutes_until_pickup: Optional[float]) -> bool:
        return minutes_until_pickup is not None and minutes_until_pickup <= surcharge.cutoff_minutes

    def _matches_time_left(self, surcharge: TimeLeftSurcharge, minutes_until_pickup: Optional[float]) -> bool:
        return minutes_until_pickup is not None and minutes_until_pickup <= surcharge.time_left_minutes

    def _matches_datetime(self, surcharge: DateTimeSurcharge, booking_datetime: datetime) -> bool:
        if surcharge.date_time_range is not None:
            window = surcharge.date_time_range
            return window.start <= booking_datetime <= window.end

        local = booking_datetime.astimezone(self._tz)
        # no mask means every day; an explicit mask, even an empty one, requires membership
        if surcharge.days_of_week is not None and day_of_week(local) not in surcharge.days_of_week:
            return False
        return time_in_range(local.hour * 60 + local.minute, surcharge.time_range)

    def _matches(self, surcharge: Surcharge, booking_datetime: datetime, minutes_until_pickup: Optional[float]) -> bool:
        if surcharge.type == "cutoff_time":
            return self._matches_cutoff(surcharge, minutes_until_pickup)
        if surcharge.type == "time_left":
            return self._matches_time_left(surcharge, minutes_until_pickup)
        if surcharge.type == "datetime":
            return self._matches_datetime(surcharge, booking_datetime)
        return False

    def matching(
        self,
        region_id: int,
        booking_datetime: datetime,
        minutes_until_pickup: Optional[float] = None,
    ) -> List[Surcharge]:
        if minutes_until_pickup is not None and minutes_until_pickup < 0:
            raise InvalidRequest("Pickup time must be in the future")

        booking_datetime = as_utc(booking_datetime)
        matched = [
            row for row in self._rows
            if row.region_id == region_id
            and row.is_valid_at(booking_datetime)
            and self._matches(row, booking_datetime, minutes_until_pickup)
        ]
        matched.sort(key=lambda row: (row.priority, row.id))
        return matched

    def applicable(
        self,
        region_id: int,
        booking_datetime: datetime,
        minutes_until_pickup: Optional[float],
        subtotal: float,
        currency: str,
    ) -> List[AppliedSurcharge]:
        """Matching surcharges with amounts computed on the pre-surcharge subtotal"""
        applied = []
        for surcharge in self.matching(region_id, booking_datetime, minutes_until_pickup):
            if surcharge.application == SurchargeApplication.PERCENTAGE:
                amount = round2(subtotal * surcharge.value / 100)
            else:
                if surcharge.currency != currency:
                    logger.error(
                        f"Surcharge {surcharge.id} ({surcharge.name}) is in {surcharge.currency} "
                        f"but the fare is in {currency}; skipping"
                    )
                    surcharge_config_errors.labels(reason="currency_mismatch").inc()
                    continue
                amount = round2(surcharge.value)

            surcharges_applied.labels(type=surcharge.type).inc()
            applied.append(AppliedSurcharge(
                surcharge_id=surcharge.id,
                name=surcharge.name,
                type=surcharge.type,
                application=surcharge.application,
                value=surcharge.value,
                amount=amount,
                reason=describe(surcharge),
            ))
        return applied


def describe(surcharge: Surcharge) -> str:
    if surcharge.description:
        return surcharge.description
    if surcharge.type == "cutoff_time":
        return f"Booked within {surcharge.cutoff_minutes} minutes of pickup"
    if surcharge.type == "time_left":
        return f"Pickup within {surcharge.time_left_minutes} minutes"
    if surcharge.date_time_range is not None:
        window = surcharge.date_time_range
        return f"Pickup between {window.start.isoformat()} and {window.end.isoformat()}"
    return f"Pickup between {surcharge.time_range.start_time} and {surcharge.time_range.end_time}"
