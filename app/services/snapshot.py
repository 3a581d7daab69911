"""Loads the pricing configuration snapshot from the database, cached in Redis"""
import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.config import settings
from app.core.exceptions import ConfigurationError
from app.core.metrics import cache_hits, cache_misses, track_db_operation
from app.core.redis import get_redis
from app.models import pricing as models
from app.schemas.pricing import (
    BasePrice,
    CutoffTimeSurcharge,
    DateTimeSurcharge,
    FixedPrice,
    PriceRegion,
    PricingSnapshot,
    TimeLeftSurcharge,
)
from app.core.enums import SurchargeType

logger = logging.getLogger(__name__)

SNAPSHOT_CACHE_KEY = "pricing:snapshot"


def region_from_row(row: models.PriceRegion) -> PriceRegion:
    geometry = dict(row.geometry or {})
    geometry["shape"] = str(row.shape)
    return PriceRegion(
        id=row.id,
        name=row.name,
        tags=row.tags or [],
        description=row.description,
        geometry=geometry,
        is_active=row.is_active,
    )


def base_price_from_row(row: models.BasePrice) -> BasePrice:
    return BasePrice(
        id=row.id,
        region_id=row.region_id,
        vehicle_class=row.vehicle_class,
        base_fare=row.base_fare,
        price_per_km=row.price_per_km,
        price_per_minute=row.price_per_minute,
        minimum_fare=row.minimum_fare,
        currency=row.currency,
        is_active=row.is_active,
        valid_from=row.valid_from,
        valid_until=row.valid_until,
        created_at=row.created_at,
    )


def fixed_price_from_row(row: models.FixedPrice) -> FixedPrice:
    return FixedPrice(
        id=row.id,
        origin_region_id=row.origin_region_id,
        destination_region_id=row.destination_region_id,
        vehicle_class=row.vehicle_class,
        name=row.name,
        fixed_price=row.fixed_price,
        currency=row.currency,
        estimated_distance_km=row.estimated_distance_km,
        estimated_duration_minutes=row.estimated_duration_minutes,
        included_waiting_time_minutes=row.included_waiting_time_minutes,
        additional_waiting_price_per_minute=row.additional_waiting_price_per_minute,
        priority=row.priority,
        is_active=row.is_active,
        valid_from=row.valid_from,
        valid_until=row.valid_until,
        created_at=row.created_at,
    )


def surcharge_from_row(row: models.Surcharge):
    common = dict(
        id=row.id,
        region_id=row.region_id,
        name=row.name,
        application=row.application,
        value=row.value,
        currency=row.currency,
        priority=row.priority,
        is_active=row.is_active,
        valid_from=row.valid_from,
        valid_until=row.valid_until,
        description=row.description,
    )
    if row.type == SurchargeType.CUTOFF_TIME:
        return CutoffTimeSurcharge(cutoff_minutes=row.cutoff_minutes, **common)
    if row.type == SurchargeType.TIME_LEFT:
        return TimeLeftSurcharge(time_left_minutes=row.time_left_minutes, **common)

    time_range = None
    if row.start_time and row.end_time:
        time_range = {"start_time": row.start_time, "end_time": row.end_time}
    date_time_range = None
    if row.start_datetime and row.end_datetime:
        date_time_range = {"start": row.start_datetime, "end": row.end_datetime}
    return DateTimeSurcharge(
        time_range=time_range,
        days_of_week=row.days_of_week,
        date_time_range=date_time_range,
        **common,
    )


@track_db_operation("select", "pricing_config")
async def load_snapshot_from_db(db: AsyncSession) -> PricingSnapshot:
    regions = (await db.execute(select(models.PriceRegion).order_by(models.PriceRegion.id))).scalars().all()
    base_prices = (await db.execute(select(models.BasePrice).order_by(models.BasePrice.id))).scalars().all()
    fixed_prices = (await db.execute(select(models.FixedPrice).order_by(models.FixedPrice.id))).scalars().all()
    surcharges = (await db.execute(select(models.Surcharge).order_by(models.Surcharge.id))).scalars().all()

    try:
        return PricingSnapshot(
            regions=[region_from_row(row) for row in regions],
            base_prices=[base_price_from_row(row) for row in base_prices],
            fixed_prices=[fixed_price_from_row(row) for row in fixed_prices],
            surcharges=[surcharge_from_row(row) for row in surcharges],
        )
    except ValidationError as e:
        logger.error(f"Invalid pricing configuration: {e}")
        raise ConfigurationError(f"Invalid pricing configuration: {e.errors()[0]['msg']}")


async def get_pricing_snapshot(db: AsyncSession) -> PricingSnapshot:
    redis = get_redis()

    if redis is not None:
        try:
            cached: Optional[bytes] = await redis.get(SNAPSHOT_CACHE_KEY)
            if cached:
                cache_hits.labels(cache_key="pricing_snapshot").inc()
                return PricingSnapshot.model_validate_json(cached)
        except Exception as e:
            logger.warning(f"Snapshot cache retrieval failed: {e}")
    cache_misses.labels(cache_key="pricing_snapshot").inc()

    snapshot = await load_snapshot_from_db(db)

    if redis is not None:
        try:
            await redis.set(SNAPSHOT_CACHE_KEY, snapshot.model_dump_json(), ex=settings.PRICING_SNAPSHOT_TTL)
        except Exception as e:
            logger.warning(f"Snapshot cache write failed: {e}")

    return snapshot


async def invalidate_snapshot_cache() -> None:
    redis = get_redis()
    if redis is None:
        return
    try:
        await redis.delete(SNAPSHOT_CACHE_KEY)
    except Exception as e:
        logger.warning(f"Snapshot cache invalidation failed: {e}")
