"""Price calculation and region lookup endpoints with Redis caching"""
import json
import hashlib
import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.pricing import BasePrice, FixedPrice, PriceRegion, Surcharge
from app.schemas.quote import PriceBreakdown, PriceRequest
from app.services.pricing import PriceCalculator
from app.services.snapshot import get_pricing_snapshot
from app.core.exceptions import NoPricingAvailable
from app.core.metrics import cache_hits, cache_misses
from app.core.redis import get_redis
from app.core.config import settings
from app.utils.time import localize, utcnow

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/pricing", tags=["pricing"])


async def get_price_calculator(db: AsyncSession = Depends(get_db)) -> PriceCalculator:
    snapshot = await get_pricing_snapshot(db)
    return PriceCalculator(snapshot)


def _generate_cache_key(req: PriceRequest) -> str:
    params_str = json.dumps(req.model_dump(mode="json"), sort_keys=True)
    return f"price:{hashlib.sha256(params_str.encode()).hexdigest()}"


@router.post("/calculate", response_model=PriceBreakdown)
async def calculate(req: PriceRequest, calculator: PriceCalculator = Depends(get_price_calculator)):

    cache_key = _generate_cache_key(req)
    redis = get_redis()

    if redis is not None:
        try:
            cached = await redis.get(cache_key)
            if cached:
                cache_hits.labels(cache_key="price").inc()
                return PriceBreakdown.model_validate_json(cached)
        except Exception as e:
            logger.warning(f"Cache retrieval failed: {e}")
    cache_misses.labels(cache_key="price").inc()

    result = calculator.calculate(req)
    if result is None:
        raise NoPricingAvailable()

    if redis is not None:
        try:
            await redis.set(cache_key, result.model_dump_json(), ex=settings.PRICE_CACHE_TTL)
        except Exception as e:
            logger.warning(f"Cache write failed: {e}")

    return result


@router.get("/regions", response_model=List[PriceRegion])
async def regions_for_location(
    lon: float = Query(..., ge=-180, le=180),
    lat: float = Query(..., ge=-90, le=90),
    calculator: PriceCalculator = Depends(get_price_calculator),
):
    return calculator.regions.find_containing(lon, lat)


@router.get("/fixed-prices", response_model=List[FixedPrice])
async def fixed_prices_for_route(
    origin_region_id: int,
    destination_region_id: int,
    calculator: PriceCalculator = Depends(get_price_calculator),
):
    return calculator.fixed_prices.list_by_regions(origin_region_id, destination_region_id)


@router.get("/regions/{region_id}/base-prices", response_model=List[BasePrice])
async def base_prices_for_region(
    region_id: int,
    calculator: PriceCalculator = Depends(get_price_calculator),
):
    calculator.regions.find_by_id(region_id)
    return calculator.base_prices.list_by_region(region_id, utcnow())


@router.get("/surcharges/applicable", response_model=List[Surcharge])
async def applicable_surcharges(
    region_id: int,
    booking_datetime: datetime,
    minutes_until_pickup: Optional[float] = Query(None, ge=0),
    calculator: PriceCalculator = Depends(get_price_calculator),
):
    return calculator.surcharges.matching(region_id, localize(booking_datetime), minutes_until_pickup)
