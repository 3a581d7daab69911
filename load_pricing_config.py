import sys
import json
import asyncio
from pydantic import ValidationError
from app.db.session import AsyncSessionLocal, engine
from app.models.base import Base
from app.core.enums import RegionShape, SurchargeType
from app.core.redis import init_redis, close_redis
from app.models import pricing as models
from app.models import quote as quote_models
from app.schemas.pricing import PricingSnapshot
from app.services.snapshot import invalidate_snapshot_cache


SCHEMA_TABLES = [
    models.PriceRegion.__table__,
    models.BasePrice.__table__,
    models.FixedPrice.__table__,
    models.Surcharge.__table__,
    quote_models.Quote.__table__,
]


async def create_schema(db_engine) -> None:
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=SCHEMA_TABLES)


def surcharge_row(surcharge) -> models.Surcharge:
    row = models.Surcharge(
        id=surcharge.id,
        region_id=surcharge.region_id,
        name=surcharge.name,
        type=SurchargeType(surcharge.type),
        application=surcharge.application,
        value=surcharge.value,
        currency=surcharge.currency,
        priority=surcharge.priority,
        is_active=surcharge.is_active,
        valid_from=surcharge.valid_from,
        valid_until=surcharge.valid_until,
        description=surcharge.description,
    )
    if surcharge.type == "cutoff_time":
        row.cutoff_minutes = surcharge.cutoff_minutes
    elif surcharge.type == "time_left":
        row.time_left_minutes = surcharge.time_left_minutes
    elif surcharge.time_range is not None:
        row.start_time = surcharge.time_range.start_time
        row.end_time = surcharge.time_range.end_time
        row.days_of_week = surcharge.days_of_week
    else:
        row.start_datetime = surcharge.date_time_range.start
        row.end_datetime = surcharge.date_time_range.end
    return row


def build_rows(snapshot: PricingSnapshot) -> list:
    rows = []
    for region in snapshot.regions:
        geometry = region.geometry.model_dump(mode="json", exclude={"shape"})
        rows.append(models.PriceRegion(
            id=region.id,
            name=region.name,
            tags=region.tags,
            description=region.description,
            shape=RegionShape(region.geometry.shape),
            geometry=geometry,
            is_active=region.is_active,
        ))
    for price in snapshot.base_prices:
        rows.append(models.BasePrice(**price.model_dump(exclude={"created_at"})))
    for price in snapshot.fixed_prices:
        rows.append(models.FixedPrice(**price.model_dump(exclude={"created_at"})))
    for surcharge in snapshot.surcharges:
        rows.append(surcharge_row(surcharge))
    return rows


async def refresh_cache() -> None:
    try:
        await init_redis()
    except Exception:
        print("Redis unavailable, cached pricing expires on its own TTL")
        return
    await invalidate_snapshot_cache()
    await close_redis()


async def load_config(path: str) -> int:
    with open(path) as f:
        snapshot = PricingSnapshot.model_validate(json.load(f))

    await create_schema(engine)

    rows = build_rows(snapshot)
    async with AsyncSessionLocal() as db:
        db.add_all(rows)
        await db.commit()

    await engine.dispose()
    await refresh_cache()
    return len(rows)


def main():
    if len(sys.argv) < 2:
        print("Usage: python load_pricing_config.py <config.json>")
        sys.exit(1)

    try:
        count = asyncio.run(load_config(sys.argv[1]))
    except ValidationError as e:
        print(f"Invalid pricing configuration:\n{e}")
        sys.exit(1)
    except Exception as e:
        print(f"Error loading pricing configuration: {str(e)}")
        sys.exit(1)

    print(f"Loaded {count} pricing records from {sys.argv[1]}")
    sys.exit(0)


if __name__ == "__main__":
    main()
