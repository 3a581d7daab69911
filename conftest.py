import pytest
import asyncio
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from app.main import app
from app.db.session import get_db
from app.models.base import Base
from app.models import pricing as models
from app.models import quote as quote_models  # noqa: F401  registers the quotes table
from app.core.enums import RegionShape, SurchargeApplication, SurchargeType, VehicleClass
from app.schemas.pricing import (
    BasePrice,
    CircleGeometry,
    DateTimeSurcharge,
    FixedPrice,
    PolygonGeometry,
    PriceRegion,
    PricingSnapshot,
)
from app.services.pricing import PriceCalculator


AIRPORT_CENTER = (55.3644, 25.2532)
AIRPORT_POINT = {"longitude": 55.3650, "latitude": 25.2540}
DOWNTOWN_RING = [(55.25, 25.18), (55.30, 25.18), (55.30, 25.21), (55.25, 25.21)]
DOWNTOWN_POINT = {"longitude": 55.275, "latitude": 25.195}
OUTSIDE_POINT = {"longitude": 54.0, "latitude": 24.0}

# Saturday 2026-01-10 12:00 UTC
FIXED_NOW = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)



@pytest.fixture
def clock():
    return FixedClock(FIXED_NOW)


@pytest.fixture
def airport_region():
    return PriceRegion(
        id=1,
        name="Dubai International Airport",
        tags=["airport", "dubai"],
        geometry=CircleGeometry(center=AIRPORT_CENTER, radius_meters=5000),
    )


@pytest.fixture
def downtown_region():
    return PriceRegion(
        id=2,
        name="Downtown Dubai",
        tags=["city"],
        geometry=PolygonGeometry(rings=[DOWNTOWN_RING]),
    )


@pytest.fixture
def airport_base_price():
    return BasePrice(
        id=1,
        region_id=1,
        vehicle_class=VehicleClass.ECONOMY,
        base_fare=25.0,
        price_per_km=2.0,
        price_per_minute=0.5,
        minimum_fare=15.0,
        currency="AED",
    )


@pytest.fixture
def airport_to_downtown_fixed():
    return FixedPrice(
        id=1,
        origin_region_id=1,
        destination_region_id=2,
        vehicle_class=VehicleClass.ECONOMY,
        name="Airport to Downtown",
        fixed_price=75.0,
        currency="AED",
        estimated_distance_km=18.0,
        estimated_duration_minutes=25,
        included_waiting_time_minutes=60,
        additional_waiting_price_per_minute=1.5,
    )


@pytest.fixture
def night_surcharge():
    return DateTimeSurcharge(
        id=1,
        region_id=1,
        name="Night surcharge",
        application=SurchargeApplication.PERCENTAGE,
        value=25,
        time_range={"start_time": "22:00", "end_time": "06:00"},
        days_of_week=[0, 1, 2, 3, 4, 5, 6],
    )


@pytest.fixture
def pricing_snapshot(airport_region, downtown_region, airport_base_price):
    return PricingSnapshot(
        regions=[airport_region, downtown_region],
        base_prices=[airport_base_price],
    )


@pytest.fixture
def calculator_factory():
    def _create(snapshot: PricingSnapshot, **kwargs) -> PriceCalculator:
        kwargs.setdefault("timezone", "Asia/Dubai")
        return PriceCalculator(snapshot, **kwargs)
    return _create



@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded_db(db_session):
    """Airport circle, downtown polygon, economy base price, airport->downtown fixed price"""
    db_session.add_all([
        models.PriceRegion(
            id=1,
            name="Dubai International Airport",
            tags=["airport"],
            shape=RegionShape.CIRCLE,
            geometry={"center": list(AIRPORT_CENTER), "radius_meters": 5000},
        ),
        models.PriceRegion(
            id=2,
            name="Downtown Dubai",
            tags=["city"],
            shape=RegionShape.POLYGON,
            geometry={"rings": [[list(point) for point in DOWNTOWN_RING]]},
        ),
    ])
    await db_session.flush()
    db_session.add_all([
        models.BasePrice(
            region_id=1,
            vehicle_class=VehicleClass.ECONOMY,
            base_fare=25.0,
            price_per_km=2.0,
            price_per_minute=0.5,
            minimum_fare=15.0,
            currency="AED",
        ),
        models.FixedPrice(
            origin_region_id=1,
            destination_region_id=2,
            vehicle_class=VehicleClass.COMFORT,
            fixed_price=90.0,
            currency="AED",
            estimated_distance_km=18.0,
            estimated_duration_minutes=25,
            included_waiting_time_minutes=60,
            additional_waiting_price_per_minute=1.5,
        ),
        models.Surcharge(
            region_id=1,
            name="Last minute",
            type=SurchargeType.CUTOFF_TIME,
            application=SurchargeApplication.FIXED_AMOUNT,
            value=20.0,
            currency="AED",
            cutoff_minutes=60,
        ),
    ])
    await db_session.commit()
    return db_session


@pytest.fixture
async def test_client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()



def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "pricing: marks tests related to pricing"
    )
    config.addinivalue_line(
        "markers", "regions: marks tests related to region resolution"
    )
    config.addinivalue_line(
        "markers", "surcharges: marks tests related to surcharges"
    )
    config.addinivalue_line(
        "markers", "quotes: marks tests related to quote issuing and consumption"
    )
    config.addinivalue_line(
        "markers", "idempotency: marks tests related to idempotency"
    )


def pytest_collection_modifyitems(config, items):
    """
    Modify test collection to handle asyncio tests
    """
    for item in items:
        if asyncio.iscoroutinefunction(item.function):
            item.add_marker(pytest.mark.asyncio)
