from datetime import datetime, timedelta, timezone

import pytest

from app.core.enums import RegionShape
from app.models import pricing as models

pytestmark = pytest.mark.integration

AIRPORT = {"type": "airport", "airport_code": "DXB", "name": "DXB Terminal 3", "longitude": 55.3650, "latitude": 25.2540}
DOWNTOWN = {"address": "Burj Khalifa", "longitude": 55.275, "latitude": 25.195}


def future(**kwargs):
    return (datetime.now(timezone.utc) + timedelta(**kwargs)).isoformat()


def quote_payload(**kwargs):
    payload = {
        "origin": AIRPORT,
        "destination": DOWNTOWN,
        "pickup_at": future(days=1),
        "pax": 2,
        "bags": 1,
        "distance_km": 20,
        "duration_minutes": 30,
    }
    payload.update(kwargs)
    return payload


def option(quote, vehicle_class):
    return next(item for item in quote["vehicle_classes"] if item["id"] == vehicle_class)


async def test_create_quote(test_client, seeded_db):
    response = await test_client.post("/quotes/", json=quote_payload())

    assert response.status_code == 200
    data = response.json()
    assert [item["id"] for item in data["vehicle_classes"]] == ["economy", "comfort", "premium", "van", "luxury"]
    assert option(data, "economy")["pricing"]["total"] == 80.0
    assert option(data, "comfort")["is_fixed_price"] is True
    assert option(data, "comfort")["pricing"]["total"] == 90.0
    assert data["policy"]["additional_wait_charge"] == "1.50 AED per minute"
    assert data["is_used"] is False


async def test_quote_lifecycle(test_client, seeded_db):
    created = (await test_client.post("/quotes/", json=quote_payload())).json()
    quote_id = created["quote_id"]

    response = await test_client.get(f"/quotes/{quote_id}")
    assert response.status_code == 200
    assert response.json()["quote_id"] == quote_id

    response = await test_client.post(
        f"/quotes/{quote_id}/consume", json={"vehicle_class": "comfort", "booking_reference": "BK-42"}
    )
    assert response.status_code == 200
    assert response.json()["pricing"]["total"] == 90.0

    response = await test_client.post(f"/quotes/{quote_id}/consume", json={"vehicle_class": "comfort"})
    assert response.status_code == 409

    response = await test_client.get(f"/quotes/{quote_id}")
    assert response.json()["is_used"] is True


async def test_last_minute_surcharge(test_client, seeded_db):
    response = await test_client.post(
        "/quotes/", json=quote_payload(pickup_at=future(minutes=30), preferred_vehicle_class="economy")
    )

    assert response.status_code == 200
    economy = option(response.json(), "economy")
    assert economy["pricing"]["surcharges"] == 20.0
    assert economy["pricing"]["total"] == 100.0
    assert economy["applied_surcharges"][0]["name"] == "Last minute"


async def test_quote_errors(test_client, seeded_db):
    response = await test_client.post("/quotes/", json=quote_payload(pickup_at=future(minutes=-5)))
    assert response.status_code == 422

    response = await test_client.post("/quotes/", json=quote_payload(pax=0))
    assert response.status_code == 422

    response = await test_client.get("/quotes/unknown-quote")
    assert response.status_code == 404
    assert "not found" in response.json()["detail"]

    created = (await test_client.post("/quotes/", json=quote_payload(preferred_vehicle_class="economy"))).json()
    response = await test_client.post(f"/quotes/{created['quote_id']}/consume", json={"vehicle_class": "van"})
    assert response.status_code == 422


async def test_calculate_price(test_client, seeded_db):
    response = await test_client.post("/pricing/calculate", json={
        "origin": AIRPORT,
        "destination": DOWNTOWN,
        "vehicle_class": "economy",
        "booking_datetime": future(days=1),
        "minutes_until_pickup": 30,
        "distance_km": 20,
        "duration_minutes": 30,
        "extras": ["child_seat"],
    })

    assert response.status_code == 200
    data = response.json()
    assert data["pricing_method"] == "distance_based"
    assert data["subtotal"] == 80.0
    assert data["extras"] == 10.0
    assert data["surcharges"] == 20.0
    assert data["total"] == 110.0


async def test_regions_for_location(test_client, seeded_db):
    response = await test_client.get("/pricing/regions", params={"lon": 55.3650, "lat": 25.2540})

    assert response.status_code == 200
    regions = response.json()
    assert [region["id"] for region in regions] == [1]
    assert regions[0]["geometry"]["shape"] == "circle"

    response = await test_client.get("/pricing/regions", params={"lon": 54.0, "lat": 24.0})
    assert response.json() == []


async def test_fixed_prices_for_route(test_client, seeded_db):
    response = await test_client.get(
        "/pricing/fixed-prices", params={"origin_region_id": 1, "destination_region_id": 2}
    )

    assert response.status_code == 200
    prices = response.json()
    assert len(prices) == 1
    assert prices[0]["vehicle_class"] == "comfort"
    assert prices[0]["fixed_price"] == 90.0

    response = await test_client.get(
        "/pricing/fixed-prices", params={"origin_region_id": 2, "destination_region_id": 1}
    )
    assert response.json() == []


async def test_health(test_client):
    response = await test_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_metrics(test_client, seeded_db):
    await test_client.post("/quotes/", json=quote_payload())
    response = await test_client.get("/metrics")

    assert response.status_code == 200
    assert "quotes_created_total" in response.text
    assert "price_calculations_total" in response.text


async def test_base_prices_for_region(test_client, seeded_db):
    response = await test_client.get("/pricing/regions/1/base-prices")

    assert response.status_code == 200
    prices = response.json()
    assert [price["vehicle_class"] for price in prices] == ["economy"]
    assert prices[0]["price_per_km"] == 2.0

    response = await test_client.get("/pricing/regions/2/base-prices")
    assert response.json() == []

    response = await test_client.get("/pricing/regions/99/base-prices")
    assert response.status_code == 404


async def test_applicable_surcharges(test_client, seeded_db):
    params = {"region_id": 1, "booking_datetime": future(hours=1)}

    response = await test_client.get("/pricing/surcharges/applicable", params={**params, "minutes_until_pickup": 30})
    assert response.status_code == 200
    assert [surcharge["name"] for surcharge in response.json()] == ["Last minute"]
    assert response.json()[0]["type"] == "cutoff_time"

    response = await test_client.get("/pricing/surcharges/applicable", params={**params, "minutes_until_pickup": 90})
    assert response.json() == []

    response = await test_client.get("/pricing/surcharges/applicable", params=params)
    assert response.json() == []

    response = await test_client.get("/pricing/surcharges/applicable", params={**params, "region_id": 2, "minutes_until_pickup": 30})
    assert response.json() == []


async def test_request_metrics_use_route_template(test_client, seeded_db):
    created = (await test_client.post("/quotes/", json=quote_payload())).json()
    await test_client.get(f"/quotes/{created['quote_id']}")

    text = (await test_client.get("/metrics")).text

    assert 'endpoint="/quotes/{quote_id}"' in text
    assert created["quote_id"] not in text


async def test_invalid_stored_configuration_is_server_error(test_client, seeded_db):
    seeded_db.add(models.PriceRegion(
        name="Broken",
        shape=RegionShape.CIRCLE,
        geometry={"center": [55.0, 25.0], "radius_meters": 0},
    ))
    await seeded_db.commit()

    response = await test_client.get("/pricing/regions", params={"lon": 55.0, "lat": 25.0})

    assert response.status_code == 500
    assert "Invalid pricing configuration" in response.json()["detail"]
