"""Price computation pipeline: regions, fixed or base fare, extras, surcharges"""
import logging
from collections import namedtuple
from typing import Dict, List, Optional, Tuple

from app.core.config import settings
from app.core.enums import Extra, PricingMethod, VehicleClass
from app.core.exceptions import NotFound
from app.core.metrics import price_calculations, pricing_fallbacks
from app.schemas.pricing import FixedPrice, PriceRegion, PricingSnapshot
from app.schemas.quote import Place, PriceBreakdown, PriceRequest
from app.services.base_prices import BasePriceTable, FareComponents, compute_fare
from app.services.fixed_prices import FixedPriceTable
from app.services.regions import RegionIndex, haversine_meters
from app.services.surcharges import SurchargeEvaluator
from app.utils.money import round2

logger = logging.getLogger(__name__)

VehicleSpec = namedtuple("VehicleSpec", ["name", "pax_capacity", "bag_capacity"])
DefaultRate = namedtuple("DefaultRate", ["base_fare", "price_per_km", "price_per_minute", "minimum_fare"])

VEHICLE_CATALOG = {
    VehicleClass.ECONOMY: VehicleSpec("Economy", 3, 2),
    VehicleClass.COMFORT: VehicleSpec("Comfort", 4, 3),
    VehicleClass.PREMIUM: VehicleSpec("Premium", 3, 3),
    VehicleClass.VAN: VehicleSpec("Van", 7, 7),
    VehicleClass.LUXURY: VehicleSpec("Luxury", 3, 2),
}

# used when the origin is outside every configured region or has no base price
DEFAULT_RATES = {
    VehicleClass.ECONOMY: DefaultRate(25.0, 2.0, 0.5, 15.0),
    VehicleClass.COMFORT: DefaultRate(35.0, 2.5, 0.6, 20.0),
    VehicleClass.PREMIUM: DefaultRate(50.0, 3.2, 0.8, 30.0),
    VehicleClass.VAN: DefaultRate(45.0, 3.0, 0.7, 30.0),
    VehicleClass.LUXURY: DefaultRate(80.0, 4.5, 1.0, 50.0),
}

EXTRA_PRICES = {
    Extra.CHILD_SEAT: 10.0,
    Extra.BOOSTER_SEAT: 8.0,
    Extra.MEET_AND_GREET: 15.0,
    Extra.EXTRA_STOP: 20.0,
    Extra.WHEELCHAIR: 0.0,
}


def estimate_trip(
    origin: Place,
    destination: Place,
    distance_km: Optional[float] = None,
    duration_minutes: Optional[float] = None,
) -> Tuple[Optional[float], Optional[float]]:
    """Supplied values win; otherwise straight-line distance stretched by ROUTE_DISTANCE_FACTOR"""
    if distance_km is None and origin.has_coordinates and destination.has_coordinates:
        meters = haversine_meters(origin.longitude, origin.latitude, destination.longitude, destination.latitude)
        distance_km = round2(meters / 1000 * settings.ROUTE_DISTANCE_FACTOR)
    if duration_minutes is None and distance_km is not None:
        duration_minutes = round2(distance_km / settings.AVERAGE_SPEED_KMH * 60)
    return distance_km, duration_minutes


def extras_breakdown(extras: List[Extra]) -> Dict[str, float]:
    breakdown: Dict[str, float] = {}
    for extra in extras:
        breakdown[str(extra)] = round2(breakdown.get(str(extra), 0.0) + EXTRA_PRICES[extra])
    return breakdown


class PriceCalculator:

    def __init__(
        self,
        snapshot: PricingSnapshot,
        timezone: Optional[str] = None,
        default_pricing: Optional[bool] = None,
    ):
        self.regions = RegionIndex(snapshot.regions)
        self.base_prices = BasePriceTable(snapshot.base_prices)
        self.fixed_prices = FixedPriceTable(snapshot.fixed_prices)
        self.surcharges = SurchargeEvaluator(snapshot.surcharges, timezone)
        self.default_pricing = settings.DEFAULT_PRICING_ENABLED if default_pricing is None else default_pricing

    def resolve_regions(self, place: Place) -> List[PriceRegion]:
        if place.region_id is not None:
            try:
                region = self.regions.find_by_id(place.region_id)
            except NotFound:
                logger.warning(f"Unknown price region {place.region_id} supplied with request")
                return []
            return [region] if region.is_active else []
        if place.has_coordinates:
            return self.regions.find_containing(place.longitude, place.latitude)
        return []

    def calculate(self, request: PriceRequest) -> Optional[PriceBreakdown]:
        """Price one vehicle class; None when no pricing exists for it"""
        at = request.booking_datetime
        vehicle_class = request.vehicle_class
        origins = self.resolve_regions(request.origin)
        destinations = self.resolve_regions(request.destination)
        distance_km, duration_minutes = estimate_trip(
            request.origin, request.destination, request.distance_km, request.duration_minutes
        )

        for origin in origins:
            for destination in destinations:
                try:
                    fixed = self.fixed_prices.lookup(origin.id, destination.id, vehicle_class, at)
                except NotFound:
                    continue
                return self._fixed(request, fixed, distance_km, duration_minutes)

        if origins:
            origin = origins[0]
            destination_id = destinations[0].id if destinations else None
            try:
                base = self.base_prices.lookup(origin.id, vehicle_class, at)
            except NotFound:
                logger.info(f"No base price for region {origin.id} and {vehicle_class}, using default rates")
                return self._default(request, "no_base_price", origin.id, destination_id, distance_km, duration_minutes)

            fare = self.base_prices.fare(base, distance_km or 0.0, duration_minutes or 0.0)
            return self._finish(
                request,
                PricingMethod.DISTANCE_BASED,
                fare,
                base.currency,
                origin.id,
                destination_id,
                estimated_distance_km=distance_km,
                estimated_duration_minutes=duration_minutes,
            )

        logger.info(f"Origin not covered by any price region, using default rates for {vehicle_class}")
        destination_id = destinations[0].id if destinations else None
        return self._default(request, "origin_unresolved", None, destination_id, distance_km, duration_minutes)

    def _fixed(
        self,
        request: PriceRequest,
        fixed: FixedPrice,
        distance_km: Optional[float],
        duration_minutes: Optional[float],
    ) -> PriceBreakdown:
        amount = round2(fixed.fixed_price)
        fare = FareComponents(
            base_fare=amount, distance_charge=0.0, time_charge=0.0, fare=amount, minimum_fare_applied=False
        )
        return self._finish(
            request,
            PricingMethod.FIXED,
            fare,
            fixed.currency,
            fixed.origin_region_id,
            fixed.destination_region_id,
            estimated_distance_km=(
                fixed.estimated_distance_km if fixed.estimated_distance_km is not None else distance_km
            ),
            estimated_duration_minutes=(
                fixed.estimated_duration_minutes if fixed.estimated_duration_minutes is not None else duration_minutes
            ),
            included_waiting_time=fixed.included_waiting_time_minutes,
            additional_waiting_price=fixed.additional_waiting_price_per_minute,
        )

    def _default(
        self,
        request: PriceRequest,
        reason: str,
        origin_region_id: Optional[int],
        destination_region_id: Optional[int],
        distance_km: Optional[float],
        duration_minutes: Optional[float],
    ) -> Optional[PriceBreakdown]:
        rate = DEFAULT_RATES.get(request.vehicle_class)
        if not self.default_pricing or rate is None:
            logger.info(f"No pricing available for {request.vehicle_class} ({reason})")
            return None

        pricing_fallbacks.labels(reason=reason).inc()
        fare = compute_fare(
            rate.base_fare,
            rate.price_per_km,
            rate.price_per_minute,
            rate.minimum_fare,
            distance_km or 0.0,
            duration_minutes or 0.0,
        )
        return self._finish(
            request,
            PricingMethod.DEFAULT,
            fare,
            settings.DEFAULT_CURRENCY,
            origin_region_id,
            destination_region_id,
            estimated_distance_km=distance_km,
            estimated_duration_minutes=duration_minutes,
        )

    def _finish(
        self,
        request: PriceRequest,
        method: PricingMethod,
        fare: FareComponents,
        currency: str,
        origin_region_id: Optional[int],
        destination_region_id: Optional[int],
        **extra_fields,
    ) -> PriceBreakdown:
        extras = extras_breakdown(request.extras)
        extras_total = round2(sum(extras.values()))

        applied = []
        if origin_region_id is not None:
            applied = self.surcharges.applicable(
                origin_region_id,
                request.booking_datetime,
                request.minutes_until_pickup,
                fare.fare,
                currency,
            )
        surcharge_total = round2(sum(surcharge.amount for surcharge in applied))

        price_calculations.labels(method=str(method), vehicle_class=str(request.vehicle_class)).inc()
        return PriceBreakdown(
            vehicle_class=request.vehicle_class,
            pricing_method=method,
            is_fixed_price=method == PricingMethod.FIXED,
            base_fare=fare.base_fare,
            distance_charge=fare.distance_charge,
            time_charge=fare.time_charge,
            minimum_fare_applied=fare.minimum_fare_applied,
            subtotal=fare.fare,
            extras=extras_total,
            extras_breakdown=extras,
            surcharges=surcharge_total,
            applied_surcharges=applied,
            total=round2(fare.fare + extras_total + surcharge_total),
            currency=currency,
            origin_region_id=origin_region_id,
            destination_region_id=destination_region_id,
            **extra_fields,
        )
