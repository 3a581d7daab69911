"""Quote issuing and single-use consumption"""
import logging
import uuid
from datetime import timedelta
from typing import Callable, List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.config import settings
from app.core.enums import ConsumeResult, VehicleClass
from app.core.exceptions import AlreadyUsed, Expired, InvalidRequest, NoPricingAvailable, NotFound
from app.core.metrics import quote_consumptions, quotes_created, track_db_operation
from app.models.quote import Quote
from app.schemas.quote import (
    Place,
    PriceBreakdown,
    PriceRequest,
    QuotePolicy,
    QuotePricing,
    QuoteRequest,
    QuoteResponse,
    QuoteVehicleOption,
)
from app.services.pricing import VEHICLE_CATALOG, PriceCalculator
from app.utils.time import as_utc, minutes_between, utcnow

logger = logging.getLogger(__name__)


class QuoteRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    @track_db_operation("insert", "quotes")
    async def add(self, quote: Quote) -> None:
        self.db.add(quote)
        await self.db.commit()

    @track_db_operation("select", "quotes")
    async def get(self, quote_id: str) -> Optional[Quote]:
        res = await self.db.execute(
            select(Quote).where(Quote.quote_id == quote_id).execution_options(populate_existing=True)
        )
        return res.scalars().first()

    @track_db_operation("update", "quotes")
    async def mark_used(self, quote_id: str, now, booking_reference: Optional[str] = None) -> bool:
        """Atomic check-and-set of is_used; True only for the caller that flipped it"""
        res = await self.db.execute(
            update(Quote)
            .where(
                Quote.quote_id == quote_id,
                Quote.is_used.is_(False),
                Quote.expires_at > now,
            )
            .values(is_used=True, booking_reference=booking_reference, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return res.rowcount == 1


def build_vehicle_option(breakdown: PriceBreakdown) -> QuoteVehicleOption:
    vehicle = VEHICLE_CATALOG[breakdown.vehicle_class]
    return QuoteVehicleOption(
        id=breakdown.vehicle_class,
        name=vehicle.name,
        pax_capacity=vehicle.pax_capacity,
        bag_capacity=vehicle.bag_capacity,
        pricing=QuotePricing(
            base_fare=breakdown.base_fare,
            distance_charge=None if breakdown.is_fixed_price else breakdown.distance_charge,
            time_charge=None if breakdown.is_fixed_price else breakdown.time_charge,
            extras=breakdown.extras or None,
            surcharges=breakdown.surcharges or None,
            total=breakdown.total,
            currency=breakdown.currency,
        ),
        applied_surcharges=breakdown.applied_surcharges,
        is_fixed_price=breakdown.is_fixed_price,
        included_waiting_time=breakdown.included_waiting_time,
        additional_waiting_price=breakdown.additional_waiting_price,
    )


def build_quote_response(quote: Quote) -> QuoteResponse:
    return QuoteResponse(
        quote_id=quote.quote_id,
        vehicle_classes=quote.vehicle_options,
        policy=quote.policy,
        origin=quote.origin,
        destination=quote.destination,
        origin_name=Place.model_validate(quote.origin).display_name,
        destination_name=Place.model_validate(quote.destination).display_name,
        pickup_at=quote.pickup_at,
        passengers=quote.passengers,
        luggage=quote.luggage,
        extras=quote.extras or [],
        estimated_distance=quote.estimated_distance,
        estimated_duration=quote.estimated_duration,
        created_at=quote.created_at,
        expires_at=quote.expires_at,
        is_used=quote.is_used,
    )


class QuoteIssuer:

    def __init__(
        self,
        calculator: PriceCalculator,
        repository: QuoteRepository,
        clock: Callable = utcnow,
    ):
        self.calculator = calculator
        self.repository = repository
        self.clock = clock

    @staticmethod
    def eligible_classes(request: QuoteRequest) -> List[VehicleClass]:
        candidates = [request.preferred_vehicle_class] if request.preferred_vehicle_class else list(VehicleClass)
        return [
            vehicle_class for vehicle_class in candidates
            if VEHICLE_CATALOG[vehicle_class].pax_capacity >= request.pax
            and VEHICLE_CATALOG[vehicle_class].bag_capacity >= request.bags
        ]

    def price_options(self, request: QuoteRequest, minutes_until_pickup: float) -> List[PriceBreakdown]:
        breakdowns = []
        for vehicle_class in self.eligible_classes(request):
            breakdown = self.calculator.calculate(PriceRequest(
                origin=request.origin,
                destination=request.destination,
                vehicle_class=vehicle_class,
                booking_datetime=request.pickup_at,
                minutes_until_pickup=minutes_until_pickup,
                distance_km=request.distance_km,
                duration_minutes=request.duration_minutes,
                extras=request.extras,
            ))
            if breakdown is not None:
                breakdowns.append(breakdown)
        return breakdowns

    async def create_quote(self, request: QuoteRequest) -> QuoteResponse:
        now = self.clock()
        if request.pickup_at <= now:
            raise InvalidRequest("Pickup time must be in the future")

        breakdowns = self.price_options(request, minutes_between(now, request.pickup_at))
        if not breakdowns:
            raise NoPricingAvailable()

        options = [build_vehicle_option(breakdown) for breakdown in breakdowns]
        expires_at = now + timedelta(minutes=settings.QUOTE_TTL_MINUTES)

        additional_wait_charge = None
        for breakdown in breakdowns:
            if breakdown.additional_waiting_price:
                additional_wait_charge = f"{breakdown.additional_waiting_price:.2f} {breakdown.currency} per minute"
                break

        policy = QuotePolicy(
            cancellation=settings.CANCELLATION_POLICY,
            included_wait=settings.INCLUDED_WAIT_POLICY,
            additional_wait_charge=additional_wait_charge,
            quote_expires_at=expires_at,
        )

        quote = Quote(
            quote_id=str(uuid.uuid4()),
            origin=request.origin.model_dump(mode="json"),
            destination=request.destination.model_dump(mode="json"),
            pickup_at=request.pickup_at,
            passengers=request.pax,
            luggage=request.bags,
            extras=[str(extra) for extra in request.extras],
            vehicle_options=[option.model_dump(mode="json") for option in options],
            policy=policy.model_dump(mode="json"),
            estimated_distance=breakdowns[0].estimated_distance_km,
            estimated_duration=breakdowns[0].estimated_duration_minutes,
            created_at=now,
            expires_at=expires_at,
            is_used=False,
        )
        await self.repository.add(quote)
        quotes_created.inc()
        logger.info(f"Quote {quote.quote_id} created with {len(options)} vehicle classes")

        return build_quote_response(quote)

    async def get_quote(self, quote_id: str) -> QuoteResponse:
        quote = await self.repository.get(quote_id)
        if quote is None:
            raise NotFound("Quote", quote_id)
        if as_utc(quote.expires_at) <= self.clock():
            raise Expired(f"Quote {quote_id} has expired. Please get a new quote.")
        return build_quote_response(quote)

    async def consume(
        self,
        quote_id: str,
        vehicle_class: VehicleClass,
        booking_reference: Optional[str] = None,
    ) -> QuoteVehicleOption:
        """Mark the quote used exactly once and return the selected vehicle option"""
        now = self.clock()
        quote = await self.repository.get(quote_id)
        if quote is None:
            quote_consumptions.labels(result=str(ConsumeResult.NOT_FOUND)).inc()
            raise NotFound("Quote", quote_id)
        if as_utc(quote.expires_at) <= now:
            quote_consumptions.labels(result=str(ConsumeResult.EXPIRED)).inc()
            raise Expired(f"Quote {quote_id} has expired. Please get a new quote.")

        options = [QuoteVehicleOption.model_validate(option) for option in quote.vehicle_options]
        selected = next((option for option in options if option.id == vehicle_class), None)
        if selected is None:
            quote_consumptions.labels(result=str(ConsumeResult.INVALID)).inc()
            available = ", ".join(str(option.id) for option in options)
            raise InvalidRequest(
                f"Vehicle class '{vehicle_class}' not available in this quote. Available: {available}"
            )

        # expiry was checked against the same instant, so a failed update means another consumer won
        if not await self.repository.mark_used(quote_id, now, booking_reference):
            quote_consumptions.labels(result=str(ConsumeResult.ALREADY_USED)).inc()
            raise AlreadyUsed(f"Quote {quote_id} has already been used for another booking")

        quote_consumptions.labels(result=str(ConsumeResult.SUCCESS)).inc()
        logger.info(f"Quote {quote_id} consumed for {vehicle_class}")
        return selected
