from typing import Optional
from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.api.pricing import get_price_calculator
from app.schemas.quote import QuoteConsumeRequest, QuoteRequest, QuoteResponse, QuoteVehicleOption
from app.services.pricing import PriceCalculator
from app.services.quotes import QuoteIssuer, QuoteRepository
from app.utils.idempotency import get_idempotent, set_idempotent

router = APIRouter(prefix="/quotes", tags=["quotes"])


async def get_quote_issuer(
    db: AsyncSession = Depends(get_db),
    calculator: PriceCalculator = Depends(get_price_calculator),
) -> QuoteIssuer:
    return QuoteIssuer(calculator, QuoteRepository(db))


@router.post("/", response_model=QuoteResponse)
async def create_quote(
    payload: QuoteRequest,
    idempotency_key: Optional[str] = Header(None),
    issuer: QuoteIssuer = Depends(get_quote_issuer),
):
    if idempotency_key:
        prev = await get_idempotent(idempotency_key)
        if prev:
            return prev

    out = await issuer.create_quote(payload)
    if idempotency_key:
        await set_idempotent(idempotency_key, out.model_dump(mode="json"))
    return out


@router.get("/{quote_id}", response_model=QuoteResponse)
async def get_quote(quote_id: str, issuer: QuoteIssuer = Depends(get_quote_issuer)):
    return await issuer.get_quote(quote_id)


@router.post("/{quote_id}/consume", response_model=QuoteVehicleOption)
async def consume_quote(
    quote_id: str,
    payload: QuoteConsumeRequest,
    issuer: QuoteIssuer = Depends(get_quote_issuer),
):
    return await issuer.consume(quote_id, payload.vehicle_class, payload.booking_reference)
