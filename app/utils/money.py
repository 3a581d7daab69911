from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def round2(value: float) -> float:
    """Round a money amount half-up to 2 decimal places"""
    return float(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP))
