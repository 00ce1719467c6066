from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
WHOLE = Decimal("1")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # go through str so floats keep their printed value
    return Decimal(str(value))


def round_whole(value) -> Decimal:
    """Round half-up to the nearest whole currency unit, kept at 2dp."""
    return to_decimal(value).quantize(WHOLE, rounding=ROUND_HALF_UP).quantize(CENT)


def round_cents(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount, percent) -> Decimal:
    """Whole-unit share of ``amount`` at ``percent``."""
    return round_whole(to_decimal(amount) * to_decimal(percent) / Decimal("100"))
