"""
Money helpers (``payout_kernel.domain.money``).

All monetary values in the payout kernel are ``Decimal`` quantized to two
decimal places (the currency's minor unit) with ROUND_HALF_UP.  No floats.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from payout_kernel.exceptions import PayoutValidationError

MINOR_UNIT = Decimal("0.01")
ZERO = Decimal("0.00")


def round_money(value: Decimal) -> Decimal:
    """Round to the minor unit using round-half-up.

    The only sanctioned rounding function for amounts in this package.
    """
    return Decimal(value).quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def parse_amount(value: Decimal | int | str, field: str = "amount") -> Decimal:
    """
    Convert caller input into a money Decimal.

    Accepts Decimal, int or a numeric string.  Floats are refused because
    their binary value is not the amount the caller typed.

    Raises:
        PayoutValidationError: non-numeric, non-finite, float input, or more
            than two decimal places.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise PayoutValidationError(
            f"{field} must be a Decimal, int or numeric string", field=field
        )
    try:
        amount = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise PayoutValidationError(f"{field} is not a valid number", field=field)
    if not amount.is_finite():
        raise PayoutValidationError(f"{field} must be finite", field=field)
    if amount != amount.quantize(MINOR_UNIT):
        raise PayoutValidationError(
            f"{field} must have at most two decimal places", field=field
        )
    return amount.quantize(MINOR_UNIT)
