"""Parsing of user-entered money amounts."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ..exceptions import InvalidCost

CENTS = Decimal("0.01")
MAX_AMOUNT = Decimal("99999999.99")  # fits DecimalField(max_digits=10, 2)


def parse_amount(value, error_class=InvalidCost, label="Amount"):
    """Return a non-negative Decimal rounded half-up to cents, or None.

    Accepts Decimal, int, float or text. Text may use a comma as the
    decimal separator ("12,50") and may carry surrounding whitespace.
    Blank text and None mean "no amount". Anything negative, non-numeric
    or non-finite raises ``error_class``.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise error_class(f"{label} must be a number.")
    if isinstance(value, str):
        text = value.strip().replace(" ", "")
        if not text:
            return None
        if text.count(",") == 1 and "." not in text:
            text = text.replace(",", ".")
        raw = text
    elif isinstance(value, float):
        # str() gives the shortest repr, avoiding binary artefacts
        raw = str(value)
    else:
        raw = value

    try:
        amount = Decimal(raw)
    except (InvalidOperation, TypeError, ValueError):
        raise error_class(f"{label} must be a number, got '{value}'.")

    if not amount.is_finite():
        raise error_class(f"{label} must be a finite number.")
    if amount < 0:
        raise error_class(f"{label} must be a positive number.")

    if amount > MAX_AMOUNT:
        raise error_class(f"{label} is too large.")
    amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    if amount > MAX_AMOUNT:
        raise error_class(f"{label} is too large.")
    return amount
