"""
Money helpers.

Amounts are ``Decimal`` dollars; the payment processor works in integer
cents. Rounding is half-up to the cent.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Coerce a price to ``Decimal`` without float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Decimal) -> int:
    """
    Example:
        >>> to_cents(Decimal("26.88"))
        2688
    """
    return int(quantize(amount) * 100)


def from_cents(cents: int) -> Decimal:
    return quantize(Decimal(cents) / 100)


def format_cents(cents: int) -> str:
    """Dollar string for an amount in cents, e.g. ``$0.50``."""
    return f"${from_cents(cents):,.2f}"


def calculate_tax(subtotal: Decimal, rate: Decimal) -> Decimal:
    return quantize(subtotal * rate)


__all__ = [
    "CENT",
    "to_decimal",
    "quantize",
    "to_cents",
    "from_cents",
    "format_cents",
    "calculate_tax",
]
