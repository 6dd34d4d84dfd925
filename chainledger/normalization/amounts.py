"""Lenient amount parsing shared by every accounting mode."""

from decimal import Context, Decimal, InvalidOperation

ZERO = Decimal("0")

# Wide enough for 256-bit smallest-unit integers
_WIDE = Context(prec=80)


def parse_amount(value: object, decimals: int = 0) -> tuple[Decimal, bool]:
    """Convert a raw amount to Decimal in display units.

    ``decimals`` scales smallest-unit integers (sompi, planck, wei) without
    going through floating point. Returns ``(amount, defaulted)``; malformed
    or missing values come back as zero with ``defaulted=True``.
    """
    if value is None or isinstance(value, bool):
        return ZERO, True
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip().replace("_", "")
        if not stripped:
            return ZERO, True
        try:
            amount = Decimal(stripped)
        except InvalidOperation:
            return ZERO, True
    else:
        return ZERO, True

    if not amount.is_finite():
        return ZERO, True
    if decimals:
        amount = amount.scaleb(-decimals, context=_WIDE)
    return amount, False


def normalize_address(address: str | None) -> str:
    return (address or "").strip().lower()


def truncate_address(address: str, length: int = 8) -> str:
    if not address:
        return ""
    if len(address) <= length:
        return address
    return f"{address[:length]}..."
