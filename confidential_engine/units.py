"""Decimal string <-> integer unit conversion for token amounts."""
from __future__ import annotations

import re

_AMOUNT_RE = re.compile(r"^\s*(-)?(\d*)(?:\.(\d*))?\s*$")


def parse_units(amount: str, decimals: int) -> int:
    """Convert a human decimal string to integer units.

    ``parse_units("0.25", 2) == 25``. More fractional digits than
    ``decimals`` is an error unless the extra digits are zeros.
    """
    if not isinstance(amount, str):
        raise ValueError(f"Amount must be a string, got {type(amount).__name__}")

    match = _AMOUNT_RE.match(amount)
    if not match or not (match.group(2) or match.group(3)):
        raise ValueError(f"Invalid amount: {amount!r}")

    sign, whole, fraction = match.group(1), match.group(2) or "0", match.group(3) or ""
    if len(fraction) > decimals:
        if fraction[decimals:].strip("0"):
            raise ValueError(f"Too many decimals for format: {amount!r} (max {decimals})")
        fraction = fraction[:decimals]

    value = int(whole) * 10**decimals + int(fraction.ljust(decimals, "0") or "0")
    return -value if sign else value


def format_units(value: int, decimals: int) -> str:
    """Format integer units as a decimal string.

    Trailing zeros are trimmed but at least one fractional digit is kept,
    so ``format_units(0, 18) == "0.0"`` and ``format_units(150, 2) == "1.5"``.
    """
    value = int(value)
    negative = value < 0
    value = abs(value)

    if decimals == 0:
        text = f"{value}.0"
    else:
        whole, fraction = divmod(value, 10**decimals)
        fraction_text = str(fraction).rjust(decimals, "0").rstrip("0") or "0"
        text = f"{whole}.{fraction_text}"

    return f"-{text}" if negative else text
