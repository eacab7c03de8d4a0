"""Unit conversion between Tgas/gas, NEAR/yoctoNEAR, and raw balance strings.

Raw yoctoNEAR amounts travel as decimal strings and are compared as Python
ints. Decimal is only used to scale human-entered NEAR amounts; the rounded
`nears` strings are for display and never feed back into arithmetic.
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Any, Union

from constants import GAS_PER_TGAS, NEAR_DISPLAY_DECIMALS, YOCTO_FACTOR
from errors import InvalidInputError
from near_types import DualAmount


class InvalidAmount(InvalidInputError):
    """A numeric input could not be parsed or is out of range."""


_DISPLAY_QUANTUM = Decimal(10) ** -NEAR_DISPLAY_DECIMALS


def _to_decimal(value: Any, label: str) -> Decimal:
    try:
        dec = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Invalid {label}: {value!r}") from None
    if not dec.is_finite():
        raise InvalidAmount(f"Invalid {label}: {value!r}")
    return dec


def tgas_to_gas(tgas: Union[str, int]) -> str:
    """Convert a Tgas amount to gas units as a decimal integer string."""
    dec = _to_decimal(tgas, "Tgas amount")
    if dec < 0:
        raise InvalidAmount(f"Invalid Tgas amount: {tgas!r}")
    return str(int((dec * GAS_PER_TGAS).to_integral_value(rounding=ROUND_DOWN)))


def near_to_yocto(near: Union[str, int, float, Decimal]) -> str:
    """
    Convert a NEAR amount to yoctoNEAR, truncating sub-yocto digits.

    Floats are routed through `str()` so `0.1` becomes exactly 10^23 yocto.
    """
    dec = _to_decimal(near, "NEAR amount")
    if dec < 0:
        raise InvalidAmount(f"NEAR amount must not be negative: {near!r}")
    return str(int((dec * YOCTO_FACTOR).to_integral_value(rounding=ROUND_DOWN)))


def yocto_to_near(yocto: Any) -> str:
    """
    Format a raw yoctoNEAR amount as NEAR with 6 decimals, e.g. "1.500000".

    Unparseable input renders as "0"; the result is presentation-only.
    """
    try:
        dec = Decimal(str(yocto).strip())
    except (InvalidOperation, ValueError):
        return "0"
    if not dec.is_finite():
        return "0"
    near = (dec / YOCTO_FACTOR).quantize(_DISPLAY_QUANTUM, rounding=ROUND_HALF_UP)
    return f"{near:.{NEAR_DISPLAY_DECIMALS}f}"


def parse_yocto(raw: Any, label: str = "amount") -> int:
    """Parse a raw yoctoNEAR amount (decimal integer string or int) exactly."""
    if isinstance(raw, bool):
        raise InvalidAmount(f"Invalid {label}: {raw!r}")
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw).strip() if raw is not None else ""
        if not text.isdigit():
            raise InvalidAmount(f"Invalid {label}: {raw!r}")
        value = int(text)
    if value < 0:
        raise InvalidAmount(f"Invalid {label}: {raw!r}")
    return value


def min_amount(a: str, b: str) -> str:
    """Return whichever raw amount is smaller, compared as integers."""
    return a if parse_yocto(a) <= parse_yocto(b) else b


def is_zero(raw: Any) -> bool:
    """True for "0", 0, empty or missing amounts."""
    if raw is None or raw == "":
        return True
    return parse_yocto(raw) == 0


def dual(raw: Any) -> DualAmount:
    """Encode an amount as {raw, nears}; raw is authoritative."""
    text = str(raw) if raw not in (None, "") else "0"
    return {"raw": text, "nears": yocto_to_near(text)}
