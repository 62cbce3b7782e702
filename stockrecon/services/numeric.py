"""
Numeric Sanitizer
Defensive parsing of amounts and exchange rates read from storage
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple, Union
import math
import re

from stockrecon.core.config import settings
from stockrecon.core.exceptions import NumericIntegrityError

Number = Union[int, float, Decimal]

_STRIP_PATTERN = re.compile(r"[^0-9.\-]")


def clean_numeric_string(value) -> str:
    """
    Reduce a possibly corrupted value to a parseable numeric string

    Keeps digits, a leading minus and the first decimal point only, so
    "1.0032.5" becomes "1.00325". An empty result becomes "0".
    """
    cleaned = _STRIP_PATTERN.sub("", str(value))
    negative = cleaned.startswith("-")
    cleaned = cleaned.replace("-", "")

    head, dot, tail = cleaned.partition(".")
    cleaned = head + dot + tail.replace(".", "")

    if not cleaned or cleaned == ".":
        return "0"
    return f"-{cleaned}" if negative else cleaned


def sanitize_amount(
    value,
    default_if_non_positive: Optional[float] = None,
    field: Optional[str] = None
) -> float:
    """
    Parse an amount into a finite float

    Text that already parses (exponent notation included) is taken as is;
    only text that fails to parse is reduced with clean_numeric_string.

    Args:
        value: Raw value (number, string or None)
        default_if_non_positive: Substituted when the result is non-finite or <= 0.
            When omitted a non-finite result raises instead.
        field: Field name reported on failure

    Returns:
        Sanitized float
    """
    if value is None:
        parsed = 0.0
    elif isinstance(value, bool):
        parsed = float(value)
    elif isinstance(value, (int, float, Decimal)):
        parsed = float(value)
    else:
        try:
            parsed = float(str(value).strip())
        except ValueError:
            parsed = float(clean_numeric_string(value))

    if default_if_non_positive is not None:
        if not math.isfinite(parsed) or parsed <= 0:
            return float(default_if_non_positive)
        return parsed

    if not math.isfinite(parsed):
        raise NumericIntegrityError(
            f"Value for {field or 'amount'} is not a finite number", field
        )
    return parsed


def sanitize_rate(value, default: Optional[float] = None) -> float:
    """Parse an exchange rate, falling back to the default for unusable values"""
    if default is None:
        default = settings.DEFAULT_EXCHANGE_RATE
    return sanitize_amount(value, default_if_non_positive=default)


def sanitize_stored_rate(raw, default: Optional[float] = None) -> Tuple[float, bool]:
    """
    Sanitize a rate read from a text column

    Returns (rate, needs_write_back). The flag is set when the stored text
    does not already parse to the sanitized rate.
    """
    rate = sanitize_rate(raw, default)
    try:
        healthy = float(str(raw).strip()) == rate
    except (TypeError, ValueError):
        healthy = False
    return rate, not healthy


def require_non_negative(value, field: str) -> float:
    """Sanitize a quantity or cost that must be zero or more"""
    parsed = sanitize_amount(value, field=field)
    if parsed < 0:
        raise NumericIntegrityError(f"{field} must not be negative (got {parsed})", field)
    return parsed


def format_rate(rate: float) -> str:
    """Canonical positional text form of a rate for storage, never exponent notation"""
    return format(Decimal(repr(float(rate))), "f")


def round_money(value: Number, places: Optional[int] = None) -> float:
    """Round half-up to currency precision"""
    if places is None:
        places = settings.CURRENCY_DECIMAL_PLACES
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_quantity(value: Number) -> float:
    """Round half-up to quantity precision"""
    return round_money(value, 3)
