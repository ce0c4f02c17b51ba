from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .services.errors import InvalidInputError
from .time_utils import parse_iso_date, parse_iso_datetime


# Column scales: money and percentages are Numeric(x, 2), weights Numeric(10, 3)
MONEY_PLACES = 2
WEIGHT_PLACES = 3
PERCENT_PLACES = 2

MONEY_QUANT = Decimal("0.01")
WEIGHT_QUANT = Decimal("0.001")

# Maximum money value: 9,999,999,999.99 fits Numeric(12, 2)
MAX_MONEY = Decimal("9999999999.99")
MAX_WEIGHT = Decimal("9999999.999")


def _to_decimal(field: str, value: Any) -> Decimal:
    # bool is an int subclass; reject it explicitly
    if value is None or isinstance(value, bool):
        raise InvalidInputError(f"{field} must be a number")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # repr() gives the shortest round-tripping literal, so 0.1 stays 0.1
        result = Decimal(repr(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidInputError(f"{field} must be a number")
        # Reject scientific notation (e.g., "1e3")
        if "e" in stripped.lower():
            raise InvalidInputError(f"{field} must be a plain decimal (scientific notation not allowed)")
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise InvalidInputError(f"{field} must be a number")
    else:
        raise InvalidInputError(f"{field} must be a number")

    if not result.is_finite():
        raise InvalidInputError(f"{field} must be a finite number")
    return result


def _check_places(field: str, value: Decimal, places: int) -> None:
    exponent = value.normalize().as_tuple().exponent
    if isinstance(exponent, int) and -exponent > places:
        raise InvalidInputError(f"{field} allows at most {places} decimal places")


def parse_decimal(
    field: str,
    value: Any,
    *,
    places: int,
    minimum: Decimal | None = Decimal("0"),
    maximum: Decimal | None = None,
    positive: bool = False,
) -> Decimal:
    """
    Strictly parse a caller-supplied number into a Decimal at a fixed scale.

    - Rejects None, booleans, NaN/inf, and scientific notation strings
    - Rejects values with more decimal places than the column allows
    - Rejects negatives (minimum=0) and, with positive=True, zero
    Returns the value quantized to `places`.
    """
    result = _to_decimal(field, value)
    _check_places(field, result, places)

    if positive and result <= 0:
        raise InvalidInputError(f"{field} must be greater than 0")
    if minimum is not None and result < minimum:
        raise InvalidInputError(f"{field} must be >= {minimum}")
    if maximum is not None and result > maximum:
        raise InvalidInputError(f"{field} cannot exceed {maximum}")

    return result.quantize(Decimal(1).scaleb(-places))


def parse_money(field: str, value: Any, *, positive: bool = False) -> Decimal:
    return parse_decimal(field, value, places=MONEY_PLACES, maximum=MAX_MONEY, positive=positive)


def parse_weight(field: str, value: Any) -> Decimal:
    return parse_decimal(field, value, places=WEIGHT_PLACES, maximum=MAX_WEIGHT)


def parse_percent(field: str, value: Any, *, maximum: Decimal | None = None) -> Decimal:
    return parse_decimal(field, value, places=PERCENT_PLACES, maximum=maximum)


def parse_positive_int(field: str, value: Any) -> int:
    """Strict integer parsing (no floats, no decimals, no bools)."""
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str) and value.strip().isdigit():
        result = int(value.strip())
    else:
        raise InvalidInputError(f"{field} must be an integer")
    if result <= 0:
        raise InvalidInputError(f"{field} must be greater than 0")
    return result


def parse_choice(field: str, value: Any, choices) -> str:
    if not isinstance(value, str) or value not in choices:
        raise InvalidInputError(f"Invalid {field}: {value}. Must be one of {list(choices)}")
    return value


def round_money(value: Decimal) -> Decimal:
    """Round half-up to 2 places (results of arithmetic, not caller input)."""
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def round_weight(value: Decimal) -> Decimal:
    return value.quantize(WEIGHT_QUANT, rounding=ROUND_HALF_UP)


def money_str(value: Decimal | None) -> str | None:
    """Serialize money for JSON without float drift."""
    if value is None:
        return None
    return str(round_money(Decimal(value)))


def weight_str(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return str(round_weight(Decimal(value)))


def parse_datetime_field(field: str, value: Any):
    """ISO-8601 datetime -> naive UTC datetime; None/"" -> None."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"{field} must be an ISO-8601 datetime string")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise InvalidInputError(f"{field} must be an ISO-8601 datetime string")


def parse_date_field(field: str, value: Any):
    """"YYYY-MM-DD" -> date; None/"" -> None."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"{field} must be a YYYY-MM-DD date string")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise InvalidInputError(f"{field} must be a YYYY-MM-DD date string")
