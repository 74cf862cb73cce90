"""Input validation for upstream market data.

Upstream JSON is loosely typed: numbers arrive as strings, prices arrive in
dollars or cents depending on the venue and endpoint. These helpers coerce what can be
coerced and raise ``ValidationError`` for the rest so that record parsers can
skip and count bad records instead of guessing.
"""

from __future__ import annotations

from typing import Any


class ValidationError(ValueError):
    """Raised when input validation fails."""
    pass


def _to_float(value: Any, label: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be numeric, got bool")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise ValidationError(f"{label} must be numeric, got {value!r}") from None
    raise ValidationError(f"{label} must be numeric, got {type(value).__name__}")


def to_number(value: Any, label: str = "value") -> float:
    """Coerce a loosely typed number, raising ``ValidationError`` if impossible."""
    return _to_float(value, label)


def validate_price(price: Any, label: str = "price", cents: bool = False) -> float:
    """Validate a price and normalize it to dollars (0..1).

    The unit is the caller's decision: with ``cents`` set the value is divided
    by 100 first. A whole book shares one unit, so it is never guessed here.

    Raises:
        ValidationError: If price is not numeric or falls outside 0..1 dollars
    """
    value = _to_float(price, label)
    if value != value:  # NaN
        raise ValidationError(f"{label} must be a number, got NaN")
    if cents:
        value = value / 100.0
    if not 0.0 <= value <= 1.0:
        raise ValidationError(f"{label} must be between 0 and 1, got {value}")
    return value


def validate_size(size: Any, label: str = "size") -> float:
    """Validate a size/quantity value.

    Raises:
        ValidationError: If size is not numeric or is negative
    """
    value = _to_float(size, label)
    if value != value or value < 0:
        raise ValidationError(f"{label} must be non-negative, got {value}")
    return value


def validate_market_id(market_id: Any, label: str = "market_id") -> str:
    if market_id is None:
        raise ValidationError(f"{label} is missing")
    if not isinstance(market_id, str):
        market_id = str(market_id)
    market_id = market_id.strip()
    if not market_id:
        raise ValidationError(f"{label} cannot be empty")
    return market_id


def validate_event_name(event: Any, label: str = "title") -> str:
    if event is None:
        raise ValidationError(f"{label} is missing")
    if not isinstance(event, str):
        event = str(event)
    event = event.strip()
    if not event:
        raise ValidationError(f"{label} cannot be empty")
    if len(event) > 500:
        raise ValidationError(f"{label} is too long (max 500 characters)")
    return event


def optional_float(value: Any) -> float | None:
    """Coerce a loosely typed optional number, returning None when absent or bad."""
    if value is None or value == "":
        return None
    try:
        return _to_float(value, "value")
    except ValidationError:
        return None
