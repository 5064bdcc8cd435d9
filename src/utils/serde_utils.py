"""
Serialization and deserialization utility functions for parsed statement values.

This module contains helper functions for converting raw statement cells
(strings scraped from CSV, HTML or JSON) into the typed values used by the
trade models.

Naming Conventions:
- to_X: Convert TO a type (e.g., to_decimal, to_side)
- from_X: Convert FROM a type
"""
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from models.trade import Side

# Characters that brokers wrap around numbers: currency symbols, thousands separators, spaces
_NUMBER_NOISE = re.compile(r"[\s$€£,]")

# Timestamp layouts seen in broker exports, tried in order after ISO-8601
DATE_FORMATS = (
    "%Y.%m.%d %H:%M:%S",
    "%Y.%m.%d %H:%M",
    "%Y.%m.%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y %H:%M",
    "%d.%m.%Y",
    "%d/%m/%Y %H:%M:%S",
    "%b %d, %Y %H:%M:%S",
    "%b %d, %Y",
)


def to_decimal(value: Any, strict: bool = False) -> Optional[Decimal]:
    """
    Convert a raw cell value to Decimal.

    Accepts numbers, numeric strings with currency symbols or thousands
    separators, and accounting negatives such as "(12.50)".

    Args:
        value: Raw value
        strict: Raise instead of returning None when a non-empty value is not a number

    Returns:
        Decimal, or None for empty or (non-strict) unparsable input

    Raises:
        ValueError: If strict and the value is not a finite number

    Examples:
        >>> to_decimal("$1,234.50")
        Decimal('1234.50')

        >>> to_decimal("(12.5)")
        Decimal('-12.5')

        >>> to_decimal("n/a")
        None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    else:
        text = _NUMBER_NOISE.sub("", str(value))
        if not text:
            return None
        negative = text.startswith("(") and text.endswith(")")
        if negative:
            text = text[1:-1]
        try:
            result = Decimal(text)
        except InvalidOperation:
            if strict:
                raise ValueError(f"Invalid number: '{value}'")
            return None
        if negative:
            result = -result
    if not result.is_finite():
        if strict:
            raise ValueError(f"Invalid number: '{value}'")
        return None
    return result


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Convert a raw timestamp to a timezone-aware datetime.

    ISO-8601 is tried first, then the broker layouts in DATE_FORMATS.
    Naive timestamps are taken to be UTC. Returns None when nothing matches.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if not text:
            return None
        dt = None
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            for fmt in DATE_FORMATS:
                try:
                    dt = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if dt is None:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_side(value: Any) -> Optional[Side]:
    """
    Convert a side token to Side.

    Anything containing "buy" or "long" is Long; any other non-empty token is
    Short. An empty token yields None so the caller can decide the default.

    Examples:
        >>> to_side("Buy Limit")
        <Side.LONG: 'Long'>

        >>> to_side("flat")
        <Side.SHORT: 'Short'>

        >>> to_side("")
        None
    """
    if value is None:
        return None
    if isinstance(value, Side):
        return value
    token = str(value).strip().lower()
    if not token:
        return None
    if "buy" in token or "long" in token:
        return Side.LONG
    return Side.SHORT
