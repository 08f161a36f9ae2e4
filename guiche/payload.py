"""Helpers for reading provider payloads whose field names are not stable.

FreePay has answered with PascalCase, snake_case, and ``data``-wrapped bodies
across API versions, so each logical field is looked up through a prioritised
list of dotted paths.
"""
import json
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def dig(data, path: str):
    current = data
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def probe(data, *paths: str):
    """Return the first non-empty value found at any of ``paths``."""
    for path in paths:
        value = dig(data, path)
        if value not in (None, ""):
            return value
    return None


def encode_context(context: dict) -> str:
    return json.dumps(context, separators=(",", ":"), default=str)


def decode_context(value) -> dict:
    """Recover a context token that went through the gateway's metadata bag.

    Accepts a dict, a JSON string, or a JSON string that was encoded twice.
    Anything else yields an empty dict.
    """
    for _ in range(3):
        if isinstance(value, dict):
            return value
        if not isinstance(value, (str, bytes)):
            return {}
        try:
            value = json.loads(value)
        except ValueError:
            return {}
    return value if isinstance(value, dict) else {}


def only_digits(value) -> str:
    return "".join(ch for ch in str(value or "") if ch.isdigit())


def to_decimal(value) -> Decimal | None:
    if value in (None, "") or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return None
    # NaN and Infinity cannot become cents
    return number if number.is_finite() else None


def to_cents(amount) -> int:
    value = to_decimal(amount) or Decimal("0")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_timestamp(moment: datetime | None = None) -> str:
    return (moment or datetime.now(timezone.utc)).strftime(TIMESTAMP_FORMAT)
