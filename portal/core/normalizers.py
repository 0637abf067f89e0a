"""
Date / Money Normalizer

Every timestamp and money value read from storage passes through here before
it takes part in a billing calculation. Historical records carry timestamps
in several shapes accumulated over the life of the portal:

    - native datetime / date objects
    - ISO-8601 strings ("2025-11-21", "2025-11-21T14:03:00Z")
    - epoch pairs {"seconds": ..., "nanoseconds": ...}
      (also the "_seconds"/"_nanoseconds" export form)

classify_instant() tags a raw value with its shape and resolve_instant()
converts any tag into a single timezone-aware UTC datetime. Unparseable
input resolves to None, the "unknown" sentinel. Nothing in this module
raises on bad data: malformed values degrade to None / zero so a single bad
record never fails a billing batch.
"""
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Union


ZERO = Decimal("0")


@dataclass(frozen=True)
class NativeInstant:
    value: Union[datetime, date]


@dataclass(frozen=True)
class IsoInstant:
    text: str


@dataclass(frozen=True)
class EpochSecondsInstant:
    seconds: float
    nanoseconds: float = 0


@dataclass(frozen=True)
class UnknownInstant:
    pass


Instant = Union[NativeInstant, IsoInstant, EpochSecondsInstant, UnknownInstant]

UNKNOWN = UnknownInstant()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _epoch_parts(value: Any) -> Optional[tuple]:
    """Pull (seconds, nanoseconds) out of a mapping or timestamp-like object."""
    if isinstance(value, Mapping):
        for sec_key, nano_key in (("seconds", "nanoseconds"), ("_seconds", "_nanoseconds")):
            if sec_key in value:
                return value.get(sec_key), value.get(nano_key) or 0
        return None

    seconds = getattr(value, "seconds", None)
    if seconds is not None:
        return seconds, getattr(value, "nanoseconds", 0) or 0
    return None


def classify_instant(value: Any) -> Instant:
    """Tag a raw timestamp-like value with its representation."""
    if value is None:
        return UNKNOWN
    if isinstance(value, (datetime, date)):
        return NativeInstant(value)
    if isinstance(value, str):
        text = value.strip()
        return IsoInstant(text) if text else UNKNOWN

    parts = _epoch_parts(value)
    if parts is not None:
        seconds, nanos = parts
        if _is_number(seconds) and _is_number(nanos):
            return EpochSecondsInstant(float(seconds), float(nanos))
    return UNKNOWN


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_iso(text: str) -> Optional[datetime]:
    # fromisoformat() on older interpreters rejects the trailing "Z"
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return _as_utc(datetime.fromisoformat(text))
    except ValueError:
        pass
    try:
        return _as_utc(datetime.combine(date.fromisoformat(text[:10]), time.min))
    except ValueError:
        return None


def resolve_instant(value: Any) -> Optional[datetime]:
    """
    Convert any supported timestamp representation to an aware UTC datetime.

    Returns None when the value is absent or cannot be interpreted.
    """
    instant = value if isinstance(value, (NativeInstant, IsoInstant, EpochSecondsInstant, UnknownInstant)) \
        else classify_instant(value)

    if isinstance(instant, NativeInstant):
        native = instant.value
        if isinstance(native, datetime):
            return _as_utc(native)
        return datetime.combine(native, time.min, tzinfo=timezone.utc)

    if isinstance(instant, IsoInstant):
        return _parse_iso(instant.text)

    if isinstance(instant, EpochSecondsInstant):
        total = instant.seconds + instant.nanoseconds / 1_000_000_000
        if not math.isfinite(total):
            return None
        try:
            return datetime.fromtimestamp(total, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    return None


def to_epoch_ms(value: Any) -> int:
    """Epoch milliseconds for a timestamp-like value, 0 when unknown."""
    resolved = resolve_instant(value)
    if resolved is None:
        return 0
    return int(resolved.timestamp() * 1000)


def format_ship_date(value: Any, fallback: str = "N/A") -> str:
    """Render a timestamp-like value as dd/MM/yyyy for invoice lines."""
    resolved = resolve_instant(value)
    if resolved is None:
        return fallback
    return resolved.strftime("%d/%m/%Y")


def to_number(value: Any, default: Union[int, Decimal] = 0) -> Decimal:
    """
    Coerce a numeric-like value to Decimal, keeping its sign.

    Absent, boolean, non-numeric and non-finite values fall back to default.
    """
    if value is None or isinstance(value, bool):
        return Decimal(default)
    try:
        if isinstance(value, Decimal):
            number = value
        elif isinstance(value, int):
            number = Decimal(value)
        elif isinstance(value, (float, str)):
            # str() keeps 0.1 as 0.1 instead of its binary expansion
            number = Decimal(str(value).strip())
        else:
            return Decimal(default)
    except (InvalidOperation, TypeError, ValueError):
        return Decimal(default)
    if not number.is_finite():
        return Decimal(default)
    return number


def to_money(value: Any) -> Decimal:
    """Coerce a money-like value to a non-negative Decimal; anything else is 0."""
    amount = to_number(value, 0)
    if amount < ZERO:
        return ZERO
    return amount
