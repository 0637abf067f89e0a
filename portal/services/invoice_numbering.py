"""Invoice and order number synthesis.

Numbers are date-prefixed with a millisecond-clock suffix. Uniqueness is
best-effort; callers check the number against stored invoices and retry
with a salted suffix on collision.
"""
import secrets
import time
from datetime import datetime


def _clock_suffix(digits: int) -> str:
    return str(time.time_ns() // 1_000_000)[-digits:]


def generate_invoice_number(now: datetime, salt: bool = False) -> str:
    """INV-YYYYMMDD-NNN, e.g. INV-20251121-123."""
    suffix = _clock_suffix(3)
    if salt:
        suffix = f"{suffix}{secrets.randbelow(1000):03d}"
    return f"INV-{now.strftime('%Y%m%d')}-{suffix}"


def generate_order_number(now: datetime, prefix: str = "ORD") -> str:
    """ORD-YYYYMMDD-NNNN (shipments) or STOR-YYYYMMDD-NNNN (storage)."""
    return f"{prefix}-{now.strftime('%Y%m%d')}-{_clock_suffix(4)}"


def stamp_test_invoice_month(month: str, now: datetime) -> str:
    """Invoice month stamp for a test run: YYYY-MM-test-YYYYMMDD-HHMMSS."""
    return f"{month}-test-{now.strftime('%Y%m%d-%H%M%S')}"
