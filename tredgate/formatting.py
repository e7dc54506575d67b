"""Id generation, timestamps and display formatting helpers."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

from dateutil import parser as date_parser

from tredgate.config import CURRENCY_SYMBOL, PERCENT_DECIMALS


def generate_id() -> str:
    """Generate an opaque unique identifier for loans and audit entries."""
    return uuid.uuid4().hex


def utc_timestamp(now: datetime = None) -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision.

    Always ends in ``Z``, e.g. ``2024-01-15T10:30:00.000Z``.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """Parse a stored ISO-8601 timestamp into an aware datetime (UTC if naive)."""
    parsed = date_parser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _round_half_up(amount: float, places: str) -> Decimal:
    return Decimal(abs(amount)).quantize(Decimal(places), rounding=ROUND_HALF_UP)


def format_currency(amount: float) -> str:
    """Format an amount as currency with two decimals, e.g. ``$123,456.78``.

    Halves round away from zero: 0.125 -> ``$0.13``.
    """
    sign = "-" if amount < 0 else ""
    return f"{sign}{CURRENCY_SYMBOL}{_round_half_up(amount, '0.01'):,.2f}"


def format_currency_whole(amount: float) -> str:
    """Format an amount as currency without decimals, e.g. ``$50,000``.

    Used for audit log details and summary totals.
    """
    sign = "-" if amount < 0 else ""
    return f"{sign}{CURRENCY_SYMBOL}{_round_half_up(amount, '1'):,.0f}"


def format_percent(rate: float) -> str:
    """Format a fractional rate as a percentage, e.g. 0.125 -> ``12.5%``."""
    return f"{rate * 100:.{PERCENT_DECIMALS}f}%"


def format_date(value) -> str:
    """Format an ISO timestamp (or datetime) as ``Mon D, YYYY``."""
    if isinstance(value, str):
        value = parse_timestamp(value)
    return f"{value.strftime('%b')} {value.day}, {value.year}"
