"""Display formatting shared by the markdown resources.

Number output follows en-US conventions (``1,234``) and abbreviations round
half-up on the exact binary value, like JavaScript's ``toFixed``.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Context, Decimal

STATUS_GLYPHS = {
    "active": "🗳️",
    "voting": "🗳️",
    "passed": "✅",
    "succeeded": "✅",
    "failed": "❌",
    "defeated": "❌",
    "executed": "⚡",
    "queued": "⏳",
    "pending": "🔄",
    "canceled": "🚫",
    "cancelled": "🚫",
}
DEFAULT_GLYPH = "📋"

SECONDS_PER_DAY = 86400

# wide enough to quantize any finite float
_DECIMAL_CONTEXT = Context(prec=400)


def status_glyph(status: str | None) -> str:
    if not status:
        return DEFAULT_GLYPH
    return STATUS_GLYPHS.get(status.lower(), DEFAULT_GLYPH)


def format_status(status: str | None) -> str:
    """'ACTIVE' -> 'Active'. Missing status reads 'Unknown'."""
    if not status:
        return "Unknown"
    return status[0].upper() + status[1:].lower()


def truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def to_number(value) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        try:
            num = float(str(value).strip())
        except ValueError:
            return None
    if not math.isfinite(num):
        return None
    return num


def _fixed(num: float, places: int) -> Decimal:
    return Decimal(num).quantize(
        Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP, context=_DECIMAL_CONTEXT
    )


def format_number(value) -> str:
    """Group thousands and keep at most three fraction digits."""
    num = to_number(value)
    if num is None:
        return str(value)
    text = f"{_fixed(num, 3):,f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_votes(votes) -> str:
    """Abbreviate a raw vote count: 2500000 -> '2.5M', 1500 -> '1.5K', 999 -> '999'.

    No token-decimal conversion happens here; counts are shown in the raw
    units the API reports. Non-numeric input is returned unchanged.
    """
    num = to_number(votes)
    if num is None:
        return str(votes)
    if num >= 1_000_000:
        return f"{_fixed(num / 1_000_000, 1)}M"
    if num >= 1_000:
        return f"{_fixed(num / 1_000, 1)}K"
    return format_number(num)


def format_voting_power(power) -> str:
    """Like format_votes but with two decimals: 1234567 -> '1.23M'."""
    num = to_number(power)
    if num is None:
        return str(power)
    if num >= 1_000_000:
        return f"{_fixed(num / 1_000_000, 2)}M"
    if num >= 1_000:
        return f"{_fixed(num / 1_000, 2)}K"
    return format_number(num)


def parse_datetime(value) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware datetime (naive means local)."""
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip())
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt


def format_date(value) -> str:
    """'2024-01-15T14:30:00Z' -> 'January 15, 2024, 02:30 PM' in local time."""
    dt = parse_datetime(value)
    if dt is None:
        return str(value)
    local = dt.astimezone()
    return f"{local:%B} {local.day}, {local.year}, {local:%I:%M %p}"


def format_relative_date(value, now: datetime) -> str:
    """Describe an end time relative to ``now``: Today, Tomorrow, In N days or Ended."""
    dt = parse_datetime(value)
    if dt is None:
        return str(value)
    if now.tzinfo is None:
        now = now.astimezone()
    diff = (dt - now).total_seconds()
    if diff < 0:
        return "Ended"
    days = int(diff // SECONDS_PER_DAY)
    if days == 0:
        return "Today"
    if days == 1:
        return "Tomorrow"
    return f"In {days} days"


def format_timestamp(now: datetime) -> str:
    """'1/15/2024, 2:30:05 PM' in local time."""
    local = now.astimezone()
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return (
        f"{local.month}/{local.day}/{local.year}, "
        f"{hour}:{local.minute:02d}:{local.second:02d} {meridiem}"
    )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
