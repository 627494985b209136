from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from domain.watchlist.errors import InvalidDateError

STAR_RATING_MIN = 1.0
STAR_RATING_MAX = 5.0
WANT_TO_SEE_MIN = 1.0
WANT_TO_SEE_MAX = 10.0
DEFAULT_WANT_TO_SEE = 5.0

# Date-only schedules are pinned to noon so no timezone offset can move them
# to a neighbouring day.
SCHEDULE_HOUR = 12


def _one_decimal(value: float) -> float:
    # Decimal(str(...)) avoids binary drift: 3.75 -> 3.8, 3.7 stays 3.7.
    return float(Decimal(str(float(value))).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def normalize_star_rating(value: float) -> float:
    """Round to one decimal, then clamp to the 1-5 post-viewing scale."""
    return min(STAR_RATING_MAX, max(STAR_RATING_MIN, _one_decimal(value)))


def normalize_want_to_see(value: float) -> float:
    """Round to one decimal, then clamp to the 1-10 anticipation scale."""
    return min(WANT_TO_SEE_MAX, max(WANT_TO_SEE_MIN, _one_decimal(value)))


def normalize_schedule_date(value: Union[str, date, datetime]) -> datetime:
    """Parse a schedule date and pin it to noon UTC on the same calendar day.

    Accepts `date`, `datetime` and ISO-8601 strings ("2025-12-25",
    "2025-12-25T20:00:00+01:00"). The calendar day is the one written by the
    caller; any time-of-day or offset is discarded.
    """
    if isinstance(value, datetime):
        day = value.date()
    elif isinstance(value, date):
        day = value
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            raise InvalidDateError("Invalid date format")
        try:
            # The whole string must parse; a leading date followed by junk is rejected.
            day = datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
        except ValueError as exc:
            raise InvalidDateError(f"Invalid date format: {value!r}") from exc
    else:
        raise InvalidDateError(f"Invalid date format: {value!r}")
    return datetime.combine(day, time(hour=SCHEDULE_HOUR), tzinfo=timezone.utc)
