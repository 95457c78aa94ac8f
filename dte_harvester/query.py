"""Gmail search query and date-range construction."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from typing import Sequence

from .models import DateRange
from .utils import utc_midnight_epoch

MAX_RANGE_DAYS = 31


class DateRangeError(ValueError):
    """Raised when a requested harvest window is not acceptable."""


def build_search_query(keywords: Sequence[str], start_epoch: int, end_epoch: int) -> str:
    """Subject OR-list, attachment filter and epoch bounds.

    ``end_epoch`` is used as-is; Gmail's ``before:`` is exclusive, so callers
    wanting an inclusive end day pass the following midnight.
    """
    subject = " OR ".join(f'"{keyword}"' for keyword in keywords)
    return f"subject:({subject}) has:attachment after:{start_epoch} before:{end_epoch}"


def parse_date(value: str) -> date:
    """Accept YYYY-MM-DD or YYYY/MM/DD."""
    try:
        return date.fromisoformat(value.strip().replace("/", "-"))
    except ValueError as exc:
        raise DateRangeError(f"Invalid date format: {value}. Use YYYY-MM-DD") from exc


def resolve_date_range(start: date, end: date, today: date | None = None) -> DateRange:
    if start > end:
        raise DateRangeError("startDate must be before endDate")
    today = today or datetime.now(tz=UTC).date()
    if start > today or end > today:
        raise DateRangeError("Dates cannot be in the future")
    if (end - start).days > MAX_RANGE_DAYS:
        raise DateRangeError(f"Date range too large. Please request up to {MAX_RANGE_DAYS} days.")

    return DateRange(
        start=start,
        end=end,
        start_epoch=utc_midnight_epoch(start),
        end_epoch=utc_midnight_epoch(end + timedelta(days=1)),
        batch_label=f"{start.year}-{start.month:02d}",
    )
