"""Time windows for period tokens.

One canonical definition per token, shared by every view:

    today    local midnight .. now              (day)
    week     now - 7 days .. now                (day)
    month    1st of the calendar month .. now   (day)
    quarter  now - 3 calendar months .. now     (month)
    year     1 January .. now                   (month)
    custom   explicit start .. end              (day up to 62 days, else month)

Both ends of a window are inclusive.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional, Union

from hrscope.common.constants import PERIOD_TOKENS, Granularity
from hrscope.common.exceptions import InvalidPeriodError, ValidationException

logger = logging.getLogger(__name__)

CUSTOM_DAY_GRANULARITY_LIMIT = 62


def shift_months(value: datetime, months: int) -> datetime:
    """Move ``value`` by whole calendar months, clamping the day."""
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month."""
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime
    granularity: Granularity
    period: str

    @property
    def start_date(self) -> date:
        return self.start.date()

    @property
    def end_date(self) -> date:
        return self.end.date()

    def days(self) -> int:
        """Calendar days touched by the window, both ends counted."""
        return (self.end_date - self.start_date).days + 1

    def contains(self, value: Union[date, datetime]) -> bool:
        if isinstance(value, datetime):
            return self.start <= value <= self.end
        return self.start_date <= value <= self.end_date

    def dates(self) -> Iterator[date]:
        current = self.start_date
        while current <= self.end_date:
            yield current
            current += timedelta(days=1)

    def months(self) -> Iterator[tuple[int, int]]:
        year, month = self.start.year, self.start.month
        while (year, month) <= (self.end.year, self.end.month):
            yield year, month
            year, month = (year + 1, 1) if month == 12 else (year, month + 1)

    def month_count(self) -> int:
        return sum(1 for _ in self.months())

    def previous(self) -> TimeWindow:
        """The equally long window ending just before this one starts."""
        length = self.end - self.start
        end = self.start - timedelta(microseconds=1)
        return TimeWindow(
            start=end - length,
            end=end,
            granularity=self.granularity,
            period=self.period,
        )


def _midnight(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min, tzinfo=value.tzinfo)


def build_window(
    token: str,
    now: datetime,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> TimeWindow:
    """Return the TimeWindow for ``token`` ending at ``now``.

    Raises InvalidPeriodError for a token outside the known set.
    """
    period = (token or "").strip().lower()

    if period == "today":
        return TimeWindow(_midnight(now), now, Granularity.day, period)
    if period == "week":
        return TimeWindow(now - timedelta(days=7), now, Granularity.day, period)
    if period == "month":
        first = _midnight(now).replace(day=1)
        return TimeWindow(first, now, Granularity.day, period)
    if period == "quarter":
        return TimeWindow(shift_months(now, -3), now, Granularity.month, period)
    if period == "year":
        first = _midnight(now).replace(month=1, day=1)
        return TimeWindow(first, now, Granularity.month, period)
    if period == "custom":
        if start is None:
            raise ValidationException({"start": ["A custom period needs a start."]})
        window_end = end or now
        if start > window_end:
            raise ValidationException({"start": ["Start must not be after end."]})
        span = (window_end.date() - start.date()).days
        granularity = (
            Granularity.day if span <= CUSTOM_DAY_GRANULARITY_LIMIT else Granularity.month
        )
        return TimeWindow(start, window_end, granularity, period)

    raise InvalidPeriodError(token)


def _custom_bounds(
    start: Optional[date],
    end: Optional[date],
    now: datetime,
) -> tuple[Optional[datetime], Optional[datetime]]:
    """Calendar dates from a query string -> local datetimes, ``end`` capped at ``now``."""
    start_at = datetime.combine(start, time.min, tzinfo=now.tzinfo) if start else None
    end_at = None
    if end is not None:
        end_at = min(datetime.combine(end, time.max, tzinfo=now.tzinfo), now)
    return start_at, end_at


def resolve_period(
    token: Optional[str],
    now: datetime,
    default: str = "month",
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> TimeWindow:
    """Advisory variant of ``build_window``: unknown tokens fall back to ``default``.

    ``custom`` without a ``start`` is treated as unknown. A supplied range
    that is reversed still raises ValidationException.
    """
    if not token:
        return build_window(default, now)
    if token.strip().lower() == "custom" and start is None:
        logger.warning(
            "Custom period without a start date, defaulting to %s",
            default,
            extra={"event": "period_fallback", "requested": token},
        )
        return build_window(default, now)

    start_at, end_at = _custom_bounds(start, end, now)
    try:
        return build_window(token, now, start=start_at, end=end_at)
    except InvalidPeriodError:
        logger.warning(
            "Unknown period %r (expected one of %s), defaulting to %s",
            token, ", ".join(PERIOD_TOKENS + ("custom",)), default,
            extra={"event": "period_fallback", "requested": token},
        )
        return build_window(default, now)

