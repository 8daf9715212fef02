"""Working-days calculation over the public holiday calendar.

``classify_days`` is the pure core; ``WorkingDaysCalculator`` binds it to the
holiday table. Weekends are Saturday and Sunday. A holiday falling on a
weekend is counted once, as weekend, and is not listed among the holidays.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterator, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.constants import WEEKEND_DAYS
from leavedesk.common.exceptions import InvalidRangeError
from leavedesk.holidays.service import HolidayService
from leavedesk.leave.schemas import HolidayOnDate, WorkingDaysCalculation


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def is_weekend(day: date) -> bool:
    return day.weekday() in WEEKEND_DAYS


def classify_days(
    start: date,
    end: date,
    holidays: Mapping[date, str],
) -> WorkingDaysCalculation:
    if start > end:
        raise InvalidRangeError(start, end)

    total = weekend = 0
    listed: list[HolidayOnDate] = []
    for day in iter_days(start, end):
        total += 1
        if is_weekend(day):
            weekend += 1
        elif day in holidays:
            listed.append(HolidayOnDate(date=day, description=holidays[day]))

    return WorkingDaysCalculation(
        start_date=start,
        end_date=end,
        total_days=total,
        working_days=total - weekend - len(listed),
        weekend_days=weekend,
        holiday_days=len(listed),
        holidays=listed,
    )


def business_days_between(
    since: date,
    until: date,
    holidays: Mapping[date, str],
) -> int:
    """Working days in ``(since, until]``: entry day excluded, *until* included."""
    if until <= since:
        return 0
    return classify_days(since + timedelta(days=1), until, holidays).working_days


class WorkingDaysCalculator:

    @staticmethod
    async def calculate(db: AsyncSession, start: date, end: date) -> WorkingDaysCalculation:
        if start > end:
            raise InvalidRangeError(start, end)
        holidays = await HolidayService.holiday_map(db, start, end)
        return classify_days(start, end, holidays)
