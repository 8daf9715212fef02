"""Holiday calendar service — CRUD plus the read model used by the calculator."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Iterator, Optional

from sqlalchemy import extract, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.audit import utcnow
from leavedesk.common.exceptions import (
    DuplicateDateError,
    InvalidRangeError,
    NotFoundException,
)
from leavedesk.holidays.models import Holiday
from leavedesk.holidays.schemas import HolidayOut


def yearly_occurrences(anchor: date, start: date, end: date) -> Iterator[date]:
    """Dates in [start, end] sharing *anchor*'s month and day, never before *anchor*.

    29 February only occurs in leap years.
    """
    for year in range(max(start.year, anchor.year), end.year + 1):
        try:
            day = anchor.replace(year=year)
        except ValueError:
            continue
        if start <= day <= end:
            yield day


class HolidayService:

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _get_or_404(db: AsyncSession, holiday_id: uuid.UUID) -> Holiday:
        holiday = await db.get(Holiday, holiday_id)
        if holiday is None:
            raise NotFoundException("Holiday", holiday_id)
        return holiday

    @staticmethod
    async def _ensure_free_date(
        db: AsyncSession,
        on: date,
        *,
        recurring: bool = False,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Reject a date already taken, directly or by a yearly holiday.

        A recurring entry also collides with any row on the same month and
        day from its first year onward.
        """
        same_day = (extract("month", Holiday.date) == on.month) & (
            extract("day", Holiday.date) == on.day
        )
        clauses = [
            Holiday.date == on,
            same_day & Holiday.recurring.is_(True) & (Holiday.date <= on),
        ]
        if recurring:
            clauses.append(same_day & (Holiday.date >= on))
        query = select(Holiday.id).where(or_(*clauses))
        if exclude_id is not None:
            query = query.where(Holiday.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise DuplicateDateError(on.isoformat())

    # ── Reads ───────────────────────────────────────────────────────

    @staticmethod
    async def get(db: AsyncSession, holiday_id: uuid.UUID) -> HolidayOut:
        return HolidayOut.model_validate(await HolidayService._get_or_404(db, holiday_id))

    @staticmethod
    async def list_in_range(
        db: AsyncSession,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[HolidayOut]:
        """Holidays ordered by date; either bound may be omitted.

        A recurring holiday is listed once, as stored, when any of its
        yearly occurrences falls inside the bounds.
        """
        if start and end and start > end:
            raise InvalidRangeError(start, end)
        fixed = Holiday.recurring.is_(False)
        if start is not None:
            fixed = fixed & (Holiday.date >= start)
        if end is not None:
            fixed = fixed & (Holiday.date <= end)
        yearly = Holiday.recurring.is_(True)
        if end is not None:
            yearly = yearly & (Holiday.date <= end)

        rows = (
            await db.execute(select(Holiday).where(or_(fixed, yearly)).order_by(Holiday.date))
        ).scalars().all()
        if start is not None and end is not None:
            rows = [
                h for h in rows
                if not h.recurring or next(yearly_occurrences(h.date, start, end), None)
            ]
        return [HolidayOut.model_validate(h) for h in rows]

    @staticmethod
    async def holiday_map(db: AsyncSession, start: date, end: date) -> dict[date, str]:
        """Every non-working date in [start, end], recurring ones expanded per year."""
        rows = await db.execute(
            select(Holiday.date, Holiday.description, Holiday.recurring).where(
                or_(
                    (Holiday.date >= start) & (Holiday.date <= end),
                    Holiday.recurring.is_(True) & (Holiday.date <= end),
                )
            )
        )
        holidays: dict[date, str] = {}
        for on, description, recurring in rows.all():
            if not recurring:
                holidays[on] = description
                continue
            for day in yearly_occurrences(on, start, end):
                holidays.setdefault(day, description)
        return holidays

    # ── Writes ──────────────────────────────────────────────────────

    @staticmethod
    async def add(
        db: AsyncSession,
        on: date,
        description: str,
        actor_id: Optional[uuid.UUID] = None,
        *,
        recurring: bool = False,
    ) -> HolidayOut:
        await HolidayService._ensure_free_date(db, on, recurring=recurring)
        now = utcnow()
        holiday = Holiday(
            date=on,
            description=description.strip(),
            recurring=recurring,
            created_by=actor_id,
            updated_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        db.add(holiday)
        await db.flush()
        return HolidayOut.model_validate(holiday)

    @staticmethod
    async def update(
        db: AsyncSession,
        holiday_id: uuid.UUID,
        on: date,
        description: str,
        actor_id: Optional[uuid.UUID] = None,
        *,
        recurring: bool = False,
    ) -> HolidayOut:
        holiday = await HolidayService._get_or_404(db, holiday_id)
        await HolidayService._ensure_free_date(
            db, on, recurring=recurring, exclude_id=holiday.id,
        )

        holiday.date = on
        holiday.description = description.strip()
        holiday.recurring = recurring
        holiday.updated_by = actor_id
        holiday.updated_at = utcnow()
        await db.flush()
        return HolidayOut.model_validate(holiday)

    @staticmethod
    async def delete(db: AsyncSession, holiday_id: uuid.UUID) -> None:
        holiday = await HolidayService._get_or_404(db, holiday_id)
        await db.delete(holiday)
        await db.flush()
