"""Holiday calendar tests — CRUD, unique dates, yearly holidays, write permissions."""

from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.exceptions import (
    DuplicateDateError,
    InvalidRangeError,
    NotFoundException,
)
from leavedesk.holidays.service import HolidayService, yearly_occurrences
from tests.conftest import auth_headers


class TestHolidayService:

    async def test_add_and_list_in_order(self, db: AsyncSession, people):
        await HolidayService.add(db, date(2024, 5, 1), "Fête du travail", people.dgpec.id)
        await HolidayService.add(db, date(2024, 1, 1), " Jour de l'an ", people.dgpec.id)

        holidays = await HolidayService.list_in_range(db)
        assert [h.date for h in holidays] == [date(2024, 1, 1), date(2024, 5, 1)]
        assert holidays[0].description == "Jour de l'an"
        assert holidays[0].created_by == people.dgpec.id

    async def test_range_bounds_are_inclusive(self, db: AsyncSession, people):
        for day in (date(2024, 4, 1), date(2024, 4, 4), date(2024, 5, 1)):
            await HolidayService.add(db, day, "Holiday")

        in_april = await HolidayService.list_in_range(db, date(2024, 4, 1), date(2024, 4, 4))
        assert [h.date for h in in_april] == [date(2024, 4, 1), date(2024, 4, 4)]

        with pytest.raises(InvalidRangeError):
            await HolidayService.list_in_range(db, date(2024, 5, 1), date(2024, 4, 1))

    async def test_duplicate_date_rejected(self, db: AsyncSession, people):
        await HolidayService.add(db, date(2024, 4, 4), "Fête nationale")

        with pytest.raises(DuplicateDateError) as exc_info:
            await HolidayService.add(db, date(2024, 4, 4), "Independence Day")
        assert exc_info.value.status_code == 409

    async def test_update_can_keep_own_date(self, db: AsyncSession, people):
        holiday = await HolidayService.add(db, date(2024, 4, 4), "Fete nationale")

        updated = await HolidayService.update(
            db, holiday.id, date(2024, 4, 4), "Fête nationale", people.admin.id,
        )
        assert updated.description == "Fête nationale"
        assert updated.updated_by == people.admin.id

    async def test_update_onto_taken_date_rejected(self, db: AsyncSession, people):
        await HolidayService.add(db, date(2024, 1, 1), "Jour de l'an")
        other = await HolidayService.add(db, date(2024, 5, 1), "Fête du travail")

        with pytest.raises(DuplicateDateError):
            await HolidayService.update(db, other.id, date(2024, 1, 1), "Moved")

    async def test_delete(self, db: AsyncSession, people):
        holiday = await HolidayService.add(db, date(2024, 8, 15), "Assomption")

        await HolidayService.delete(db, holiday.id)
        assert await HolidayService.list_in_range(db) == []
        with pytest.raises(NotFoundException):
            await HolidayService.get(db, holiday.id)

    async def test_holiday_map(self, db: AsyncSession, people):
        await HolidayService.add(db, date(2024, 1, 1), "Jour de l'an")
        await HolidayService.add(db, date(2024, 12, 25), "Noël")

        assert await HolidayService.holiday_map(db, date(2024, 1, 1), date(2024, 6, 30)) == {
            date(2024, 1, 1): "Jour de l'an",
        }


class TestRecurringHolidays:

    def test_yearly_occurrences(self):
        assert list(yearly_occurrences(date(2023, 4, 4), date(2022, 1, 1), date(2025, 12, 31))) == [
            date(2023, 4, 4), date(2024, 4, 4), date(2025, 4, 4),
        ]
        assert list(yearly_occurrences(date(2024, 4, 4), date(2024, 4, 5), date(2025, 4, 3))) == []

    def test_leap_day_only_in_leap_years(self):
        occurrences = yearly_occurrences(date(2024, 2, 29), date(2024, 1, 1), date(2028, 12, 31))
        assert list(occurrences) == [date(2024, 2, 29), date(2028, 2, 29)]

    async def test_map_expands_each_year(self, db: AsyncSession, people):
        await HolidayService.add(db, date(2023, 1, 1), "Jour de l'an", recurring=True)
        await HolidayService.add(db, date(2024, 5, 1), "Fête du travail")

        assert await HolidayService.holiday_map(db, date(2024, 1, 1), date(2025, 3, 1)) == {
            date(2024, 1, 1): "Jour de l'an",
            date(2024, 5, 1): "Fête du travail",
            date(2025, 1, 1): "Jour de l'an",
        }

    async def test_same_day_in_a_later_year_is_a_duplicate(self, db: AsyncSession, people):
        await HolidayService.add(db, date(2024, 4, 4), "Fête nationale", recurring=True)

        with pytest.raises(DuplicateDateError):
            await HolidayService.add(db, date(2026, 4, 4), "Fête nationale 2026")
        with pytest.raises(DuplicateDateError):
            await HolidayService.add(db, date(2025, 4, 4), "Yearly again", recurring=True)

    async def test_recurring_cannot_cover_an_existing_later_date(self, db: AsyncSession, people):
        await HolidayService.add(db, date(2025, 12, 25), "Noël")

        with pytest.raises(DuplicateDateError):
            await HolidayService.add(db, date(2024, 12, 25), "Noël", recurring=True)

    async def test_earlier_fixed_date_does_not_collide(self, db: AsyncSession, people):
        await HolidayService.add(db, date(2023, 12, 25), "Noël 2023")

        out = await HolidayService.add(db, date(2024, 12, 25), "Noël", recurring=True)
        assert out.recurring is True

    async def test_update_toggles_recurrence(self, db: AsyncSession, people):
        holiday = await HolidayService.add(db, date(2024, 8, 15), "Assomption")

        updated = await HolidayService.update(
            db, holiday.id, date(2024, 8, 15), "Assomption", recurring=True,
        )
        assert updated.recurring is True
        assert date(2027, 8, 15) in await HolidayService.holiday_map(
            db, date(2027, 8, 1), date(2027, 8, 31),
        )

    async def test_listing_includes_recurring_when_an_occurrence_falls_inside(
        self, db: AsyncSession, people,
    ):
        await HolidayService.add(db, date(2023, 4, 4), "Fête nationale", recurring=True)
        await HolidayService.add(db, date(2023, 5, 1), "Fête du travail 2023")

        april = await HolidayService.list_in_range(db, date(2025, 4, 1), date(2025, 4, 30))
        assert [(h.date, h.recurring) for h in april] == [(date(2023, 4, 4), True)]

        may = await HolidayService.list_in_range(db, date(2025, 5, 1), date(2025, 5, 31))
        assert may == []


class TestHolidayAPI:

    async def test_dgpec_creates_and_everyone_reads(self, client, people):
        resp = await client.post(
            "/api/v1/holidays",
            json={"date": "2024-04-04", "description": "Fête nationale"},
            headers=auth_headers(people.dgpec),
        )
        assert resp.status_code == 201
        holiday_id = resp.json()["id"]

        resp = await client.get("/api/v1/holidays", headers=auth_headers(people.employee))
        assert [h["id"] for h in resp.json()] == [holiday_id]

        resp = await client.get(
            f"/api/v1/holidays/{holiday_id}", headers=auth_headers(people.employee),
        )
        assert resp.json()["description"] == "Fête nationale"

    async def test_recurring_flag_round_trips(self, client, people):
        resp = await client.post(
            "/api/v1/holidays",
            json={"date": "2024-01-01", "description": "Jour de l'an", "recurring": True},
            headers=auth_headers(people.dgpec),
        )
        assert resp.status_code == 201
        assert resp.json()["recurring"] is True

        resp = await client.get(
            "/api/v1/leave/working-days",
            params={"start_date": "2025-01-01", "end_date": "2025-01-03"},
            headers=auth_headers(people.employee),
        )
        assert resp.json()["working_days"] == 2

    async def test_duplicate_is_409(self, client, people):
        body = {"date": "2024-04-04", "description": "Fête nationale"}
        await client.post("/api/v1/holidays", json=body, headers=auth_headers(people.admin))

        resp = await client.post("/api/v1/holidays", json=body, headers=auth_headers(people.admin))
        assert resp.status_code == 409
        assert resp.json()["type"].endswith("/duplicate-date")
        assert "date" in resp.json()["errors"]

    async def test_blank_description_is_422(self, client, people):
        resp = await client.post(
            "/api/v1/holidays",
            json={"date": "2024-04-04", "description": "   "},
            headers=auth_headers(people.admin),
        )
        assert resp.status_code == 422

    @pytest.mark.parametrize("role_holder", ["employee", "direction", "dg"])
    async def test_other_roles_cannot_write(self, client, people, role_holder):
        resp = await client.post(
            "/api/v1/holidays",
            json={"date": "2024-04-04", "description": "Fête nationale"},
            headers=auth_headers(getattr(people, role_holder)),
        )
        assert resp.status_code == 403

    async def test_update_and_delete(self, client, people):
        resp = await client.post(
            "/api/v1/holidays",
            json={"date": "2024-12-25", "description": "Noel"},
            headers=auth_headers(people.dgpec),
        )
        holiday_id = resp.json()["id"]

        resp = await client.put(
            f"/api/v1/holidays/{holiday_id}",
            json={"date": "2024-12-25", "description": "Noël"},
            headers=auth_headers(people.dgpec),
        )
        assert resp.status_code == 200
        assert resp.json()["description"] == "Noël"

        resp = await client.delete(
            f"/api/v1/holidays/{holiday_id}", headers=auth_headers(people.dgpec),
        )
        assert resp.status_code == 204

        resp = await client.get(
            f"/api/v1/holidays/{uuid.uuid4()}", headers=auth_headers(people.employee),
        )
        assert resp.status_code == 404
