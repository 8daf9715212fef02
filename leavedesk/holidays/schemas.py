"""Holiday Pydantic v2 schemas."""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HolidayCreate(BaseModel):
    date: date
    description: str = Field(..., min_length=1, max_length=200)
    recurring: bool = False

    @field_validator("description")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Description must not be blank.")
        return v


class HolidayUpdate(HolidayCreate):
    pass


class HolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    date: date
    description: str
    recurring: bool
    created_at: datetime
    updated_at: datetime
    created_by: Optional[uuid.UUID] = None
    updated_by: Optional[uuid.UUID] = None
