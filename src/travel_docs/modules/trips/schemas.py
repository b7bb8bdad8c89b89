from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel


class TripCreate(BaseModel):
    title: str
    start_date: date
    end_date: date


class TripUpdate(BaseModel):
    title: str | None = None
    start_date: date | None = None
    end_date: date | None = None


class TripOut(BaseModel):
    id: int
    title: str
    start_date: date
    end_date: date
    created_at: datetime
    updated_at: datetime
