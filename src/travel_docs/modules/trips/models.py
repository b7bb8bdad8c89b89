from __future__ import annotations

from datetime import date

from sqlalchemy import Date, String
from sqlalchemy.orm import Mapped, mapped_column

from travel_docs.core.models import Base, IntegerPrimaryKey, Timestamped


class Trip(IntegerPrimaryKey, Timestamped, Base):
    __tablename__ = "trips_trip"

    title: Mapped[str] = mapped_column(String(200))
    start_date: Mapped[date] = mapped_column(Date, index=True)
    end_date: Mapped[date] = mapped_column(Date)
