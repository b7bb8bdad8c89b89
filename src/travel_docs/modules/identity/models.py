from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from travel_docs.core.models import Base, IntegerPrimaryKey, Timestamped
from travel_docs.modules.documents.models import ProcessingStatus


class IdentityType(str, enum.Enum):
    PASSPORT = "Passport"
    VISA = "Visa"
    AADHAAR = "Aadhaar"
    DRIVER_LICENSE = "Driver License"
    PAN_CARD = "PAN Card"
    OTHER = "Other"


class IdentityDocument(IntegerPrimaryKey, Timestamped, Base):
    __tablename__ = "identity_document"

    source_uri: Mapped[str] = mapped_column(String(2048))
    title: Mapped[str] = mapped_column(String(512))
    identity_type: Mapped[IdentityType] = mapped_column(Enum(IdentityType, native_enum=False))
    document_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    issue_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expiry_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    owner: Mapped[str | None] = mapped_column(String(200), nullable=True)

    processing_status: Mapped[ProcessingStatus] = mapped_column(
        Enum(ProcessingStatus, native_enum=False), index=True
    )

    @property
    def is_processing(self) -> bool:
        return self.processing_status == ProcessingStatus.PENDING
