from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from travel_docs.core.models import Base, IntegerPrimaryKey, Timestamped


class DocumentCategory(str, enum.Enum):
    TRANSPORT = "Transport"
    STAY = "Stay"
    ACTIVITY = "Activity"
    RECEIPT = "Receipt"
    OTHER = "Other"


class ProcessingStatus(str, enum.Enum):
    PENDING = "PENDING"
    SETTLED = "SETTLED"


# Fine-grained kinds the categories used to be, folded into the coarse set.
LEGACY_CATEGORY_MAP: dict[str, DocumentCategory] = {
    "flight": DocumentCategory.TRANSPORT,
    "train": DocumentCategory.TRANSPORT,
    "bus": DocumentCategory.TRANSPORT,
    "car": DocumentCategory.TRANSPORT,
    "car rental": DocumentCategory.TRANSPORT,
    "ferry": DocumentCategory.TRANSPORT,
    "taxi": DocumentCategory.TRANSPORT,
    "hotel": DocumentCategory.STAY,
    "hostel": DocumentCategory.STAY,
    "apartment": DocumentCategory.STAY,
    "event": DocumentCategory.ACTIVITY,
    "concert": DocumentCategory.ACTIVITY,
    "tour": DocumentCategory.ACTIVITY,
    "museum": DocumentCategory.ACTIVITY,
    "ticket": DocumentCategory.ACTIVITY,
    "invoice": DocumentCategory.RECEIPT,
    "bill": DocumentCategory.RECEIPT,
}


def resolve_category(value: object) -> tuple[DocumentCategory | None, str | None]:
    """
    Map a category label to (category, implied_sub_category).

    Coarse labels map onto themselves; legacy labels such as "Flight" map to
    (Transport, "Flight"). Unknown labels return (None, None).
    """
    if not isinstance(value, str):
        return None, None
    label = value.strip()
    if not label:
        return None, None
    for category in DocumentCategory:
        if category.value.lower() == label.lower():
            return category, None
    legacy = LEGACY_CATEGORY_MAP.get(label.lower())
    if legacy is not None:
        return legacy, label[:1].upper() + label[1:]
    return None, None


class DocumentRecord(IntegerPrimaryKey, Timestamped, Base):
    __tablename__ = "documents_document"

    source_uri: Mapped[str] = mapped_column(String(2048), index=True)
    title: Mapped[str] = mapped_column(String(512))
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    category: Mapped[DocumentCategory] = mapped_column(
        Enum(DocumentCategory, native_enum=False),
        index=True,
    )
    sub_category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    owner: Mapped[str | None] = mapped_column(String(512), nullable=True)

    trip_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("trips_trip.id", ondelete="SET NULL"), nullable=True, index=True
    )
    split_from_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("documents_document.id", ondelete="SET NULL"), nullable=True
    )

    processing_status: Mapped[ProcessingStatus] = mapped_column(
        Enum(ProcessingStatus, native_enum=False), index=True
    )

    @property
    def is_processing(self) -> bool:
        return self.processing_status == ProcessingStatus.PENDING
