"""initial travel docs schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_PROCESSING_STATUS = sa.Enum("PENDING", "SETTLED", name="processingstatus", native_enum=False)


def upgrade() -> None:
    op.create_table(
        "trips_trip",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
    )
    op.create_index("ix_trips_trip_start_date", "trips_trip", ["start_date"])

    op.create_table(
        "documents_document",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source_uri", sa.String(length=2048), nullable=False),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "category",
            sa.Enum(
                "TRANSPORT",
                "STAY",
                "ACTIVITY",
                "RECEIPT",
                "OTHER",
                name="documentcategory",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("sub_category", sa.String(length=100), nullable=True),
        sa.Column("owner", sa.String(length=512), nullable=True),
        sa.Column(
            "trip_id",
            sa.Integer(),
            sa.ForeignKey("trips_trip.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "split_from_id",
            sa.Integer(),
            sa.ForeignKey("documents_document.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("processing_status", _PROCESSING_STATUS, nullable=False),
    )
    op.create_index("ix_documents_document_source_uri", "documents_document", ["source_uri"])
    op.create_index("ix_documents_document_occurred_at", "documents_document", ["occurred_at"])
    op.create_index("ix_documents_document_category", "documents_document", ["category"])
    op.create_index("ix_documents_document_trip_id", "documents_document", ["trip_id"])
    op.create_index(
        "ix_documents_document_processing_status", "documents_document", ["processing_status"]
    )

    op.create_table(
        "identity_document",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source_uri", sa.String(length=2048), nullable=False),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column(
            "identity_type",
            sa.Enum(
                "PASSPORT",
                "VISA",
                "AADHAAR",
                "DRIVER_LICENSE",
                "PAN_CARD",
                "OTHER",
                name="identitytype",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("document_number", sa.String(length=100), nullable=True),
        sa.Column("issue_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("owner", sa.String(length=200), nullable=True),
        sa.Column("processing_status", _PROCESSING_STATUS, nullable=False),
    )
    op.create_index("ix_identity_document_expiry_date", "identity_document", ["expiry_date"])
    op.create_index(
        "ix_identity_document_processing_status", "identity_document", ["processing_status"]
    )


def downgrade() -> None:
    op.drop_index("ix_identity_document_processing_status", table_name="identity_document")
    op.drop_index("ix_identity_document_expiry_date", table_name="identity_document")
    op.drop_table("identity_document")
    op.drop_index("ix_documents_document_processing_status", table_name="documents_document")
    op.drop_index("ix_documents_document_trip_id", table_name="documents_document")
    op.drop_index("ix_documents_document_category", table_name="documents_document")
    op.drop_index("ix_documents_document_occurred_at", table_name="documents_document")
    op.drop_index("ix_documents_document_source_uri", table_name="documents_document")
    op.drop_table("documents_document")
    op.drop_index("ix_trips_trip_start_date", table_name="trips_trip")
    op.drop_table("trips_trip")
