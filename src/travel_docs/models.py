"""
Alembic model import hook.

Importing this module ensures all SQLAlchemy models are registered on Base.metadata.
"""

from __future__ import annotations

# Trips first - documents reference trips_trip by foreign key
from travel_docs.modules.trips.models import Trip  # noqa: F401

from travel_docs.modules.documents.models import DocumentRecord  # noqa: F401
from travel_docs.modules.identity.models import IdentityDocument  # noqa: F401
