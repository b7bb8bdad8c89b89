from __future__ import annotations

import travel_docs.models  # noqa: F401
from travel_docs.core.config import settings
from travel_docs.core.db import engine
from travel_docs.core.logging import get_logger, log_event
from travel_docs.core.models import Base

logger = get_logger(__name__)


def bootstrap() -> None:
    if settings.environment in {"dev", "test"} and str(settings.database_url).startswith("sqlite"):
        Base.metadata.create_all(engine)
    log_event(
        logger,
        "app.bootstrap",
        environment=settings.environment,
        auto_parse_enabled=settings.auto_parse_enabled,
        extraction_configured=bool(settings.gemini_api_key),
    )
