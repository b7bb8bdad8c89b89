from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

# Set env before any travel_docs imports (settings/engine are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./.travel_docs_test.db")
os.environ.setdefault("LOCAL_STORAGE_PATH", ".tmp_storage_test")
os.environ.setdefault("GEMINI_API_KEY", "")
os.environ.setdefault("AUTO_PARSE_ENABLED", "true")


@pytest.fixture(autouse=True)
def _reset_db_and_storage() -> None:
    import travel_docs.models  # noqa: F401
    from travel_docs.core.db import engine
    from travel_docs.core.models import Base

    # Reset storage cache and directory
    import travel_docs.core.storage as storage_mod

    storage_mod._storage = None

    storage_path = Path(os.environ["LOCAL_STORAGE_PATH"])
    if storage_path.exists():
        shutil.rmtree(storage_path)

    # Reset DB schema
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield


class FakeExtractionClient:
    """Returns canned model text (or raises) and records the files it was asked about."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls: list[str] = []

    async def extract(self, file_uri: str, *, prompt: str = "") -> str:
        self.calls.append(file_uri)
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture
def fake_client_factory():
    return FakeExtractionClient


@pytest.fixture
def stored_file():
    from travel_docs.modules.documents.service import store_upload

    def _store(name: str = "ticket.jpg", body: bytes = b"\xff\xd8\xff fake jpeg") -> str:
        return store_upload(filename=name, body=body).uri

    return _store
