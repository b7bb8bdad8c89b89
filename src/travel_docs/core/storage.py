from __future__ import annotations

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from travel_docs.core.config import settings
from travel_docs.core.logging import get_logger, log_event, log_exception, monotonic_ms

logger = get_logger(__name__)


class StorageError(RuntimeError):
    pass


@dataclass(frozen=True)
class StoredFile:
    key: str
    uri: str
    byte_size: int


def uri_to_path(uri: str) -> Path:
    """Accept both file:// URIs and plain filesystem paths."""
    if uri.startswith("file://"):
        return Path(unquote(urlparse(uri).path))
    return Path(uri)


def read_file_uri(uri: str) -> bytes:
    path = uri_to_path(uri)
    if not path.is_file():
        raise StorageError(f"File not found: {uri}")
    return path.read_bytes()


class LocalFileStorage:
    def __init__(self, root: Path):
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def put(self, *, key: str, body: bytes) -> StoredFile:
        start = time.monotonic()
        path = self._root / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(body)
        except Exception:
            log_exception(logger, "storage.put.failure", storage_key=key, byte_size=len(body))
            raise
        log_event(
            logger,
            "storage.put.success",
            storage_key=key,
            byte_size=len(body),
            duration_ms=monotonic_ms(start),
        )
        return StoredFile(key=key, uri=path.resolve().as_uri(), byte_size=len(body))

    def read(self, *, uri: str) -> bytes:
        try:
            return read_file_uri(uri)
        except StorageError:
            log_event(logger, "storage.read.failure", uri=uri)
            raise

    def delete(self, *, uri: str) -> bool:
        path = uri_to_path(uri)
        if not path.exists():
            return False
        try:
            path.unlink()
        except Exception:
            log_exception(logger, "storage.delete.failure", uri=uri)
            raise
        log_event(logger, "storage.delete.success", uri=uri)
        return True


_storage: LocalFileStorage | None = None


def get_storage() -> LocalFileStorage:
    global _storage  # noqa: PLW0603
    if _storage is not None:
        return _storage

    root = settings.local_storage_path
    if not root.is_absolute():
        root = Path(os.getcwd()) / root
    _storage = LocalFileStorage(root)
    return _storage


def diagnose_storage(*, write_test: bool = False) -> dict[str, Any]:
    storage = get_storage()
    result: dict[str, Any] = {"ok": True, "root": str(storage.root)}
    if not write_test:
        return result

    key = f"diagnostics/healthz-{time.time_ns()}.txt"
    body = b"ok"
    try:
        stored = storage.put(key=key, body=body)
        out = storage.read(uri=stored.uri)
        storage.delete(uri=stored.uri)
    except Exception as e:  # noqa: BLE001
        result["ok"] = False
        result["error_type"] = type(e).__name__
        result["error"] = str(e)
        return result

    result["write_test"] = {"ok": out == body, "key": key, "byte_size": len(body)}
    if out != body:
        result["ok"] = False
    return result
