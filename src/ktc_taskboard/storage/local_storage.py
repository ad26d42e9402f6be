# src/ktc_taskboard/storage/local_storage.py

"""
Local persisted state.

A small set of named string entries, each read at startup and rewritten
on every relevant mutation (no debouncing, no batching). Collections are
stored as JSON strings; URLs and timestamps as plain strings.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from ..core.ports import KeyValueStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")

KEY_TASKS = "synced_tasks"
KEY_USERS = "synced_users"
KEY_DEPARTMENTS = "synced_departments"
KEY_AUTH_USER = "auth_user"
KEY_REMEMBERED_IDS = "remembered_user_ids"
KEY_LAST_SYNC = "last_user_sync"
KEY_READ_URL = "gs_read"
KEY_WRITE_URL = "gs_write"


class MemoryStorage:
    """Process-local storage (tests, ephemeral runs)."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStorage:
    """
    All keys in one JSON object on disk.

    Writes are atomic (tmp file + os.replace). A corrupted or unreadable
    file is logged and treated as empty, so every key falls back to seed data.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._data = self._load()
        logger.info("JsonFileStorage ready path=%s keys=%d", self._path, len(self._data))

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError):
            logger.exception("Failed to read local storage %s; starting empty.", self._path)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Local storage %s is not a JSON object; starting empty.", self._path)
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _flush(self) -> None:
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, self._path)
        with contextlib.suppress(OSError):
            # Holds plaintext passwords of the synced directory.
            os.chmod(self._path, 0o600)

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()


def load_json(
    storage: KeyValueStorage,
    key: str,
    decode: Callable[[Any], T],
    default: Callable[[], T],
) -> T:
    """
    Read `key` and decode it; absent key -> default().

    A present-but-broken value is logged and also replaced by default().
    """
    raw = storage.get(key)
    if raw is None:
        return default()
    try:
        return decode(json.loads(raw))
    except (ValueError, TypeError, AttributeError):
        logger.exception("Stored value for %s is unreadable; using defaults.", key)
        return default()


def save_json(storage: KeyValueStorage, key: str, value: Any) -> None:
    storage.set(key, json.dumps(value, ensure_ascii=False))
