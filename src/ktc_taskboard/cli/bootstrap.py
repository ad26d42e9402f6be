# src/ktc_taskboard/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data directory exists,
- wires concrete implementations into AppState (storage/stores/webhooks/LLM).
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..config import get_settings
from ..core.ports import KeyValueStorage, QuadrantAdvisor
from ..core.state import AppState
from ..directory.directory_store import DirectoryStore
from ..directory.ingest import DirectorySync
from ..directory.notifier import WebhookNotifier
from ..directory.session import Session
from ..llm.advisor import OpenAIQuadrantAdvisor
from ..llm.offline import OfflineQuadrantAdvisor
from ..storage.local_storage import KEY_READ_URL, KEY_WRITE_URL, JsonFileStorage
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def read_url(state: AppState) -> str:
    """Directory read webhook: stored value first, then settings."""
    return (state.storage.get(KEY_READ_URL) or state.settings.directory_read_url or "").strip()


def _write_url_provider(storage: KeyValueStorage, settings) -> Callable[[], str]:
    def provide() -> str:
        return (storage.get(KEY_WRITE_URL) or settings.directory_write_url or "").strip()

    return provide


def create_initial_state(*, settings=None, storage: KeyValueStorage | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Settings and storage are injectable for tests; by default the JSON file
    under settings.storage_path is used.
    """
    if settings is None:
        settings = get_settings()

    if storage is None:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        storage = JsonFileStorage(settings.storage_path)

    notifier = WebhookNotifier(
        _write_url_provider(storage, settings),
        timeout=settings.http_timeout_seconds,
    )
    directory = DirectoryStore(storage, notifier=notifier)

    advisor: QuadrantAdvisor
    try:
        advisor = OpenAIQuadrantAdvisor(settings)
    except RuntimeError as e:
        logger.info("Quadrant advisor offline: %s", e)
        advisor = OfflineQuadrantAdvisor()

    return AppState(
        settings=settings,
        storage=storage,
        directory=directory,
        tasks=TaskStore(storage, directory),
        session=Session(storage, directory, master_password=settings.dev_master_password),
        sync=DirectorySync(directory, timeout=settings.http_timeout_seconds),
        advisor=advisor,
    )
