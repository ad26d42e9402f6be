# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from ktc_taskboard.cli.bootstrap import create_initial_state
from ktc_taskboard.core.state import AppState
from ktc_taskboard.directory.directory_models import Department, Role, User, seed_users
from ktc_taskboard.directory.directory_store import DirectoryStore
from ktc_taskboard.storage.local_storage import (
    KEY_DEPARTMENTS,
    KEY_USERS,
    MemoryStorage,
    save_json,
)
from ktc_taskboard.tasks.task_store import TaskStore

from .fakes import FakeNotifier

# Directory used by most tests:
#   "1" Hệ thống  SUPER_ADMIN  (seed account, no department)
#   "2" Trần      MANAGER      dept-1
#   "3" Lê        STAFF        dept-1
#   "4" Phạm      STAFF        dept-2
STAFF_DIRECTORY = [
    *seed_users(),
    User(id="2", name="Trần", username="tran", role=Role.MANAGER, department_id="dept-1",
         password="pw-tran"),
    User(id="3", name="Lê", username="le", role=Role.STAFF, department_id="dept-1",
         password="pw-le"),
    User(id="4", name="Phạm", username="pham", role=Role.STAFF, department_id="dept-2",
         password="pw-pham"),
]

DEPARTMENTS = [
    Department(id="dept-1", name="Kinh doanh"),
    Department(id="dept-2", name="Kế toán"),
]


@pytest.fixture()
def storage() -> MemoryStorage:
    s = MemoryStorage()
    save_json(s, KEY_USERS, [u.to_dict() for u in STAFF_DIRECTORY])
    save_json(s, KEY_DEPARTMENTS, [d.to_dict() for d in DEPARTMENTS])
    return s


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def directory(storage: MemoryStorage, notifier: FakeNotifier) -> DirectoryStore:
    return DirectoryStore(storage, notifier=notifier)


@pytest.fixture()
def tasks(storage: MemoryStorage, directory: DirectoryStore) -> TaskStore:
    return TaskStore(storage, directory)


def _get(directory: DirectoryStore, user_id: str) -> User:
    user = directory.get_user(user_id)
    assert user is not None
    return user


@pytest.fixture()
def admin(directory: DirectoryStore) -> User:
    return _get(directory, "1")


@pytest.fixture()
def manager(directory: DirectoryStore) -> User:
    return _get(directory, "2")


@pytest.fixture()
def staff(directory: DirectoryStore) -> User:
    return _get(directory, "3")


@pytest.fixture()
def other_staff(directory: DirectoryStore) -> User:
    return _get(directory, "4")


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic (no .env, no API key).
    """
    return SimpleNamespace(
        app_name="Taskboard (test)",
        log_level="INFO",
        console_enabled=False,
        data_dir=tmp_path,
        storage_path=tmp_path / "local_storage.json",
        directory_read_url="",
        directory_write_url="",
        http_timeout_seconds=None,
        dev_master_password=None,
        llm_api_key=None,
        llm_base_url="",
        llm_models=[],
        extra_headers={},
    )


@pytest.fixture()
def state(settings: SimpleNamespace, storage: MemoryStorage) -> AppState:
    """AppState on in-memory storage with the offline quadrant advisor."""
    return create_initial_state(settings=settings, storage=storage)
