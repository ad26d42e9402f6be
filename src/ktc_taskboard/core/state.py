# src/ktc_taskboard/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..directory.directory_store import DirectoryStore
from ..directory.ingest import DirectorySync
from ..directory.session import Session
from ..tasks.task_store import TaskStore
from .ports import KeyValueStorage, QuadrantAdvisor


@dataclass
class AppState:
    """Everything one running console needs; built by cli.bootstrap."""

    settings: Any
    storage: KeyValueStorage
    directory: DirectoryStore
    tasks: TaskStore
    session: Session
    sync: DirectorySync
    advisor: QuadrantAdvisor
