# src/ktc_taskboard/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The stores depend on Protocols instead of concrete implementations.
This keeps storage/webhook/LLM providers swappable and makes testing easier.
"""

from typing import Any, Protocol

from ..directory.directory_models import Department, User
from ..tasks.task_models import QuadrantAdvice


class KeyValueStorage(Protocol):
    """String-keyed, string-valued durable storage."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, key: str) -> None: ...


class SyncNotifier(Protocol):
    """
    Fire-and-forget change notification for directory mutations.

    Implementations must never raise: a failed post does not roll back
    or block the local mutation that triggered it.
    """

    def notify(self, action: str, payload: dict[str, Any]) -> None: ...


class UserDirectory(Protocol):
    """What the task store needs to know about people."""

    def get_user(self, user_id: str) -> User | None: ...
    def get_department(self, department_id: str) -> Department | None: ...


class QuadrantAdvisor(Protocol):
    """Suggests an Eisenhower quadrant for a task title/description."""

    def analyze(self, title: str, description: str) -> QuadrantAdvice: ...
