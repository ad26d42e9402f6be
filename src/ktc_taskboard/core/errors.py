# src/ktc_taskboard/core/errors.py

"""
Error taxonomy.

Every error carries a user-facing (Vietnamese) message in str(err); the
console and any other UI client render it as-is.
"""

from __future__ import annotations


class TaskboardError(Exception):
    """Base class for all recoverable errors raised by the core."""


class ValidationError(TaskboardError):
    """Input rejected before any mutation happened."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class TaskNotFoundError(TaskboardError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Không tìm thấy công việc: {task_id}")
        self.task_id = task_id


class UserNotFoundError(TaskboardError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"Không tìm thấy nhân sự: {user_id}")
        self.user_id = user_id


class DepartmentNotFoundError(TaskboardError):
    def __init__(self, department_id: str) -> None:
        super().__init__(f"Không tìm thấy phòng ban: {department_id}")
        self.department_id = department_id


class IllegalTransitionError(TaskboardError):
    def __init__(self, current: str, requested: str, reason: str) -> None:
        super().__init__(f"Không thể chuyển trạng thái {current} -> {requested}: {reason}")
        self.current = current
        self.requested = requested
        self.reason = reason


class SyncError(TaskboardError):
    """Directory webhook could not be used; local state is left unchanged."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LinkExpiredError(SyncError):
    """HTTP 410 from the automation webhook."""


class PayloadFormatError(SyncError):
    """The webhook answered, but nothing usable could be parsed out of it."""
