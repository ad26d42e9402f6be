# src/ktc_taskboard/tasks/permissions.py

from __future__ import annotations

from ..directory.directory_models import Role, User
from .task_models import Task
from .transitions import is_finished


def can_view(actor: User, task: Task) -> bool:
    """
    Visibility by role:
    - SUPER_ADMIN / ADMIN: everything
    - MANAGER: own department, plus anything they create, carry or follow
    - STAFF: only what they create, carry or follow
    """
    if actor.role.sees_everything:
        return True
    if (
        actor.role is Role.MANAGER
        and actor.department_id
        and task.department_id == actor.department_id
    ):
        return True
    return task.involves(actor.id)


def can_delete(actor: User, task: Task) -> bool:
    return actor.role is not Role.STAFF or task.creator_id == actor.id


def can_reassign(actor: User) -> bool:
    return actor.role.is_privileged


def can_evaluate(actor: User, task: Task) -> bool:
    return actor.role.is_privileged and is_finished(task.status)
