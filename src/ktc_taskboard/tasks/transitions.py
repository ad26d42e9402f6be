# src/ktc_taskboard/tasks/transitions.py

"""
Status state machine.

TaskStore.update_task is the raw write path and accepts any status;
TaskStore.change_status goes through check_transition() first.
"""

from __future__ import annotations

from ..core.errors import IllegalTransitionError
from ..directory.directory_models import User
from .task_models import Task, TaskStatus

TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.TODO: frozenset(
        {TaskStatus.IN_PROGRESS, TaskStatus.PAUSED, TaskStatus.DONE, TaskStatus.CANCELLED}
    ),
    TaskStatus.IN_PROGRESS: frozenset(
        {TaskStatus.TODO, TaskStatus.PAUSED, TaskStatus.DONE, TaskStatus.CANCELLED}
    ),
    TaskStatus.PAUSED: frozenset(
        {TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.DONE, TaskStatus.CANCELLED}
    ),
    TaskStatus.REDO: frozenset(
        {TaskStatus.IN_PROGRESS, TaskStatus.PAUSED, TaskStatus.DONE, TaskStatus.CANCELLED}
    ),
    TaskStatus.DONE: frozenset({TaskStatus.REDO, TaskStatus.CLOSED}),
    TaskStatus.CANCELLED: frozenset({TaskStatus.REDO}),
    TaskStatus.CLOSED: frozenset(),
}


def _role_denial(task: Task, target: TaskStatus, actor: User) -> str | None:
    """Reason the actor may not request `target`, or None when allowed."""
    privileged = actor.role.is_privileged
    is_creator = task.creator_id == actor.id

    if target is TaskStatus.CANCELLED:
        return None if privileged else "chỉ quản lý hoặc quản trị viên được hủy công việc"

    if target in (TaskStatus.CLOSED, TaskStatus.REDO):
        if privileged or is_creator:
            return None
        return "chỉ người giao việc hoặc quản lý được thực hiện"

    if privileged or is_creator or task.assignee_id == actor.id:
        return None
    return "không có quyền cập nhật công việc này"


def check_transition(task: Task, target: TaskStatus, actor: User) -> None:
    """Raise IllegalTransitionError unless `actor` may move `task` to `target`."""
    if target is task.status:
        return

    if target not in TRANSITIONS[task.status]:
        raise IllegalTransitionError(
            task.status.value,
            target.value,
            f"không hỗ trợ từ trạng thái {task.status.display_title}",
        )

    reason = _role_denial(task, target, actor)
    if reason is not None:
        raise IllegalTransitionError(task.status.value, target.value, reason)


def allowed_transitions(task: Task, actor: User) -> list[TaskStatus]:
    """Targets check_transition() would accept, in enum order."""
    return [
        s
        for s in TaskStatus
        if s in TRANSITIONS[task.status] and _role_denial(task, s, actor) is None
    ]


def is_finished(status: TaskStatus) -> bool:
    return status in (TaskStatus.DONE, TaskStatus.CLOSED)