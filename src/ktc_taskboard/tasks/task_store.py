# src/ktc_taskboard/tasks/task_store.py

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from ..core.errors import TaskNotFoundError, ValidationError
from ..core.ids import new_task_id, utc_now_iso
from ..core.ports import KeyValueStorage, UserDirectory
from ..directory.directory_models import User
from ..storage.local_storage import KEY_TASKS, load_json, save_json
from . import audit
from .permissions import can_evaluate, can_view
from .task_models import (
    Attachment,
    Evaluation,
    Quadrant,
    Task,
    TaskLog,
    TaskStats,
    TaskStatus,
    TaskTemplate,
)
from .transitions import check_transition

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = frozenset({"id", "creator_id", "created_at", "logs", "old_evaluation"})
UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "quadrant",
        "status",
        "assignee_id",
        "follower_ids",
        "department_id",
        "start_date",
        "end_date",
        "attachments",
        "result_content",
        "result_attachments",
        "evaluation",
    }
)

_STAT_FIELDS: dict[TaskStatus, str] = {
    TaskStatus.TODO: "todo",
    TaskStatus.IN_PROGRESS: "in_progress",
    TaskStatus.DONE: "done",
    TaskStatus.REDO: "redo",
    TaskStatus.PAUSED: "paused",
    TaskStatus.CANCELLED: "cancelled",
    TaskStatus.CLOSED: "closed",
}


def _decode_tasks(raw: Any) -> list[Task]:
    if not isinstance(raw, list):
        raise TypeError("task collection must be a JSON array")
    return [Task.from_dict(d) for d in raw if isinstance(d, dict)]


def _attachments(value: Any, field_name: str) -> list[Attachment]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(field_name, "Tệp đính kèm phải là một danh sách")
    out: list[Attachment] = []
    for item in value:
        if isinstance(item, Attachment):
            out.append(item)
        elif isinstance(item, Mapping):
            out.append(Attachment.from_dict(dict(item)))
        else:
            raise ValidationError(field_name, "Tệp đính kèm không hợp lệ")
    return out


def _quadrant(value: Any, field_name: str = "quadrant") -> Quadrant:
    try:
        return Quadrant(str(value).strip().upper())
    except ValueError:
        raise ValidationError(field_name, f"Góc phần tư không hợp lệ: {value}") from None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value)
    return s or None


class TaskStore:
    """
    Owner of the task collection.

    Every mutation goes through this class so that the audit log entry for a
    change is attached in the same step as the change itself. The collection
    is reloaded from storage at construction and written back after each
    mutation. Callers get copies; editing a returned Task has no effect.

    Ordering: newest first (new tasks are prepended).
    """

    def __init__(self, storage: KeyValueStorage, directory: UserDirectory) -> None:
        self._storage = storage
        self._directory = directory
        self._tasks: list[Task] = load_json(storage, KEY_TASKS, _decode_tasks, list)
        logger.info("TaskStore ready total=%d", len(self._tasks))

    # ---- low-level helpers ----

    def _commit(self, tasks: list[Task]) -> None:
        """Serialize and store `tasks`, then make them current."""
        save_json(self._storage, KEY_TASKS, [t.to_dict() for t in tasks])
        self._tasks = tasks

    def _index_of(self, task_id: str) -> int:
        for i, t in enumerate(self._tasks):
            if t.id == task_id:
                return i
        raise TaskNotFoundError(task_id)

    def _user_name(self, user_id: str | None) -> str | None:
        if not user_id:
            return None
        user = self._directory.get_user(user_id)
        return user.name if user else None

    def _require_user(self, user_id: Any, field_name: str) -> User:
        user = self._directory.get_user(str(user_id)) if user_id else None
        if user is None or not user.is_active:
            raise ValidationError(field_name, f"Người thực hiện không tồn tại: {user_id}")
        return user

    def _coerce_updates(self, updates: Mapping[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for key, value in updates.items():
            if key in IMMUTABLE_FIELDS:
                raise ValidationError(key, f"Không thể thay đổi trường {key}")
            if key not in UPDATABLE_FIELDS:
                raise ValidationError(key, f"Trường không hợp lệ: {key}")

            if key == "title":
                title = str(value or "").strip()
                if not title:
                    raise ValidationError("title", "Vui lòng nhập tiêu đề")
                out[key] = title
            elif key == "description":
                out[key] = str(value or "")
            elif key == "quadrant":
                out[key] = _quadrant(value, key)
            elif key == "status":
                try:
                    out[key] = TaskStatus(value)
                except ValueError:
                    raise ValidationError(key, f"Trạng thái không hợp lệ: {value}") from None
            elif key == "assignee_id":
                out[key] = self._require_user(value, key).id
            elif key == "follower_ids":
                out[key] = list(dict.fromkeys(str(x) for x in (value or [])))
            elif key in ("attachments", "result_attachments"):
                out[key] = _attachments(value, key)
            elif key == "evaluation":
                if value is None or value == "":
                    out[key] = None
                else:
                    try:
                        out[key] = Evaluation(value)
                    except ValueError:
                        raise ValidationError(key, f"Đánh giá không hợp lệ: {value}") from None
            elif key == "result_content":
                out[key] = None if value is None else str(value)
            else:
                # department_id, start_date, end_date
                out[key] = _optional_str(value)
        return out

    # ---- read side ----

    def all_tasks(self) -> list[Task]:
        return copy.deepcopy(self._tasks)

    def get(self, task_id: str) -> Task:
        return copy.deepcopy(self._tasks[self._index_of(task_id)])

    def visible_tasks(self, actor: User) -> list[Task]:
        return [copy.deepcopy(t) for t in self._tasks if can_view(actor, t)]

    def stats(self, actor: User) -> TaskStats:
        """
        Counters over the visible tasks the actor created or carries.

        Followed-only tasks are visible but not counted.
        """
        stats = TaskStats()
        for t in self._tasks:
            if not can_view(actor, t):
                continue
            if t.assignee_id != actor.id and t.creator_id != actor.id:
                continue
            name = _STAT_FIELDS[t.status]
            setattr(stats, name, getattr(stats, name) + 1)
        return stats

    # ---- mutations ----

    def add_task(
        self,
        actor: User,
        template: TaskTemplate | Mapping[str, Any],
        assignee_ids: Iterable[str] | None = None,
        follower_ids: Iterable[str] | None = None,
    ) -> list[Task]:
        """
        Create one task per assignee (default: the actor themself).

        Every created task shares title/description/quadrant/dates, gets
        status TODO, the department of its assignee (or the actor's when the
        assignee has none) and a single creation log entry.
        """
        if isinstance(template, Mapping):
            template = TaskTemplate(
                title=str(template.get("title") or ""),
                description=str(template.get("description") or ""),
                quadrant=template.get("quadrant") or Quadrant.Q1,
                start_date=_optional_str(template.get("start_date")),
                end_date=_optional_str(template.get("end_date")),
                attachments=template.get("attachments"),
            )

        title = str(template.title or "").strip()
        if not title:
            raise ValidationError("title", "Vui lòng nhập tiêu đề")
        quadrant = _quadrant(template.quadrant)
        attachments = _attachments(template.attachments, "attachments")

        ids = list(dict.fromkeys(str(a) for a in (assignee_ids or []) if a))
        if not ids:
            ids = [actor.id]

        assignees: list[User] = []
        for assignee_id in ids:
            if assignee_id == actor.id:
                assignees.append(actor)
            else:
                assignees.append(self._require_user(assignee_id, "assignee_ids"))

        followers = list(dict.fromkeys(str(f) for f in (follower_ids or [])))
        now = utc_now_iso()

        created: list[Task] = []
        for assignee in assignees:
            is_self = assignee.id == actor.id
            created.append(
                Task(
                    id=new_task_id(),
                    title=title,
                    description=str(template.description or ""),
                    quadrant=quadrant,
                    status=TaskStatus.TODO,
                    assignee_id=assignee.id,
                    creator_id=actor.id,
                    created_at=now,
                    follower_ids=list(followers),
                    department_id=assignee.department_id or actor.department_id,
                    start_date=template.start_date,
                    end_date=template.end_date,
                    attachments=copy.deepcopy(attachments),
                    logs=[
                        audit.create_log_entry(
                            audit.created_message(
                                actor.name, None if is_self else assignee.name
                            ),
                            actor.id,
                        )
                    ],
                )
            )

        self._commit([*created, *self._tasks])
        logger.info(
            "Tasks created count=%d creator=%s assignees=%s",
            len(created),
            actor.id,
            [t.assignee_id for t in created],
        )
        return copy.deepcopy(created)

    def update_task(
        self,
        actor: User,
        task_id: str,
        updates: Mapping[str, Any] | None = None,
        **fields: Any,
    ) -> Task:
        """
        Apply a partial update and append the matching audit entries.

        Log order is fixed: reassignment, then either the redo demotion or
        the result/status entry, then the evaluation confirmation. Fields
        without a logging rule are applied verbatim. Submitting the current
        values again appends nothing.
        """
        merged: dict[str, Any] = dict(updates or {})
        merged.update(fields)

        idx = self._index_of(task_id)
        old = self._tasks[idx]
        changes = self._coerce_updates(merged)

        new_logs: list[TaskLog] = []

        new_assignee = changes.get("assignee_id")
        if new_assignee is not None and new_assignee != old.assignee_id:
            new_logs.append(
                audit.create_log_entry(
                    audit.reassigned_message(
                        actor.name,
                        self._user_name(old.assignee_id),
                        self._user_name(new_assignee),
                    ),
                    actor.id,
                )
            )

        new_status: TaskStatus | None = changes.get("status")

        if new_status is TaskStatus.REDO and old.status is TaskStatus.DONE:
            new_logs.append(
                audit.create_log_entry(audit.redo_message(actor.name, old.evaluation), actor.id)
            )
            changes["evaluation"] = None
            if old.evaluation is not None:
                changes["old_evaluation"] = old.evaluation
        else:
            resulting_status = new_status or old.status
            if "result_content" in changes and (changes["result_content"] or "") != (
                old.result_content or ""
            ):
                new_logs.append(
                    audit.create_log_entry(
                        audit.result_message(
                            actor.name, changes["result_content"] or "", resulting_status
                        ),
                        actor.id,
                    )
                )
            elif new_status is not None and new_status != old.status:
                new_logs.append(
                    audit.create_log_entry(
                        audit.status_message(actor.name, new_status), actor.id
                    )
                )

            if (
                "evaluation" in changes
                and changes["evaluation"] != old.evaluation
                and actor.role.is_privileged
            ):
                new_logs.append(
                    audit.create_log_entry(
                        audit.evaluation_message(actor.name, changes["evaluation"]),
                        actor.id,
                    )
                )

        updated = replace(old, **changes, logs=[*old.logs, *new_logs])
        self._commit([updated if i == idx else t for i, t in enumerate(self._tasks)])

        logger.debug(
            "Task updated id=%s by=%s fields=%s new_logs=%d",
            task_id,
            actor.id,
            sorted(changes),
            len(new_logs),
        )
        return copy.deepcopy(updated)

    def delete_task(self, task_id: str) -> None:
        """Hard removal. No undo, no effect on other tasks."""
        idx = self._index_of(task_id)
        self._commit([t for i, t in enumerate(self._tasks) if i != idx])
        logger.info("Task deleted id=%s", task_id)

    def toggle_task_status(self, actor: User, task_id: str) -> Task:
        return self.update_task(actor, task_id, {"status": TaskStatus.DONE})

    def change_status(self, actor: User, task_id: str, target: TaskStatus | str) -> Task:
        """Guarded status move; raises IllegalTransitionError for moves the workflow forbids."""
        try:
            status = TaskStatus(target)
        except ValueError:
            raise ValidationError("status", f"Trạng thái không hợp lệ: {target}") from None
        task = self._tasks[self._index_of(task_id)]
        check_transition(task, status, actor)
        return self.update_task(actor, task_id, {"status": status})

    def evaluate(self, actor: User, task_id: str, evaluation: Evaluation | str) -> Task:
        """Manager verdict on a DONE/CLOSED task."""
        task = self._tasks[self._index_of(task_id)]
        if not can_evaluate(actor, task):
            raise ValidationError(
                "evaluation", "Chỉ quản lý được đánh giá công việc đã hoàn thành"
            )
        return self.update_task(actor, task_id, {"evaluation": evaluation})
