# src/ktc_taskboard/tasks/task_models.py

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

UNKNOWN_STATUS_TITLE = "KHÔNG XÁC ĐỊNH"


def percent(part: int, total: int) -> int:
    """Whole percentage, halves rounded up; 0 when total is 0."""
    if total <= 0:
        return 0
    return math.floor(part * 100 / total + 0.5)


class Quadrant(StrEnum):
    """Eisenhower classification, chosen at creation."""

    Q1 = "Q1"  # urgent & important
    Q2 = "Q2"  # important, not urgent
    Q3 = "Q3"  # urgent, not important
    Q4 = "Q4"  # neither

    @property
    def display_title(self) -> str:
        return QUADRANT_TITLES[self]

    @property
    def description(self) -> str:
        return QUADRANT_DESCRIPTIONS[self]

    @classmethod
    def from_raw(cls, raw: Any) -> Quadrant:
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            return cls.Q1


QUADRANT_TITLES: dict[Quadrant, str] = {
    Quadrant.Q1: "Làm ngay",
    Quadrant.Q2: "Lên lịch",
    Quadrant.Q3: "Giao việc",
    Quadrant.Q4: "Loại bỏ",
}

QUADRANT_DESCRIPTIONS: dict[Quadrant, str] = {
    Quadrant.Q1: "Khẩn cấp & Quan trọng",
    Quadrant.Q2: "Không khẩn cấp & Quan trọng",
    Quadrant.Q3: "Khẩn cấp & Không quan trọng",
    Quadrant.Q4: "Không khẩn cấp & Không quan trọng",
}


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Legal moves between these live in tasks/transitions.py; the raw
    TaskStore.update_task write path accepts any value.
    """

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    REDO = "REDO"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"
    CLOSED = "CLOSED"

    @property
    def display_title(self) -> str:
        return STATUS_TITLES.get(self, UNKNOWN_STATUS_TITLE)

    @classmethod
    def from_raw(cls, raw: Any) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            return cls.TODO


STATUS_TITLES: dict[TaskStatus, str] = {
    TaskStatus.TODO: "CHƯA THỰC HIỆN",
    TaskStatus.IN_PROGRESS: "ĐANG THỰC HIỆN",
    TaskStatus.DONE: "HOÀN THÀNH",
    TaskStatus.REDO: "THỰC HIỆN LẠI",
    TaskStatus.PAUSED: "TẠM DỪNG",
    TaskStatus.CANCELLED: "HỦY",
    TaskStatus.CLOSED: "ĐÃ ĐÓNG",
}


class Evaluation(StrEnum):
    """Manager's verdict on a finished task."""

    EXCELLENT = "Xuất Sắc"
    GOOD = "Tốt"
    NORMAL = "Bình thường"
    BAD = "Tệ"

    @classmethod
    def from_raw(cls, raw: Any) -> Evaluation | None:
        if raw is None or raw == "":
            return None
        try:
            return cls(str(raw).strip())
        except ValueError:
            return None


@dataclass(slots=True)
class Attachment:
    name: str
    data: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "data": self.data}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Attachment:
        return cls(name=str(d.get("name") or ""), data=str(d.get("data") or ""))


@dataclass(slots=True)
class TaskLog:
    """One audit entry. Append-only: never edited or removed once attached to a task."""

    id: str
    content: str
    timestamp: str
    user_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "timestamp": self.timestamp,
            "userId": self.user_id,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TaskLog:
        return cls(
            id=str(d.get("id") or ""),
            content=str(d.get("content") or ""),
            timestamp=str(d.get("timestamp") or ""),
            user_id=str(d.get("userId") or ""),
        )


@dataclass(slots=True)
class Task:
    id: str
    title: str
    description: str
    quadrant: Quadrant
    status: TaskStatus
    assignee_id: str
    creator_id: str
    created_at: str

    follower_ids: list[str] = field(default_factory=list)
    department_id: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    attachments: list[Attachment] = field(default_factory=list)

    result_content: str | None = None
    result_attachments: list[Attachment] = field(default_factory=list)
    evaluation: Evaluation | None = None
    old_evaluation: Evaluation | None = None

    logs: list[TaskLog] = field(default_factory=list)

    def involves(self, user_id: str) -> bool:
        """Assignee, creator or follower."""
        return (
            self.assignee_id == user_id
            or self.creator_id == user_id
            or user_id in self.follower_ids
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "quadrant": self.quadrant.value,
            "status": self.status.value,
            "assigneeId": self.assignee_id,
            "creatorId": self.creator_id,
            "followerIds": list(self.follower_ids),
            "departmentId": self.department_id,
            "createdAt": self.created_at,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "attachments": [a.to_dict() for a in self.attachments],
            "resultContent": self.result_content,
            "resultAttachments": [a.to_dict() for a in self.result_attachments],
            "evaluation": self.evaluation.value if self.evaluation else None,
            "old_evaluation": self.old_evaluation.value if self.old_evaluation else None,
            "logs": [log.to_dict() for log in self.logs],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Task:
        return cls(
            id=str(d.get("id") or ""),
            title=str(d.get("title") or ""),
            description=str(d.get("description") or ""),
            quadrant=Quadrant.from_raw(d.get("quadrant")),
            status=TaskStatus.from_raw(d.get("status")),
            assignee_id=str(d.get("assigneeId") or ""),
            creator_id=str(d.get("creatorId") or ""),
            created_at=str(d.get("createdAt") or ""),
            follower_ids=[str(x) for x in (d.get("followerIds") or [])],
            department_id=d.get("departmentId") or None,
            start_date=d.get("startDate") or None,
            end_date=d.get("endDate") or None,
            attachments=[Attachment.from_dict(a) for a in (d.get("attachments") or [])],
            result_content=d.get("resultContent"),
            result_attachments=[
                Attachment.from_dict(a) for a in (d.get("resultAttachments") or [])
            ],
            evaluation=Evaluation.from_raw(d.get("evaluation")),
            old_evaluation=Evaluation.from_raw(d.get("old_evaluation")),
            logs=[TaskLog.from_dict(x) for x in (d.get("logs") or [])],
        )


@dataclass(slots=True)
class TaskTemplate:
    """Fields a creator fills in; shared by every task of a fan-out creation."""

    title: str
    description: str = ""
    quadrant: Quadrant = Quadrant.Q1
    start_date: str | None = None
    end_date: str | None = None
    attachments: list[Attachment] = field(default_factory=list)


@dataclass(slots=True)
class TaskStats:
    """Per-status counters over the tasks a user is personally involved in."""

    todo: int = 0
    in_progress: int = 0
    done: int = 0
    redo: int = 0
    paused: int = 0
    cancelled: int = 0
    closed: int = 0

    @property
    def total(self) -> int:
        return (
            self.todo
            + self.in_progress
            + self.done
            + self.redo
            + self.paused
            + self.cancelled
            + self.closed
        )

    @property
    def completion_percent(self) -> int:
        return percent(self.done, self.total)

    def as_dict(self) -> dict[str, int]:
        return {
            "todo": self.todo,
            "doing": self.in_progress,
            "done": self.done,
            "redo": self.redo,
            "paused": self.paused,
            "cancelled": self.cancelled,
            "closed": self.closed,
            "total": self.total,
        }


@dataclass(slots=True)
class QuadrantAdvice:
    quadrant: Quadrant
    reasoning: str
