# src/ktc_taskboard/tasks/audit.py

"""
Audit-log entries for task mutations.

The wording is what managers read in the task history panel, so it stays
in Vietnamese and must not drift between releases.
"""

from __future__ import annotations

from ..core.ids import new_log_id, utc_now_iso
from .task_models import Evaluation, TaskLog, TaskStatus

UNKNOWN_NAME = "N/A"
NO_EVALUATION = "Chưa có"
PREVIEW_LENGTH = 30


def create_log_entry(content: str, user_id: str) -> TaskLog:
    return TaskLog(id=new_log_id(), content=content, timestamp=utc_now_iso(), user_id=user_id)


def preview(text: str, limit: int = PREVIEW_LENGTH) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def created_message(creator_name: str, assignee_name: str | None = None) -> str:
    """`assignee_name` is None for self-assignment."""
    msg = f"Tạo bởi {creator_name}"
    if assignee_name is not None:
        msg += f" giao cho {assignee_name}"
    return msg


def reassigned_message(actor_name: str, old_name: str | None, new_name: str | None) -> str:
    return (
        f"{actor_name} đã điều phối lại công việc từ "
        f"{old_name or UNKNOWN_NAME} sang {new_name or UNKNOWN_NAME}"
    )


def redo_message(actor_name: str, previous: Evaluation | None) -> str:
    value = previous.value if previous else NO_EVALUATION
    return f"{actor_name} yêu cầu thực hiện lại (Đánh giá cũ: {value})"


def result_message(actor_name: str, result_content: str, status: TaskStatus) -> str:
    return (
        f"{actor_name} báo cáo kết quả: {preview(result_content)} "
        f"(Trạng thái: {status.display_title})"
    )


def status_message(actor_name: str, status: TaskStatus) -> str:
    return f"{actor_name} đã cập nhật trạng thái thành {status.display_title}"


def evaluation_message(actor_name: str, evaluation: Evaluation | None) -> str:
    value = evaluation.value if evaluation else NO_EVALUATION
    return f"{actor_name} đã xác nhận đánh giá: {value}"
