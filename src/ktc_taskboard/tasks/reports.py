# src/ktc_taskboard/tasks/reports.py

"""
Read-only views over the task list: the Eisenhower matrix and the
per-department performance report.

Nothing here mutates tasks; callers pass in whatever snapshot they hold.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from ..core.ids import parse_iso
from ..directory.directory_models import UNASSIGNED_DEPARTMENT, Department, Role, User
from .task_models import Evaluation, Quadrant, Task, TaskStatus, percent


class ReportPeriod(StrEnum):
    ALL = "all"
    WEEK = "week"
    MONTH = "month"


@dataclass(slots=True)
class MemberReport:
    user: User
    done: int = 0
    pending: int = 0
    evaluations: dict[Evaluation, int] = field(
        default_factory=lambda: {e: 0 for e in Evaluation}
    )
    tasks: list[Task] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.done + self.pending

    @property
    def percentage(self) -> int:
        return percent(self.done, self.total)


@dataclass(slots=True)
class DepartmentReport:
    """Totals cover every active member, even those hidden by a name filter."""

    department_id: str
    name: str
    members: list[MemberReport] = field(default_factory=list)
    done: int = 0
    total: int = 0

    @property
    def percentage(self) -> int:
        return percent(self.done, self.total)


def group_by_quadrant(tasks: Iterable[Task]) -> dict[Quadrant, list[Task]]:
    """Matrix view. Every quadrant is present, possibly empty; input order kept."""
    groups: dict[Quadrant, list[Task]] = {q: [] for q in Quadrant}
    for t in tasks:
        groups[t.quadrant].append(t)
    return groups


def period_start(period: ReportPeriod | str, now: datetime) -> datetime | None:
    """
    Earliest creation time included in `period`; None for ALL.

    MONTH is "same day of the previous month", clamped to that month's
    last day (Mar 31 -> Feb 28/29).
    """
    p = ReportPeriod(period)
    if p is ReportPeriod.WEEK:
        return now - timedelta(days=7)
    if p is ReportPeriod.MONTH:
        year, month = (now.year - 1, 12) if now.month == 1 else (now.year, now.month - 1)
        day = min(now.day, calendar.monthrange(year, month)[1])
        return now.replace(
            year=year, month=month, day=day, hour=0, minute=0, second=0, microsecond=0
        )
    return None


def _in_period(task: Task, start: datetime | None) -> bool:
    if start is None:
        return True
    created = parse_iso(task.created_at)
    return created is not None and created >= start


def department_report(
    actor: User,
    tasks: Iterable[Task],
    users: Iterable[User],
    departments: Iterable[Department],
    period: ReportPeriod | str = ReportPeriod.ALL,
    now: datetime | None = None,
    query: str = "",
) -> list[DepartmentReport]:
    """
    Completion stats per department and per active member.

    A member's numbers cover the tasks assigned to them and created within
    `period`; "done" means status DONE, everything else counts as pending.
    Members without a department are grouped under "Chưa phân bổ".
    A MANAGER only gets their own department. `query` filters members by
    name (case-insensitive) after the department totals are computed.
    Departments left without members are omitted.
    """
    if now is None:
        now = datetime.now(UTC)
    start = period_start(period, now)

    names = {d.id: d.name for d in departments if d.is_active}
    active = [u for u in users if u.is_active]
    task_list = sorted(tasks, key=lambda t: t.created_at, reverse=True)

    dept_ids = list(dict.fromkeys(u.department_id or "" for u in active))
    if actor.role is Role.MANAGER and actor.department_id:
        dept_ids = [d for d in dept_ids if d == actor.department_id]

    needle = query.strip().lower()
    reports: list[DepartmentReport] = []

    for dept_id in dept_ids:
        members: list[MemberReport] = []
        for user in active:
            if (user.department_id or "") != dept_id:
                continue
            member = MemberReport(user=user)
            for t in task_list:
                if t.assignee_id != user.id or not _in_period(t, start):
                    continue
                member.tasks.append(t)
                if t.status is TaskStatus.DONE:
                    member.done += 1
                else:
                    member.pending += 1
                if t.evaluation is not None:
                    member.evaluations[t.evaluation] += 1
            members.append(member)

        if not members:
            continue
        visible = [m for m in members if needle in m.user.name.lower()] if needle else members
        if not visible:
            continue
        reports.append(
            DepartmentReport(
                department_id=dept_id,
                name=names.get(dept_id, UNASSIGNED_DEPARTMENT),
                members=visible,
                done=sum(m.done for m in members),
                total=sum(m.total for m in members),
            )
        )

    return reports
