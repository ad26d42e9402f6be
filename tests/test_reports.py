# tests/test_reports.py

from __future__ import annotations

from datetime import UTC, datetime

from ktc_taskboard.directory.directory_models import (
    UNASSIGNED_DEPARTMENT,
    Department,
    Role,
    User,
)
from ktc_taskboard.tasks.reports import (
    ReportPeriod,
    department_report,
    group_by_quadrant,
    period_start,
)
from ktc_taskboard.tasks.task_models import Evaluation, Quadrant, Task, TaskStatus

NOW = datetime(2024, 3, 31, 12, 0, tzinfo=UTC)

ADMIN = User(id="1", name="Admin", username="admin", role=Role.ADMIN)
BOSS = User(id="2", name="Trần", username="tran", role=Role.MANAGER, department_id="d1")
LE = User(id="3", name="Lê", username="le", department_id="d1")
PHAM = User(id="4", name="Phạm", username="pham", department_id="d2")
GONE = User(id="5", name="Cũ", username="cu", department_id="d1", deleted_at="2024-01-01")
LOOSE = User(id="6", name="Vũ", username="vu", department_id="d-removed")

USERS = [ADMIN, BOSS, LE, PHAM, GONE, LOOSE]
DEPTS = [Department(id="d1", name="Kinh doanh"), Department(id="d2", name="Kế toán")]


def _task(
    task_id: str,
    assignee: str,
    created_at: str,
    status: TaskStatus = TaskStatus.TODO,
    evaluation: Evaluation | None = None,
    quadrant: Quadrant = Quadrant.Q1,
) -> Task:
    return Task(
        id=task_id,
        title=task_id,
        description="",
        quadrant=quadrant,
        status=status,
        assignee_id=assignee,
        creator_id="1",
        created_at=created_at,
        evaluation=evaluation,
    )


TASKS = [
    _task("a", "3", "2024-03-30T08:00:00.000Z", TaskStatus.DONE, Evaluation.GOOD),
    _task("b", "3", "2024-03-10T08:00:00.000Z", TaskStatus.IN_PROGRESS),
    _task("c", "3", "2024-01-05T08:00:00.000Z", TaskStatus.DONE, Evaluation.BAD),
    _task("d", "4", "2024-03-29T08:00:00.000Z", TaskStatus.CLOSED),
    _task("e", "5", "2024-03-29T08:00:00.000Z", TaskStatus.DONE),
]


def test_group_by_quadrant_keeps_every_quadrant() -> None:
    groups = group_by_quadrant(
        [
            _task("x", "3", "", quadrant=Quadrant.Q2),
            _task("y", "3", "", quadrant=Quadrant.Q2),
            _task("z", "3", "", quadrant=Quadrant.Q4),
        ]
    )
    assert list(groups) == [Quadrant.Q1, Quadrant.Q2, Quadrant.Q3, Quadrant.Q4]
    assert [t.id for t in groups[Quadrant.Q2]] == ["x", "y"]
    assert groups[Quadrant.Q1] == []


def test_period_start() -> None:
    assert period_start(ReportPeriod.ALL, NOW) is None
    assert period_start("week", NOW) == datetime(2024, 3, 24, 12, 0, tzinfo=UTC)
    # Mar 31 -> Feb 29 (leap year), start of day.
    assert period_start("month", NOW) == datetime(2024, 2, 29, tzinfo=UTC)
    jan = datetime(2024, 1, 15, 9, 30, tzinfo=UTC)
    assert period_start("month", jan) == datetime(2023, 12, 15, tzinfo=UTC)


def test_admin_report_all_time() -> None:
    reports = department_report(ADMIN, TASKS, USERS, DEPTS, ReportPeriod.ALL, now=NOW)
    by_id = {r.department_id: r for r in reports}

    # Admin has no department: grouped as unassigned with zero tasks.
    assert set(by_id) == {"", "d1", "d2", "d-removed"}
    assert by_id[""].name == UNASSIGNED_DEPARTMENT
    assert by_id["d-removed"].name == UNASSIGNED_DEPARTMENT

    d1 = by_id["d1"]
    assert d1.name == "Kinh doanh"
    # Soft-deleted member is excluded.
    assert [m.user.id for m in d1.members] == ["2", "3"]
    le = d1.members[1]
    assert (le.done, le.pending, le.total) == (2, 1, 3)
    assert le.percentage == 67
    assert le.evaluations[Evaluation.GOOD] == 1
    assert le.evaluations[Evaluation.BAD] == 1
    assert le.evaluations[Evaluation.NORMAL] == 0
    # Newest first.
    assert [t.id for t in le.tasks] == ["a", "b", "c"]
    assert (d1.done, d1.total) == (2, 3)

    # CLOSED is not counted as done.
    pham = by_id["d2"].members[0]
    assert (pham.done, pham.pending) == (0, 1)


def test_period_filters_by_creation_date() -> None:
    week = department_report(ADMIN, TASKS, USERS, DEPTS, "week", now=NOW)
    le = next(m for r in week if r.department_id == "d1" for m in r.members if m.user.id == "3")
    assert [t.id for t in le.tasks] == ["a"]

    month = department_report(ADMIN, TASKS, USERS, DEPTS, "month", now=NOW)
    le = next(m for r in month if r.department_id == "d1" for m in r.members if m.user.id == "3")
    assert [t.id for t in le.tasks] == ["a", "b"]


def test_manager_sees_only_own_department() -> None:
    reports = department_report(BOSS, TASKS, USERS, DEPTS, now=NOW)
    assert [r.department_id for r in reports] == ["d1"]


def test_query_filters_members_but_not_totals() -> None:
    reports = department_report(ADMIN, TASKS, USERS, DEPTS, now=NOW, query="trần")
    assert [r.department_id for r in reports] == ["d1"]
    (d1,) = reports
    assert [m.user.id for m in d1.members] == ["2"]
    assert (d1.done, d1.total) == (2, 3)


def test_percentage_rounds_half_up() -> None:
    tasks = [_task(f"t{i}", "4", "2024-03-01T00:00:00Z") for i in range(8)]
    tasks[0] = _task("t0", "4", "2024-03-01T00:00:00Z", TaskStatus.DONE)
    (d2,) = [
        r for r in department_report(ADMIN, tasks, USERS, DEPTS, now=NOW)
        if r.department_id == "d2"
    ]
    # 1/8 = 12.5%
    assert d2.percentage == 13
