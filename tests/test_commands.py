# tests/test_commands.py

from __future__ import annotations

import httpx

from ktc_taskboard.cli.commands import LOGIN_REQUIRED, CommandRegistry, registry
from ktc_taskboard.directory.ingest import DirectorySync
from ktc_taskboard.storage.local_storage import KEY_READ_URL
from ktc_taskboard.tasks.task_models import Evaluation, Quadrant, TaskStatus

from .fakes import mock_client


def test_command_registry_routes_and_emits(state) -> None:
    reg = CommandRegistry()
    notes: list[str] = []

    def ping(state, args, emit):
        if emit is not None:
            emit("note")
        return "pong " + ",".join(args)

    reg.register("ping", ping, "ping", aliases=["p"])

    assert reg.handle(state, "/ping a b", emit=notes.append) == "pong a,b"
    assert reg.handle(state, "/P") == "pong "
    assert notes == ["note"]
    assert "/ping - ping" in reg.build_help()


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Empty command" in (reg.handle(state, "/") or "")
    assert "Unknown command" in (reg.handle(state, "/nope") or "")


def test_login_required(state) -> None:
    for line in ("/tasks", "/stats", "/add Q1 x", "/done t-1", "/users", "/sync"):
        assert registry.handle(state, line) == LOGIN_REQUIRED


def test_login_logout(state) -> None:
    assert registry.handle(state, "/login le wrong") == "Sai tên đăng nhập hoặc mật khẩu."
    assert registry.handle(state, "/login le pw-le") == "Xin chào Lê (STAFF)."
    assert "Kinh doanh" in registry.handle(state, "/whoami")
    assert registry.handle(state, "/logout") == "Logged out."
    assert "le" in registry.handle(state, "/whoami")


def test_task_lifecycle_through_commands(state) -> None:
    registry.handle(state, "/login admin admin")

    reply = registry.handle(state, "/add Q2 Lập kế hoạch quý")
    assert reply.startswith("Created:")
    (task,) = state.tasks.all_tasks()
    assert task.quadrant is Quadrant.Q2
    assert task.title == "Lập kế hoạch quý"

    listing = registry.handle(state, "/tasks")
    assert "Q2" in listing
    assert task.id in listing

    registry.handle(state, f"/done {task.id}")
    assert state.tasks.get(task.id).status is TaskStatus.DONE

    registry.handle(state, f"/evaluate {task.id} Tốt")
    assert state.tasks.get(task.id).evaluation is Evaluation.GOOD

    stats = registry.handle(state, "/stats")
    assert "done=1" in stats
    assert "Completion: 100%" in stats

    assert registry.handle(state, f"/delete {task.id}") == f"Deleted {task.id}."
    assert state.tasks.all_tasks() == []


def test_add_without_quadrant_asks_the_advisor(state) -> None:
    registry.handle(state, "/login admin admin")
    registry.handle(state, "/add Gửi báo cáo khách hàng gấp")
    (task,) = state.tasks.all_tasks()
    assert task.quadrant is Quadrant.Q1


def test_core_errors_are_rendered(state) -> None:
    registry.handle(state, "/login le pw-le")
    assert registry.handle(state, "/status t-missing DONE").startswith("[ERROR]")

    registry.handle(state, "/add Q1 Việc của Lê")
    (task,) = state.tasks.all_tasks()
    assert registry.handle(state, f"/status {task.id} CANCELLED").startswith("[ERROR]")
    assert registry.handle(state, f"/status {task.id} BOGUS").startswith("[ERROR]")


def test_privileged_commands(state) -> None:
    registry.handle(state, "/login le pw-le")
    assert registry.handle(state, "/report") == "Chỉ quản lý được xem báo cáo."
    assert registry.handle(state, "/sync") == "Chỉ quản trị viên được đồng bộ nhân sự."

    registry.handle(state, "/login tran pw-tran")
    report = registry.handle(state, "/report week")
    assert report.startswith("Kinh doanh:")
    assert "Kế toán" not in report
    assert registry.handle(state, "/report year") == "Usage: /report [all|week|month]"


def test_sync_without_url_is_an_error(state) -> None:
    registry.handle(state, "/login admin admin")
    assert registry.handle(state, "/sync").startswith("[ERROR]")


def test_sync_stores_url_and_replaces_directory(state) -> None:
    payload = '{"status":"success","data":[{"id":1,"name":"An","username":"an","role":"ADMIN"},]}'
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, text=payload)

    state.sync = DirectorySync(state.directory, client=mock_client(handler))
    registry.handle(state, "/login admin admin")

    assert registry.handle(state, "/sync https://hook.example.test/read") == "Synced 1 users."
    assert state.storage.get(KEY_READ_URL) == "https://hook.example.test/read"
    assert seen == ["https://hook.example.test/read"]
    assert [u.username for u in state.directory.active_users()] == ["an"]


def test_analyze_offline(state) -> None:
    reply = registry.handle(state, "/analyze Họp chiến lược")
    assert reply.startswith("Q2")
    assert "ngoại tuyến" in reply
