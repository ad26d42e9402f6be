# src/ktc_taskboard/cli/commands.py

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

from ..core.errors import TaskboardError
from ..core.state import AppState
from ..directory.directory_models import User
from ..llm.advisor import friendly_llm_error_message
from ..storage.local_storage import KEY_READ_URL
from ..tasks.permissions import can_delete
from ..tasks.reports import ReportPeriod, department_report, group_by_quadrant
from ..tasks.task_models import Quadrant, Task, TaskStatus, TaskTemplate
from .bootstrap import read_url

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], str]

logger = logging.getLogger(__name__)

LOGIN_REQUIRED = "Please log in first: /login <username> <password>."


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Core errors (validation, not found, illegal transition, sync) are
        rendered as their message.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return handler(state, args, emit)
        except TaskboardError as e:
            logger.info("Command /%s rejected: %s", name, e)
            return f"[ERROR] {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _format_task(state: AppState, t: Task) -> str:
    assignee = state.directory.get_user(t.assignee_id)
    who = assignee.name if assignee else "N/A"
    line = f"  [{t.id}] {t.title} | {t.status.display_title} | {who}"
    if t.evaluation is not None:
        line += f" | {t.evaluation.value}"
    return line


def _emit(emit: CommandEmitter | None, text: str) -> None:
    if emit:
        with contextlib.suppress(Exception):
            emit(text)


def _user(state: AppState) -> User | None:
    return state.session.current_user


def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) < 2:
        return "Usage: /login <username> <password>"
    user = state.session.authenticate(args[0], " ".join(args[1:]))
    if user is None:
        return "Sai tên đăng nhập hoặc mật khẩu."
    state.session.login(user)
    return f"Xin chào {user.name} ({user.role.value})."


def cmd_logout(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if _user(state) is None:
        return "Not logged in."
    state.session.logout()
    return "Logged out."


def cmd_whoami(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    user = _user(state)
    if user is None:
        recent = ", ".join(u.username for u in state.session.recent_users())
        return f"Not logged in. Recent accounts: {recent or '-'}"
    dept = state.directory.department_name(user.department_id)
    return f"{user.name} (@{user.username}) | {user.role.value} | {dept}"


def cmd_tasks(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    user = _user(state)
    if user is None:
        return LOGIN_REQUIRED
    tasks = state.tasks.visible_tasks(user)
    if not tasks:
        return "No tasks."
    lines = [f"Tasks ({len(tasks)}):"]
    for quadrant, items in group_by_quadrant(tasks).items():
        if not items:
            continue
        lines.append(f"{quadrant.value} {quadrant.display_title} ({quadrant.description}):")
        lines.extend(_format_task(state, t) for t in items)
    return "\n".join(lines)


def cmd_stats(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    user = _user(state)
    if user is None:
        return LOGIN_REQUIRED
    stats = state.tasks.stats(user)
    counters = ", ".join(f"{k}={v}" for k, v in stats.as_dict().items())
    return f"Stats: {counters}\nCompletion: {stats.completion_percent}%"


def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /add <title>        -> quadrant suggested by the advisor
    /add Q2 <title>     -> explicit quadrant
    """
    user = _user(state)
    if user is None:
        return LOGIN_REQUIRED
    if not args:
        return "Usage: /add [Q1|Q2|Q3|Q4] <title>"

    quadrant: Quadrant | None = None
    if args[0].upper() in Quadrant.__members__:
        quadrant = Quadrant(args[0].upper())
        args = args[1:]
    title = " ".join(args)

    if quadrant is None and title.strip():
        try:
            quadrant = state.advisor.analyze(title, "").quadrant
        except RuntimeError as e:
            _emit(emit, f"[LLM] {friendly_llm_error_message(e)}")
            quadrant = Quadrant.Q1

    created = state.tasks.add_task(
        user, TaskTemplate(title=title, quadrant=quadrant or Quadrant.Q1)
    )
    return "Created:\n" + "\n".join(_format_task(state, t) for t in created)


def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    user = _user(state)
    if user is None:
        return LOGIN_REQUIRED
    if len(args) != 2:
        names = ", ".join(s.value for s in TaskStatus)
        return f"Usage: /status <task_id> <STATUS>  ({names})"
    task = state.tasks.change_status(user, args[0], args[1].upper())
    return "Updated:\n" + _format_task(state, task)


def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    user = _user(state)
    if user is None:
        return LOGIN_REQUIRED
    if len(args) != 1:
        return "Usage: /done <task_id>"
    task = state.tasks.change_status(user, args[0], TaskStatus.DONE)
    return "Updated:\n" + _format_task(state, task)


def cmd_evaluate(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    user = _user(state)
    if user is None:
        return LOGIN_REQUIRED
    if len(args) < 2:
        return "Usage: /evaluate <task_id> <Xuất Sắc|Tốt|Bình thường|Tệ>"
    task = state.tasks.evaluate(user, args[0], " ".join(args[1:]))
    return "Updated:\n" + _format_task(state, task)


def cmd_delete(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    user = _user(state)
    if user is None:
        return LOGIN_REQUIRED
    if len(args) != 1:
        return "Usage: /delete <task_id>"
    task = state.tasks.get(args[0])
    if not can_delete(user, task):
        return "Bạn không có quyền xóa công việc này."
    state.tasks.delete_task(task.id)
    return f"Deleted {task.id}."


def cmd_users(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if _user(state) is None:
        return LOGIN_REQUIRED
    users = state.directory.active_users()
    lines = [f"Users ({len(users)}), last sync: {state.directory.last_sync or 'never'}"]
    for u in users:
        dept = state.directory.department_name(u.department_id)
        lines.append(f"  [{u.id}] {u.name} (@{u.username}) | {u.role.value} | {dept}")
    return "\n".join(lines)


def cmd_sync(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /sync         -> pull the directory from the stored read URL
    /sync <url>   -> store a new read URL, then pull
    """
    user = _user(state)
    if user is None:
        return LOGIN_REQUIRED
    if not user.role.sees_everything:
        return "Chỉ quản trị viên được đồng bộ nhân sự."
    if args:
        state.storage.set(KEY_READ_URL, args[0])

    _emit(emit, "[SYNC] Fetching directory...")
    result = asyncio.run(state.sync.run(read_url(state)))
    msg = f"Synced {len(result.users)} users"
    if result.dropped:
        msg += f" ({result.dropped} records skipped)"
    return msg + "."


def cmd_report(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    user = _user(state)
    if user is None:
        return LOGIN_REQUIRED
    if not user.role.is_privileged:
        return "Chỉ quản lý được xem báo cáo."
    try:
        period = ReportPeriod(args[0].lower()) if args else ReportPeriod.ALL
    except ValueError:
        return "Usage: /report [all|week|month]"

    reports = department_report(
        user,
        state.tasks.all_tasks(),
        state.directory.all_users(),
        state.directory.all_departments(),
        period,
    )
    if not reports:
        return "No data."
    lines: list[str] = []
    for r in reports:
        lines.append(f"{r.name}: {r.done}/{r.total} ({r.percentage}%)")
        for m in r.members:
            lines.append(
                f"  {m.user.name}: done={m.done} pending={m.pending} ({m.percentage}%)"
            )
    return "\n".join(lines)


def cmd_analyze(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /analyze <title>"
    try:
        advice = state.advisor.analyze(" ".join(args), "")
    except RuntimeError as e:
        return f"[LLM] {friendly_llm_error_message(e)}"
    q = advice.quadrant
    return f"{q.value} {q.display_title} ({q.description})\n{advice.reasoning}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("login", cmd_login, help_text="Log in: /login <username> <password>.")
registry.register("logout", cmd_logout, help_text="Log out.")
registry.register("whoami", cmd_whoami, help_text="Show the logged-in user.")
registry.register("tasks", cmd_tasks, help_text="List visible tasks by quadrant.")
registry.register("stats", cmd_stats, help_text="Show your task counters.")
registry.register("add", cmd_add, help_text="Create a task: /add [Q1..Q4] <title>.")
registry.register("status", cmd_status, help_text="Change status: /status <task_id> <STATUS>.")
registry.register("done", cmd_done, help_text="Mark a task done: /done <task_id>.")
registry.register(
    "evaluate", cmd_evaluate, help_text="Evaluate a finished task: /evaluate <task_id> <value>."
)
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <task_id>.")
registry.register("users", cmd_users, help_text="List active users.")
registry.register("sync", cmd_sync, help_text="Pull the staff directory: /sync [read_url].")
registry.register("report", cmd_report, help_text="Department report: /report [all|week|month].")
registry.register("analyze", cmd_analyze, help_text="Suggest a quadrant: /analyze <title>.")
