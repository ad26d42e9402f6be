# src/ktc_taskboard/core/ids.py

from __future__ import annotations

import secrets
import string
import time
from collections.abc import Iterable
from datetime import UTC, datetime

_BASE36 = string.digits + string.ascii_lowercase


def _rand36(n: int) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(n))


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def new_task_id() -> str:
    return f"t-{_epoch_ms()}-{_rand36(9)}"


def new_log_id() -> str:
    return f"log-{_epoch_ms()}-{_rand36(5)}"


def new_entity_id(existing: Iterable[str] = ()) -> str:
    """Millisecond timestamp id for users/departments, bumped until unique."""
    taken = set(existing)
    n = _epoch_ms()
    while str(n) in taken:
        n += 1
    return str(n)


def random_id() -> str:
    return _rand36(9)


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp, millisecond precision, 'Z' suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(raw: str | None) -> datetime | None:
    if not raw:
        return None
    s = raw.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt
