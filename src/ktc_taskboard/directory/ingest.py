# src/ktc_taskboard/directory/ingest.py

"""
Directory ingestion: webhook payload -> canonical User records.

Pipeline:
    fetch_directory()  GET the read webhook
    parse_payload()    strict JSON, then repairs (json_repair.py)
    locate_records()   find the record array in the parsed structure
    normalize_users()  per-record defaults; one bad record never sinks the rest

sync_users() runs the whole thing and installs the result in the
DirectoryStore. Nothing is replaced unless the whole pipeline succeeds.
"""

from __future__ import annotations

import json
import logging
import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..core.errors import LinkExpiredError, PayloadFormatError, SyncError
from ..core.ids import random_id, utc_now_iso
from .directory_models import OFFLINE, ONLINE, Gender, Role, User
from .directory_store import DirectoryStore
from .http import client_scope
from .json_repair import parse_payload

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Thành viên mới"
DEFAULT_PASSWORD = "123456"

NO_ARRAY_MESSAGE = "Không tìm thấy mảng dữ liệu hợp lệ trong phản hồi API."
NOTHING_EXTRACTED_MESSAGE = (
    "Không thể trích xuất dữ liệu nhân sự. Vui lòng kiểm tra lại cấu trúc JSON."
)
LINK_EXPIRED_MESSAGE = (
    "Liên kết Webhook đã hết hạn. Vui lòng cập nhật lại URL trong phần cấu hình."
)

# Named key first, then the column index some sheet exports use instead.
FIELD_KEYS: dict[str, tuple[str, str]] = {
    "id": ("id", "0"),
    "username": ("username", "1"),
    "name": ("name", "2"),
    "email": ("email", "3"),
    "role": ("role", "4"),
    "departmentId": ("departmentId", "5"),
    "phoneNumber": ("phoneNumber", "6"),
    "password": ("password", "7"),
    "gender": ("gender", "8"),
}

_WHITESPACE = re.compile(r"\s")
_ONLINE_VALUES = {ONLINE, True, "1", "true", "TRUE", "True", "online"}


@dataclass(slots=True)
class IngestResult:
    users: list[User] = field(default_factory=list)
    # Records that were present but produced no user.
    dropped: int = 0
    # Field name -> how many users got the fallback value for it.
    defaults: dict[str, int] = field(default_factory=dict)


def locate_records(data: Any) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        inner = data.get("data")
        if isinstance(inner, list):
            return inner
        if isinstance(inner, dict):
            return [inner]
    raise PayloadFormatError(NO_ARRAY_MESSAGE)


def _unwrap(item: dict[str, Any]) -> Any:
    """Sheets sometimes store the whole record as a JSON string in a `json` column."""
    inner = item.get("json")
    if isinstance(inner, str):
        return json.loads(inner)
    if isinstance(inner, dict):
        return inner
    return item


def _pick(data: dict[str, Any], name: str) -> Any:
    for key in FIELD_KEYS[name]:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def _online_flag(value: Any) -> int:
    if isinstance(value, (bool, int, str)) and value in _ONLINE_VALUES:
        return ONLINE
    return OFFLINE


def _as_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def normalize_user(raw: Any, defaults: Counter[str] | None = None) -> User | None:
    """
    One raw record -> User, or None when it has neither an id nor a name.

    Every other missing field gets a fallback; `defaults` (when given) counts
    which fields did.
    """
    if not isinstance(raw, dict):
        return None
    data = _unwrap(raw)
    if not isinstance(data, dict):
        raise TypeError(f"record payload is {type(data).__name__}, expected object")

    raw_id = _pick(data, "id")
    raw_name = _pick(data, "name")
    raw_username = _pick(data, "username")
    if raw_id is None and raw_name is None and raw_username is None:
        return None

    used: list[str] = []

    def fallback(field_name: str, value: Any, default: str) -> str:
        if value is None:
            used.append(field_name)
            return default
        return _as_text(value)

    user_id = fallback("id", raw_id, random_id())
    name = fallback("name", raw_name, DEFAULT_NAME)
    if raw_username is not None:
        username = _as_text(raw_username)
    elif raw_name is not None:
        username = _WHITESPACE.sub("", _as_text(raw_name).lower())
        used.append("username")
    else:
        username = f"user_{user_id}"
        used.append("username")

    raw_role = _pick(data, "role")
    role = Role.from_raw(raw_role)
    if raw_role is None or _as_text(raw_role).upper() != role.value:
        used.append("role")

    raw_gender = _pick(data, "gender")
    gender = Gender.from_raw(raw_gender)
    if raw_gender is None or _as_text(raw_gender) != gender.value:
        used.append("gender")

    department = _pick(data, "departmentId")
    avatar = data.get("image_avatar")
    created_at = data.get("createdAt")
    if not created_at:
        used.append("createdAt")

    user = User(
        id=user_id,
        name=name,
        username=username,
        email=fallback("email", _pick(data, "email"), ""),
        role=role,
        department_id=_as_text(department) if department is not None else None,
        is_online=_online_flag(data.get("isOnline")),
        phone_number=fallback("phoneNumber", _pick(data, "phoneNumber"), ""),
        password=fallback("password", _pick(data, "password"), DEFAULT_PASSWORD),
        gender=gender,
        image_avatar=str(avatar) if avatar else None,
        created_at=str(created_at) if created_at else utc_now_iso(),
    )
    if defaults is not None:
        defaults.update(used)
    return user


def normalize_users(records: Iterable[Any]) -> IngestResult:
    result = IngestResult()
    counts: Counter[str] = Counter()
    for index, raw in enumerate(records):
        try:
            user = normalize_user(raw, counts)
        except Exception:
            logger.exception("Directory record %d could not be normalized; skipped.", index)
            user = None
        if user is None:
            result.dropped += 1
            continue
        result.users.append(user)
    result.defaults = dict(counts)
    if result.dropped:
        logger.warning(
            "Directory ingest dropped=%d kept=%d", result.dropped, len(result.users)
        )
    return result


def ingest_text(text: str) -> IngestResult:
    """Parse + locate + normalize an already-fetched payload."""
    records = locate_records(parse_payload(text))
    result = normalize_users(records)
    if records and not result.users:
        raise PayloadFormatError(NOTHING_EXTRACTED_MESSAGE)
    return result


async def fetch_directory(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
) -> IngestResult:
    if not url.strip():
        raise SyncError("Chưa cấu hình URL đọc dữ liệu nhân sự.")

    try:
        async with client_scope(client, timeout) as http:
            response = await http.get(url)
    except httpx.HTTPError as e:
        logger.error("Directory fetch failed url=%s err=%s", url, e)
        raise SyncError(f"Không thể kết nối máy chủ: {e}") from e

    if response.status_code == 410:
        raise LinkExpiredError(LINK_EXPIRED_MESSAGE, status_code=410)
    if not response.is_success:
        raise SyncError(
            f"Lỗi kết nối máy chủ (HTTP {response.status_code})",
            status_code=response.status_code,
        )

    result = ingest_text(response.text)
    logger.info(
        "Directory fetched users=%d dropped=%d defaults=%s",
        len(result.users),
        result.dropped,
        result.defaults,
    )
    return result


async def sync_users(
    directory: DirectoryStore,
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
) -> IngestResult:
    """Fetch and install. On any error the directory is left as it was."""
    result = await fetch_directory(url, client=client, timeout=timeout)
    directory.replace_users(result.users)
    return result


class DirectorySync:
    """
    Single-flight wrapper around sync_users().

    A second run() while one is outstanding raises SyncError instead of
    racing the first one.
    """

    def __init__(
        self,
        directory: DirectoryStore,
        *,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._directory = directory
        self._timeout = timeout
        self._client = client
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def run(self, url: str) -> IngestResult:
        if self._running:
            raise SyncError("Đang đồng bộ dữ liệu, vui lòng đợi.")
        self._running = True
        try:
            return await sync_users(
                self._directory, url, client=self._client, timeout=self._timeout
            )
        finally:
            self._running = False
