# src/ktc_taskboard/directory/directory_store.py

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from ..core.errors import DepartmentNotFoundError, UserNotFoundError, ValidationError
from ..core.ids import new_entity_id, utc_now_iso
from ..core.ports import KeyValueStorage, SyncNotifier
from ..storage.local_storage import (
    KEY_DEPARTMENTS,
    KEY_LAST_SYNC,
    KEY_USERS,
    load_json,
    save_json,
)
from .directory_models import (
    OFFLINE,
    ONLINE,
    UNASSIGNED_DEPARTMENT,
    Department,
    Gender,
    Role,
    SyncAction,
    User,
    seed_departments,
    seed_users,
)

logger = logging.getLogger(__name__)

PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 12

USER_FIELDS = frozenset(
    {
        "name",
        "username",
        "email",
        "role",
        "department_id",
        "is_online",
        "phone_number",
        "password",
        "gender",
        "image_avatar",
    }
)

_NON_DIGIT = re.compile(r"\D")


def _decode_users(raw: Any) -> list[User]:
    if not isinstance(raw, list):
        raise TypeError("user collection must be a JSON array")
    return [User.from_dict(d) for d in raw if isinstance(d, dict)]


def _decode_departments(raw: Any) -> list[Department]:
    if not isinstance(raw, list):
        raise TypeError("department collection must be a JSON array")
    return [Department.from_dict(d) for d in raw if isinstance(d, dict)]


def validate_phone(phone: str) -> None:
    """Only digits count; an empty (digit-free) number is allowed."""
    digits = _NON_DIGIT.sub("", phone or "")
    if digits and not (PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS):
        raise ValidationError("phone_number", "SỐ ĐIỆN THOẠI PHẢI TỪ 10 ĐẾN 12 SỐ")


class DirectoryStore:
    """
    Users and departments.

    Both collections are soft-delete only: a removed record keeps its id and
    gets deleted_at/deleted_by, so old tasks still resolve names. Every
    local mutation is announced to the notifier (if any); a failed
    announcement is logged and never undoes the mutation.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        notifier: SyncNotifier | None = None,
    ) -> None:
        self._storage = storage
        self._notifier = notifier
        self._users: list[User] = load_json(storage, KEY_USERS, _decode_users, seed_users)
        self._departments: list[Department] = load_json(
            storage, KEY_DEPARTMENTS, _decode_departments, seed_departments
        )
        logger.info(
            "DirectoryStore ready users=%d departments=%d",
            len(self._users),
            len(self._departments),
        )

    # ---- persistence / notification ----

    def _persist_users(self) -> None:
        save_json(self._storage, KEY_USERS, [u.to_dict() for u in self._users])

    def _persist_departments(self) -> None:
        save_json(self._storage, KEY_DEPARTMENTS, [d.to_dict() for d in self._departments])

    def _notify(self, action: SyncAction, payload: dict[str, Any]) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify(action.value, payload)
        except Exception:
            logger.exception("Sync notification failed action=%s", action)

    # ---- lookups ----

    def get_user(self, user_id: str) -> User | None:
        """Any user, soft-deleted ones included (tasks keep pointing at them)."""
        for u in self._users:
            if u.id == user_id:
                return copy.copy(u)
        return None

    def get_department(self, department_id: str) -> Department | None:
        for d in self._departments:
            if d.id == department_id:
                return copy.copy(d)
        return None

    def all_users(self) -> list[User]:
        return [copy.copy(u) for u in self._users]

    def active_users(self) -> list[User]:
        return [copy.copy(u) for u in self._users if u.is_active]

    def department_users(self, department_id: str | None) -> list[User]:
        """Active members; None/"" selects the unassigned ones."""
        wanted = department_id or None
        return [
            copy.copy(u)
            for u in self._users
            if u.is_active and (u.department_id or None) == wanted
        ]

    def find_by_username(self, username: str) -> User | None:
        for u in self._users:
            if u.is_active and u.username == username:
                return copy.copy(u)
        return None

    def active_departments(self) -> list[Department]:
        return [copy.copy(d) for d in self._departments if d.is_active]

    def all_departments(self) -> list[Department]:
        return [copy.copy(d) for d in self._departments]

    def department_name(self, department_id: str | None) -> str:
        if not department_id:
            return UNASSIGNED_DEPARTMENT
        for d in self._departments:
            if d.id == department_id and d.is_active:
                return d.name
        return UNASSIGNED_DEPARTMENT

    @property
    def last_sync(self) -> str | None:
        return self._storage.get(KEY_LAST_SYNC)

    # ---- users ----

    def _user_index(self, user_id: str) -> int:
        for i, u in enumerate(self._users):
            if u.id == user_id:
                return i
        raise UserNotFoundError(user_id)

    def _check_username(self, username: str, *, exclude_id: str | None = None) -> None:
        for u in self._users:
            if u.is_active and u.id != exclude_id and u.username == username:
                raise ValidationError("username", f"Tên đăng nhập đã tồn tại: {username}")

    @staticmethod
    def _coerce_user_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for key, value in fields.items():
            if key not in USER_FIELDS:
                raise ValidationError(key, f"Trường không hợp lệ: {key}")
            if key == "role":
                try:
                    out[key] = Role(value)
                except ValueError:
                    raise ValidationError(key, f"Vai trò không hợp lệ: {value}") from None
            elif key == "gender":
                out[key] = Gender.from_raw(value)
            elif key == "is_online":
                out[key] = ONLINE if value in (ONLINE, True) else OFFLINE
            elif key in ("department_id", "image_avatar"):
                out[key] = str(value) if value else None
            elif key in ("name", "username"):
                out[key] = str(value or "").strip()
            else:
                out[key] = str(value or "")
        return out

    def add_user(self, actor: User, fields: Mapping[str, Any]) -> User:
        values = self._coerce_user_fields(fields)
        for required in ("name", "username", "password"):
            if not values.get(required):
                raise ValidationError(required, "Thiếu thông tin bắt buộc")
        validate_phone(values.get("phone_number", ""))
        self._check_username(values["username"])

        user = User(
            id=new_entity_id(u.id for u in self._users),
            **values,
            created_at=utc_now_iso(),
            created_by=actor.id,
        )
        self._users = [*self._users, user]
        self._persist_users()
        logger.info("User created id=%s username=%s by=%s", user.id, user.username, actor.id)
        self._notify(SyncAction.CREATE_USER, user.to_dict())
        return copy.copy(user)

    def update_user(self, actor: User, user_id: str, fields: Mapping[str, Any]) -> User:
        idx = self._user_index(user_id)
        values = self._coerce_user_fields(fields)
        for required in ("name", "username", "password"):
            if required in values and not values[required]:
                raise ValidationError(required, "Thiếu thông tin bắt buộc")
        if "phone_number" in values:
            validate_phone(values["phone_number"])
        if "username" in values:
            self._check_username(values["username"], exclude_id=user_id)

        user = copy.copy(self._users[idx])
        for key, value in values.items():
            setattr(user, key, value)
        user.updated_at = utc_now_iso()
        user.updated_by = actor.id

        self._users = [user if i == idx else u for i, u in enumerate(self._users)]
        self._persist_users()
        logger.info("User updated id=%s fields=%s by=%s", user_id, sorted(values), actor.id)
        self._notify(SyncAction.UPDATE_USER, user.to_dict())
        return copy.copy(user)

    def delete_user(self, actor: User, user_id: str) -> None:
        idx = self._user_index(user_id)
        user = copy.copy(self._users[idx])
        if not user.is_active:
            return
        user.deleted_at = utc_now_iso()
        user.deleted_by = actor.id

        self._users = [user if i == idx else u for i, u in enumerate(self._users)]
        self._persist_users()
        logger.info("User soft-deleted id=%s by=%s", user_id, actor.id)
        self._notify(SyncAction.DELETE_USER, user.to_dict())

    def assign_department(
        self, actor: User, user_id: str, department_id: str | None
    ) -> User:
        if department_id:
            dept = self.get_department(department_id)
            if dept is None or not dept.is_active:
                raise DepartmentNotFoundError(department_id)
        return self.update_user(actor, user_id, {"department_id": department_id or None})

    def replace_users(self, users: Iterable[User], synced_at: str | None = None) -> None:
        """Install a freshly ingested directory wholesale."""
        self._users = [copy.copy(u) for u in users]
        self._persist_users()
        stamp = synced_at or utc_now_iso()
        self._storage.set(KEY_LAST_SYNC, stamp)
        logger.info("Directory replaced users=%d at=%s", len(self._users), stamp)

    # ---- departments ----

    def _department_index(self, department_id: str) -> int:
        for i, d in enumerate(self._departments):
            if d.id == department_id:
                return i
        raise DepartmentNotFoundError(department_id)

    @staticmethod
    def _department_name(name: Any) -> str:
        cleaned = str(name or "").strip()
        if not cleaned:
            raise ValidationError("name", "Vui lòng nhập tên phòng ban")
        return cleaned

    def add_department(self, actor: User, name: str) -> Department:
        dept = Department(
            id=new_entity_id(d.id for d in self._departments),
            name=self._department_name(name),
            created_at=utc_now_iso(),
            created_by=actor.id,
        )
        self._departments = [*self._departments, dept]
        self._persist_departments()
        logger.info("Department created id=%s name=%s by=%s", dept.id, dept.name, actor.id)
        self._notify(SyncAction.CREATE_DEPT, dept.to_dict())
        return copy.copy(dept)

    def update_department(self, actor: User, department_id: str, name: str) -> Department:
        idx = self._department_index(department_id)
        dept = copy.copy(self._departments[idx])
        dept.name = self._department_name(name)
        dept.updated_at = utc_now_iso()
        dept.updated_by = actor.id

        self._departments = [dept if i == idx else d for i, d in enumerate(self._departments)]
        self._persist_departments()
        logger.info("Department renamed id=%s name=%s by=%s", dept.id, dept.name, actor.id)
        self._notify(SyncAction.UPDATE_DEPT, dept.to_dict())
        return copy.copy(dept)

    def delete_department(self, actor: User, department_id: str) -> None:
        """Soft delete; members keep the dangling reference and read as unassigned."""
        idx = self._department_index(department_id)
        dept = copy.copy(self._departments[idx])
        if not dept.is_active:
            return
        dept.deleted_at = utc_now_iso()
        dept.deleted_by = actor.id

        self._departments = [dept if i == idx else d for i, d in enumerate(self._departments)]
        self._persist_departments()
        logger.info("Department soft-deleted id=%s by=%s", department_id, actor.id)
        self._notify(SyncAction.DELETE_DEPT, dept.to_dict())
