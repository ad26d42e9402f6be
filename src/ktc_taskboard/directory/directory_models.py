# src/ktc_taskboard/directory/directory_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

ONLINE = 1
OFFLINE = 2

UNASSIGNED_DEPARTMENT = "Chưa phân bổ"


class Role(StrEnum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    STAFF = "STAFF"

    @property
    def is_privileged(self) -> bool:
        """Admins and managers: may reassign, evaluate, cancel and close."""
        return self is not Role.STAFF

    @property
    def sees_everything(self) -> bool:
        return self in (Role.SUPER_ADMIN, Role.ADMIN)

    @classmethod
    def from_raw(cls, raw: Any) -> Role:
        if not raw:
            return cls.STAFF
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            return cls.STAFF


class Gender(StrEnum):
    MALE = "Nam"
    FEMALE = "Nữ"
    OTHER = "Khác"

    @classmethod
    def from_raw(cls, raw: Any) -> Gender:
        if not raw:
            return cls.MALE
        try:
            return cls(str(raw).strip())
        except ValueError:
            return cls.MALE


class SyncAction(StrEnum):
    """Actions announced to the directory write webhook."""

    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"
    CREATE_DEPT = "CREATE_DEPT"
    UPDATE_DEPT = "UPDATE_DEPT"
    DELETE_DEPT = "DELETE_DEPT"


@dataclass(slots=True)
class User:
    id: str
    name: str
    username: str
    email: str = ""
    role: Role = Role.STAFF
    department_id: str | None = None
    is_online: int = OFFLINE
    phone_number: str = ""
    # Plaintext, as in the spreadsheet the directory is synced from.
    password: str = ""
    gender: Gender = Gender.MALE
    image_avatar: str | None = None

    created_at: str | None = None
    created_by: str | None = None
    updated_at: str | None = None
    updated_by: str | None = None
    deleted_at: str | None = None
    deleted_by: str | None = None

    @property
    def is_active(self) -> bool:
        return not self.deleted_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "email": self.email,
            "role": self.role.value,
            "departmentId": self.department_id,
            "isOnline": self.is_online,
            "phoneNumber": self.phone_number,
            "password": self.password,
            "gender": self.gender.value,
            "image_avatar": self.image_avatar,
            "createdAt": self.created_at,
            "createdBy": self.created_by,
            "updatedAt": self.updated_at,
            "updatedBy": self.updated_by,
            "deletedAt": self.deleted_at,
            "deletedBy": self.deleted_by,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> User:
        online = d.get("isOnline")
        return cls(
            id=str(d.get("id") or ""),
            name=str(d.get("name") or ""),
            username=str(d.get("username") or ""),
            email=str(d.get("email") or ""),
            role=Role.from_raw(d.get("role")),
            department_id=d.get("departmentId") or None,
            is_online=ONLINE if online in (ONLINE, True) else OFFLINE,
            phone_number=str(d.get("phoneNumber") or ""),
            password=str(d.get("password") or ""),
            gender=Gender.from_raw(d.get("gender")),
            image_avatar=d.get("image_avatar") or None,
            created_at=d.get("createdAt"),
            created_by=d.get("createdBy"),
            updated_at=d.get("updatedAt"),
            updated_by=d.get("updatedBy"),
            deleted_at=d.get("deletedAt"),
            deleted_by=d.get("deletedBy"),
        )


@dataclass(slots=True)
class Department:
    id: str
    name: str
    created_at: str | None = None
    created_by: str | None = None
    updated_at: str | None = None
    updated_by: str | None = None
    deleted_at: str | None = None
    deleted_by: str | None = None

    @property
    def is_active(self) -> bool:
        return not self.deleted_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "createdBy": self.created_by,
            "updatedAt": self.updated_at,
            "updatedBy": self.updated_by,
            "deletedAt": self.deleted_at,
            "deletedBy": self.deleted_by,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Department:
        return cls(
            id=str(d.get("id") or ""),
            name=str(d.get("name") or ""),
            created_at=d.get("createdAt"),
            created_by=d.get("createdBy"),
            updated_at=d.get("updatedAt"),
            updated_by=d.get("updatedBy"),
            deleted_at=d.get("deletedAt"),
            deleted_by=d.get("deletedBy"),
        )


DEFAULT_DEPARTMENTS: tuple[tuple[str, str], ...] = (
    ("1", "Kinh doanh"),
    ("2", "Kế toán"),
    ("3", "Nhân sự"),
    ("4", "CSKH"),
    ("5", "Media"),
    ("6", "Thủ kho"),
    ("7", "Mật cách"),
    ("8", "Tele sale"),
    ("9", "Vận hành"),
    ("10", "Nhập liệu"),
)


def seed_departments() -> list[Department]:
    return [Department(id=i, name=n) for i, n in DEFAULT_DEPARTMENTS]


def seed_users() -> list[User]:
    return [
        User(
            id="1",
            name="Hệ thống",
            username="admin",
            email="admin@system.com",
            role=Role.SUPER_ADMIN,
            is_online=ONLINE,
            phone_number="0901234567",
            gender=Gender.MALE,
            password="admin",
            created_at="2024-01-01T08:00:00Z",
            created_by="0",
        )
    ]
