# src/ktc_taskboard/directory/session.py

from __future__ import annotations

import logging

from ..core.ports import KeyValueStorage
from ..storage.local_storage import KEY_AUTH_USER, KEY_REMEMBERED_IDS, load_json, save_json
from .directory_models import User
from .directory_store import DirectoryStore

logger = logging.getLogger(__name__)

MAX_REMEMBERED = 5


def _decode_ids(raw: object) -> list[str]:
    if not isinstance(raw, list):
        raise TypeError("remembered ids must be a JSON array")
    return [str(x) for x in raw]


def _decode_user(raw: object) -> User:
    if not isinstance(raw, dict):
        raise TypeError("auth user must be a JSON object")
    return User.from_dict(raw)


class Session:
    """
    Who is using this installation right now.

    The signed-in user is persisted under `auth_user` so a restart keeps the
    session. The recent-accounts list (quick login) holds at most five ids,
    most recent first.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        directory: DirectoryStore,
        *,
        master_password: str | None = None,
    ) -> None:
        self._storage = storage
        self._directory = directory
        self._master_password = master_password or None
        self._current: User | None = load_json(storage, KEY_AUTH_USER, _decode_user, lambda: None)

    @property
    def current_user(self) -> User | None:
        """Fresh directory record for the signed-in id (renames/role changes apply)."""
        if self._current is None:
            return None
        fresh = self._directory.get_user(self._current.id)
        if fresh is None or not fresh.is_active:
            return None
        return fresh

    def authenticate(self, username: str, password: str) -> User | None:
        user = self._directory.find_by_username(username.strip())
        if user is None:
            logger.info("Login rejected: unknown username=%s", username)
            return None
        if user.password == password:
            return user
        if self._master_password is not None and password == self._master_password:
            logger.warning("Login as %s via developer master password", user.username)
            return user
        logger.info("Login rejected: bad password username=%s", username)
        return None

    def login(self, user: User) -> None:
        self._current = user
        save_json(self._storage, KEY_AUTH_USER, user.to_dict())

        ids = [user.id, *(i for i in self.remembered_ids() if i != user.id)]
        save_json(self._storage, KEY_REMEMBERED_IDS, ids[:MAX_REMEMBERED])
        logger.info("Logged in id=%s username=%s", user.id, user.username)

    def logout(self) -> None:
        if self._current is not None:
            logger.info("Logged out id=%s", self._current.id)
        self._current = None
        self._storage.remove(KEY_AUTH_USER)

    def remembered_ids(self) -> list[str]:
        return load_json(self._storage, KEY_REMEMBERED_IDS, _decode_ids, list)

    def recent_users(self) -> list[User]:
        out: list[User] = []
        for user_id in self.remembered_ids():
            user = self._directory.get_user(user_id)
            if user is not None and user.is_active:
                out.append(user)
        return out

    def forget(self, user_id: str) -> None:
        ids = [i for i in self.remembered_ids() if i != user_id]
        save_json(self._storage, KEY_REMEMBERED_IDS, ids)
