# tests/fakes.py

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx


@dataclass(slots=True)
class Notification:
    action: str
    payload: dict[str, Any]


@dataclass(slots=True)
class FakeNotifier:
    """
    SyncNotifier that records every notify() call.
    """

    sent: list[Notification] = field(default_factory=list)

    def notify(self, action: str, payload: dict[str, Any]) -> None:
        self.sent.append(Notification(action=action, payload=payload))

    @property
    def actions(self) -> list[str]:
        return [n.action for n in self.sent]


class RaisingNotifier:
    """A notifier that breaks the contract; stores must survive it."""

    def notify(self, action: str, payload: dict[str, Any]) -> None:
        raise RuntimeError("webhook down")


def mock_client(
    handler: Callable[[httpx.Request], Any],
) -> httpx.AsyncClient:
    """AsyncClient whose requests never leave the process."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
