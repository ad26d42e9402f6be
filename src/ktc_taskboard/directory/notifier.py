# src/ktc_taskboard/directory/notifier.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import httpx

from ..core.ids import utc_now_iso
from .http import client_scope

logger = logging.getLogger(__name__)


async def post_sync_action(
    url: str,
    action: str,
    payload: dict[str, Any],
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
) -> bool:
    """
    POST `{timestamp, action, payload}` to the write webhook.

    Best effort: no retry, no queue. Returns False (after logging) on any
    network error or non-2xx answer; never raises.
    """
    if not url:
        logger.debug("Sync action %s skipped: no write URL configured", action)
        return False

    body = {"timestamp": utc_now_iso(), "action": action, "payload": payload}
    try:
        async with client_scope(client, timeout) as http:
            response = await http.post(url, json=body)
    except httpx.HTTPError as e:
        logger.warning("Sync action %s failed: %s", action, e)
        return False

    if not response.is_success:
        logger.warning("Sync action %s rejected: HTTP %d", action, response.status_code)
        return False

    logger.debug("Sync action %s delivered", action)
    return True


class WebhookNotifier:
    """
    SyncNotifier that posts to the write webhook.

    `url_provider` is asked on every call, so a URL changed by the operator
    applies to the next notification. Inside a running event loop the post
    is scheduled as a background task; otherwise it runs to completion
    before notify() returns.
    """

    def __init__(
        self,
        url_provider: Callable[[], str | None],
        *,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url_provider = url_provider
        self._timeout = timeout
        self._client = client
        self._pending: set[asyncio.Task[bool]] = set()

    def notify(self, action: str, payload: dict[str, Any]) -> None:
        url = (self._url_provider() or "").strip()
        if not url:
            logger.debug("Sync action %s skipped: no write URL configured", action)
            return

        coro = post_sync_action(
            url, action, payload, client=self._client, timeout=self._timeout
        )
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(coro)
            return

        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for scheduled posts (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending))
