# src/ktc_taskboard/directory/http.py

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx


@asynccontextmanager
async def client_scope(
    client: httpx.AsyncClient | None,
    timeout: float | None = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """
    Use the caller's client as-is, or open (and close) a private one.

    timeout=None disables httpx's default 5s timeout entirely.
    """
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own:
        yield own
