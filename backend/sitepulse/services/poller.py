"""Periodic snapshot refresh with cancellation for live dashboards.

A ``SnapshotPoller`` owns at most one refresh task. Every ``select`` bumps a
generation counter, cancels the running task and starts a new one; a result
is delivered only if its generation is still current when the fetch
completes, so a slow response for an old selection can never overwrite the
snapshot of a newer one.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Generic, TypeVar

from fastapi import HTTPException

from sitepulse.core.config import settings

logger = logging.getLogger(__name__)

S = TypeVar("S")
R = TypeVar("R")


class SnapshotPoller(Generic[S, R]):
    """Fetch on selection, then every ``interval`` seconds until re-selected or closed."""

    def __init__(
        self,
        fetch: Callable[[S], Awaitable[R]],
        on_result: Callable[[S, R], Awaitable[None]],
        on_error: Callable[[S, str], Awaitable[None]] | None = None,
        *,
        interval: float | None = None,
    ):
        self._fetch = fetch
        self._on_result = on_result
        self._on_error = on_error
        self.interval = settings.DASHBOARD_REFRESH_SECONDS if interval is None else interval
        self.generation = 0
        self.selection: S | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def select(self, selection: S) -> int:
        """Switch to a new selection; any in-flight fetch for the old one is discarded."""
        self.generation += 1
        self.selection = selection
        if self._task is not None:
            self._task.cancel()
        self._task = asyncio.create_task(self._run(self.generation, selection))
        return self.generation

    def refresh(self) -> int | None:
        """Fetch the current selection now and restart the schedule from here.

        Goes through ``select`` so the scheduled fetch is cancelled and only one
        fetch is ever in flight. Returns the new generation, or None when
        nothing is selected yet.
        """
        if self.selection is None:
            return None
        return self.select(self.selection)

    async def close(self) -> None:
        """Stop polling; a fetch still in flight is dropped."""
        self.generation += 1
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            with suppress(asyncio.CancelledError):
                await task
        except Exception:
            # Delivery failed before close, e.g. the consumer already went away
            logger.debug("Refresh task ended with an error", exc_info=True)

    async def _fetch_once(self, generation: int, selection: S) -> None:
        try:
            result = await self._fetch(selection)
        except HTTPException as e:
            if self._on_error is not None and self.is_current(generation):
                await self._on_error(selection, str(e.detail))
            return
        except Exception:
            logger.exception("Snapshot refresh failed")
            if self._on_error is not None and self.is_current(generation):
                await self._on_error(selection, "Unable to load analytics")
            return

        if not self.is_current(generation):
            logger.debug("Discarding stale snapshot from generation %d", generation)
            return
        await self._on_result(selection, result)

    async def _run(self, generation: int, selection: S) -> None:
        while self.is_current(generation):
            await self._fetch_once(generation, selection)
            if self.is_current(generation):
                await asyncio.sleep(self.interval)
