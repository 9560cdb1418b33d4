# src/gemini_tasks/core/state.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any

from ..auth.gate import AuthGate
from ..tasks.sync_engine import TaskSyncEngine
from .ports import Confirmer, Notifier

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    remote: Any  # TaskRemote + AuthBackend (+ aclose)
    engine: TaskSyncEngine
    auth: AuthGate
    notifier: Notifier
    confirmer: Confirmer

    background: set[asyncio.Task[Any]] = field(default_factory=set)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """
        Run an engine operation without waiting for its remote round-trip.

        The optimistic part of every engine operation runs before its first
        await, so by the time the caller yields once the local list is updated.
        """
        task = asyncio.create_task(coro)
        self.background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self.background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background operation crashed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for every in-flight operation to resolve (success or rollback)."""
        while self.background:
            await asyncio.gather(*list(self.background), return_exceptions=True)
