# src/gemini_tasks/tasks/sync_engine.py

"""
Optimistic sync engine.

Owns the single in-memory task list and is the only thing allowed to mutate it.
Every operation follows the same shape:
- apply the change locally, synchronously (before the first await)
- issue the remote call
- on success: reconcile with what the server returned
- on failure: apply the operation's compensating change and notify the user

There is no retry and no per-task serialization: two quick toggles on the same
task race, and whichever response lands last decides the local value.
Responses that refer to a task no longer in the list are ignored.

A task that is still provisional (its insert has not answered yet) cannot be
toggled or removed: the server has no row for its local id. Such calls return
PENDING and the user retries once the real id has arrived.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, replace
from enum import Enum

from ..core.errors import RemoteFailure, ValidationError, friendly_remote_error_message
from ..core.ports import Confirmer, Notifier, TaskRemote
from .task_models import Priority, Task, parse_timestamp, sort_tasks, task_from_row, utcnow

logger = logging.getLogger(__name__)

LOAD_ERROR_MESSAGE = "Failed to load tasks."
ADD_ERROR_MESSAGE = "Failed to save the task!"
TOGGLE_ERROR_MESSAGE = "Failed to update the task."
STILL_SAVING_MESSAGE = "This task is still being saved. Try again in a moment."
REMOVE_ERROR_MESSAGE = "Failed to delete the task."


class SyncOutcome(str, Enum):
    CONFIRMED = "confirmed"
    FAILED = "failed"
    REJECTED = "rejected"
    DECLINED = "declined"
    NOT_FOUND = "not_found"
    PENDING = "pending"


@dataclass(slots=True, frozen=True)
class OpResult:
    """How one engine operation ended. `task` is the reconciled entity when there is one."""

    outcome: SyncOutcome
    task: Task | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == SyncOutcome.CONFIRMED


def validate_title(title: str) -> str:
    clean = (title or "").strip()
    if not clean:
        raise ValidationError("Task title must not be empty.")
    return clean


class TaskSyncEngine:
    def __init__(self, remote: TaskRemote, notifier: Notifier, confirmer: Confirmer) -> None:
        self._remote = remote
        self._notifier = notifier
        self._confirmer = confirmer

        self._tasks: list[Task] = []
        self._inflight: Counter[int] = Counter()
        self._last_provisional_id = 0

        # Add outcomes seen while a delete is in flight, so a failed delete can
        # restore its snapshot with real ids. provisional id -> confirmed task
        # (None when the add was rolled back).
        self._removals_in_flight = 0
        self._settled_adds: dict[int, Task | None] = {}

        self.loading = False
        self.error: str | None = None

    # ---- read side ----

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(replace(t) for t in self._tasks)

    def get(self, task_id: int) -> Task | None:
        idx = self._index_of(task_id)
        return None if idx is None else replace(self._tasks[idx])

    def is_pending(self, task_id: int) -> bool:
        return self._inflight[task_id] > 0

    @property
    def has_pending(self) -> bool:
        return any(v > 0 for v in self._inflight.values())

    # ---- helpers ----

    def _index_of(self, task_id: int) -> int | None:
        for i, t in enumerate(self._tasks):
            if t.id == task_id:
                return i
        return None

    def _next_provisional_id(self) -> int:
        # Negative millisecond clock, strictly decreasing so two adds in the
        # same millisecond still get distinct ids.
        candidate = -int(time.time() * 1000)
        if candidate >= self._last_provisional_id:
            candidate = self._last_provisional_id - 1
        self._last_provisional_id = candidate
        return candidate

    def _begin(self, task_id: int) -> None:
        self._inflight[task_id] += 1

    def _end(self, task_id: int) -> None:
        self._inflight[task_id] -= 1
        if self._inflight[task_id] <= 0:
            del self._inflight[task_id]

    def _set_error(self, message: str | None) -> None:
        self.error = message
        self._notifier.banner(message)

    def _refuse_provisional(self, task: Task) -> OpResult | None:
        if task.is_provisional:
            logger.debug("task id=%s still provisional; refusing", task.id)
            return OpResult(SyncOutcome.PENDING, task=replace(task), error=STILL_SAVING_MESSAGE)
        return None

    def _record_settled_add(self, temp_id: int, confirmed: Task | None) -> None:
        if self._removals_in_flight > 0:
            self._settled_adds[temp_id] = None if confirmed is None else replace(confirmed)

    def _rebase_snapshot(self, snapshot: list[Task]) -> list[Task]:
        """Bring a pre-delete snapshot up to date with adds that settled since it was taken."""
        out: list[Task] = []
        for t in snapshot:
            if t.id in self._settled_adds:
                confirmed = self._settled_adds[t.id]
                if confirmed is None:
                    continue
                t = replace(t, id=confirmed.id, priority=confirmed.priority, created_at=confirmed.created_at)
            out.append(t)

        # Adds started after the snapshot was taken survive the restore too.
        known = {t.id for t in out}
        confirmed_ids = {c.id for c in self._settled_adds.values() if c is not None}
        for t in self._tasks:
            if t.id in known:
                continue
            if (t.is_provisional and self.is_pending(t.id)) or t.id in confirmed_ids:
                out.append(replace(t))
        return sort_tasks(out)

    # ---- operations ----

    async def load(self) -> OpResult:
        """Fetch the whole collection and replace local state with it."""
        self.loading = True
        try:
            rows = await self._remote.fetch_tasks()
            loaded = sort_tasks(task_from_row(r) for r in rows)
        except (RemoteFailure, KeyError, TypeError, ValueError) as e:
            logger.warning("load failed: %s", e)
            self._tasks = []
            detail = friendly_remote_error_message(e)
            self._set_error(LOAD_ERROR_MESSAGE)
            return OpResult(SyncOutcome.FAILED, error=detail)
        finally:
            self.loading = False

        # Adds still waiting on their insert stay visible; their confirmation
        # will reconcile them against whatever this fetch returned.
        saving = [t for t in self._tasks if t.is_provisional and self.is_pending(t.id)]
        self._tasks = sort_tasks([*loaded, *saving])
        self._set_error(None)
        logger.info("Loaded %d tasks (%d still saving)", len(loaded), len(saving))
        return OpResult(SyncOutcome.CONFIRMED)

    async def add(self, title: str, priority: Priority = Priority.LOW) -> OpResult:
        try:
            clean = validate_title(title)
        except ValidationError as e:
            return OpResult(SyncOutcome.REJECTED, error=str(e))

        priority = Priority.from_db(priority)
        temp = Task(
            id=self._next_provisional_id(),
            title=clean,
            is_completed=False,
            priority=priority,
            created_at=utcnow(),
        )
        self._tasks = sort_tasks([temp, *self._tasks])
        self._begin(temp.id)
        logger.debug("add: provisional id=%s title=%r priority=%s", temp.id, clean, priority.name)

        try:
            row = await self._remote.insert_task(
                title=clean,
                priority=int(priority),
                is_completed=False,
            )
            server_id = int(row["id"])
        except (RemoteFailure, KeyError, TypeError, ValueError) as e:
            self._end(temp.id)
            self._tasks = [t for t in self._tasks if t.id != temp.id]
            self._record_settled_add(temp.id, None)
            logger.info("add rolled back (provisional id=%s): %s", temp.id, e)
            self._notifier.alert(ADD_ERROR_MESSAGE)
            return OpResult(SyncOutcome.FAILED, error=friendly_remote_error_message(e))

        self._end(temp.id)
        idx = self._index_of(temp.id)
        if idx is None:
            # Local state was dropped (sign-out) while the insert was in flight.
            logger.debug("add: provisional id=%s gone before confirmation; ignoring", temp.id)
            return OpResult(SyncOutcome.CONFIRMED)

        if self._index_of(server_id) is not None:
            # A load that ran after the insert committed already brought the row in.
            self._tasks = [t for t in self._tasks if t.id != temp.id]
            confirmed = self._tasks[self._index_of(server_id)]
            self._record_settled_add(temp.id, confirmed)
            logger.info("add confirmed: %s -> id=%s (already loaded)", temp.id, server_id)
            return OpResult(SyncOutcome.CONFIRMED, task=replace(confirmed))

        current = self._tasks[idx]
        raw_priority = row.get("priority")
        confirmed = replace(
            current,
            id=server_id,
            priority=current.priority if raw_priority is None else Priority.from_db(raw_priority),
            created_at=parse_timestamp(row["created_at"]) if row.get("created_at") else current.created_at,
        )
        self._tasks[idx] = confirmed
        self._tasks = sort_tasks(self._tasks)
        self._record_settled_add(temp.id, confirmed)
        logger.info("add confirmed: %s -> id=%s", temp.id, server_id)
        return OpResult(SyncOutcome.CONFIRMED, task=replace(confirmed))

    async def toggle_completion(self, task_id: int) -> OpResult:
        idx = self._index_of(task_id)
        if idx is None:
            return OpResult(SyncOutcome.NOT_FOUND)
        refused = self._refuse_provisional(self._tasks[idx])
        if refused is not None:
            return refused

        original = self._tasks[idx].is_completed
        self._tasks[idx].is_completed = not original
        self._begin(task_id)

        try:
            await self._remote.update_task_completion(task_id, not original)
        except RemoteFailure as e:
            self._end(task_id)
            idx = self._index_of(task_id)
            if idx is not None:
                self._tasks[idx].is_completed = original
            logger.info("toggle rolled back id=%s: %s", task_id, e)
            self._notifier.alert(TOGGLE_ERROR_MESSAGE)
            return OpResult(SyncOutcome.FAILED, error=friendly_remote_error_message(e))

        self._end(task_id)
        logger.info("toggle confirmed id=%s is_completed=%s", task_id, not original)
        return OpResult(SyncOutcome.CONFIRMED, task=self.get(task_id))

    async def remove(self, task_id: int, *, confirm: bool = True) -> OpResult:
        idx = self._index_of(task_id)
        if idx is None:
            return OpResult(SyncOutcome.NOT_FOUND)
        refused = self._refuse_provisional(self._tasks[idx])
        if refused is not None:
            return refused

        if confirm:
            title = self._tasks[idx].title
            if not await self._confirmer.confirm(f"Delete {title!r}?"):
                return OpResult(SyncOutcome.DECLINED)
            # The list may have changed while the prompt was open.
            if self._index_of(task_id) is None:
                return OpResult(SyncOutcome.NOT_FOUND)

        snapshot = [replace(t) for t in self._tasks]
        self._tasks = [t for t in self._tasks if t.id != task_id]
        self._begin(task_id)
        self._removals_in_flight += 1

        try:
            await self._remote.delete_task(task_id)
        except RemoteFailure as e:
            self._tasks = self._rebase_snapshot(snapshot)
            logger.info("remove rolled back id=%s: %s", task_id, e)
            self._notifier.alert(REMOVE_ERROR_MESSAGE)
            return OpResult(SyncOutcome.FAILED, error=friendly_remote_error_message(e))
        finally:
            self._end(task_id)
            self._removals_in_flight -= 1
            if self._removals_in_flight == 0:
                self._settled_adds.clear()

        logger.info("remove confirmed id=%s", task_id)
        return OpResult(SyncOutcome.CONFIRMED)

    def clear(self) -> None:
        """Drop local state (sign-out). In-flight responses become stale no-ops."""
        self._tasks = []
        self._set_error(None)
