# src/gemini_tasks/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The sync engine and the auth gate depend on Protocols instead of the concrete
Supabase client or the console. This keeps the backend swappable and makes
testing easier (see tests/fakes.py).
"""

from dataclasses import dataclass
from typing import Any, Protocol

TaskRow = dict[str, Any]
# Raw REST row: {"id", "title", "is_completed", "priority", "created_at", ...}.


@dataclass(frozen=True, slots=True)
class Session:
    access_token: str
    refresh_token: str | None
    user_id: str | None
    email: str | None


class TaskRemote(Protocol):
    """CRUD on the remote `tasks` collection, scoped to the current session."""

    async def fetch_tasks(self) -> list[TaskRow]: ...

    async def insert_task(self, *, title: str, priority: int, is_completed: bool) -> TaskRow: ...

    async def update_task_completion(self, task_id: int, is_completed: bool) -> None: ...

    async def delete_task(self, task_id: int) -> None: ...


class AuthBackend(Protocol):
    """Session-based auth. Token handling stays inside the implementation."""

    @property
    def session(self) -> Session | None: ...

    async def sign_up(self, email: str, password: str) -> None: ...

    async def sign_in_with_password(self, email: str, password: str) -> Session: ...

    async def sign_out(self) -> None: ...


class Notifier(Protocol):
    """
    How the core tells the user something went wrong.

    - alert: blocking-style notification after a failed mutation
    - banner: inline message that stays visible (load failures)
    """

    def alert(self, message: str) -> None: ...

    def banner(self, message: str | None) -> None: ...


class Confirmer(Protocol):
    """Yes/no prompt used before destructive operations."""

    async def confirm(self, prompt: str) -> bool: ...
