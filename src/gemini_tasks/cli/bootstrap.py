# src/gemini_tasks/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) log directory exists,
- wires the Supabase client, sync engine and auth gate into AppState.
"""

from __future__ import annotations

import logging

from ..auth.gate import AuthGate
from ..config import get_settings
from ..core.ports import Confirmer, Notifier
from ..core.state import AppState
from ..remote.supabase_client import SupabaseClient
from ..tasks.sync_engine import TaskSyncEngine

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    notifier: Notifier,
    confirmer: Confirmer,
    settings=None,
    remote=None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings and the remote injectable makes the app easier to test.
    Raises ConfigError when the Supabase URL / anon key are missing.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if remote is None:
        remote = SupabaseClient.from_settings(settings)

    engine = TaskSyncEngine(remote, notifier, confirmer)

    async def _on_login() -> None:
        await engine.load()

    async def _on_logout() -> None:
        engine.clear()

    auth = AuthGate(remote, on_login=_on_login, on_logout=_on_logout)

    return AppState(
        settings=settings,
        remote=remote,
        engine=engine,
        auth=auth,
        notifier=notifier,
        confirmer=confirmer,
    )


async def shutdown(state: AppState) -> None:
    """Let in-flight operations settle, then close the HTTP client."""
    try:
        await state.drain()
    except Exception:
        logger.exception("Failed to drain pending operations.")

    close = getattr(state.remote, "aclose", None)
    if close is not None:
        try:
            await close()
        except Exception:
            logger.debug("HTTP client close failed.", exc_info=True)
