# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from gemini_tasks.cli.bootstrap import create_initial_state
from gemini_tasks.core.state import AppState
from gemini_tasks.tasks.sync_engine import TaskSyncEngine

from .fakes import FakeBackend, RecordingNotifier, ScriptedConfirmer


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the developer's .env.
    """
    return SimpleNamespace(
        app_name="Gemini Tasks (test)",
        data_dir=tmp_path / "data",
        supabase_url="https://example.supabase.co",
        supabase_anon_key="anon-key",
        http_connect_timeout=1.0,
        http_read_timeout=1.0,
        confirm_deletes=True,
    )


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def confirmer() -> ScriptedConfirmer:
    return ScriptedConfirmer()


@pytest.fixture()
def engine(
    backend: FakeBackend, notifier: RecordingNotifier, confirmer: ScriptedConfirmer
) -> TaskSyncEngine:
    return TaskSyncEngine(backend, notifier, confirmer)


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    backend: FakeBackend,
    notifier: RecordingNotifier,
    confirmer: ScriptedConfirmer,
) -> AppState:
    """
    AppState wired through the real bootstrap, with the fake backend injected.
    A registered user exists: alice@example.com / secret1.
    """
    backend.users["alice@example.com"] = "secret1"
    return create_initial_state(
        settings=settings,
        notifier=notifier,
        confirmer=confirmer,
        remote=backend,
    )
