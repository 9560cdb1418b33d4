# src/gemini_tasks/core/errors.py

from __future__ import annotations


class TasksError(Exception):
    """Base class for application errors."""


class ConfigError(TasksError):
    """Required configuration (Supabase URL / anon key) is missing."""


class ValidationError(TasksError):
    """Input rejected client-side; no remote call is made."""


class RemoteFailure(TasksError):
    """A call to the remote store failed (network, server rejection, RLS/auth)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthFailure(RemoteFailure):
    """Sign-in / sign-up rejected by the auth backend. The message is shown verbatim."""


def friendly_remote_error_message(err: Exception) -> str:
    msg = str(err).strip() or "Remote store error."
    if isinstance(err, ConfigError):
        return msg
    if isinstance(err, RemoteFailure) and err.status_code in (401, 403):
        return f"Not authorized ({msg}). Log in again with /login."
    return msg
