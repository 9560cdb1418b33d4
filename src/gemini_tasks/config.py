# src/gemini_tasks/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (Supabase keys are checked at bootstrap).
- The original front-end variable names (VITE_SUPABASE_*) keep working.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "GEMINI_TASKS"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Supabase ----
    supabase_url: str
    supabase_anon_key: str

    # ---- HTTP ----
    http_connect_timeout: float
    http_read_timeout: float

    # ---- Console ----
    confirm_deletes: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "Gemini Tasks")
        log_level = _env(_k("LOG_LEVEL"), "WARNING")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/gemini_tasks"))

        supabase_url = (
            _first_env(_k("SUPABASE_URL"), "SUPABASE_URL", "VITE_SUPABASE_URL", default="") or ""
        ).strip()
        supabase_anon_key = (
            _first_env(
                _k("SUPABASE_ANON_KEY"),
                "SUPABASE_ANON_KEY",
                "VITE_SUPABASE_ANON_KEY",
                default="",
            )
            or ""
        ).strip()

        http_connect_timeout = _env_float(_k("HTTP_CONNECT_TIMEOUT_SECONDS"), 5.0)
        http_read_timeout = _env_float(_k("HTTP_READ_TIMEOUT_SECONDS"), 15.0)

        confirm_deletes = _env_bool(_k("CONFIRM_DELETES"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            supabase_url=supabase_url.rstrip("/"),
            supabase_anon_key=supabase_anon_key,
            http_connect_timeout=http_connect_timeout,
            http_read_timeout=http_read_timeout,
            confirm_deletes=confirm_deletes,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
