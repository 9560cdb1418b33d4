# src/gemini_tasks/remote/supabase_client.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.errors import AuthFailure, ConfigError, RemoteFailure
from ..core.ports import Session, TaskRow

logger = logging.getLogger(__name__)

TASKS_PATH = "/rest/v1/tasks"
SIGNUP_PATH = "/auth/v1/signup"
TOKEN_PATH = "/auth/v1/token"
LOGOUT_PATH = "/auth/v1/logout"

READ_ORDER = "priority.desc.nullslast,created_at.desc"


def _make_timeout(connect_s: float, read_s: float) -> httpx.Timeout:
    return httpx.Timeout(connect=connect_s, read=read_s, write=10.0, pool=connect_s)


def _error_text(resp: httpx.Response) -> str:
    """
    Pull the human message out of a Supabase error body.

    PostgREST uses {"message", "details", "hint", "code"}; GoTrue uses
    "msg", "error_description" or "message" depending on the endpoint/version.
    """
    try:
        body = resp.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error"):
            val = body.get(key)
            if isinstance(val, str) and val.strip():
                return val.strip()

    text = (resp.text or "").strip()
    return text or f"HTTP {resp.status_code}"


class SupabaseClient:
    """
    Minimal async client for one Supabase project.

    Covers the PostgREST `tasks` table and the GoTrue email/password flow.
    The session lives in memory only; row-level security on the server scopes
    every query to the signed-in user.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        *,
        connect_timeout: float = 5.0,
        read_timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        url = (url or "").strip().rstrip("/")
        anon_key = (anon_key or "").strip()
        if not url or not anon_key:
            raise ConfigError(
                "Supabase keys not found. Set GEMINI_TASKS_SUPABASE_URL and "
                "GEMINI_TASKS_SUPABASE_ANON_KEY in your .env."
            )

        self._anon_key = anon_key
        self._session: Session | None = None
        self._http = httpx.AsyncClient(
            base_url=url,
            headers={"apikey": anon_key},
            timeout=_make_timeout(connect_timeout, read_timeout),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings) -> SupabaseClient:
        return cls(
            getattr(settings, "supabase_url", ""),
            getattr(settings, "supabase_anon_key", ""),
            connect_timeout=float(getattr(settings, "http_connect_timeout", 5.0)),
            read_timeout=float(getattr(settings, "http_read_timeout", 15.0)),
        )

    @property
    def session(self) -> Session | None:
        return self._session

    async def aclose(self) -> None:
        await self._http.aclose()

    # ---- low-level helpers ----

    def _auth_headers(self) -> dict[str, str]:
        token = self._session.access_token if self._session is not None else self._anon_key
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        failure: type[RemoteFailure] = RemoteFailure,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        merged = self._auth_headers()
        if headers:
            merged.update(headers)

        try:
            resp = await self._http.request(method, path, params=params, json=json, headers=merged)
        except httpx.HTTPError as e:
            logger.info("%s %s failed: %s", method, path, e.__class__.__name__)
            raise failure(f"Network error: {e.__class__.__name__}") from e

        if resp.is_error:
            msg = _error_text(resp)
            logger.info("%s %s -> %s: %s", method, path, resp.status_code, msg)
            raise failure(msg, status_code=resp.status_code)

        return resp

    # ---- tasks ----

    async def fetch_tasks(self) -> list[TaskRow]:
        resp = await self._request(
            "GET",
            TASKS_PATH,
            params={"select": "*", "order": READ_ORDER},
        )
        data = resp.json()
        if not isinstance(data, list):
            raise RemoteFailure("Unexpected response shape for tasks list.", status_code=resp.status_code)
        return [r for r in data if isinstance(r, dict)]

    async def insert_task(self, *, title: str, priority: int, is_completed: bool) -> TaskRow:
        resp = await self._request(
            "POST",
            TASKS_PATH,
            json=[{"title": title, "priority": int(priority), "is_completed": bool(is_completed)}],
            headers={"Prefer": "return=representation"},
        )
        data = resp.json()
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise RemoteFailure("Insert returned no row.", status_code=resp.status_code)
        return data[0]

    async def update_task_completion(self, task_id: int, is_completed: bool) -> None:
        await self._request(
            "PATCH",
            TASKS_PATH,
            params={"id": f"eq.{int(task_id)}"},
            json={"is_completed": bool(is_completed)},
            headers={"Prefer": "return=minimal"},
        )

    async def delete_task(self, task_id: int) -> None:
        await self._request(
            "DELETE",
            TASKS_PATH,
            params={"id": f"eq.{int(task_id)}"},
            headers={"Prefer": "return=minimal"},
        )

    # ---- auth ----

    async def sign_up(self, email: str, password: str) -> None:
        await self._request(
            "POST",
            SIGNUP_PATH,
            failure=AuthFailure,
            json={"email": email, "password": password},
        )

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        resp = await self._request(
            "POST",
            TOKEN_PATH,
            failure=AuthFailure,
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        body = resp.json()
        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise AuthFailure("Sign-in response did not contain a session.", status_code=resp.status_code)

        user = body.get("user") or {}
        self._session = Session(
            access_token=str(token),
            refresh_token=body.get("refresh_token"),
            user_id=user.get("id"),
            email=user.get("email") or email,
        )
        logger.info("Signed in as %s", self._session.email)
        return self._session

    async def sign_out(self) -> None:
        if self._session is None:
            return
        try:
            await self._request("POST", LOGOUT_PATH, failure=AuthFailure)
        finally:
            # Local session is dropped even if the server could not revoke it.
            self._session = None
