# src/gemini_tasks/auth/gate.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ..core.errors import AuthFailure, ValidationError
from ..core.ports import AuthBackend

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

SIGN_UP_OK_MESSAGE = "Registration successful! Check your email to confirm the account."

LoginCallback = Callable[[], Awaitable[None]]


@dataclass(slots=True, frozen=True)
class AuthResult:
    ok: bool
    message: str | None = None


def validate_credentials(email: str, password: str) -> tuple[str, str]:
    email = (email or "").strip()
    if not email or "@" not in email:
        raise ValidationError("Enter a valid email address.")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    return email, password


class AuthGate:
    """
    Session gate in front of the sync engine.

    Sign-in success calls `on_login` (the host switches to the task view and loads).
    Sign-up success only returns an instruction: the backend requires email
    confirmation before the first sign-in.
    """

    def __init__(
        self,
        backend: AuthBackend,
        *,
        on_login: LoginCallback | None = None,
        on_logout: LoginCallback | None = None,
    ) -> None:
        self._backend = backend
        self._on_login = on_login
        self._on_logout = on_logout

    @property
    def is_authenticated(self) -> bool:
        return self._backend.session is not None

    @property
    def user_email(self) -> str | None:
        session = self._backend.session
        return None if session is None else session.email

    async def sign_up(self, email: str, password: str) -> AuthResult:
        try:
            email, password = validate_credentials(email, password)
            await self._backend.sign_up(email, password)
        except (ValidationError, AuthFailure) as e:
            return AuthResult(ok=False, message=str(e))

        logger.info("Sign-up requested for %s", email)
        return AuthResult(ok=True, message=SIGN_UP_OK_MESSAGE)

    async def sign_in(self, email: str, password: str) -> AuthResult:
        try:
            email, password = validate_credentials(email, password)
            await self._backend.sign_in_with_password(email, password)
        except (ValidationError, AuthFailure) as e:
            return AuthResult(ok=False, message=str(e))

        if self._on_login is not None:
            await self._on_login()
        return AuthResult(ok=True)

    async def sign_out(self) -> AuthResult:
        message = None
        try:
            await self._backend.sign_out()
        except AuthFailure as e:
            # Session is already gone locally; only the server-side revoke failed.
            logger.warning("Server-side sign-out failed: %s", e)
            message = str(e)

        if self._on_logout is not None:
            await self._on_logout()
        return AuthResult(ok=True, message=message)
