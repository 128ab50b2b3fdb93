"""
RateMate - Session Resolution
===============================
Maps the inbound ``session_id`` cookie to a session id, minting a fresh
random one when the cookie is missing, and writes the cookie back only
in that case.

The token is opaque and never checked against a store: an unknown or
forged id simply has no history yet.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Protocol

from ratemate.config.settings import Settings, settings


class CookieWriter(Protocol):
    def set_cookie(self, key: str, value: str = "", max_age: int | None = None, path: str | None = "/", secure: bool = False, httponly: bool = False, samesite: str | None = "lax", **kwargs) -> None: ...


@dataclass(frozen=True)
class ResolvedSession:
    id: str
    is_new: bool


class SessionResolver:
    """Cookie-based session identity."""

    __slots__ = ("cookie_name", "max_age", "secure")

    def __init__(self, cookie_name: str | None = None, max_age: int | None = None, secure: bool | None = None) -> None:
        self.cookie_name = cookie_name or settings.SESSION_COOKIE_NAME
        self.max_age = max_age or settings.SESSION_COOKIE_MAX_AGE
        self.secure = settings.is_production if secure is None else secure


    @classmethod
    def from_settings(cls, config: Settings) -> SessionResolver:
        return cls(cookie_name=config.SESSION_COOKIE_NAME, max_age=config.SESSION_COOKIE_MAX_AGE, secure=config.is_production)


    @staticmethod
    def new_session_id() -> str:
        # uuid4 draws from os.urandom
        return str(uuid.uuid4())


    def resolve(self, cookies: dict[str, str]) -> ResolvedSession:
        token = cookies.get(self.cookie_name)
        if token:
            return ResolvedSession(id=token, is_new=False)
        return ResolvedSession(id=self.new_session_id(), is_new=True)


    def issue(self, response: CookieWriter, session: ResolvedSession) -> None:
        """Set the session cookie on *response*, only for a freshly minted id."""
        if not session.is_new:
            return
        response.set_cookie(key=self.cookie_name, value=session.id, max_age=self.max_age, path="/", secure=self.secure, httponly=True, samesite="lax")
