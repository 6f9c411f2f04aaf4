from __future__ import annotations

from fastapi import HTTPException, Request

from formforge.config import Settings
from formforge.protocols import IdentityProvider

LOCAL_USER = {"id": "local", "email": "owner@localhost"}


class NoAuthProvider:
    """Single-owner mode: every request acts as the local owner."""

    def current_user(self, request: Request) -> dict[str, str] | None:
        return dict(LOCAL_USER)


class HeaderAuthProvider:
    """Trusts the identity headers set by an authenticating reverse proxy."""

    def current_user(self, request: Request) -> dict[str, str] | None:
        user_id = request.headers.get("x-user-id", "").strip()
        if not user_id:
            return None
        return {"id": user_id, "email": request.headers.get("x-user-email", "").strip()}


def get_auth_provider(settings: Settings) -> IdentityProvider:
    if settings.auth_mode == "header":
        return HeaderAuthProvider()
    return NoAuthProvider()


def current_user(request: Request) -> dict[str, str] | None:
    return request.app.state.auth_provider.current_user(request)


def require_user(request: Request) -> dict[str, str]:
    user = current_user(request)
    if not user:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user
