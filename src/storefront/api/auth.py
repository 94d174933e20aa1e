"""Caller identity for HTTP requests.

Tokens are verified upstream; the gateway forwards the caller as headers:
``X-User-Id``, ``X-User-Role`` (``admin``), ``X-Account-Type`` (``business``)
and ``X-Session-Id`` for guest carts.
"""

from dataclasses import dataclass

from fastapi import Depends, Header

from storefront.errors import ForbiddenError, UnauthorizedError


@dataclass(frozen=True)
class Principal:
    user_id: str | None = None
    role: str | None = None
    account_type: str | None = None
    session_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def current_principal(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
    x_account_type: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> Principal:
    return Principal(
        user_id=x_user_id or None,
        role=(x_user_role or "").lower() or None,
        account_type=(x_account_type or "").lower() or None,
        session_id=x_session_id or None,
    )


def require_user(principal: Principal = Depends(current_principal)) -> Principal:
    if not principal.user_id:
        raise UnauthorizedError({"user": ["Sign in to continue"]})
    return principal


def require_admin(principal: Principal = Depends(require_user)) -> Principal:
    if not principal.is_admin:
        raise ForbiddenError({"user": ["Admin access required"]})
    return principal
