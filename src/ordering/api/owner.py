"""Who is calling: principal, guest session and roles.

Authentication happens upstream; the gateway forwards the authenticated
principal as ``X-User-ID`` and its roles as ``X-User-Roles``. Guests are
identified by ``X-Session-ID`` or, failing that, the ``cart_session``
cookie, which is issued on first contact.
"""

from dataclasses import dataclass
from uuid import uuid4

from fastapi import Depends, Header, HTTPException, Request, Response

SESSION_COOKIE = "cart_session"

_ADMIN_ROLES = {"ADMIN"}
_ORDER_MANAGER_ROLES = {"ADMIN", "SELLER"}


@dataclass(frozen=True)
class Caller:
    user_id: str | None
    session_id: str | None
    roles: frozenset[str] = frozenset()

    @property
    def is_admin(self) -> bool:
        return bool(self.roles & _ADMIN_ROLES)

    @property
    def manages_orders(self) -> bool:
        return bool(self.roles & _ORDER_MANAGER_ROLES)

    def owner(self) -> dict:
        """Cart owner arguments: the user when signed in, otherwise the guest session."""
        if self.user_id:
            return {"user_id": self.user_id, "session_id": None}
        return {"user_id": None, "session_id": self.session_id}


def resolve_caller(
    request: Request,
    response: Response,
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
    x_user_roles: str | None = Header(default=None),
) -> Caller:
    session_id = x_session_id or request.cookies.get(SESSION_COOKIE)
    if not x_user_id and not session_id:
        session_id = uuid4().hex
        response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")

    roles = frozenset(role.strip().upper() for role in (x_user_roles or "").split(",") if role.strip())
    return Caller(user_id=x_user_id or None, session_id=session_id, roles=roles)


def require_user(caller: Caller = Depends(resolve_caller)) -> Caller:
    if not caller.user_id:
        raise HTTPException(status_code=401, detail="Sign in required")
    return caller


def require_order_manager(caller: Caller = Depends(resolve_caller)) -> Caller:
    if not caller.manages_orders:
        raise HTTPException(status_code=403, detail="Admin or seller role required")
    return caller


def require_admin(caller: Caller = Depends(resolve_caller)) -> Caller:
    if not caller.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return caller
