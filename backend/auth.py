"""
Session handling for staff logged in through the backend API.

The backend token and the teacher's role live in the signed
``session_token`` cookie (Starlette ``SessionMiddleware``). Routes pull
the user out with the ``current_user`` / ``require_role`` dependencies.
"""

from __future__ import annotations

from fastapi import Depends, Request
from pydantic import ValidationError

from models import SessionUser

SESSION_COOKIE = "session_token"

ROLE_ADMIN = "Admin"
ROLE_COUNSELOR = "Guru BK"
EXPORT_ROLES = (ROLE_ADMIN, ROLE_COUNSELOR)


class AuthError(Exception):
    """Missing session (401) or a role that is not allowed (403)."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def store_session(request: Request, token: str, teacher: dict) -> SessionUser:
    """Put the backend token and teacher profile into the session cookie."""
    user = SessionUser(
        jwt=token,
        id=str(teacher["id"]),
        name=teacher["name"],
        email=teacher["email"],
        nip=str(teacher.get("nip") or ""),
        role=teacher.get("role") or "",
    )
    request.session.clear()
    request.session.update(user.model_dump())
    return user


def clear_session(request: Request) -> None:
    request.session.clear()


def current_user(request: Request) -> SessionUser:
    """Dependency: the logged-in user, or a 401."""
    if not request.session.get("jwt"):
        raise AuthError(401, "Unauthorized")
    try:
        return SessionUser.model_validate(request.session)
    except ValidationError:
        request.session.clear()
        raise AuthError(401, "Unauthorized")


def require_role(*roles: str):
    """Dependency factory: like ``current_user`` but also checks the role."""

    def dependency(user: SessionUser = Depends(current_user)) -> SessionUser:
        if user.role not in roles:
            raise AuthError(403, f"Akses ditolak. Hanya {' dan '.join(roles)} yang dapat mengakses fitur ini.")
        return user

    return dependency
