"""tailor_import.auth

Role check for the import endpoints.  Tokens are issued by the shop's login
service; this module only verifies them (HS256 bearer JWT carrying `userId`
or `sub`, and `role`).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from fastapi import Request
from jose import JWTError, jwt

from tailor_import.shared import AuthorizationError

IMPORT_ROLES = ("admin", "manager")


@dataclass(frozen=True)
class Principal:
    user_id: str | None
    role: str


def extract_token(auth_header: str | None) -> str | None:
    if not auth_header:
        return None
    parts = auth_header.split(" ")
    if len(parts) == 2 and parts[0] == "Bearer":
        return parts[1]
    return None


def verify_token(token: str, secret: str, algorithm: str = "HS256") -> dict[str, Any]:
    if not secret:
        raise AuthorizationError("Invalid or expired token")
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as exc:
        raise AuthorizationError("Invalid or expired token") from exc


def authorize(
    auth_header: str | None,
    allowed_roles: tuple[str, ...],
    secret: str,
    algorithm: str = "HS256",
) -> Principal:
    """Return the verified principal or raise AuthorizationError."""
    token = extract_token(auth_header)
    if not token:
        raise AuthorizationError("Authentication required")
    claims = verify_token(token, secret, algorithm)
    role = claims.get("role")
    if role not in allowed_roles:
        raise AuthorizationError("Insufficient permissions")
    user_id = claims.get("userId") or claims.get("sub")
    return Principal(user_id=str(user_id) if user_id is not None else None, role=role)


def require_role(*allowed_roles: str) -> Callable[[Request], Principal]:
    """FastAPI dependency factory enforcing one of allowed_roles."""

    def dependency(request: Request) -> Principal:
        settings = request.app.state.settings
        return authorize(
            request.headers.get("authorization"),
            allowed_roles,
            settings.jwt_secret,
            settings.jwt_algorithm,
        )

    return dependency


def create_token(
    user_id: str,
    role: str,
    secret: str,
    algorithm: str = "HS256",
) -> str:
    """Sign a token.  Production tokens come from the login service."""
    return jwt.encode({"userId": user_id, "role": role}, secret, algorithm=algorithm)
