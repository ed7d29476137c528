"""Acting-user context built from the identity service's JWT."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import FrozenSet, Iterable, Optional
from fastapi import HTTPException, Request, status
import jwt
import logging

from labflow.config import settings, ROLES
from labflow.exceptions import PermissionDenied

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActingContext:
    """Who is performing an operation and what they may do.

    Passed explicitly into every service call; services never look up the
    current user on their own.
    """

    user_id: str
    email: Optional[str] = None
    role: Optional[str] = None
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def for_role(cls, user_id: str, role: str, email: str = None) -> "ActingContext":
        """Context whose permissions are the role's default permission set."""
        return cls(
            user_id=user_id,
            email=email,
            role=role,
            permissions=frozenset(ROLES.get(role, {}).get("permissions", []))
        )

    def require(self, permission: str):
        """Raise PermissionDenied unless the context holds ``permission``."""
        if permission not in self.permissions:
            logger.warning(f"User {self.user_id} lacks permission {permission}")
            raise PermissionDenied(permission, user_id=self.user_id)


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    permissions: Optional[Iterable[str]] = None,
    expires_minutes: int = None
) -> str:
    """Mint a token in the identity service's format (used by tooling and tests)."""
    expires_minutes = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    }
    if permissions is not None:
        payload["permissions"] = sorted(permissions)

    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def context_from_token(token: str) -> ActingContext:
    """
    Decode a bearer token into an ActingContext.

    Permissions come from the token's ``permissions`` claim when present,
    otherwise from the role's defaults in ROLES.

    Raises:
        HTTPException: 401 if the token is expired or invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired"
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    role = payload.get("role", "read_only")
    if "permissions" in payload:
        permissions = frozenset(payload["permissions"])
    else:
        permissions = frozenset(ROLES.get(role, {}).get("permissions", []))

    return ActingContext(
        user_id=str(user_id),
        email=payload.get("email"),
        role=role,
        permissions=permissions
    )


def get_acting_context(request: Request) -> ActingContext:
    """FastAPI dependency: the acting context of the current request."""
    auth_header = request.headers.get("Authorization")
    access_token_cookie = request.cookies.get("access_token")

    token = None
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.replace("Bearer ", "")
    elif access_token_cookie:
        token = access_token_cookie

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )

    return context_from_token(token)
