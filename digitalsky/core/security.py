"""Bearer token authentication and role checks.

Provides:
- JWT access token creation and verification
- get_current_user dependency for protected endpoints
- require_role dependency factory for role-gated endpoints
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from digitalsky.core.config import settings
from digitalsky.core.logging import get_auth_logger

logger = get_auth_logger()

# Security scheme for authentication
security = HTTPBearer()


@dataclass(frozen=True)
class CurrentUser:
    """Identity of the caller, taken from the access token."""

    user_id: str
    email: str
    role: str
    full_name: Optional[str] = None
    token_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role.upper() == settings.ADMIN_ROLE.upper()

    @property
    def display_name(self) -> str:
        return self.full_name or self.email


def create_access_token(
    user_id: str,
    email: str,
    role: str = "USER",
    full_name: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access token.

    Args:
        user_id: Subject of the token
        email: User email
        role: User role (e.g. USER or ADMIN)
        full_name: Display name recorded on approvals
        expires_delta: Lifetime override

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload: Dict[str, Any] = {
        "sub": user_id,
        "email": email,
        "role": role,
        "token_type": "access",
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": expire,
    }
    if full_name:
        payload["name"] = full_name

    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode a token, returning None if it is invalid or expired."""
    try:
        return jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.ExpiredSignatureError:
        logger.info("Token verification failed: expired")
        return None
    except jwt.PyJWTError as e:
        logger.warning("Token verification failed", error=str(e))
        return None


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    FastAPI dependency to get the current user from the bearer token.

    Raises:
        HTTPException: 401 if the token is invalid, expired or incomplete
    """
    payload = verify_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("token_type") != "access":
        logger.warning(
            "Authentication failed: Invalid token type",
            provided_type=payload.get("token_type"),
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type"
        )

    user_id = payload.get("sub")
    email = payload.get("email")
    role = payload.get("role")
    if not all([user_id, email, role]):
        logger.error(
            "Authentication failed: Invalid token payload",
            user_id=bool(user_id),
            email=bool(email),
            role=bool(role),
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload"
        )

    if settings.ENABLE_AUTH_AUDIT_LOGGING:
        logger.info("Authentication success", user_id=user_id, role=role)

    return CurrentUser(
        user_id=user_id,
        email=email,
        role=role,
        full_name=payload.get("name"),
        token_id=payload.get("jti"),
    )


def require_role(role: str):
    """Build a dependency that only lets callers with ``role`` through."""

    def dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role.upper() != role.upper():
            logger.warning(
                "Access denied: missing role",
                user_id=current_user.user_id,
                required_role=role,
                role=current_user.role,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Access is denied"
            )
        return current_user

    return dependency


def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Dependency for administrator-only endpoints."""
    return require_role(settings.ADMIN_ROLE)(current_user)
