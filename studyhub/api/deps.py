"""
FastAPI Dependencies for Authentication and Data Access.

Key patterns:
1. get_session: validates the JWT and yields a SessionContext for the request
2. SessionContext carries the user id, the data access layer and a lazily
   loaded profile; it is built per request and torn down afterwards
3. No global "current user" state - handlers receive the context explicitly

Security model:
- JWT stored in HttpOnly cookie (recommended) or Authorization header
- The token holds only the student id; profile data is read through the
  resilient data access layer (and so works in emergency mode)
"""

import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Annotated
from uuid import UUID

from fastapi import Cookie, Depends, Header, HTTPException, Request, status
from jose import JWTError, jwt

from studyhub.config import get_settings
from studyhub.data.access import StudyData
from studyhub.schemas.students import Student
from studyhub.services.accounts import AccountService, is_admin

logger = logging.getLogger(__name__)

settings = get_settings()


# =============================================================================
# JWT UTILITIES
# =============================================================================


def create_access_token(user_id: UUID) -> str:
    """
    Create a JWT access token for a student.

    Token payload contains:
    - sub: student id as string (standard JWT subject claim)
    - exp: expiration timestamp
    """
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        "sub": str(user_id),
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> UUID | None:
    """Return the student id if the token is valid, None if invalid/expired."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        user_id_str = payload.get("sub")
        if user_id_str is None:
            return None
        return UUID(user_id_str)
    except (JWTError, ValueError):
        return None


# =============================================================================
# APPLICATION SERVICES
# =============================================================================


def get_study_data(request: Request) -> StudyData:
    return request.app.state.study_data


def get_accounts(request: Request) -> AccountService:
    return AccountService(request.app.state.backend)


Data = Annotated[StudyData, Depends(get_study_data)]
Accounts = Annotated[AccountService, Depends(get_accounts)]


# =============================================================================
# SESSION CONTEXT
# =============================================================================


@dataclass
class SessionContext:
    """Everything a handler needs to know about the signed-in student."""

    user_id: UUID
    data: StudyData
    admin_email: str | None = None
    _profile: Student | None = field(default=None, init=False, repr=False)
    _profile_loaded: bool = field(default=False, init=False, repr=False)

    async def profile(self) -> Student | None:
        """The student's profile, fetched at most once per request."""
        if not self._profile_loaded:
            self._profile = await self.data.fetch_student_profile(self.user_id)
            self._profile_loaded = True
        return self._profile

    def set_profile(self, profile: Student | None) -> None:
        self._profile = profile
        self._profile_loaded = True

    async def is_admin(self) -> bool:
        return is_admin(await self.profile(), self.admin_email)

    def close(self) -> None:
        self._profile = None
        self._profile_loaded = False


async def get_token_from_request(
    authorization: Annotated[str | None, Header()] = None,
    access_token: Annotated[str | None, Cookie()] = None,
) -> str:
    """
    Extract JWT token from request.

    Supports two methods (in order of preference):
    1. HttpOnly cookie named 'access_token'
    2. Authorization header: 'Bearer <token>'
    """
    if access_token:
        return access_token

    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_session(
    token: Annotated[str, Depends(get_token_from_request)],
    data: Data,
) -> AsyncGenerator[SessionContext, None]:
    """
    Validate the JWT and yield the request's SessionContext.

    Raises 401 if the token is missing, invalid or expired. The context is
    closed once the response has been produced.
    """
    user_id = decode_access_token(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    context = SessionContext(user_id=user_id, data=data, admin_email=settings.admin_email)
    try:
        yield context
    finally:
        context.close()


Session = Annotated[SessionContext, Depends(get_session)]


async def require_admin(session: Session) -> SessionContext:
    """403 unless the signed-in student is an admin."""
    if not await session.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return session


AdminSession = Annotated[SessionContext, Depends(require_admin)]


async def get_profile_or_404(session: Session) -> Student:
    profile = await session.profile()
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


Profile = Annotated[Student, Depends(get_profile_or_404)]
