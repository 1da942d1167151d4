"""
Authentication Routes

Endpoints:
- POST /auth/signup - Create an email/password account
- POST /auth/login - Email/password sign-in
- POST /auth/google - Exchange Google id_token for session
- POST /auth/logout - Clear session
- GET /auth/me - Session check: admin, onboarding and emergency flags

Every successful sign-in answers with a JWT (cookie and body) and
`needs_onboarding`, which tells the client whether to show onboarding or
go straight to the home page.
"""

import logging

from fastapi import APIRouter, HTTPException, Response, status
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token

from studyhub.api.deps import Accounts, Session, create_access_token
from studyhub.config import get_settings, sanitize_error
from studyhub.data.errors import BackendError
from studyhub.schemas.auth import GoogleAuthRequest, LoginRequest, SessionInfo, SignUpRequest, TokenResponse
from studyhub.services.accounts import DuplicateAccountError, InvalidCredentialsError, SignInResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()


def _service_unavailable(error: BackendError) -> HTTPException:
    logger.error("Account store unavailable: %s", error)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=sanitize_error(error, generic_message="Sign-in is temporarily unavailable."),
    )


def _issue_session(result: SignInResult, response: Response) -> TokenResponse:
    access_token = create_access_token(result.student.id)
    expires_in = settings.jwt_expire_minutes * 60

    # For cross-domain deployments, use samesite="none" + secure=True
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        secure=settings.cookie_cross_domain or settings.environment != "development",
        samesite="none" if settings.cookie_cross_domain else "lax",
        max_age=expires_in,
    )

    return TokenResponse(
        access_token=access_token,
        expires_in=expires_in,
        needs_onboarding=result.needs_onboarding,
    )


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(request: SignUpRequest, response: Response, accounts: Accounts) -> TokenResponse:
    """Create an email/password account and sign it in."""
    try:
        result = await accounts.sign_up(request.email, request.password, request.full_name)
    except DuplicateAccountError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except BackendError as e:
        raise _service_unavailable(e)
    return _issue_session(result, response)


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, response: Response, accounts: Accounts) -> TokenResponse:
    try:
        result = await accounts.sign_in(request.email, request.password)
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    except BackendError as e:
        raise _service_unavailable(e)
    return _issue_session(result, response)


@router.post("/google", response_model=TokenResponse)
async def google_login(
    request: GoogleAuthRequest,
    response: Response,
    accounts: Accounts,
) -> TokenResponse:
    """
    Exchange Google id_token for a session JWT.

    The id_token is verified cryptographically (signature, expiry, audience)
    with Google's public keys; only verified emails are used for linking.
    """
    try:
        idinfo = google_id_token.verify_oauth2_token(
            request.id_token,
            google_requests.Request(),
            settings.google_client_id,
        )

        provider_user_id = idinfo["sub"]
        email = idinfo.get("email")
        name = idinfo.get("name")

        if idinfo.get("iss") not in ["accounts.google.com", "https://accounts.google.com"]:
            raise ValueError("Invalid issuer")

        # Unverified emails could allow account hijacking
        if email and not idinfo.get("email_verified", False):
            email = None

    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid Google id_token: {e}",
        )

    try:
        result = await accounts.sign_in_google(provider_user_id, email, name)
    except BackendError as e:
        raise _service_unavailable(e)
    return _issue_session(result, response)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response) -> None:
    """
    Clear the authentication cookie.

    A JWT stored elsewhere by the client stays valid until it expires.
    """
    response.delete_cookie(
        key="access_token",
        httponly=True,
        secure=settings.cookie_cross_domain or settings.environment != "development",
        samesite="none" if settings.cookie_cross_domain else "lax",
    )


@router.get("/me", response_model=SessionInfo)
async def get_me(session: Session) -> SessionInfo:
    """
    Verify the session and report where the client should go next.

    Useful after a page reload: onboarding, home, or the admin area.
    """
    profile = await session.profile()
    return SessionInfo(
        user_id=session.user_id,
        is_admin=await session.is_admin(),
        needs_onboarding=profile is None or profile.needs_onboarding,
        emergency_mode=session.data.offline,
    )
