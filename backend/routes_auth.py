"""
backend/routes_auth.py

Sign-up / sign-in endpoints. Both are thin pass-throughs to the data
service's auth primitives; session state beyond the access token is owned
by the hosted service.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from backend.auth_context import AuthContext, get_data_service, require_auth_context
from backend.config import IS_DEV
from backend.data_service import AuthError, AuthSession, DataService, DataServiceError
from backend.schemas_auth import CredentialsRequest, SessionResponse, UserResponse

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


def _session_response(session: AuthSession) -> SessionResponse:
    return SessionResponse(
        access_token=session.access_token,
        user=UserResponse(id=session.user.id, email=session.user.email),
        confirmation_required=session.access_token is None,
    )


@router.post("/signup", response_model=SessionResponse)
def sign_up(req: CredentialsRequest, data: DataService = Depends(get_data_service)) -> SessionResponse:
    """
    Register a new user.

    Raises:
        HTTPException(400): rejected by the auth service (duplicate email, weak password)
        HTTPException(500): auth service failure
    """
    try:
        session = data.sign_up(req.email, req.password)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e) or "Sign up failed")
    except DataServiceError as e:
        print(f"[AUTH] Sign up failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to sign up")

    if IS_DEV:
        print(f"[AUTH] Signed up user_id={session.user.id}")
    return _session_response(session)


@router.post("/signin", response_model=SessionResponse)
def sign_in(req: CredentialsRequest, data: DataService = Depends(get_data_service)) -> SessionResponse:
    """
    Exchange email + password for an access token.

    Raises:
        HTTPException(401): wrong credentials (message is deliberately generic)
        HTTPException(500): auth service failure
    """
    try:
        session = data.sign_in(req.email, req.password)
    except AuthError:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    except DataServiceError as e:
        print(f"[AUTH] Sign in failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to sign in")

    if IS_DEV:
        print(f"[AUTH] Signed in user_id={session.user.id}")
    return _session_response(session)


@router.get("/me", response_model=UserResponse)
def me(ctx: AuthContext = Depends(require_auth_context)) -> UserResponse:
    return UserResponse(id=ctx.user_id, email=ctx.email)
