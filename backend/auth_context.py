"""
backend/auth_context.py

Shared authentication primitives for FastAPI dependency injection.

Contains:
- get_data_service: the process-wide data service, injected into handlers
- AuthContext: identity of the caller, derived from the bearer token
- require_auth_context: FastAPI dependency for auth enforcement

This module MUST NOT import backend.main to avoid circular dependencies.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from backend.config import IS_DEV
from backend.data_service import AuthError, DataService, DataServiceError

# auto_error=False so a missing header yields our own 401 body
security = HTTPBearer(auto_error=False)


def get_data_service(request: Request) -> DataService:
    """
    Return the data service built at startup (app.state.data_service).
    Tests swap it through app.dependency_overrides.
    """
    service = getattr(request.app.state, "data_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Data service not initialised")
    return service


class AuthContext(BaseModel):
    """
    Caller identity. The ONLY source of truth for user_id in protected
    endpoints; user ids in request bodies are never trusted.
    """
    user_id: str
    email: Optional[str] = None
    access_token: str


def require_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    data: DataService = Depends(get_data_service),
) -> AuthContext:
    """
    Verify the bearer token with the data service and return the caller.

    Raises:
        HTTPException(401): missing, expired or invalid token
        HTTPException(503): auth backend unreachable
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        user = data.get_user(credentials.credentials)
    except AuthError as e:
        if IS_DEV:
            print(f"[AUTH] Token rejected: {e}")
        raise HTTPException(status_code=401, detail=str(e) or "Invalid token")
    except DataServiceError as e:
        print(f"[AUTH] Auth backend error: {type(e).__name__}")
        raise HTTPException(status_code=503, detail="Authentication service unavailable")

    if IS_DEV:
        print(f"[AUTH] Authenticated: user_id={user.id}")

    return AuthContext(user_id=user.id, email=user.email, access_token=credentials.credentials)
