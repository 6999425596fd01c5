"""
backend/schemas_auth.py

Pydantic schemas for the sign-up / sign-in pass-through endpoints.
Passwords are accepted but never echoed or logged.
"""

from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, Field, field_validator


class CredentialsRequest(BaseModel):
    """Email + password, used by both /auth/signup and /auth/signin."""
    email: str = Field(..., min_length=3, max_length=320, description="Account email")
    password: str = Field(..., min_length=1, max_length=200, description="Account password")

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class UserResponse(BaseModel):
    id: str
    email: Optional[str] = None


class SessionResponse(BaseModel):
    """
    access_token is None when the hosted service requires the user to
    confirm their email before the first sign-in.
    """
    access_token: Optional[str] = None
    token_type: str = "bearer"
    user: UserResponse
    confirmation_required: bool = False
