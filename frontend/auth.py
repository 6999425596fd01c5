"""
frontend/auth.py
Centralized authentication state for the CrowdFund frontend.

Streamlit reruns the whole script on every interaction, so auth state lives
in st.session_state and this module is the single place that reads and
writes it:

- init_auth_state(): call at the top of every rerun (idempotent)
- set_auth(): store token + user after sign-in / sign-up
- clear_auth(): sign-out or session expiry
- get_auth_header(): Authorization header for protected API calls

A session is "resolving" when a token is present but its user has not yet
been confirmed by the backend (GET /auth/me). Views show "Loading..." until
it resolves.
"""

from typing import Any, Dict, Optional

import streamlit as st


def init_auth_state() -> None:
    ss = st.session_state

    ss.setdefault("auth_token", None)
    ss.setdefault("current_user", None)
    ss.setdefault("is_authenticated", False)
    ss.setdefault("session_resolved", False)

    # Where to go after sign-in (set by the pledge redirect)
    ss.setdefault("return_to", None)

    # Keep the flag in sync with token presence
    if ss["auth_token"] and not ss["is_authenticated"]:
        ss["is_authenticated"] = True
    elif not ss["auth_token"] and ss["is_authenticated"]:
        ss["is_authenticated"] = False


def set_auth(auth_token: str, current_user: Dict[str, Any]) -> None:
    """
    Set authentication state after a successful sign-in / sign-up.

    Args:
        auth_token: Bearer token for API calls
        current_user: {"id": ..., "email": ...} from the backend
    """
    ss = st.session_state
    ss["auth_token"] = auth_token
    ss["current_user"] = current_user
    ss["is_authenticated"] = True
    ss["session_resolved"] = True


def clear_auth() -> None:
    """Clear all authentication state. Safe to call multiple times."""
    ss = st.session_state
    ss["auth_token"] = None
    ss["current_user"] = None
    ss["is_authenticated"] = False
    ss["session_resolved"] = False
    ss["return_to"] = None


def is_authenticated() -> bool:
    return bool(st.session_state.get("auth_token"))


def is_session_resolving() -> bool:
    """True while a stored token's user is still unconfirmed."""
    ss = st.session_state
    return bool(ss.get("auth_token")) and not ss.get("session_resolved")


def get_current_user() -> Optional[Dict[str, Any]]:
    return st.session_state.get("current_user")


def get_current_user_id() -> Optional[str]:
    user = get_current_user()
    if user and isinstance(user, dict):
        return user.get("id")
    return None


def get_auth_header() -> Dict[str, str]:
    """
    Returns:
        {"Authorization": "Bearer <token>"} if authenticated, {} otherwise
    """
    token = st.session_state.get("auth_token")
    if token:
        return {"Authorization": f"Bearer {token}"}
    return {}


def set_return_to(page: str, project_id: Optional[str] = None) -> None:
    st.session_state["return_to"] = {"page": page, "project_id": project_id}


def pop_return_to() -> Optional[Dict[str, Any]]:
    return st.session_state.pop("return_to", None)
