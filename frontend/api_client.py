"""
frontend/api_client.py
Centralized API client for all backend requests.

This module ensures:
1. Protected calls carry the Authorization header when a session exists
2. Connection errors and timeouts surface as one banner, never a traceback
3. A 401 on a protected call ends the session and sends the user to Sign In
4. Every call carries a timeout; nothing is retried automatically
"""

from typing import Any, Dict, Literal, Optional

import requests
import streamlit as st

from frontend.auth import clear_auth, get_auth_header
from frontend.config import IS_DEV, REQUEST_TIMEOUT, get_api_base_url

__all__ = ["api_request", "error_message", "is_public_endpoint"]

PUBLIC_PATHS = ("/auth/signin", "/auth/signup")


def is_public_endpoint(method: str, path: str) -> bool:
    """
    Sign-in / sign-up and all reads are public. Every other call is protected.

    Args:
        method: HTTP method
        path: API endpoint path (e.g., "/api/projects")
    """
    if path in PUBLIC_PATHS:
        return True
    return method == "GET" and path.startswith("/api/projects")


def api_request(
    method: Literal["GET", "POST"],
    path: str,
    json: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    timeout: int = REQUEST_TIMEOUT,
) -> Optional[requests.Response]:
    """
    Make an API request with auth header attachment and error handling.

    Returns:
        Response object (any status), or None on connection error/timeout

    Does NOT raise - returns None on error and shows a user-facing message.
    """
    try:
        base_url = get_api_base_url()
    except (RuntimeError, ValueError) as e:
        st.error(f"Configuration error: {e}")
        return None

    url = f"{base_url}{path}"
    headers = {"Accept": "application/json"}
    public = is_public_endpoint(method, path)
    if not public:
        headers.update(get_auth_header())

    try:
        if method == "GET":
            resp = requests.get(url, headers=headers, params=params, timeout=timeout)
        elif method == "POST":
            resp = requests.post(url, json=json, headers=headers, params=params, timeout=timeout)
        else:
            raise ValueError(f"Unsupported HTTP method: {method}")
    except requests.exceptions.Timeout:
        if IS_DEV:
            print(f"[API] Timeout on {method} {path}")
        st.error(f"Request timed out after {timeout}s. Please try again.")
        return None
    except requests.exceptions.ConnectionError:
        if IS_DEV:
            print(f"[API] Connection error on {method} {path}")
        st.error(f"Cannot connect to backend at {base_url}. Please check your connection.")
        return None
    except requests.exceptions.RequestException as e:
        # Never include headers in the message
        print(f"[API] Request failed on {method} {path}: {type(e).__name__}")
        st.error("Unexpected error talking to the backend.")
        return None

    if IS_DEV:
        print(f"[API] {method} {path} -> {resp.status_code}")

    if resp.status_code == 401 and not public:
        _handle_session_expired()

    return resp


def error_message(resp: Optional[requests.Response], default: str) -> str:
    """The backend's {"error": ...} text, or `default`."""
    if resp is None:
        return default
    try:
        body = resp.json()
    except ValueError:
        return default
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return default


def _handle_session_expired() -> None:
    """Clear auth and redirect to Sign In."""
    if IS_DEV:
        print("[API] 401 on protected call, session cleared")
    st.warning("Your session has expired. Please sign in again.")
    clear_auth()
    st.session_state["nav_page"] = "Sign In"
