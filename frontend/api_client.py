"""
frontend/api_client.py
Centralized API client for all backend requests.

This module ensures:
1. All API calls automatically attach Authorization header when authenticated
2. Consistent error handling for 401 (session expiry) and 403 (permission)
3. Centralized API base URL configuration (dev/staging/prod)
4. The backend envelope {success, data, message} is unpacked in one place
"""

from typing import Any, Dict, Literal, Optional, Tuple

import requests
import streamlit as st

# Import config (robust fallback for different run contexts)
try:
    from frontend.config import API_TIMEOUT_SECONDS, IS_DEV, get_api_base_url
except ModuleNotFoundError:
    from config import API_TIMEOUT_SECONDS, IS_DEV, get_api_base_url

# Import auth helpers
try:
    from frontend.auth import clear_auth, get_auth_header
except ModuleNotFoundError:
    from auth import clear_auth, get_auth_header


__all__ = ["api_request", "api_call", "unpack", "is_public_endpoint"]

PUBLIC_PATHS = ("/health", "/auth/login", "/auth/register-tenant")


def is_public_endpoint(path: str) -> bool:
    """
    Check if endpoint is public (doesn't require authentication).

    Public endpoints: /health, /auth/login, /auth/register-tenant.
    Everything else requires the Authorization header.
    """
    return path in PUBLIC_PATHS


def unpack(resp: Optional[requests.Response]) -> Tuple[bool, Any, str]:
    """
    Split a backend response into (ok, data, message).

    Works for every response since the backend wraps successes and errors in
    the same envelope. Non-JSON bodies become (False, None, "HTTP <code>").
    """
    if resp is None:
        return False, None, "No response from backend"
    try:
        body = resp.json()
    except ValueError:
        return False, None, f"HTTP {resp.status_code}"
    if not isinstance(body, dict):
        return False, None, f"HTTP {resp.status_code}"
    ok = bool(body.get("success")) and resp.status_code < 400
    return ok, body.get("data"), body.get("message") or ""


def api_request(
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE"],
    path: str,
    json: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    timeout: int = API_TIMEOUT_SECONDS,
) -> Optional[requests.Response]:
    """
    Make an API request with automatic auth header attachment and error handling.

    This is the ONLY function that should make backend API calls.

    Security:
    - Never logs or prints tokens/auth headers
    - Sanitizes error messages to prevent credential exposure

    Returns:
        Response object, or None on connection/config errors (a message is shown)
    """
    try:
        base_url = get_api_base_url()
    except (RuntimeError, ValueError) as e:
        st.error(f"Configuration error: {e}")
        return None

    url = f"{base_url}{path}"
    headers = {"Accept": "application/json"}
    if not is_public_endpoint(path):
        headers.update(get_auth_header())

    try:
        resp = requests.request(method, url, json=json, params=params, headers=headers, timeout=timeout)
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
        error_msg = str(e)
        if "bearer" in error_msg.lower() or "authorization" in error_msg.lower():
            error_msg = "Authentication error (details hidden for security)"
        if IS_DEV:
            print(f"[API] Unexpected error on {method} {path}: {error_msg}")
        st.error(f"Unexpected error: {error_msg[:100]}")
        return None

    # Fixed-lifetime tokens: a 401 on a protected call means the session is over
    if resp.status_code == 401 and not is_public_endpoint(path):
        if IS_DEV:
            print(f"[API] 401 on {path}, clearing session")
        _handle_session_expired()
        return None

    if resp.status_code == 403 and IS_DEV:
        print(f"[API] 403 Forbidden on {path}")

    return resp


def api_call(method: str, path: str, **kwargs) -> Tuple[bool, Any, str]:
    """api_request() + unpack() for the common case."""
    return unpack(api_request(method, path, **kwargs))


def _handle_session_expired() -> None:
    st.warning("Your session has expired. Please log in again.")
    clear_auth()
    st.session_state["nav_page"] = "Login"
    st.rerun()
