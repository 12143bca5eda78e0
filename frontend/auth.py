"""
frontend/auth.py
Centralized authentication state management for the Taskhub frontend.

Streamlit reruns the whole script on every interaction, so auth state lives in
st.session_state and is initialized at the top of every rerun:

- init_auth_state(): MUST be called at the top of main()
- set_auth(): stores token + user + tenant after login/registration
- clear_auth(): wipes auth state on logout or session expiry
- require_auth(): guards protected pages
- get_auth_header(): Authorization header for every protected API call
"""

from typing import Any, Dict, Optional

import streamlit as st


def init_auth_state() -> None:
    """Ensure auth keys exist (idempotent)."""
    ss = st.session_state
    ss.setdefault("auth_token", None)
    ss.setdefault("current_user", None)
    ss.setdefault("current_tenant", None)
    ss.setdefault("is_authenticated", False)

    # Keep the flag in sync with the token
    ss["is_authenticated"] = bool(ss["auth_token"])


def set_auth(auth_token: str, current_user: Dict[str, Any], current_tenant: Optional[Dict[str, Any]] = None) -> None:
    """
    Set authentication state after successful login/registration.

    Args:
        auth_token: Session token (Bearer token, valid 24h)
        current_user: User object from backend (id, email, full_name, role, tenant_id)
        current_tenant: Tenant summary, None for system administrators
    """
    ss = st.session_state
    ss["auth_token"] = auth_token
    ss["current_user"] = current_user
    ss["current_tenant"] = current_tenant
    ss["is_authenticated"] = True


def clear_auth() -> None:
    """Clear all authentication state. Safe to call multiple times."""
    ss = st.session_state
    ss["auth_token"] = None
    ss["current_user"] = None
    ss["current_tenant"] = None
    ss["is_authenticated"] = False


def is_authenticated() -> bool:
    return bool(st.session_state.get("auth_token"))


def get_current_user() -> Optional[Dict[str, Any]]:
    return st.session_state.get("current_user")


def get_current_tenant() -> Optional[Dict[str, Any]]:
    return st.session_state.get("current_tenant")


def get_auth_header() -> Dict[str, str]:
    """
    Get Authorization header dict for API requests.

    Returns:
        {"Authorization": "Bearer <token>"} if authenticated, {} otherwise
    """
    token = st.session_state.get("auth_token")
    if token:
        return {"Authorization": f"Bearer {token}"}
    return {}


def require_auth(redirect_to_login: bool = True) -> bool:
    """
    Guard for protected pages.

    Usage at top of page render functions:
        if not require_auth():
            return

    Returns:
        True if authenticated (continue execution), False otherwise
    """
    if not is_authenticated():
        st.warning("You must be logged in to access this page.")
        if redirect_to_login:
            st.session_state["nav_page"] = "Login"
        if st.button("Go to Login", type="primary"):
            st.session_state["nav_page"] = "Login"
            st.rerun()
        return False
    return True


def get_role() -> Optional[str]:
    user = get_current_user()
    if user and isinstance(user, dict):
        return user.get("role")
    return None


def get_user_id() -> Optional[str]:
    user = get_current_user()
    if user and isinstance(user, dict):
        return user.get("id")
    return None
