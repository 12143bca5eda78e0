"""
backend/auth_context.py

Shared authentication primitives for FastAPI dependency injection.

Contains:
- hash_password / verify_password: credential verifier (bcrypt)
- create_access_token / verify_token: session token codec (JWT)
- AuthContext: immutable identity + tenant boundary for a request
- authenticate: credentials (+ tenant hint) -> session token
- require_auth_context: FastAPI dependency for auth enforcement
- get_database: the Database handle owned by the app

This module MUST NOT import backend.main to avoid circular dependencies.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict

from backend.config import (
    ACCESS_TOKEN_HOURS,
    ALGORITHM,
    BCRYPT_ROUNDS,
    IS_DEV,
    SECRET_KEY,
    SYSTEM_TENANT_HINT,
)
from backend.db import Database, fetch_one
from backend.errors import (
    AuthenticationError,
    AuthorizationError,
    TenantNotFoundError,
    ValidationError,
)
from backend.models import Role, TenantStatus, User, to_public
from backend.modules.audit import record_audit

# Security scheme for HTTPBearer. auto_error is off so a missing header is a
# 401 from our own error envelope rather than FastAPI's default 403.
security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------
# Database handle
# ---------------------------------------------------------
def get_database(request: Request) -> Database:
    """The Database created at startup (see main.create_app)."""
    return request.app.state.db


# ---------------------------------------------------------
# Credential verifier
# ---------------------------------------------------------
def _password_bytes(password: str) -> bytes:
    raw = (password or "").encode("utf-8")
    if len(raw) > 72:
        # bcrypt only looks at the first 72 bytes
        raise ValidationError("Password is too long")
    return raw


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    raw = (password or "").encode("utf-8")
    try:
        # Over-long input can never match but still costs one bcrypt comparison
        matched = bcrypt.checkpw(raw[:72], password_hash.encode("utf-8"))
    except ValueError:
        return False
    return matched and len(raw) <= 72


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # Compared against when the user does not exist, so both failure paths cost the same
    return hash_password("not-a-real-password")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


# ---------------------------------------------------------
# Session token codec
# ---------------------------------------------------------
def create_access_token(user_id: str, tenant_id: Optional[str], role: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "tenant_id": tenant_id,
        "role": role,
        "iat": now,
        "exp": now + timedelta(hours=ACCESS_TOKEN_HOURS),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> dict:
    """
    Verify a session token and return its claims.

    Raises:
        AuthenticationError: token expired or invalid
    """
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")


# ---------------------------------------------------------
# AuthContext - tenant boundary for a request
# ---------------------------------------------------------
class AuthContext(BaseModel):
    """
    Immutable identity derived from the session token + the users table.

    This is the ONLY source of truth for tenant_id and user_id in protected
    endpoints. Never trust tenant_id/user_id from request bodies or query params.

    Fields:
        user_id: User ID (token `sub`)
        tenant_id: Tenant of the user, None for system-level identities
        role: Role from the users table (source of truth, not the token)
        email: User email
        full_name: Display name
        source_address: Client address, recorded in audit entries
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    tenant_id: Optional[str] = None
    role: Role
    email: str
    full_name: str = ""
    source_address: Optional[str] = None

    @property
    def is_system(self) -> bool:
        return self.role == Role.system_admin


def _client_address(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def require_auth_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthContext:
    """
    Auth context dependency for FastAPI routes.

    Process:
    1. Verify token signature and expiration
    2. Fetch the user record (role and tenant come from the database)
    3. Reject inactive users, suspended tenants and token/user tenant mismatches

    Raises:
        AuthenticationError(401): missing/invalid/expired token or unknown user
        AuthorizationError(403): inactive user or suspended tenant
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")

    payload = verify_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        print("[AUTH] Missing user_id in token payload")
        raise AuthenticationError("Invalid token payload")

    db = get_database(request)
    with db.connect() as conn:
        user = fetch_one(
            conn,
            """
            SELECT u.id, u.tenant_id, u.email, u.full_name, u.role, u.active,
                   t.status AS tenant_status
            FROM users u
            LEFT JOIN tenants t ON t.id = u.tenant_id
            WHERE u.id = :user_id
            """,
            {"user_id": user_id},
        )

    if not user:
        print(f"[AUTH] User not found: user_id={user_id}")
        raise AuthenticationError("User not found")

    if user["tenant_id"] != payload.get("tenant_id"):
        print(f"[AUTH] Token tenant mismatch: user_id={user_id}")
        raise AuthenticationError("Invalid token")

    if not user["active"]:
        print(f"[AUTH] Inactive user attempted access: user_id={user_id}")
        raise AuthorizationError("Account inactive")

    if user["tenant_id"] is not None and user["tenant_status"] != TenantStatus.active.value:
        print(f"[AUTH] Suspended tenant attempted access: tenant_id={user['tenant_id']}")
        raise AuthorizationError("Tenant is suspended")

    ctx = AuthContext(
        user_id=user["id"],
        tenant_id=user["tenant_id"],
        role=Role(user["role"]),
        email=user["email"],
        full_name=user["full_name"] or "",
        source_address=_client_address(request),
    )

    if IS_DEV:
        print(f"[AUTH] Authenticated: user_id={ctx.user_id}, tenant_id={ctx.tenant_id}, role={ctx.role.value}")

    return ctx


# ---------------------------------------------------------
# Login
# ---------------------------------------------------------
def authenticate(
    db: Database,
    email: str,
    password: str,
    tenant_hint: Optional[str] = None,
    source_address: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Resolve credentials into a session token.

    - No hint (or "system"): system-level identity space
    - Otherwise the hint is a tenant subdomain

    Missing user and wrong password raise the same AuthenticationError.

    Returns:
        {"token", "user", "tenant"}

    Raises:
        TenantNotFoundError: unknown subdomain
        AuthenticationError: invalid credentials
        AuthorizationError: inactive user or suspended tenant
    """
    email_norm = normalize_email(email)
    hint = (tenant_hint or "").strip().lower()

    tenant = None
    with db.connect() as conn:
        if not hint or hint == SYSTEM_TENANT_HINT:
            user = fetch_one(
                conn,
                "SELECT * FROM users WHERE email = :email AND role = :role AND tenant_id IS NULL",
                {"email": email_norm, "role": Role.system_admin.value},
            )
        else:
            tenant = fetch_one(
                conn,
                "SELECT id, name, subdomain, status, plan FROM tenants WHERE subdomain = :subdomain",
                {"subdomain": hint},
            )
            if not tenant:
                print("[LOGIN] Unknown tenant subdomain")
                raise TenantNotFoundError()
            user = fetch_one(
                conn,
                "SELECT * FROM users WHERE email = :email AND tenant_id = :tenant_id",
                {"email": email_norm, "tenant_id": tenant["id"]},
            )

    if not user:
        verify_password(password, _dummy_hash())
        print("[LOGIN] Rejected credentials")
        raise AuthenticationError("Invalid credentials")

    if not verify_password(password, user["password_hash"]):
        print("[LOGIN] Rejected credentials")
        raise AuthenticationError("Invalid credentials")

    if not user["active"]:
        raise AuthorizationError("Account inactive")

    if tenant and tenant["status"] != TenantStatus.active.value:
        raise AuthorizationError("Tenant is suspended")

    token = create_access_token(user["id"], user["tenant_id"], user["role"])

    record_audit(
        db,
        action="LOGIN",
        entity_type="user",
        entity_id=user["id"],
        tenant_id=user["tenant_id"],
        user_id=user["id"],
        source_address=source_address,
    )
    print(f"[LOGIN] Session issued: user_id={user['id']}, tenant_id={user['tenant_id']}")

    return {
        "token": token,
        "user": to_public(User, user),
        "tenant": tenant,
    }
