# ---------------------------------------------------------
# backend/main.py
# Taskhub - multi-tenant project/task backend
#
# Run: uvicorn backend.main:app --reload (from repo root)
#
# - FastAPI + SQLAlchemy (SQLite locally, PostgreSQL via DATABASE_URL)
# - /auth/*          : tenant signup, login, identity
# - /tenants         : tenant administration (system admins)
# - /users           : tenant users
# - /projects        : projects (+ /projects/{id}/tasks)
# - /tasks, /my-tasks: tasks, status changes, claiming
# - /dashboard/stats : role-dependent aggregates
# - /audit-logs      : audit trail
# ---------------------------------------------------------

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend import routes_auth, routes_dashboard, routes_projects, routes_tasks, routes_tenants, routes_users
from backend.config import CORS_ORIGINS, IS_DEV, IS_PROD, SEED_DEMO_DATA
from backend.db import Database
from backend.errors import AppError
from backend.migrate import run_migrations, seed_demo_data


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", "Invalid request")


def register_exception_handlers(app: FastAPI) -> None:
    """Every error leaves the API as {success: false, message}."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if IS_DEV:
            print(f"[ERROR] {request.method} {request.url.path} -> {exc.status_code} {exc.message}")
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(400, _validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        print(f"[ERROR] Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {exc}")
        return _error(500, "Internal server error")


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        database: Injected Database (tests). When None the lifespan hook opens
            the configured database, migrates it and disposes it on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = database is None
        db = database or Database()
        run_migrations(db)
        if owned and SEED_DEMO_DATA:
            seed_demo_data(db)
        app.state.db = db
        try:
            yield
        finally:
            if owned:
                db.dispose()
                print("[DB] Connection pool disposed")

    app = FastAPI(title="Taskhub Backend", version="0.1", lifespan=lifespan)

    # CORS configuration from config module
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/health")
    def health(request: Request) -> Dict[str, Any]:
        try:
            request.app.state.db.ping()
        except Exception as e:
            print(f"[HEALTH] Database check failed: {type(e).__name__}")
            return _error(503, "Database unavailable")
        return {"success": True, "data": {"status": "ok", "database": "ok"}}

    for module in (routes_auth, routes_tenants, routes_users, routes_projects, routes_tasks, routes_dashboard):
        app.include_router(module.router)

    return app


app = create_app()
