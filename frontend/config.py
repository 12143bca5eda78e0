# frontend/config.py
# Taskhub dashboard settings, resolved once at import from environment variables

import os
from typing import Literal

_DEPLOYMENTS = ("local", "staging", "production")
_LOCAL_BACKEND = "http://127.0.0.1:8000"

# Unknown values fall back to the strictest deployment
_env = os.environ.get("ENV", "production").strip().lower()
ENV: Literal["local", "staging", "production"] = _env if _env in _DEPLOYMENTS else "production"  # type: ignore

IS_LOCAL = ENV == "local"
IS_STAGING = ENV == "staging"
IS_PROD = ENV == "production"
IS_DEV = IS_LOCAL


def validate_api_url(url: str, env: str) -> None:
    """
    Reject backend URLs a deployed dashboard must not talk to.

    Remote deployments (staging/production) need an https:// URL that is not a
    loopback address. Local runs accept anything non-empty.

    Raises:
        ValueError: describing the rejected URL
    """
    if not url:
        raise ValueError("Backend URL is empty")
    if env == "local":
        return
    if not url.startswith("https://"):
        raise ValueError(f"{env} backend URL must use https://, got {url}")
    if any(host in url for host in ("localhost", "127.0.0.1")):
        raise ValueError(f"{env} backend URL points at a loopback host: {url}")


def get_api_base_url(env: str = None) -> str:
    """
    Backend base URL for the given deployment (defaults to ENV).

    BACKEND_URL wins when set; local runs otherwise use the uvicorn default
    on port 8000. Remote deployments without BACKEND_URL are a configuration
    error.

    Raises:
        RuntimeError: BACKEND_URL missing outside local runs
        ValueError: BACKEND_URL fails validate_api_url()
    """
    env = env or ENV
    configured = os.environ.get("BACKEND_URL", "").strip().rstrip("/")
    if configured:
        validate_api_url(configured, env)
        return configured
    if env == "local":
        return _LOCAL_BACKEND
    raise RuntimeError(f"BACKEND_URL must be set when ENV={env}")


# Seconds before an API call is abandoned
API_TIMEOUT_SECONDS = int(os.environ.get("API_TIMEOUT_SECONDS", "20"))

# Raw payload / routing expander in the sidebar
ENABLE_DEBUG_UI = IS_DEV

print(f"[CONFIG] Dashboard environment: {ENV}")
