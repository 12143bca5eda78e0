# frontend/test_api_client.py
# Unit tests for the API client helpers and frontend config (no Streamlit runtime needed)

import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from frontend.api_client import is_public_endpoint, unpack  # noqa: E402
from frontend.config import get_api_base_url, validate_api_url  # noqa: E402


class FakeResponse:
    def __init__(self, status_code, body=None, raw=False):
        self.status_code = status_code
        self._body = body
        self._raw = raw

    def json(self):
        if self._raw:
            raise ValueError("not json")
        return self._body


class TestPublicEndpoints:
    @pytest.mark.parametrize("path", ["/health", "/auth/login", "/auth/register-tenant"])
    def test_public(self, path):
        assert is_public_endpoint(path)

    @pytest.mark.parametrize("path", ["/auth/me", "/projects", "/tasks/abc/claim", "/tenants"])
    def test_protected(self, path):
        assert not is_public_endpoint(path)


class TestUnpack:
    def test_success_envelope(self):
        resp = FakeResponse(200, {"success": True, "data": {"id": "t1"}, "message": "ok"})
        assert unpack(resp) == (True, {"id": "t1"}, "ok")

    def test_error_envelope(self):
        resp = FakeResponse(402, {"success": False, "message": "Limit reached for users: 5/5 (free plan)"})
        ok, data, message = unpack(resp)
        assert not ok
        assert data is None
        assert message.startswith("Limit reached")

    def test_non_json(self):
        assert unpack(FakeResponse(502, raw=True)) == (False, None, "HTTP 502")

    def test_no_response(self):
        ok, _, message = unpack(None)
        assert not ok
        assert message == "No response from backend"


class TestConfig:
    def test_local_default(self, monkeypatch):
        monkeypatch.delenv("BACKEND_URL", raising=False)
        assert get_api_base_url(env="local") == "http://127.0.0.1:8000"

    def test_backend_url_trailing_slash(self, monkeypatch):
        monkeypatch.setenv("BACKEND_URL", "https://api.taskhub.example/")
        assert get_api_base_url(env="production") == "https://api.taskhub.example"

    def test_production_requires_url(self, monkeypatch):
        monkeypatch.delenv("BACKEND_URL", raising=False)
        with pytest.raises(RuntimeError):
            get_api_base_url(env="production")

    def test_production_rejects_http_and_localhost(self):
        with pytest.raises(ValueError):
            validate_api_url("http://api.taskhub.example", "production")
        with pytest.raises(ValueError):
            validate_api_url("https://localhost:8000", "staging")
        validate_api_url("http://127.0.0.1:8000", "local")
