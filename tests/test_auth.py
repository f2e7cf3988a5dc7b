"""Unit tests for admin token authentication module."""

import asyncio
import json
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from app.adapters.store.in_memory import InMemoryChapterRepository
from app.core.app_factory import create_app
from app.core.auth import extract_token, validate_admin_token, verify_admin_token
from app.core.container import build_container
from app.core.errors import AuthenticationAppError


class TestExtractToken:
    """Test token extraction from request headers."""

    def test_prefers_admin_header(self) -> None:
        assert extract_token("from-header", "Bearer from-bearer") == "from-header"

    def test_falls_back_to_bearer(self) -> None:
        assert extract_token(None, "Bearer abc") == "abc"

    def test_bearer_scheme_is_case_insensitive(self) -> None:
        assert extract_token(None, "bearer abc") == "abc"

    def test_ignores_other_schemes(self) -> None:
        assert extract_token(None, "Basic abc") is None

    def test_whitespace_only_header_counts_as_missing(self) -> None:
        assert extract_token("   ", None) is None


class TestValidateAdminToken:
    """Test core admin token validation logic."""

    def test_raises_when_no_token_configured(self) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_admin_token("some-token", None)

        assert exc_info.value.code == "admin_token_not_configured"
        assert exc_info.value.status_code == 401

    def test_raises_when_token_missing(self) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_admin_token(None, "expected")

        assert exc_info.value.code == "missing_admin_token"
        assert exc_info.value.message == "Authentication token is required"

    def test_rejects_wrong_token(self) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_admin_token("wrong", "expected")

        assert exc_info.value.code == "invalid_admin_token"
        assert exc_info.value.message == "Invalid authentication token"

    def test_accepts_matching_token(self) -> None:
        # Should not raise
        validate_admin_token("expected", "expected")


def _request_with_token(token: str | None) -> Mock:
    request = Mock()
    request.app.state.settings.auth.admin_token = token
    return request


class TestVerifyAdminTokenDependency:
    """Test FastAPI dependency for admin token verification."""

    @pytest.mark.asyncio
    async def test_accepts_admin_header(self) -> None:
        await verify_admin_token(_request_with_token("expected"), x_admin_token="expected", authorization=None)

    @pytest.mark.asyncio
    async def test_accepts_bearer_token(self) -> None:
        await verify_admin_token(
            _request_with_token("expected"),
            x_admin_token=None,
            authorization="Bearer expected",
        )

    @pytest.mark.asyncio
    async def test_raises_when_headers_missing(self) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            await verify_admin_token(_request_with_token("expected"), x_admin_token=None, authorization=None)

        assert exc_info.value.code == "missing_admin_token"


class TestAdminTokenFromAppSettings:
    """The upload route checks the token of the settings the app was built with."""

    def test_uses_token_from_injected_settings(self, test_settings, chapter_factory) -> None:
        test_settings.auth.admin_token = "container-token"
        container = asyncio.run(build_container(test_settings, repository=InMemoryChapterRepository()))
        client = TestClient(create_app(container))

        accepted = client.post(
            "/api/v1/chapters",
            files={"chaptersFile": ("c.json", json.dumps([chapter_factory()]), "application/json")},
            headers={"X-Admin-Token": "container-token"},
        )
        rejected = client.post(
            "/api/v1/chapters",
            files={"chaptersFile": ("c.json", json.dumps([chapter_factory()]), "application/json")},
            headers={"X-Admin-Token": "test-admin-token"},
        )

        assert accepted.status_code == 200
        assert rejected.status_code == 401
