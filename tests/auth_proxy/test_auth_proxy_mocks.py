"""Tests for the canned payloads served to signed-out browsers."""

import uuid

import pytest

from mock_responses import DEFAULT_MOCK_BODY, MockPath, build_mock_body  # type: ignore

MOCK_KWARGS = {
    "fqdn": "dify.example.com",
    "unauthorized_message": "Please sign in",
    "unauthorized_title": "Unauthenticated",
}


class TestMockPath:
    """Test suite for ``MockPath.lookup``."""

    @pytest.mark.parametrize("mock_path", list(MockPath))
    def test_known_paths(self, mock_path):
        """Verify every bootstrap endpoint is recognised."""
        assert MockPath.lookup(mock_path.value) is mock_path

    @pytest.mark.parametrize("path", ["/api/site/", "/API/META", "/api/other", "/"])
    def test_unknown_paths(self, path):
        """Verify matching is exact."""
        assert MockPath.lookup(path) is None


class TestBuildMockBody:
    """Test suite for ``build_mock_body``."""

    def test_meta(self):
        assert build_mock_body("/api/meta", **MOCK_KWARGS) == {"tool_icons": {}}

    def test_parameters_embed_sign_in_link(self):
        """Verify the opening statement carries the message and auth-result URL."""
        body = build_mock_body("/api/parameters", **MOCK_KWARGS)

        assert body["opening_statement"] == (
            "Please sign in\nhttps://dify.example.com/auth-result"
        )
        assert body["suggested_questions"] == []
        assert body["file_upload"] == {"image": {"enabled": False}}
        assert body["system_parameters"] == {"image_file_size_limit": "10"}

    def test_conversations(self):
        body = build_mock_body("/api/conversations", **MOCK_KWARGS)

        assert body == {"limit": 100, "has_more": False, "data": []}

    def test_site_uses_title(self):
        """Verify the site payload shows the configured title."""
        body = build_mock_body("/api/site", **MOCK_KWARGS)

        assert body["site"]["title"] == "Unauthenticated"
        assert body["enable_site"] is True
        assert body["plan"] == "basic"

    def test_site_identifiers_are_fresh_uuids(self):
        """Verify app and end user ids are random per call."""
        first = build_mock_body("/api/site", **MOCK_KWARGS)
        second = build_mock_body("/api/site", **MOCK_KWARGS)

        assert uuid.UUID(first["app_id"]).version == 4
        assert uuid.UUID(first["end_user_id"]).version == 4
        assert first["app_id"] != second["app_id"]

    def test_passport(self):
        assert build_mock_body("/api/passport", **MOCK_KWARGS) == {
            "access_token": "mock",
        }

    def test_unknown_path_returns_copy_of_default(self):
        """Verify callers cannot mutate the shared default body."""
        body = build_mock_body("/api/unknown", **MOCK_KWARGS)
        body["leak"] = True

        assert DEFAULT_MOCK_BODY == {}
        assert build_mock_body("/api/unknown", **MOCK_KWARGS) == {}
