"""Canned payloads served to browsers without a Cognito session.

The chat frontend calls a handful of bootstrap endpoints before it renders.
Answering them with placeholder data lets the page load and show a sign-in
prompt (through ``opening_statement``) instead of failing on a redirect to
the hosted login page.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any


class MockPath(str, Enum):
    """Bootstrap endpoints with a canned response."""

    META = "/api/meta"
    PARAMETERS = "/api/parameters"
    CONVERSATIONS = "/api/conversations"
    SITE = "/api/site"
    PASSPORT = "/api/passport"

    @classmethod
    def lookup(cls, path: str) -> MockPath | None:
        try:
            return cls(path)
        except ValueError:
            return None


# Body returned for any path outside MockPath.
DEFAULT_MOCK_BODY: dict[str, Any] = {}


def _meta() -> dict[str, Any]:
    return {"tool_icons": {}}


def _parameters(unauthorized_message: str, fqdn: str) -> dict[str, Any]:
    return {
        "opening_statement": f"{unauthorized_message}\nhttps://{fqdn}/auth-result",
        "suggested_questions": [],
        "suggested_questions_after_answer": {"enabled": False},
        "speech_to_text": {"enabled": False},
        "text_to_speech": {"enabled": False, "voice": "", "language": ""},
        "retriever_resource": {"enabled": True},
        "annotation_reply": {"enabled": False},
        "more_like_this": {"enabled": False},
        "user_input_form": [],
        "sensitive_word_avoidance": {"enabled": False, "type": "", "configs": []},
        "file_upload": {"image": {"enabled": False}},
        "system_parameters": {"image_file_size_limit": "10"},
    }


def _conversations() -> dict[str, Any]:
    return {"limit": 100, "has_more": False, "data": []}


def _site(unauthorized_title: str) -> dict[str, Any]:
    # Identifiers are regenerated on every call.
    return {
        "app_id": str(uuid.uuid4()),
        "end_user_id": str(uuid.uuid4()),
        "enable_site": True,
        "site": {
            "title": unauthorized_title,
            "chat_color_theme": None,
            "chat_color_theme_inverted": False,
            "icon": "\U0001f916",
            "icon_background": "#FFEAD5",
            "description": None,
            "copyright": None,
            "privacy_policy": None,
            "custom_disclaimer": None,
            "default_language": "en-US",
            "prompt_public": False,
            "show_workflow_steps": True,
        },
        "model_config": None,
        "plan": "basic",
        "can_replace_logo": False,
        "custom_config": None,
    }


def _passport() -> dict[str, Any]:
    return {"access_token": "mock"}


def build_mock_body(
    path: str,
    *,
    fqdn: str,
    unauthorized_message: str,
    unauthorized_title: str,
) -> dict[str, Any]:
    """Return the canned JSON structure for *path*.

    Args:
        path: Request path as received by the load balancer.
        fqdn: Public host name, used to build the sign-in link.
        unauthorized_message: Text shown above the sign-in link.
        unauthorized_title: Site title shown while signed out.

    Returns:
        A fresh dictionary; callers may mutate it freely. Unknown paths get a
        copy of ``DEFAULT_MOCK_BODY``.
    """
    mock_path = MockPath.lookup(path)
    if mock_path is MockPath.META:
        return _meta()
    if mock_path is MockPath.PARAMETERS:
        return _parameters(unauthorized_message, fqdn)
    if mock_path is MockPath.CONVERSATIONS:
        return _conversations()
    if mock_path is MockPath.SITE:
        return _site(unauthorized_title)
    if mock_path is MockPath.PASSPORT:
        return _passport()
    return dict(DEFAULT_MOCK_BODY)
