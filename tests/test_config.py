try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import logging

import pytest
from pydantic import ValidationError

from app.core.config import CookieSettings, OAuthSettings
from app.core.logging import ContextFormatter


def test_oauth_settings_reject_trailing_slash() -> None:
    with pytest.raises(ValidationError):
        OAuthSettings(
            OAUTH_CLIENT_ID="client",
            OAUTH_CLIENT_SECRET="secret",
            OAUTH_REDIRECT_URI="https://example.com/callback/",
        )


def test_oauth_settings_defaults_to_whiteboard_endpoints() -> None:
    settings = OAuthSettings(
        OAUTH_CLIENT_ID="client",
        OAUTH_CLIENT_SECRET="secret",
        OAUTH_REDIRECT_URI="https://example.com/callback",
    )

    assert settings.token_uri == "https://api.miro.com/v1/oauth/token"
    assert settings.expiry_margin_seconds == 10


def test_cookie_same_site_is_case_insensitive() -> None:
    assert CookieSettings(COOKIE_SAME_SITE="Lax").same_site == "lax"

    with pytest.raises(ValidationError):
        CookieSettings(COOKIE_SAME_SITE="sometimes")


def test_context_formatter_appends_identifiers() -> None:
    formatter = ContextFormatter("%(message)s")
    record = logging.LogRecord("test", logging.INFO, __file__, 1, "Saved", None, None)
    record.team_id = "team-1"
    record.user_id = "user-1"

    assert formatter.format(record) == "Saved | team_id=team-1 user_id=user-1"
