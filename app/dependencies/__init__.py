"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_auth_storage,
    get_authentication_mapper,
    get_board_settings_service,
    get_docserver_client,
    get_miro_oauth_client,
    get_oauth_token_service,
    get_settings_cache,
    get_settings_storage,
    get_token_cipher_service,
)
from .config import SettingsDependency, get_app_settings
from .session import Session, issue_session_cookie, require_session

__all__ = [
    "Session",
    "SettingsDependency",
    "get_app_settings",
    "get_auth_storage",
    "get_authentication_mapper",
    "get_board_settings_service",
    "get_docserver_client",
    "get_miro_oauth_client",
    "get_oauth_token_service",
    "get_settings_cache",
    "get_settings_storage",
    "get_token_cipher_service",
    "issue_session_cookie",
    "require_session",
]
