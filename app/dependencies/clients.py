"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from app.clients import (
    DocumentServerClient,
    MiroOAuthClient,
    SQLiteCache,
    SQLiteStorage,
)
from app.core.config import get_settings
from app.models.oauth import AuthCompositeKey, EncryptedAuthentication
from app.models.settings import BoardSettings, SettingsCompositeKey
from app.services import (
    AuthenticationMapper,
    AuthenticationProcessor,
    BoardSettingsService,
    OAuthTokenService,
    SettingsProcessor,
    TokenCipherService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.oauth.client_secret
    return TokenCipherService(secret=secret)


@lru_cache()
def get_miro_oauth_client() -> MiroOAuthClient:
    """Create a singleton Miro OAuth client."""
    return MiroOAuthClient(_settings().oauth)


@lru_cache()
def get_authentication_mapper() -> AuthenticationMapper:
    return AuthenticationMapper(
        expiry_margin_seconds=_settings().oauth.expiry_margin_seconds
    )


@lru_cache()
def get_auth_storage() -> SQLiteStorage[AuthCompositeKey, EncryptedAuthentication]:
    """Provide the SQLite store holding encrypted OAuth tokens."""
    storage = _settings().storage
    return SQLiteStorage(
        storage.database_path,
        AuthenticationProcessor(),
        timeout_seconds=storage.timeout_seconds,
    )


@lru_cache()
def get_settings_storage() -> SQLiteStorage[SettingsCompositeKey, BoardSettings]:
    """Provide the SQLite store holding board settings."""
    storage = _settings().storage
    return SQLiteStorage(
        storage.database_path,
        SettingsProcessor(),
        timeout_seconds=storage.timeout_seconds,
    )


@lru_cache()
def get_settings_cache() -> SQLiteCache:
    settings = _settings()
    return SQLiteCache(
        settings.storage.database_path,
        key_prefix=settings.cache.key_prefix,
        default_ttl_seconds=settings.cache.ttl_seconds,
    )


@lru_cache()
def get_docserver_client() -> DocumentServerClient:
    return DocumentServerClient(timeout_seconds=_settings().docserver.timeout_seconds)


@lru_cache()
def get_oauth_token_service() -> OAuthTokenService:
    """Provide helper for managing Miro OAuth tokens."""
    return OAuthTokenService(
        storage=get_auth_storage(),
        oauth_client=get_miro_oauth_client(),
        mapper=get_authentication_mapper(),
        token_cipher=get_token_cipher_service(),
    )


@lru_cache()
def get_board_settings_service() -> BoardSettingsService:
    """Provide the board settings service with its cache."""
    settings = _settings()
    return BoardSettingsService(
        storage=get_settings_storage(),
        cache=get_settings_cache(),
        token_cipher=get_token_cipher_service(),
        docserver_client=get_docserver_client(),
        min_version=settings.docserver.min_version,
        cache_ttl_seconds=settings.cache.ttl_seconds,
    )


__all__ = [
    "get_auth_storage",
    "get_authentication_mapper",
    "get_board_settings_service",
    "get_docserver_client",
    "get_miro_oauth_client",
    "get_oauth_token_service",
    "get_settings_cache",
    "get_settings_storage",
    "get_token_cipher_service",
]
