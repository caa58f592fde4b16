"""Service layer exports."""

from .board_settings import BoardSettingsService, SettingsError, SettingsValidationError
from .oauth_tokens import (
    AuthenticationMapper,
    OAuthTokenService,
    TokenMissingError,
    TokenServiceError,
)
from .storage_processors import AuthenticationProcessor, SettingsProcessor
from .token_cipher import TokenCipherService

__all__ = [
    "AuthenticationMapper",
    "AuthenticationProcessor",
    "BoardSettingsService",
    "OAuthTokenService",
    "SettingsError",
    "SettingsProcessor",
    "SettingsValidationError",
    "TokenCipherService",
    "TokenMissingError",
    "TokenServiceError",
]
