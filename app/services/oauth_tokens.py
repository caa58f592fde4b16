"""
Persistence and refresh-on-read lifecycle for whiteboard OAuth tokens.

Tokens are encrypted before they reach storage and decrypted on the way out.
A read that finds an expired token refreshes it with the provider, persists
the new pair in place and hands the caller the fresh plaintext record.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, Protocol

from app.clients.sqlite_store import RecordNotFoundError, Storage, StorageError
from app.models.oauth import AuthCompositeKey, Authentication, EncryptedAuthentication
from app.schemas.auth import AuthenticationResponse
from app.services.token_cipher import CipherError, TokenCipherService

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TokenServiceError(Exception):
    """Base class for token lifecycle failures."""


class TokenMissingError(TokenServiceError):
    """No usable authentication exists; the user must authorize again."""


class EncryptionFailedError(TokenServiceError):
    """A token could not be encrypted before persisting."""


class DecryptionFailedError(TokenServiceError):
    """A stored token could not be decrypted (corruption or secret rotation)."""


class ConversionFailedError(TokenServiceError):
    """A provider token payload cannot be turned into an authentication record."""


class RefreshClient(Protocol):
    async def refresh(self, refresh_token: str) -> AuthenticationResponse: ...


class AuthenticationMapper:
    """Convert provider token payloads into authentication records.

    One margin is applied to every provider lifetime, whether the token came
    from an authorization-code exchange or a refresh.
    """

    def __init__(self, *, expiry_margin_seconds: int = 10, clock: Clock = time.time) -> None:
        self._margin = expiry_margin_seconds
        self._clock = clock

    def convert(self, token: AuthenticationResponse) -> Authentication:
        if not token.access_token:
            raise ConversionFailedError("Provider token payload has no access token.")
        if token.expires_in <= 0:
            raise ConversionFailedError(
                f"Provider reported a non-positive lifetime: {token.expires_in}"
            )
        expires_at = int(self._clock()) + token.expires_in - self._margin
        return Authentication(
            token_type=token.token_type,
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            expires_at=expires_at,
            scope=token.scope,
        )


class _KeyedLocks:
    """Per-key ``asyncio.Lock`` registry that forgets idle keys."""

    def __init__(self) -> None:
        self._locks: Dict[AuthCompositeKey, asyncio.Lock] = {}
        self._waiters: Dict[AuthCompositeKey, int] = {}

    @asynccontextmanager
    async def hold(self, key: AuthCompositeKey) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if not self._waiters[key]:
                del self._waiters[key]
                del self._locks[key]


class OAuthTokenService:
    """Stores encrypted OAuth tokens and returns usable ones on demand."""

    def __init__(
        self,
        storage: Storage[AuthCompositeKey, EncryptedAuthentication],
        oauth_client: RefreshClient,
        mapper: AuthenticationMapper,
        token_cipher: TokenCipherService,
        *,
        clock: Clock = time.time,
    ) -> None:
        self._storage = storage
        self._oauth = oauth_client
        self._mapper = mapper
        self._cipher = token_cipher
        self._clock = clock
        self._refresh_locks = _KeyedLocks()

    def _encrypt(self, auth: Authentication) -> EncryptedAuthentication:
        if not isinstance(auth, Authentication):
            raise TypeError(f"Expected plaintext Authentication, got {type(auth).__name__}")
        try:
            access_token = self._cipher.encrypt(auth.access_token)
            refresh_token = self._cipher.encrypt(auth.refresh_token)
        except CipherError as exc:
            raise EncryptionFailedError("Failed to encrypt OAuth token.") from exc
        return EncryptedAuthentication(
            token_type=auth.token_type,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=auth.expires_at,
            scope=auth.scope,
        )

    def _decrypt(self, auth: EncryptedAuthentication) -> Authentication:
        if not isinstance(auth, EncryptedAuthentication):
            raise TypeError(
                f"Expected EncryptedAuthentication, got {type(auth).__name__}"
            )
        try:
            access_token = self._cipher.decrypt(auth.access_token)
            refresh_token = self._cipher.decrypt(auth.refresh_token)
        except CipherError as exc:
            raise DecryptionFailedError("Failed to decrypt stored OAuth token.") from exc
        return Authentication(
            token_type=auth.token_type,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=auth.expires_at,
            scope=auth.scope,
        )

    async def _load(self, key: AuthCompositeKey) -> EncryptedAuthentication:
        context = {"team_id": key.team_id, "user_id": key.user_id}
        try:
            stored = await self._storage.find(key)
        except RecordNotFoundError as exc:
            logger.warning("OAuth token not found", extra=context)
            raise TokenMissingError("No OAuth token stored.") from exc

        if not stored.access_token:
            logger.warning("OAuth token is empty", extra=context)
            raise TokenMissingError("Stored OAuth token is empty.")
        return stored

    def _is_fresh(self, auth: EncryptedAuthentication) -> bool:
        return self._clock() <= auth.expires_at

    async def save(self, team_id: str, user_id: str, authentication: Authentication) -> None:
        """Encrypt and upsert a user's authentication for a team."""
        context = {"team_id": team_id, "user_id": user_id}
        logger.info("Saving OAuth token", extra=context)

        encrypted = self._encrypt(authentication)
        try:
            await self._storage.insert(AuthCompositeKey(team_id, user_id), encrypted)
        except StorageError:
            logger.error("Failed to save OAuth token", extra=context)
            raise
        logger.info("Successfully saved OAuth token", extra=context)

    async def find(self, team_id: str, user_id: str) -> Authentication:
        """Return a usable plaintext authentication, refreshing it when expired."""
        key = AuthCompositeKey(team_id, user_id)
        stored = await self._load(key)
        if self._is_fresh(stored):
            return self._decrypt(stored)

        async with self._refresh_locks.hold(key):
            # Another request may have refreshed while this one waited.
            stored = await self._load(key)
            if self._is_fresh(stored):
                return self._decrypt(stored)
            return await self._refresh(key, stored)

    async def _refresh(
        self, key: AuthCompositeKey, stored: EncryptedAuthentication
    ) -> Authentication:
        context = {"team_id": key.team_id, "user_id": key.user_id}
        logger.info("OAuth token expired, refreshing", extra=context)

        try:
            refresh_token = self._cipher.decrypt(stored.refresh_token)
        except CipherError as exc:
            logger.error("Failed to decrypt refresh token", extra=context)
            raise DecryptionFailedError("Failed to decrypt stored refresh token.") from exc

        try:
            response = await self._oauth.refresh(refresh_token)
        except Exception:
            logger.error("Failed to refresh OAuth token", extra=context)
            raise

        refreshed = self._mapper.convert(response)
        if not refreshed.refresh_token:
            refreshed = refreshed.model_copy(update={"refresh_token": refresh_token})

        try:
            await self._storage.update(key, self._encrypt(refreshed))
        except StorageError:
            logger.error("Failed to update OAuth token in storage", extra=context)
            raise
        logger.info("Successfully refreshed and updated OAuth token", extra=context)
        return refreshed


__all__ = [
    "AuthenticationMapper",
    "ConversionFailedError",
    "DecryptionFailedError",
    "EncryptionFailedError",
    "OAuthTokenService",
    "TokenMissingError",
    "TokenServiceError",
]
