"""
Per-board document server settings with encrypted secrets and a read-through
cache.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Protocol
from urllib.parse import urlparse

from pydantic import ValidationError

from app.clients.docserver import DocumentServerError, ServerVersionResponse
from app.clients.sqlite_cache import CacheError
from app.clients.sqlite_store import RecordNotFoundError, Storage
from app.core.security import create_command_token
from app.models.settings import BoardSettings, Demo, SettingsCompositeKey
from app.schemas.settings import SettingsPayload
from app.services.token_cipher import CipherError, TokenCipherService

logger = logging.getLogger(__name__)

MAX_FIELD_LENGTH = 255


class SettingsError(Exception):
    """Base class for board settings failures."""


class SettingsValidationError(SettingsError):
    """Raised when submitted settings are incomplete or malformed."""


class Cache(Protocol):
    async def get(self, key: str) -> Optional[bytes]: ...

    async def set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...


class VersionClient(Protocol):
    async def get_server_version(
        self, address: str, *, header: str, token: str
    ) -> ServerVersionResponse: ...


def validate_payload(payload: SettingsPayload) -> None:
    """Reject settings the document editor could never connect with."""
    if not payload.demo:
        if not payload.address:
            raise SettingsValidationError("address is required in non-demo mode")
        if not payload.secret:
            raise SettingsValidationError("secret is required in non-demo mode")
        if not payload.header:
            raise SettingsValidationError("header is required in non-demo mode")

    if payload.address:
        parsed = urlparse(payload.address)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise SettingsValidationError("address must use http or https protocol")
        if payload.address.endswith("/"):
            raise SettingsValidationError("address must not have a trailing slash")

    if len(payload.header) > MAX_FIELD_LENGTH:
        raise SettingsValidationError("header must be at most 255 characters")
    if len(payload.secret) > MAX_FIELD_LENGTH:
        raise SettingsValidationError("secret must be at most 255 characters")


def _parse_version(version: str) -> tuple[int, int]:
    parts = version.split(".")
    if len(parts) < 2:
        raise DocumentServerError(f"invalid document server version format: {version}")
    try:
        return int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise DocumentServerError(f"invalid document server version: {version}") from exc


class BoardSettingsService:
    """Stores board settings and serves them through a short-lived cache."""

    def __init__(
        self,
        storage: Storage[SettingsCompositeKey, BoardSettings],
        cache: Cache,
        token_cipher: TokenCipherService,
        docserver_client: VersionClient,
        *,
        min_version: str = "8.2",
        cache_ttl_seconds: int = 300,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._storage = storage
        self._cache = cache
        self._cipher = token_cipher
        self._docserver = docserver_client
        self._min_version = _parse_version(min_version)
        self._cache_ttl = cache_ttl_seconds
        self._now = now
        # Bumped around every write; a read that straddles one must not refill the cache.
        self._generations: Dict[SettingsCompositeKey, int] = {}

    def _bump(self, key: SettingsCompositeKey) -> None:
        self._generations[key] = self._generations.get(key, 0) + 1

    @staticmethod
    def _cache_key(key: SettingsCompositeKey) -> str:
        return f"settings:{key.team_id}:{key.board_id}"

    async def _check_document_server(self, payload: SettingsPayload) -> None:
        token = create_command_token(payload.secret)
        response = await self._docserver.get_server_version(
            payload.address, header=payload.header, token=token
        )
        if response.error != 0:
            raise DocumentServerError(
                f"received non-zero error code from document server: {response.error}"
            )
        if _parse_version(response.version) < self._min_version:
            raise DocumentServerError(
                f"document server version is not supported: {response.version}"
            )

    def _build(self, payload: SettingsPayload, existing: BoardSettings) -> BoardSettings:
        secret = self._cipher.encrypt(payload.secret) if payload.secret else ""
        settings = BoardSettings(
            address=payload.address, header=payload.header, secret=secret
        )
        if payload.demo:
            settings.demo = Demo(
                enabled=True, started=existing.demo.started or self._now()
            )
        elif existing.demo.enabled:
            settings.demo = existing.demo
        return settings

    def _reveal(self, settings: BoardSettings) -> BoardSettings:
        if settings.is_demo_only or not settings.secret:
            return settings
        return settings.model_copy(update={"secret": self._cipher.decrypt(settings.secret)})

    async def save(self, team_id: str, board_id: str, payload: SettingsPayload) -> None:
        """Validate, verify and persist settings for a board."""
        context = {"team_id": team_id, "board_id": board_id}
        validate_payload(payload)

        key = SettingsCompositeKey(team_id, board_id)
        try:
            existing = await self._storage.find(key)
        except RecordNotFoundError:
            existing = BoardSettings()

        if payload.address and payload.header and payload.secret:
            logger.debug("Validating document server", extra=context)
            await self._check_document_server(payload)

        try:
            settings = self._build(payload, existing)
        except CipherError as exc:
            raise SettingsError("Failed to encrypt secret") from exc

        self._bump(key)
        try:
            await self._storage.insert(key, settings)
        finally:
            self._bump(key)
        await self._invalidate(key)
        logger.info("Settings saved", extra=context)

    async def find(self, team_id: str, board_id: str) -> BoardSettings:
        """Return plaintext settings for a board; empty settings when none exist."""
        key = SettingsCompositeKey(team_id, board_id)
        context = {"team_id": team_id, "board_id": board_id}

        try:
            cached = await self._cache.get(self._cache_key(key))
            if cached is not None:
                return self._reveal(BoardSettings.model_validate_json(cached))
        except (CacheError, CipherError, ValidationError) as exc:
            logger.warning("Ignoring unusable cached settings: %s", exc, extra=context)

        generation = self._generations.get(key, 0)
        try:
            stored = await self._storage.find(key)
        except RecordNotFoundError:
            logger.debug("No settings found in storage", extra=context)
            return BoardSettings()

        if self._generations.get(key, 0) != generation:
            logger.debug("Settings changed during read, not caching", extra=context)
            return self._decrypt_or_fail(stored, context)

        try:
            await self._cache.set(
                self._cache_key(key),
                stored.model_dump_json().encode("utf-8"),
                self._cache_ttl,
            )
        except CacheError as exc:
            logger.warning("Failed to cache settings: %s", exc, extra=context)

        return self._decrypt_or_fail(stored, context)

    def _decrypt_or_fail(self, stored: BoardSettings, context: dict) -> BoardSettings:
        try:
            return self._reveal(stored)
        except CipherError as exc:
            logger.error("Failed to decrypt settings secret", extra=context)
            raise SettingsError("Failed to decrypt secret") from exc

    async def _invalidate(self, key: SettingsCompositeKey) -> None:
        try:
            await self._cache.delete(self._cache_key(key))
        except CacheError as exc:
            logger.warning(
                "Failed to invalidate settings cache: %s",
                exc,
                extra={"team_id": key.team_id, "board_id": key.board_id},
            )


__all__ = [
    "BoardSettingsService",
    "SettingsError",
    "SettingsValidationError",
    "validate_payload",
]
