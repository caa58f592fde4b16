"""SQL strategies for the entities persisted through ``SQLiteStorage``."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Sequence

from app.clients.sqlite_store import Statement
from app.models.oauth import AuthCompositeKey, EncryptedAuthentication
from app.models.settings import BoardSettings, Demo, SettingsCompositeKey

_AUTH_SELECT = """
SELECT token_type, access_token, refresh_token, expires_at, scope
FROM authentications
WHERE team_id = ? AND user_id = ?
"""

_AUTH_INSERT = """
INSERT INTO authentications
    (team_id, user_id, token_type, access_token, refresh_token, expires_at, scope)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (team_id, user_id) DO UPDATE
SET token_type = excluded.token_type,
    access_token = excluded.access_token,
    refresh_token = excluded.refresh_token,
    expires_at = excluded.expires_at,
    scope = excluded.scope,
    updated_at = CURRENT_TIMESTAMP
"""

_AUTH_UPDATE = """
UPDATE authentications
SET token_type = ?,
    access_token = ?,
    refresh_token = ?,
    expires_at = ?,
    scope = ?,
    updated_at = CURRENT_TIMESTAMP
WHERE team_id = ? AND user_id = ?
"""

_AUTH_DELETE = "DELETE FROM authentications WHERE team_id = ? AND user_id = ?"


class AuthenticationProcessor:
    """Maps encrypted authentication records onto the ``authentications`` table."""

    table_name = "authentications"
    schema = (
        """
        CREATE TABLE IF NOT EXISTS authentications (
            team_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            token_type TEXT NOT NULL DEFAULT '',
            access_token TEXT NOT NULL,
            refresh_token TEXT NOT NULL,
            expires_at INTEGER NOT NULL,
            scope TEXT NOT NULL DEFAULT '',
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (team_id, user_id)
        )
        """,
    )

    @staticmethod
    def _scan(row: sqlite3.Row) -> EncryptedAuthentication:
        return EncryptedAuthentication(
            token_type=row["token_type"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            expires_at=row["expires_at"],
            scope=row["scope"],
        )

    def build_select_query(self, key: AuthCompositeKey):
        return Statement(_AUTH_SELECT, (key.team_id, key.user_id)), self._scan

    def build_insert_query(
        self, key: AuthCompositeKey, value: EncryptedAuthentication
    ) -> Sequence[Statement]:
        return [
            Statement(
                _AUTH_INSERT,
                (
                    key.team_id,
                    key.user_id,
                    value.token_type,
                    value.access_token,
                    value.refresh_token,
                    value.expires_at,
                    value.scope,
                ),
            )
        ]

    def build_update_query(
        self, key: AuthCompositeKey, value: EncryptedAuthentication
    ) -> Sequence[Statement]:
        return [
            Statement(
                _AUTH_UPDATE,
                (
                    value.token_type,
                    value.access_token,
                    value.refresh_token,
                    value.expires_at,
                    value.scope,
                    key.team_id,
                    key.user_id,
                ),
            )
        ]

    def build_delete_query(self, key: AuthCompositeKey) -> Sequence[Statement]:
        return [Statement(_AUTH_DELETE, (key.team_id, key.user_id))]


_SETTINGS_SELECT = """
SELECT s.address, s.header, s.secret, d.enabled, d.started
FROM settings s
LEFT JOIN demos d ON s.team_id = d.team_id
WHERE s.team_id = ? AND s.board_id = ?
"""

_SETTINGS_UPSERT = """
INSERT INTO settings (team_id, board_id, address, header, secret)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT (team_id, board_id) DO UPDATE
SET address = excluded.address,
    header = excluded.header,
    secret = excluded.secret,
    updated_at = CURRENT_TIMESTAMP
"""

# The first demo start for a team is never overwritten.
_DEMO_INSERT = """
INSERT INTO demos (team_id, enabled, started)
VALUES (?, ?, ?)
ON CONFLICT (team_id) DO NOTHING
"""

_SETTINGS_UPDATE = """
UPDATE settings
SET address = ?,
    header = ?,
    secret = ?,
    updated_at = CURRENT_TIMESTAMP
WHERE team_id = ? AND board_id = ?
"""

_SETTINGS_DELETE = "DELETE FROM settings WHERE team_id = ? AND board_id = ?"


class SettingsProcessor:
    """Maps board settings onto the ``settings`` and ``demos`` tables."""

    table_name = "settings"
    schema = (
        """
        CREATE TABLE IF NOT EXISTS settings (
            team_id TEXT NOT NULL,
            board_id TEXT NOT NULL,
            address TEXT NOT NULL DEFAULT '',
            header TEXT NOT NULL DEFAULT '',
            secret TEXT NOT NULL DEFAULT '',
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (team_id, board_id)
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS demos (
            team_id TEXT PRIMARY KEY,
            enabled INTEGER NOT NULL DEFAULT 0,
            started TEXT
        )
        """,
    )

    @staticmethod
    def _scan(row: sqlite3.Row) -> BoardSettings:
        demo = Demo()
        if row["enabled"] is not None and row["started"] is not None:
            demo = Demo(
                enabled=bool(row["enabled"]),
                started=datetime.fromisoformat(row["started"]),
            )
        return BoardSettings(
            address=row["address"],
            header=row["header"],
            secret=row["secret"],
            demo=demo,
        )

    def build_select_query(self, key: SettingsCompositeKey):
        return Statement(_SETTINGS_SELECT, (key.team_id, key.board_id)), self._scan

    def build_insert_query(
        self, key: SettingsCompositeKey, value: BoardSettings
    ) -> Sequence[Statement]:
        statements = [
            Statement(
                _SETTINGS_UPSERT,
                (key.team_id, key.board_id, value.address, value.header, value.secret),
            )
        ]
        if value.demo.enabled:
            started = value.demo.started.isoformat() if value.demo.started else None
            statements.append(Statement(_DEMO_INSERT, (key.team_id, 1, started)))
        return statements

    def build_update_query(
        self, key: SettingsCompositeKey, value: BoardSettings
    ) -> Sequence[Statement]:
        return [
            Statement(
                _SETTINGS_UPDATE,
                (value.address, value.header, value.secret, key.team_id, key.board_id),
            )
        ]

    def build_delete_query(self, key: SettingsCompositeKey) -> Sequence[Statement]:
        return [Statement(_SETTINGS_DELETE, (key.team_id, key.board_id))]


__all__ = ["AuthenticationProcessor", "SettingsProcessor"]
