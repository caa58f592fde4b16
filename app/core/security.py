from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

ALGORITHM = "HS256"


@dataclass(frozen=True, slots=True)
class SessionClaims:
    user_id: str
    team_id: str
    expires_at: int


def create_session_token(*, user_id: str, team_id: str, expires_at: int, secret: str) -> str:
    payload: dict[str, Any] = {"user": user_id, "team": team_id, "exp": expires_at}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_session_token(token: str, secret: str) -> SessionClaims:
    """Validate a session token; raises ``jwt.InvalidTokenError`` when unusable."""
    payload = jwt.decode(
        token, secret, algorithms=[ALGORITHM], options={"require": ["exp"]}
    )
    user_id, team_id = payload.get("user"), payload.get("team")
    if not user_id or not team_id:
        raise jwt.InvalidTokenError("Session token is missing user or team")
    return SessionClaims(user_id=str(user_id), team_id=str(team_id), expires_at=int(payload["exp"]))


def create_command_token(secret: str, *, command: str = "version", ttl_seconds: int = 60) -> str:
    """Sign a short-lived document server command token."""
    now = datetime.now(tz=timezone.utc)
    payload: dict[str, Any] = {
        "c": command,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


__all__ = [
    "SessionClaims",
    "create_command_token",
    "create_session_token",
    "decode_session_token",
]
