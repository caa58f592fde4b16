"""Schemas related to OAuth flows."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AuthenticationResponse(BaseModel):
    """Token payload returned by the whiteboard OAuth token endpoint."""

    model_config = ConfigDict(extra="ignore")

    user_id: str = Field(..., description="Whiteboard user that granted access.")
    team_id: str = Field(..., description="Team the grant is scoped to.")
    token_type: str = ""
    access_token: str = Field(..., min_length=1)
    refresh_token: str = ""
    issued_at: int = 0
    expires_in: int = Field(..., description="Token lifetime in seconds.")
    scope: str = ""


class SessionStatus(BaseModel):
    """Describes the caller's session and upstream authorization state."""

    user_id: str
    team_id: str
    authorized: bool
    expires_at: int | None = None


__all__ = ["AuthenticationResponse", "SessionStatus"]
