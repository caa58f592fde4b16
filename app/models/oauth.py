"""
Domain models for OAuth token persistence.

``Authentication`` is what callers see: both tokens in plaintext.
``EncryptedAuthentication`` is what the store sees: both tokens as cipher
payloads. They intentionally share no base class so one can never be passed
where the other is expected.
"""

from dataclasses import dataclass

from pydantic import BaseModel, Field


@dataclass(frozen=True, slots=True)
class AuthCompositeKey:
    """Identifies one user's grant within one team."""

    team_id: str
    user_id: str


class Authentication(BaseModel):
    """Plaintext view of a user's authorization grant."""

    token_type: str = ""
    access_token: str
    refresh_token: str
    expires_at: int = Field(..., description="Unix timestamp (seconds).")
    scope: str = ""


class EncryptedAuthentication(BaseModel):
    """At-rest view of an authorization grant; token fields are ciphertext."""

    token_type: str = ""
    access_token: str
    refresh_token: str
    expires_at: int
    scope: str = ""


__all__ = ["AuthCompositeKey", "Authentication", "EncryptedAuthentication"]
