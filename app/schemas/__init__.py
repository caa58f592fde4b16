"""Public schema exports."""

from .auth import AuthenticationResponse, SessionStatus
from .settings import PersistSettingsRequest, SettingsPayload, SettingsResponse

__all__ = [
    "AuthenticationResponse",
    "PersistSettingsRequest",
    "SessionStatus",
    "SettingsPayload",
    "SettingsResponse",
]
