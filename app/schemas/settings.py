"""
Pydantic models for board settings requests and responses.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SettingsPayload(BaseModel):
    """Document server connection details supplied by a board admin."""

    address: str = Field("", description="Document server base URL, no trailing slash.")
    header: str = Field("", description="HTTP header carrying the JWT.")
    secret: str = Field("", description="JWT secret shared with the document server.")
    demo: bool = Field(False, description="Use the hosted demo server.")


class PersistSettingsRequest(SettingsPayload):
    """Body of ``POST /api/settings``."""

    board_id: str = Field(..., min_length=1)


class SettingsResponse(BaseModel):
    """Settings returned to the board configuration form."""

    address: str = ""
    header: str = ""
    secret: str = ""
    demo_enabled: bool = False
    demo_started: Optional[datetime] = None


__all__ = ["PersistSettingsRequest", "SettingsPayload", "SettingsResponse"]
