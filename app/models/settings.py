"""
Domain models for per-board document server configuration.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


@dataclass(frozen=True, slots=True)
class SettingsCompositeKey:
    """Identifies the configuration of one board within one team."""

    team_id: str
    board_id: str


class Demo(BaseModel):
    """Team-wide trial of the hosted demo document server."""

    enabled: bool = False
    started: Optional[datetime] = None


class BoardSettings(BaseModel):
    """Document server connection details for a board."""

    address: str = ""
    header: str = ""
    secret: str = Field("", description="Plaintext in memory, ciphertext at rest.")
    demo: Demo = Field(default_factory=Demo)

    @property
    def is_demo_only(self) -> bool:
        """True when the board relies on the demo server alone."""
        return self.demo.enabled and not (self.address and self.header and self.secret)


__all__ = ["BoardSettings", "Demo", "SettingsCompositeKey"]
