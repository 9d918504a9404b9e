"""
Domain models for the signed browser session.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionCredential(BaseModel):
    """Claims carried inside the session envelope for one browser session."""

    model_config = ConfigDict(frozen=True)

    subject: Optional[str] = Field(None, description="Provider user identifier.")
    display_name: Optional[str] = None
    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    access_token: str = Field(..., description="Bearer token for the document API.")
    refresh_token: Optional[str] = None
    issued_at: int = Field(0, description="Seconds since the epoch.")
    expires_at: int = Field(0, description="Seconds since the epoch.")


__all__ = ["SessionCredential"]
