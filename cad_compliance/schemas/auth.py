"""Schemas related to OAuth flows and the signed-in user."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CorrelationData(BaseModel):
    """Document context carried through the OAuth redirect."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    document_id: Optional[str] = Field(None, alias="docId")
    workspace_id: Optional[str] = Field(None, alias="workId")
    element_id: Optional[str] = Field(None, alias="elId")

    def as_query(self) -> dict[str, str]:
        """Query parameters the front-end reads to restore its context."""
        return {
            "documentId": self.document_id or "",
            "workspaceId": self.workspace_id or "",
            "elementId": self.element_id or "",
        }


class TokenGrant(BaseModel):
    """Token pair returned by the provider's token endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class ProviderProfile(BaseModel):
    """User-info payload; the provider omits fields inconsistently."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    userid: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None


class UserIdentity(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    id: Optional[str] = None


class UserResponse(BaseModel):
    user: UserIdentity


__all__ = [
    "CorrelationData",
    "ProviderProfile",
    "TokenGrant",
    "UserIdentity",
    "UserResponse",
]
