"""
Pydantic models for compliance checks and STEP downloads.
"""

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ComplianceRule(BaseModel):
    """A design rule toggled in the panel's rule checklist."""

    model_config = ConfigDict(extra="allow")

    id: Union[int, str]
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    enabled: bool = True


class Violation(BaseModel):
    """A rule breach reported by the evaluator."""

    id: Union[int, str]
    rule: str
    severity: Literal["high", "medium", "low"] = "medium"
    description: str = ""
    location: Optional[str] = None


class CheckModelRequest(BaseModel):
    """Payload for exporting an element and evaluating it against rules."""

    model_config = ConfigDict(populate_by_name=True)

    document_id: Optional[str] = Field(None, alias="documentId")
    workspace_id: Optional[str] = Field(None, alias="workspaceId")
    element_id: Optional[str] = Field(None, alias="elementId")
    wvm: Literal["w", "v", "m"] = Field(
        "w",
        description="Whether workspace_id names a workspace, version or microversion.",
    )
    rules: List[ComplianceRule] = Field(default_factory=list)


class CheckModelResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    download_url: str = Field(..., alias="downloadUrl")
    violations: List[Violation] = Field(default_factory=list)


__all__ = [
    "CheckModelRequest",
    "CheckModelResponse",
    "ComplianceRule",
    "Violation",
]
