"""Public schema exports."""

from .auth import (
    CorrelationData,
    ProviderProfile,
    TokenGrant,
    UserIdentity,
    UserResponse,
)
from .export import CheckModelRequest, CheckModelResponse, ComplianceRule, Violation

__all__ = [
    "CheckModelRequest",
    "CheckModelResponse",
    "ComplianceRule",
    "CorrelationData",
    "ProviderProfile",
    "TokenGrant",
    "UserIdentity",
    "UserResponse",
    "Violation",
]
