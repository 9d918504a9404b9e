"""Service layer exports."""

from .authorization import AuthorizationService, derive_identity
from .compliance import ComplianceService
from .export_jobs import (
    ArtifactLocator,
    ExportJob,
    ExportJobPoller,
    ExportPhase,
    ExportTarget,
)
from .rule_evaluation import NullRuleEvaluator, RuleEvaluator
from .session_codec import SessionCodec

__all__ = [
    "ArtifactLocator",
    "AuthorizationService",
    "ComplianceService",
    "ExportJob",
    "ExportJobPoller",
    "ExportPhase",
    "ExportTarget",
    "NullRuleEvaluator",
    "RuleEvaluator",
    "SessionCodec",
    "derive_identity",
]
