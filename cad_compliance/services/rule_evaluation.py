"""Evaluation of exported artifacts against enabled compliance rules."""

from __future__ import annotations

from typing import List, Protocol, Sequence

from cad_compliance.schemas.export import ComplianceRule, Violation
from cad_compliance.services.export_jobs import ArtifactLocator


class RuleEvaluator(Protocol):
    async def evaluate(
        self, locator: ArtifactLocator, rules: Sequence[ComplianceRule]
    ) -> List[Violation]:
        ...


class NullRuleEvaluator:
    """Placeholder evaluator: geometry analysis is not implemented yet."""

    async def evaluate(
        self, locator: ArtifactLocator, rules: Sequence[ComplianceRule]
    ) -> List[Violation]:
        return []


__all__ = ["NullRuleEvaluator", "RuleEvaluator"]
