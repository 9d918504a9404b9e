"""
Service helpers for running compliance exports.
"""

from __future__ import annotations

import logging

from cad_compliance.core.config import ExportSettings
from cad_compliance.models.session import SessionCredential
from cad_compliance.schemas.export import CheckModelRequest, CheckModelResponse
from cad_compliance.services.export_jobs import (
    ASSEMBLY_STEP_PROFILE,
    TRANSLATION_PROFILE,
    ArtifactLocator,
    ExportJobPoller,
    ExportTarget,
)
from cad_compliance.services.rule_evaluation import RuleEvaluator

logger = logging.getLogger(__name__)


class ComplianceService:
    """Export an element through the poller and evaluate the enabled rules."""

    def __init__(
        self,
        poller: ExportJobPoller,
        evaluator: RuleEvaluator,
        export_settings: ExportSettings,
    ) -> None:
        self._poller = poller
        self._evaluator = evaluator
        self._settings = export_settings

    async def check_model(
        self, *, request: CheckModelRequest, credential: SessionCredential
    ) -> CheckModelResponse:
        target = ExportTarget.from_request(
            request.document_id,
            request.workspace_id,
            request.element_id,
            wvm=request.wvm,
        )
        locator = await self._poller.run_export(
            target,
            access_token=credential.access_token,
            profile=TRANSLATION_PROFILE,
            poll_interval=self._settings.translation_poll_interval,
        )
        enabled = [rule for rule in request.rules if rule.enabled]
        violations = await self._evaluator.evaluate(locator, enabled)
        logger.info(
            "Compliance check for document %s: %s rule(s), %s violation(s)",
            target.document_id,
            len(enabled),
            len(violations),
        )
        return CheckModelResponse(download_url=locator.url, violations=violations)

    async def export_step(
        self, *, target: ExportTarget, credential: SessionCredential
    ) -> ArtifactLocator:
        """Run a full assembly STEP export and return its artifact locator."""
        return await self._poller.run_export(
            target,
            access_token=credential.access_token,
            profile=ASSEMBLY_STEP_PROFILE,
            poll_interval=self._settings.assembly_poll_interval,
        )


__all__ = ["ComplianceService"]
