"""
Create-then-poll driver for Onshape translation jobs.

A job moves through ``SUBMITTING -> POLLING -> {DONE, FAILED, TIMED_OUT}``.
The transitions are pure functions over :class:`ExportJob` so they can be
exercised against canned payloads; :class:`ExportJobPoller` performs the I/O
and sleeps between status checks.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

import httpx

from cad_compliance.clients.onshape_api import OnshapeApiClient
from cad_compliance.core.errors import JobFailed, JobTimedOut, UpstreamError, ValidationError

logger = logging.getLogger(__name__)


class ExportPhase(str, Enum):
    SUBMITTING = "SUBMITTING"
    POLLING = "POLLING"
    DONE = "DONE"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"

    @property
    def is_terminal(self) -> bool:
        return self in (ExportPhase.DONE, ExportPhase.FAILED, ExportPhase.TIMED_OUT)


@dataclass(frozen=True)
class ExportTarget:
    """Document / workspace-or-version / element triple to export."""

    document_id: str
    wvm_id: str
    element_id: str
    wvm: str = "w"

    def __post_init__(self) -> None:
        if self.wvm not in ("w", "v", "m"):
            raise ValidationError(f"Unsupported workspace/version selector {self.wvm!r}.")

    @classmethod
    def from_request(
        cls,
        document_id: Optional[str],
        wvm_id: Optional[str],
        element_id: Optional[str],
        *,
        wvm: str = "w",
        names: Tuple[str, str, str] = ("documentId", "workspaceId", "elementId"),
    ) -> "ExportTarget":
        """Build a target, rejecting blank identifiers with a ``ValidationError``."""
        if not document_id or not wvm_id or not element_id:
            raise ValidationError(
                f"Missing required parameters ({', '.join(names)})."
            )
        return cls(document_id=document_id, wvm_id=wvm_id, element_id=element_id, wvm=wvm)

    @property
    def element_path(self) -> str:
        return f"d/{self.document_id}/{self.wvm}/{self.wvm_id}/e/{self.element_id}"


@dataclass(frozen=True)
class ExportProfile:
    """Fixed export configuration for one kind of job."""

    name: str
    path_template: str
    body: Mapping[str, Any]
    filename: str = "model.step"
    media_type: str = "application/step"
    timeout_message: str = "Translation timed out"

    def path_for(self, target: ExportTarget) -> str:
        return self.path_template.format(element=target.element_path)


TRANSLATION_PROFILE = ExportProfile(
    name="translation",
    path_template="documents/{element}/translations",
    body={
        "formatName": "STEP",
        "storeInDocument": False,
        "flattenAssemblies": False,
        "configuration": "default",
    },
)

ASSEMBLY_STEP_PROFILE = ExportProfile(
    name="assembly-step",
    path_template="assemblies/{element}/export/step",
    body={
        "stepUnit": "METER",
        "stepVersionString": "AP242",
        "storeInDocument": False,
        "notifyUser": False,
    },
    timeout_message="STEP export timed out.",
)


@dataclass(frozen=True)
class ArtifactLocator:
    document_id: str
    external_id: str
    url: str


@dataclass(frozen=True)
class ExportJob:
    """Observed state of one external translation job."""

    phase: ExportPhase = ExportPhase.SUBMITTING
    job_id: Optional[str] = None
    attempts: int = 0
    result_ids: Tuple[str, ...] = field(default_factory=tuple)
    failure_reason: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def artifact_id(self) -> Optional[str]:
        return self.result_ids[0] if self.result_ids else None


def submitted(job: ExportJob, payload: Mapping[str, Any]) -> ExportJob:
    """Record the start-translation response."""
    if job.phase is not ExportPhase.SUBMITTING:
        return job
    job_id = payload.get("id") if isinstance(payload, Mapping) else None
    if not job_id:
        return replace(
            job,
            phase=ExportPhase.FAILED,
            failure_reason="Translation request returned no job identifier.",
        )
    return replace(job, phase=ExportPhase.POLLING, job_id=str(job_id))


def rejected(job: ExportJob, status_code: int, body: str) -> ExportJob:
    """Record a non-success answer from the document API."""
    if job.phase.is_terminal:
        return job
    return replace(
        job,
        phase=ExportPhase.FAILED,
        failure_reason=body or f"HTTP {status_code}",
        status_code=status_code,
    )


def advance(job: ExportJob, payload: Mapping[str, Any], max_attempts: int) -> ExportJob:
    """Apply one status-poll payload; terminal jobs are returned unchanged."""
    if job.phase is not ExportPhase.POLLING:
        return job

    attempts = job.attempts + 1
    state = payload.get("requestState") if isinstance(payload, Mapping) else None
    if state == "DONE":
        result_ids = tuple(str(item) for item in payload.get("resultExternalDataIds") or ())
        if not result_ids:
            return replace(
                job,
                phase=ExportPhase.FAILED,
                attempts=attempts,
                failure_reason="No external data ID found in translation result.",
            )
        return replace(job, phase=ExportPhase.DONE, attempts=attempts, result_ids=result_ids)
    if state == "FAILED":
        return replace(
            job,
            phase=ExportPhase.FAILED,
            attempts=attempts,
            failure_reason=payload.get("failureReason") or "unknown reason",
        )
    if attempts >= max_attempts:
        return replace(job, phase=ExportPhase.TIMED_OUT, attempts=attempts)
    return replace(job, attempts=attempts)


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class ExportJobPoller:
    """Submit a translation and poll it to a terminal phase."""

    def __init__(
        self,
        api_client: OnshapeApiClient,
        *,
        max_attempts: int = 20,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive.")
        self._api = api_client
        self._max_attempts = max_attempts
        self._sleep = sleep

    async def execute(
        self,
        target: ExportTarget,
        *,
        access_token: str,
        profile: ExportProfile,
        poll_interval: float,
    ) -> ExportJob:
        """Drive a brand-new job to a terminal phase and return it."""
        job = ExportJob()
        try:
            response = await self._api.start_job(
                profile.path_for(target), dict(profile.body), access_token=access_token
            )
        except UpstreamError as exc:
            logger.warning(
                "%s submission for document %s did not reach Onshape",
                profile.name,
                target.document_id,
            )
            return rejected(job, exc.status_code, exc.message)
        if not response.is_success:
            job = rejected(job, response.status_code, response.text)
            logger.warning(
                "%s submission rejected for document %s (status %s)",
                profile.name,
                target.document_id,
                response.status_code,
            )
            return job

        job = submitted(job, _json_or_empty(response))
        if job.phase is ExportPhase.POLLING:
            logger.info("Submitted %s job %s", profile.name, job.job_id)

        while not job.phase.is_terminal:
            await self._sleep(poll_interval)
            try:
                response = await self._api.get_translation(job.job_id, access_token=access_token)
            except UpstreamError as exc:
                job = rejected(job, exc.status_code, exc.message)
                break
            if not response.is_success:
                job = rejected(job, response.status_code, response.text)
                break
            job = advance(job, _json_or_empty(response), self._max_attempts)
            logger.debug("Job %s attempt %s phase %s", job.job_id, job.attempts, job.phase.value)

        logger.info(
            "Job %s finished in phase %s after %s poll(s)",
            job.job_id,
            job.phase.value,
            job.attempts,
        )
        return job

    async def run_export(
        self,
        target: ExportTarget,
        *,
        access_token: str,
        profile: ExportProfile = TRANSLATION_PROFILE,
        poll_interval: float = 0.5,
    ) -> ArtifactLocator:
        """Return the locator of the finished artifact or raise the job's outcome."""
        job = await self.execute(
            target,
            access_token=access_token,
            profile=profile,
            poll_interval=poll_interval,
        )
        if job.phase is ExportPhase.DONE:
            external_id = job.artifact_id
            return ArtifactLocator(
                document_id=target.document_id,
                external_id=external_id,
                url=self._api.external_data_url(target.document_id, external_id),
            )
        if job.phase is ExportPhase.TIMED_OUT:
            raise JobTimedOut(profile.timeout_message)
        if job.job_id is None:
            raise JobFailed(
                f"Failed to start translation: {job.failure_reason}",
                status_code=job.status_code,
            )
        raise JobFailed(
            f"Translation failed: {job.failure_reason}",
            status_code=job.status_code,
        )


__all__ = [
    "ASSEMBLY_STEP_PROFILE",
    "ArtifactLocator",
    "ExportJob",
    "ExportJobPoller",
    "ExportPhase",
    "ExportProfile",
    "ExportTarget",
    "TRANSLATION_PROFILE",
    "advance",
    "rejected",
    "submitted",
]
