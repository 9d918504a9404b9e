"""Transition tests for the export job state machine against canned payloads."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from cad_compliance.core.errors import ValidationError
from cad_compliance.services.export_jobs import (
    ASSEMBLY_STEP_PROFILE,
    TRANSLATION_PROFILE,
    ExportJob,
    ExportPhase,
    ExportTarget,
    advance,
    rejected,
    submitted,
)

POLLING = ExportJob(phase=ExportPhase.POLLING, job_id="job-1")


def test_submission_moves_to_polling_with_job_id() -> None:
    job = submitted(ExportJob(), {"id": "job-1", "requestState": "ACTIVE"})

    assert job.phase is ExportPhase.POLLING
    assert job.job_id == "job-1"
    assert job.attempts == 0


def test_submission_without_job_id_fails() -> None:
    job = submitted(ExportJob(), {"requestState": "ACTIVE"})

    assert job.phase is ExportPhase.FAILED
    assert job.job_id is None


def test_rejected_submission_keeps_upstream_status_and_body() -> None:
    job = rejected(ExportJob(), 429, '{"message": "Too many requests"}')

    assert job.phase is ExportPhase.FAILED
    assert job.status_code == 429
    assert job.failure_reason == '{"message": "Too many requests"}'


def test_done_selects_first_artifact() -> None:
    job = advance(POLLING, {"requestState": "DONE", "resultExternalDataIds": ["a", "b"]}, 20)

    assert job.phase is ExportPhase.DONE
    assert job.artifact_id == "a"
    assert job.attempts == 1


def test_done_without_artifacts_is_failure() -> None:
    job = advance(POLLING, {"requestState": "DONE", "resultExternalDataIds": []}, 20)

    assert job.phase is ExportPhase.FAILED
    assert job.failure_reason == "No external data ID found in translation result."


def test_failed_reason_is_kept_verbatim() -> None:
    job = advance(POLLING, {"requestState": "FAILED", "failureReason": "Bad geometry."}, 20)

    assert job.phase is ExportPhase.FAILED
    assert job.failure_reason == "Bad geometry."


@pytest.mark.parametrize(
    "payload",
    [{"requestState": "FAILED"}, {"requestState": "FAILED", "failureReason": None}],
)
def test_failed_without_reason_gets_placeholder(payload) -> None:
    job = advance(POLLING, payload, 20)

    assert job.phase is ExportPhase.FAILED
    assert job.failure_reason == "unknown reason"


@pytest.mark.parametrize("payload", [{"requestState": "ACTIVE"}, {}, {"requestState": "QUEUED"}])
def test_non_terminal_payload_counts_attempt(payload) -> None:
    job = advance(POLLING, payload, 20)

    assert job.phase is ExportPhase.POLLING
    assert job.attempts == 1


def test_budget_exhaustion_times_out() -> None:
    job = POLLING
    for _ in range(3):
        job = advance(job, {"requestState": "ACTIVE"}, 3)

    assert job.phase is ExportPhase.TIMED_OUT
    assert job.attempts == 3


def test_completion_on_last_attempt_wins_over_timeout() -> None:
    job = ExportJob(phase=ExportPhase.POLLING, job_id="job-1", attempts=2)

    job = advance(job, {"requestState": "DONE", "resultExternalDataIds": ["x"]}, 3)

    assert job.phase is ExportPhase.DONE


@pytest.mark.parametrize(
    "terminal",
    [
        ExportJob(phase=ExportPhase.DONE, job_id="j", result_ids=("x",)),
        ExportJob(phase=ExportPhase.FAILED, job_id="j", failure_reason="boom"),
        ExportJob(phase=ExportPhase.TIMED_OUT, job_id="j", attempts=20),
    ],
)
def test_terminal_phases_never_change(terminal: ExportJob) -> None:
    assert advance(terminal, {"requestState": "ACTIVE"}, 20) == terminal
    assert advance(terminal, {"requestState": "DONE", "resultExternalDataIds": ["y"]}, 20) == terminal
    assert rejected(terminal, 500, "late error") == terminal
    assert submitted(terminal, {"id": "other"}) == terminal


def test_target_paths_for_each_profile() -> None:
    target = ExportTarget(document_id="d1", wvm_id="v9", element_id="e1", wvm="v")

    assert TRANSLATION_PROFILE.path_for(target) == "documents/d/d1/v/v9/e/e1/translations"
    assert ASSEMBLY_STEP_PROFILE.path_for(target) == "assemblies/d/d1/v/v9/e/e1/export/step"


@pytest.mark.parametrize(
    "ids",
    [(None, "w1", "e1"), ("d1", "", "e1"), ("d1", "w1", None)],
)
def test_target_requires_all_identifiers(ids) -> None:
    with pytest.raises(ValidationError) as excinfo:
        ExportTarget.from_request(*ids)

    assert excinfo.value.status_code == 400
    assert "documentId, workspaceId, elementId" in excinfo.value.message


def test_target_rejects_unknown_selector() -> None:
    with pytest.raises(ValidationError):
        ExportTarget(document_id="d1", wvm_id="w1", element_id="e1", wvm="x")
