"""
Generation job state machine.

    pending_ocr → processed → generating-metrics → pending-generation
        → generating-content → pending-review → complete

`error` is reachable from every non-terminal status; `retry` leaves it for
`processed` (or `pending_ocr` when OCR never produced text). The transition
table below is the only place legality is decided.

`claim()` applies a transition as a compare-and-set on the status column, so
the persisted status doubles as a per-job lock across concurrent triggers.
"""

import enum
import logging
from typing import Dict, FrozenSet, NamedTuple, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from pediaquiz.database.models import GenerationJob
from pediaquiz.errors import FailedPrecondition, NotFound

log = logging.getLogger("pediaquiz.pipeline")


class JobStatus(str, enum.Enum):
    PENDING_OCR = "pending_ocr"
    PROCESSED = "processed"
    GENERATING_METRICS = "generating-metrics"
    PENDING_GENERATION = "pending-generation"
    GENERATING_CONTENT = "generating-content"
    PENDING_REVIEW = "pending-review"
    COMPLETE = "complete"
    ERROR = "error"


class JobAction(str, enum.Enum):
    OCR_SUCCEEDED = "ocr_succeeded"
    REQUEST_METRICS = "request_metrics"
    METRICS_READY = "metrics_ready"
    START_GENERATION = "start_generation"
    CONTENT_READY = "content_ready"
    APPROVE = "approve"
    FAIL = "fail"
    RETRY = "retry"


class Transition(NamedTuple):
    sources: FrozenSet[JobStatus]
    target: Optional[JobStatus]  # None: decided by the job (retry)


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETE})

_FAILABLE = frozenset(s for s in JobStatus if s not in TERMINAL_STATUSES and s != JobStatus.ERROR)

TRANSITIONS: Dict[JobAction, Transition] = {
    JobAction.OCR_SUCCEEDED: Transition(frozenset({JobStatus.PENDING_OCR}), JobStatus.PROCESSED),
    JobAction.REQUEST_METRICS: Transition(
        frozenset({JobStatus.PROCESSED, JobStatus.PENDING_GENERATION}), JobStatus.GENERATING_METRICS
    ),
    JobAction.METRICS_READY: Transition(frozenset({JobStatus.GENERATING_METRICS}), JobStatus.PENDING_GENERATION),
    JobAction.START_GENERATION: Transition(
        frozenset({JobStatus.PROCESSED, JobStatus.PENDING_GENERATION}), JobStatus.GENERATING_CONTENT
    ),
    JobAction.CONTENT_READY: Transition(frozenset({JobStatus.GENERATING_CONTENT}), JobStatus.PENDING_REVIEW),
    JobAction.APPROVE: Transition(frozenset({JobStatus.PENDING_REVIEW}), JobStatus.COMPLETE),
    JobAction.FAIL: Transition(_FAILABLE, JobStatus.ERROR),
    JobAction.RETRY: Transition(frozenset({JobStatus.ERROR}), None),
}


def retry_target(job: GenerationJob) -> JobStatus:
    """Last stable pre-error status: processed when text exists, else back to OCR."""
    return JobStatus.PROCESSED if job.extracted_text else JobStatus.PENDING_OCR


def next_status(current: str, action: JobAction, job: Optional[GenerationJob] = None) -> JobStatus:
    """
    Resolve the status `action` leads to from `current`.

    Raises:
        FailedPrecondition: the action is not allowed from `current`
    """
    transition = TRANSITIONS[action]
    try:
        current_status = JobStatus(current)
    except ValueError:
        raise FailedPrecondition(f"Unknown job status '{current}'")

    if current_status not in transition.sources:
        allowed = ", ".join(sorted(s.value for s in transition.sources))
        raise FailedPrecondition(
            f"Cannot {action.value} a job in status '{current_status.value}' (requires: {allowed})"
        )
    if transition.target is not None:
        return transition.target
    if job is None:
        raise ValueError(f"{action.value} needs the job to resolve its target status")
    return retry_target(job)


def can_apply(current: str, action: JobAction) -> bool:
    try:
        return JobStatus(current) in TRANSITIONS[action].sources
    except ValueError:
        return False


def get_job(db: Session, job_id: str) -> GenerationJob:
    job = db.get(GenerationJob, job_id)
    if job is None:
        raise NotFound(f"Job {job_id} not found")
    return job


def claim(
    db: Session,
    job_id: str,
    action: JobAction,
    expected: Optional[JobStatus] = None,
    **values,
) -> GenerationJob:
    """
    Atomically move a job along `action` and commit.

    The UPDATE only matches while the job is still in one of the action's
    source statuses (or exactly `expected`, when given), so of two concurrent
    claims exactly one wins. Extra column values are written in the same
    statement.

    Raises:
        NotFound: no such job
        FailedPrecondition: the job is not in a status the action accepts
    """
    job = get_job(db, job_id)
    target = next_status(job.status, action, job)
    sources = [s.value for s in TRANSITIONS[action].sources]
    if expected is not None:
        if job.status != expected.value:
            raise FailedPrecondition(
                f"Job {job_id} is '{job.status}', not '{expected.value}'; {action.value} not applied"
            )
        sources = [expected.value]

    result = db.execute(
        update(GenerationJob)
        .where(GenerationJob.id == job_id, GenerationJob.status.in_(sources))
        .values(status=target.value, version=GenerationJob.version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        db.expire_all()
        current = get_job(db, job_id).status
        raise FailedPrecondition(
            f"Job {job_id} changed concurrently (now '{current}'); {action.value} not applied"
        )
    db.commit()
    db.expire_all()
    refreshed = get_job(db, job_id)
    log.info(f"[JOB] {job_id}: {action.value} → {refreshed.status}")
    return refreshed


def fail(
    db: Session,
    job_id: str,
    message: str,
    expected: Optional[JobStatus] = None,
) -> Optional[GenerationJob]:
    """
    Move a job to `error` with a message, discarding staged drafts.

    Stages pass the status they claimed as `expected`: a failure reported by a
    stale or duplicate run, after the job has moved on, is logged and dropped.
    Returns None when the failure was not recorded.
    """
    db.rollback()
    try:
        return claim(db, job_id, JobAction.FAIL, expected=expected, error=message, staged_content=None)
    except FailedPrecondition as e:
        log.warning(f"[JOB] {job_id}: could not record error '{message}': {e.message}")
        return None
