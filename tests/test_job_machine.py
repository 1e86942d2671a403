import pytest

from conftest import make_job
from pediaquiz.errors import FailedPrecondition, NotFound
from pediaquiz.generation import job_machine
from pediaquiz.generation.job_machine import JobAction, JobStatus, next_status


def test_happy_path_transitions():
    assert next_status("pending_ocr", JobAction.OCR_SUCCEEDED) == JobStatus.PROCESSED
    assert next_status("processed", JobAction.REQUEST_METRICS) == JobStatus.GENERATING_METRICS
    assert next_status("generating-metrics", JobAction.METRICS_READY) == JobStatus.PENDING_GENERATION
    assert next_status("pending-generation", JobAction.START_GENERATION) == JobStatus.GENERATING_CONTENT
    assert next_status("generating-content", JobAction.CONTENT_READY) == JobStatus.PENDING_REVIEW
    assert next_status("pending-review", JobAction.APPROVE) == JobStatus.COMPLETE


def test_generation_can_skip_metrics():
    assert next_status("processed", JobAction.START_GENERATION) == JobStatus.GENERATING_CONTENT


def test_metrics_can_be_requested_again():
    assert next_status("pending-generation", JobAction.REQUEST_METRICS) == JobStatus.GENERATING_METRICS


@pytest.mark.parametrize("status", ["pending_ocr", "processed", "generating-content", "complete", "error"])
def test_approve_only_from_pending_review(status):
    with pytest.raises(FailedPrecondition):
        next_status(status, JobAction.APPROVE)


def test_complete_and_error_cannot_fail():
    with pytest.raises(FailedPrecondition):
        next_status("complete", JobAction.FAIL)
    with pytest.raises(FailedPrecondition):
        next_status("error", JobAction.FAIL)


def test_unknown_status_is_rejected():
    with pytest.raises(FailedPrecondition):
        next_status("archived", JobAction.APPROVE)
    assert job_machine.can_apply("archived", JobAction.APPROVE) is False


def test_claim_moves_status_and_writes_values(db):
    job = make_job(db, status="processed")
    version = job.version
    claimed = job_machine.claim(db, job.id, JobAction.START_GENERATION, confirmed_mcq_count=5)
    assert claimed.status == "generating-content"
    assert claimed.confirmed_mcq_count == 5
    assert claimed.version == version + 1


def test_claim_rejects_wrong_status_without_mutation(db):
    job = make_job(db, status="pending-review")
    with pytest.raises(FailedPrecondition):
        job_machine.claim(db, job.id, JobAction.START_GENERATION, confirmed_mcq_count=5)
    reloaded = job_machine.get_job(db, job.id)
    assert reloaded.status == "pending-review"
    assert reloaded.confirmed_mcq_count is None


def test_second_claim_of_same_stage_loses(db):
    job = make_job(db, status="processed")
    job_machine.claim(db, job.id, JobAction.REQUEST_METRICS)
    with pytest.raises(FailedPrecondition):
        job_machine.claim(db, job.id, JobAction.REQUEST_METRICS)


def test_claim_unknown_job(db):
    with pytest.raises(NotFound):
        job_machine.claim(db, "missing", JobAction.APPROVE)


def test_fail_records_error_and_discards_staged(db):
    job = make_job(db, status="generating-content", staged={"mcqs": [], "flashcards": []})
    failed = job_machine.fail(db, job.id, "backend exploded")
    assert failed.status == "error"
    assert failed.error == "backend exploded"
    assert failed.staged_content is None


def test_fail_on_complete_job_is_noop(db):
    job = make_job(db, status="complete")
    assert job_machine.fail(db, job.id, "late failure") is None
    assert job_machine.get_job(db, job.id).status == "complete"


def test_retry_returns_to_processed_when_text_exists(db):
    job = make_job(db, status="error")
    retried = job_machine.claim(db, job.id, JobAction.RETRY, error=None)
    assert retried.status == "processed"
    assert retried.error is None


def test_retry_returns_to_ocr_without_text(db):
    job = make_job(db, status="error", text=None)
    retried = job_machine.claim(db, job.id, JobAction.RETRY, error=None)
    assert retried.status == "pending_ocr"


def test_fail_with_expected_status_only_matches_that_status(db):
    job = make_job(db, status="processed")
    assert job_machine.fail(db, job.id, "duplicate run", expected=JobStatus.PENDING_OCR) is None
    assert job_machine.get_job(db, job.id).status == "processed"

    failed = job_machine.fail(db, job.id, "real failure", expected=JobStatus.PROCESSED)
    assert failed.status == "error"
    assert failed.error == "real failure"
