import asyncio
import dataclasses

import pytest

from conftest import SAMPLE_TEXT, flashcard_payload, make_job, mcq_payload
from pediaquiz.errors import ClassificationFailed, FailedPrecondition, GenerationFailed, InvalidArgument
from pediaquiz.generation import job_machine, pipeline
from pediaquiz.generation.gpt_client import AIBackendError
from pediaquiz.generation.schemas import GenerateRequest

SUGGESTION = {
    "suggested_topic": "Cardiology",
    "suggested_chapter": "Vasculitis",
    "suggested_mcq_count": 4,
    "suggested_flashcard_count": 2,
    "source_citation": "",
}


def test_create_job_for_object(db):
    job, created = pipeline.create_job_for_object(db, "uploads/7/20240101_notes.pdf", "application/pdf")
    assert created is True
    assert job.status == "pending_ocr"
    assert job.owner_id == 7
    assert job.file_name == "20240101_notes.pdf"


def test_duplicate_event_returns_existing_job(db):
    first, _ = pipeline.create_job_for_object(db, "uploads/7/notes.pdf", "application/pdf")
    second, created = pipeline.create_job_for_object(db, "uploads/7/notes.pdf", "application/pdf")
    assert created is False
    assert second.id == first.id
    assert len(pipeline.list_pending_jobs(db)) == 1


def test_malformed_path_is_rejected(db):
    with pytest.raises(InvalidArgument):
        pipeline.create_job_for_object(db, "elsewhere/notes.pdf", "application/pdf")


def test_pending_queue_excludes_complete(db):
    make_job(db, status="processed")
    make_job(db, status="error")
    make_job(db, status="complete")
    statuses = {job.status for job in pipeline.list_pending_jobs(db)}
    assert statuses == {"processed", "error"}


def test_suggest_metrics_moves_to_pending_generation(ctx, db, fake_ai):
    job = make_job(db, status="processed")
    fake_ai.queue(SUGGESTION)

    result = asyncio.run(pipeline.suggest_metrics(ctx, db, job.id))

    assert result.suggested_mcq_count == 4
    reloaded = job_machine.get_job(db, job.id)
    assert reloaded.status == "pending-generation"
    assert reloaded.suggestion["suggested_topic"] == "Cardiology"


def test_suggest_metrics_failure_moves_job_to_error(ctx, db, fake_ai):
    job = make_job(db, status="processed")
    fake_ai.queue({"suggested_topic": "Cardiology"})

    with pytest.raises(ClassificationFailed):
        asyncio.run(pipeline.suggest_metrics(ctx, db, job.id))

    reloaded = job_machine.get_job(db, job.id)
    assert reloaded.status == "error"
    assert reloaded.error.startswith("Classification failed")


def test_suggest_metrics_requires_extracted_text(ctx, db, fake_ai):
    job = make_job(db, status="pending_ocr", text=None)
    with pytest.raises(FailedPrecondition):
        asyncio.run(pipeline.suggest_metrics(ctx, db, job.id))
    assert fake_ai.prompts == []
    assert job_machine.get_job(db, job.id).status == "pending_ocr"


def test_generate_stages_exact_counts(ctx, db, fake_ai):
    job = make_job(db, status="pending-generation")
    fake_ai.queue(mcq_payload(7), flashcard_payload(3))
    request = GenerateRequest(topic="Cardiology", chapter="Vasculitis", mcq_count=7, flashcard_count=3,
                              source_citation="Nelson Ch. 3")

    staged = asyncio.run(pipeline.generate_for_job(ctx, db, job.id, request))

    assert len(staged.mcqs) == 7
    reloaded = job_machine.get_job(db, job.id)
    assert reloaded.status == "pending-review"
    assert reloaded.confirmed_mcq_count == 7
    assert reloaded.confirmed_flashcard_count == 3
    assert reloaded.source_citation == "Nelson Ch. 3"
    assert len(reloaded.staged_content["mcqs"]) == 7
    assert len(reloaded.staged_content["flashcards"]) == 3
    assert reloaded.staged_content["mcqs"][0]["explanation"].endswith("(Source: Nelson Ch. 3)")


def test_generate_failure_discards_partial_output(ctx, db, fake_ai):
    job = make_job(db, status="processed")
    fake_ai.queue(mcq_payload(20), AIBackendError("connection reset"))
    request = GenerateRequest(topic="Cardiology", chapter="Vasculitis", mcq_count=25, flashcard_count=0)

    with pytest.raises(GenerationFailed):
        asyncio.run(pipeline.generate_for_job(ctx, db, job.id, request))

    reloaded = job_machine.get_job(db, job.id)
    assert reloaded.status == "error"
    assert reloaded.staged_content is None
    assert "connection reset" in reloaded.error


def test_generate_timeout_fails_job(ctx, db, monkeypatch):
    job = make_job(db, status="processed")

    async def slow(*args, **kwargs):
        await asyncio.sleep(1)

    monkeypatch.setattr(pipeline, "generate_content", slow)
    monkeypatch.setattr(ctx, "settings", dataclasses.replace(ctx.settings, stage_timeout_seconds=0.01))
    request = GenerateRequest(topic="Cardiology", chapter="Vasculitis", mcq_count=1, flashcard_count=0)

    with pytest.raises(GenerationFailed) as exc:
        asyncio.run(pipeline.generate_for_job(ctx, db, job.id, request))

    assert "timed out" in exc.value.message
    assert job_machine.get_job(db, job.id).status == "error"


def test_retry_then_regenerate(ctx, db, fake_ai):
    job = make_job(db, status="error")
    retried = pipeline.retry_job(db, job.id)
    assert retried.status == "processed"

    fake_ai.queue(mcq_payload(1))
    request = GenerateRequest(topic="Cardiology", chapter="Vasculitis", mcq_count=1, flashcard_count=0)
    asyncio.run(pipeline.generate_for_job(ctx, db, job.id, request))
    assert job_machine.get_job(db, job.id).status == "pending-review"


def test_retry_requires_error(db):
    job = make_job(db, status="pending-review")
    with pytest.raises(FailedPrecondition):
        pipeline.retry_job(db, job.id)


def test_generate_request_rejects_zero_counts():
    with pytest.raises(ValueError):
        GenerateRequest(topic="Cardiology", chapter="Vasculitis", mcq_count=0, flashcard_count=0)


def test_duplicate_ocr_delivery_keeps_the_successful_run(ctx, db, monkeypatch):
    job = make_job(db, status="pending_ocr", text=None)
    calls = []

    async def extract(*args, **kwargs):
        calls.append(1)
        if len(calls) == 1:
            await asyncio.sleep(0.01)
            return SAMPLE_TEXT
        await asyncio.sleep(0.2)
        raise RuntimeError("engine hiccup")

    monkeypatch.setattr(pipeline, "extract_text", extract)

    async def deliver_twice():
        await asyncio.gather(pipeline.run_ocr_stage(ctx, job.id), pipeline.run_ocr_stage(ctx, job.id))

    asyncio.run(deliver_twice())

    assert len(calls) == 2
    db.expire_all()
    stored = job_machine.get_job(db, job.id)
    assert stored.status == "processed"
    assert stored.extracted_text == SAMPLE_TEXT
    assert stored.error is None


def test_late_generation_failure_does_not_touch_reviewed_job(ctx, db):
    job = make_job(db, status="pending-review", staged=mcq_payload(2))
    assert job_machine.fail(db, job.id, "stale", expected=job_machine.JobStatus.GENERATING_CONTENT) is None
    db.expire_all()
    stored = job_machine.get_job(db, job.id)
    assert stored.status == "pending-review"
    assert stored.staged_content == mcq_payload(2)
