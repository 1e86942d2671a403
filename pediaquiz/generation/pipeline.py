"""
Pipeline stages for one GenerationJob.

    object finalized → create_job_for_object        (pending_ocr)
    job created      → run_ocr_stage                (processed | error)
    admin            → suggest_metrics              (generating-metrics → pending-generation | error)
    admin            → generate_for_job             (generating-content → pending-review | error)
    admin            → approve                      (complete | error)
    admin            → retry_job                    (error → processed | pending_ocr)

Every stage claims the job through the state machine before doing work, so a
duplicate or late trigger cannot run a stage twice. External-call failures
are logged and recorded on the job; they are never left unresolved.
"""

import asyncio
import logging
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from pediaquiz.context import AppContext
from pediaquiz.database import crud
from pediaquiz.database.models import GenerationJob
from pediaquiz.errors import ClassificationFailed, FailedPrecondition, GenerationFailed, PipelineError
from pediaquiz.generation import approval, job_machine
from pediaquiz.generation.classifier import classify_content
from pediaquiz.generation.content_generator import generate_content
from pediaquiz.generation.job_machine import JobAction, JobStatus
from pediaquiz.generation.schemas import (
    ApproveRequest, ApproveResponse, ClassificationResult, GenerateRequest, StagedContent,
)
from pediaquiz.ingestion.extractor import extract_text
from pediaquiz.ingestion.storage import parse_upload_path

log = logging.getLogger("pediaquiz.pipeline")


# ─── Job creation ──────────────────────────────────────────────────────────────

def create_job_for_object(db: Session, path: str, content_type: str) -> Tuple[GenerationJob, bool]:
    """
    Create a pending_ocr job for a finalized upload.
    A repeated event for the same object returns the existing job (created=False).
    """
    owner_id, filename = parse_upload_path(path)
    existing = db.execute(
        select(GenerationJob).where(GenerationJob.original_file_path == path)
    ).scalar_one_or_none()
    if existing is not None:
        log.info(f"[UPLOAD] {path}: duplicate event, job {existing.id} already exists")
        return existing, False

    job = GenerationJob(
        owner_id=owner_id,
        file_name=filename,
        original_file_path=path,
        content_type=content_type,
        status=JobStatus.PENDING_OCR.value,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    log.info(f"[UPLOAD] {path}: created job {job.id} ({content_type})")
    return job, True


def list_pending_jobs(db: Session) -> List[GenerationJob]:
    """Queue view: every job that is not complete, newest first."""
    return list(db.execute(
        select(GenerationJob)
        .where(GenerationJob.status != JobStatus.COMPLETE.value)
        .order_by(GenerationJob.created_at.desc(), GenerationJob.id)
    ).scalars().all())


# ─── OCR ───────────────────────────────────────────────────────────────────────

async def run_ocr_stage(ctx: AppContext, job_id: str) -> Optional[GenerationJob]:
    """
    Extract text for a pending_ocr job. Event-triggered: a job in any other
    status is left alone.
    """
    with ctx.session_factory() as db:
        job = db.get(GenerationJob, job_id)
        if job is None:
            log.warning(f"[OCR] job={job_id}: not found, skipping")
            return None
        if not job_machine.can_apply(job.status, JobAction.OCR_SUCCEEDED):
            log.info(f"[OCR] job={job_id}: status '{job.status}', nothing to do")
            return job

        path, content_type = job.original_file_path, job.content_type
        log.info(f"[OCR] job={job_id}: extracting {path} ({content_type})")
        try:
            text = await asyncio.wait_for(
                extract_text(ctx.storage, ctx.ocr_backend, path, content_type, job_id=job_id),
                timeout=ctx.settings.stage_timeout_seconds,
            )
        except PipelineError as e:
            message = e.message
        except asyncio.TimeoutError:
            message = f"OCR timed out after {ctx.settings.stage_timeout_seconds:.0f}s"
        except Exception as e:
            message = f"OCR engine error: {e}"
        else:
            try:
                job = job_machine.claim(db, job_id, JobAction.OCR_SUCCEEDED, extracted_text=text, error=None)
            except FailedPrecondition as e:
                log.info(f"[OCR] job={job_id}: {e.message}")
                return job_machine.get_job(db, job_id)
            log.info(f"[OCR] job={job_id}: extracted {len(text)} characters")
            return job

        log.error(f"[OCR] job={job_id}: {message}")
        job_machine.fail(db, job_id, message, expected=JobStatus.PENDING_OCR)
        return job_machine.get_job(db, job_id)


# ─── Classification ────────────────────────────────────────────────────────────

async def suggest_metrics(ctx: AppContext, db: Session, job_id: str) -> ClassificationResult:
    """Classifier stage. Raises FailedPrecondition before any AI call if the job is not ready."""
    job = job_machine.claim(db, job_id, JobAction.REQUEST_METRICS, error=None)
    taxonomy = crud.get_taxonomy(db)
    log.info(f"[METRICS] job={job_id}: classifying {len(job.extracted_text or '')} chars against {len(taxonomy)} topic(s)")

    try:
        result = await asyncio.wait_for(
            classify_content(ctx.ai, job.extracted_text or "", taxonomy),
            timeout=ctx.settings.stage_timeout_seconds,
        )
    except ClassificationFailed as e:
        log.error(f"[METRICS] job={job_id}: {e.message}")
        job_machine.fail(db, job_id, e.message, expected=JobStatus.GENERATING_METRICS)
        raise
    except asyncio.TimeoutError:
        message = f"Classification timed out after {ctx.settings.stage_timeout_seconds:.0f}s"
        log.error(f"[METRICS] job={job_id}: {message}")
        job_machine.fail(db, job_id, message, expected=JobStatus.GENERATING_METRICS)
        raise ClassificationFailed(message)
    except Exception as e:
        message = f"Classification failed: {e}"
        log.exception(f"[METRICS] job={job_id}: unexpected error")
        job_machine.fail(db, job_id, message, expected=JobStatus.GENERATING_METRICS)
        raise ClassificationFailed(message) from e

    job_machine.claim(db, job_id, JobAction.METRICS_READY, suggestion=result.model_dump())
    log.info(
        f"[METRICS] job={job_id}: {result.suggested_topic} / {result.suggested_chapter} "
        f"({result.suggested_mcq_count} MCQs, {result.suggested_flashcard_count} flashcards)"
    )
    return result


# ─── Generation ────────────────────────────────────────────────────────────────

async def generate_for_job(ctx: AppContext, db: Session, job_id: str, request: GenerateRequest) -> StagedContent:
    """Confirm counts and stage drafts. Partial output is discarded on failure."""
    job = job_machine.claim(
        db, job_id, JobAction.START_GENERATION,
        confirmed_topic=request.topic,
        confirmed_chapter=request.chapter,
        confirmed_mcq_count=request.mcq_count,
        confirmed_flashcard_count=request.flashcard_count,
        source_citation=request.source_citation,
        staged_content=None,
        error=None,
    )
    log.info(f"[GENERATE] job={job_id}: {request.mcq_count} MCQs + {request.flashcard_count} flashcards requested")

    try:
        staged = await asyncio.wait_for(
            generate_content(
                ctx.ai,
                job.extracted_text or "",
                topic=request.topic,
                chapter=request.chapter,
                mcq_count=request.mcq_count,
                flashcard_count=request.flashcard_count,
                source_citation=request.source_citation,
            ),
            timeout=ctx.settings.stage_timeout_seconds,
        )
    except GenerationFailed as e:
        log.error(f"[GENERATE] job={job_id}: {e.message}")
        job_machine.fail(db, job_id, e.message, expected=JobStatus.GENERATING_CONTENT)
        raise
    except asyncio.TimeoutError:
        message = f"Content generation timed out after {ctx.settings.stage_timeout_seconds:.0f}s"
        log.error(f"[GENERATE] job={job_id}: {message}")
        job_machine.fail(db, job_id, message, expected=JobStatus.GENERATING_CONTENT)
        raise GenerationFailed(message)
    except Exception as e:
        message = f"Content generation failed: {e}"
        log.exception(f"[GENERATE] job={job_id}: unexpected error")
        job_machine.fail(db, job_id, message, expected=JobStatus.GENERATING_CONTENT)
        raise GenerationFailed(message) from e

    job_machine.claim(db, job_id, JobAction.CONTENT_READY, staged_content=staged.model_dump())
    return staged


# ─── Approval / retry ──────────────────────────────────────────────────────────

def approve(ctx: AppContext, db: Session, job_id: str, request: ApproveRequest) -> ApproveResponse:
    return approval.approve_job(db, job_id, request, max_attempts=ctx.settings.approval_max_attempts)


def retry_job(db: Session, job_id: str) -> GenerationJob:
    """Clear the error and return to the last stable status. No stage is re-run here."""
    job = job_machine.claim(db, job_id, JobAction.RETRY, error=None, staged_content=None)
    log.info(f"[RETRY] job={job_id}: back to '{job.status}'")
    return job
