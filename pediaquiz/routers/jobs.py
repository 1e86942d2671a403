"""
Jobs Router: /jobs (admin only)

Drives a GenerationJob through the review pipeline.
Endpoints:
  GET  /jobs                       : pending queue (everything not complete)
  GET  /jobs/{id}                  : job detail incl. staged drafts
  POST /jobs/{id}/suggest-metrics  : classifier suggestion
  POST /jobs/{id}/generate         : confirm counts, stage drafts
  POST /jobs/{id}/approve          : publish into the question bank
  POST /jobs/{id}/retry            : error → last stable status
"""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from pediaquiz.context import AppContext, get_context
from pediaquiz.database.database import get_db
from pediaquiz.generation import job_machine, pipeline
from pediaquiz.generation.job_machine import JobStatus
from pediaquiz.generation.schemas import (
    ApproveRequest, ApproveResponse, ClassificationResult, GenerateRequest, JobResponse,
)
from pediaquiz.routers.auth import require_admin


router = APIRouter(prefix="/jobs", tags=["jobs"], dependencies=[Depends(require_admin)])


@router.get("", response_model=List[JobResponse])
def list_jobs(db: Session = Depends(get_db)):
    return [JobResponse.from_job(job) for job in pipeline.list_pending_jobs(db)]


@router.get("/{job_id}", response_model=JobResponse)
def get_job(job_id: str, db: Session = Depends(get_db)):
    return JobResponse.from_job(job_machine.get_job(db, job_id))


@router.post("/{job_id}/suggest-metrics", response_model=ClassificationResult)
async def suggest_metrics(
    job_id: str,
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_context),
):
    """
    Ask the classifier for topic/chapter and item counts.
    The job moves to pending-generation; the suggestion is advisory.
    """
    return await pipeline.suggest_metrics(ctx, db, job_id)


@router.post("/{job_id}/generate", response_model=JobResponse)
async def generate(
    job_id: str,
    request: GenerateRequest,
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_context),
):
    """Generate exactly the confirmed number of drafts and stage them for review."""
    await pipeline.generate_for_job(ctx, db, job_id, request)
    return JobResponse.from_job(job_machine.get_job(db, job_id))


@router.post("/{job_id}/approve", response_model=ApproveResponse)
def approve(
    job_id: str,
    request: ApproveRequest,
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_context),
):
    return pipeline.approve(ctx, db, job_id, request)


@router.post("/{job_id}/retry", response_model=JobResponse)
def retry(
    job_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_context),
):
    """Clear the error. A job that never produced text goes back through OCR."""
    job = pipeline.retry_job(db, job_id)
    if job.status == JobStatus.PENDING_OCR.value:
        background_tasks.add_task(pipeline.run_ocr_stage, ctx, job.id)
    return JobResponse.from_job(job)
