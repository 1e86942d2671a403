"""
Upload Router
Stores a source document in object storage and opens a GenerationJob for it.

Two entry points create jobs:
- POST /uploads                   : multipart upload by a signed-in user
- POST /events/object-finalized   : storage notification for an object written elsewhere

Both schedule the OCR stage as a background task; the stage itself decides
whether the content type is supported.
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Header, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from pediaquiz.context import AppContext, get_context
from pediaquiz.database.database import get_db
from pediaquiz.database.models import User
from pediaquiz.generation.pipeline import create_job_for_object, run_ocr_stage
from pediaquiz.generation.schemas import JobResponse, ObjectFinalizedEvent
from pediaquiz.ingestion.storage import upload_object_path
from pediaquiz.routers.auth import get_current_user

log = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@router.post("/uploads", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="Source document (text or PDF)"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_context),
):
    """
    Store the file under uploads/<uid>/<timestamp>_<name>, create a
    pending_ocr job and schedule text extraction.
    """
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No filename provided")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file uploaded")
    if len(content) > ctx.settings.max_upload_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size: {ctx.settings.max_upload_size / 1024 / 1024:.1f}MB",
        )

    path = upload_object_path(user.id, file.filename)
    ctx.storage.write_bytes(path, content)
    log.info(f"Stored upload {path} ({len(content)} bytes) for user {user.id}")

    job, _ = create_job_for_object(db, path, file.content_type or DEFAULT_CONTENT_TYPE)
    background_tasks.add_task(run_ocr_stage, ctx, job.id)
    return JobResponse.from_job(job)


@router.post("/events/object-finalized", response_model=JobResponse)
def object_finalized(
    event: ObjectFinalizedEvent,
    background_tasks: BackgroundTasks,
    x_event_token: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_context),
):
    """
    Storage notification. Delivery is at-least-once: a repeated event for a
    known path returns the existing job and schedules nothing.
    """
    if not ctx.settings.event_token or x_event_token != ctx.settings.event_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid event token")
    if not ctx.storage.exists(event.path):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Object {event.path} not found")

    job, created = create_job_for_object(db, event.path, event.content_type)
    if created:
        background_tasks.add_task(run_ocr_stage, ctx, job.id)
    return JobResponse.from_job(job)
