"""
Review / Approval Gate.

Publishes a reviewed job in ONE transaction:
  - insert every MCQ and flashcard with a fresh id and source_job_id
  - add the chapter to the topic (creating the topic if needed)
  - mark the job complete and clear its staged content

Job and Topic rows are versioned, so a concurrent writer makes the flush fail
with StaleDataError (or IntegrityError for two new topics racing). Conflicts
are retried; anything else rolls back and the job is moved to `error`.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from pediaquiz.database.models import Flashcard, GenerationJob, Mcq, Topic
from pediaquiz.errors import FailedPrecondition, InvalidArgument, NotFound, TransactionFailed
from pediaquiz.generation import job_machine
from pediaquiz.generation.job_machine import JobAction, JobStatus
from pediaquiz.generation.schemas import ApproveRequest, ApproveResponse, FlashcardDraft, McqDraft, StagedContent

log = logging.getLogger("pediaquiz.pipeline")

DEFAULT_MAX_ATTEMPTS = 3


def add_chapter_to_topic(db: Session, topic_name: str, chapter_name: str) -> bool:
    """
    Taxonomy update inside the caller's transaction.
    Returns True when the chapter was added (topic created or extended).
    """
    topic = db.get(Topic, topic_name)
    if topic is None:
        db.add(Topic(name=topic_name, chapters=[chapter_name]))
        return True
    chapters = list(topic.chapters or [])
    if chapter_name in chapters:
        return False
    topic.chapters = sorted(chapters + [chapter_name])
    return True


def resolve_drafts(job: GenerationJob, request: ApproveRequest) -> Tuple[List[McqDraft], List[FlashcardDraft]]:
    """Admin edits win; otherwise the staged drafts are published as generated."""
    staged = StagedContent.model_validate(job.staged_content or {})
    mcqs = request.mcqs if request.mcqs is not None else list(staged.mcqs)
    flashcards = request.flashcards if request.flashcards is not None else list(staged.flashcards)
    if not mcqs and not flashcards:
        raise InvalidArgument("Nothing to approve: no MCQs or flashcards")
    return mcqs, flashcards


def _commit_once(
    db: Session,
    job_id: str,
    request: ApproveRequest,
) -> ApproveResponse:
    job = job_machine.get_job(db, job_id)
    target = job_machine.next_status(job.status, JobAction.APPROVE)
    mcq_drafts, flashcard_drafts = resolve_drafts(job, request)

    mcqs = [
        Mcq(
            question=d.question,
            options=list(d.options),
            answer=d.answer,
            explanation=d.explanation or None,
            topic=request.topic,
            chapter=request.chapter,
            source_job_id=job.id,
        )
        for d in mcq_drafts
    ]
    flashcards = [
        Flashcard(front=d.front, back=d.back, topic=request.topic, chapter=request.chapter, source_job_id=job.id)
        for d in flashcard_drafts
    ]
    db.add_all(mcqs)
    db.add_all(flashcards)

    new_chapter = add_chapter_to_topic(db, request.topic, request.chapter)

    job.status = target.value
    job.staged_content = None
    job.error = None
    job.confirmed_topic = request.topic
    job.confirmed_chapter = request.chapter

    db.flush()
    db.commit()

    return ApproveResponse(
        message=f"Saved {len(mcqs)} MCQs and {len(flashcards)} flashcards to {request.topic} / {request.chapter}.",
        job_id=job.id,
        topic=request.topic,
        chapter=request.chapter,
        mcq_ids=[m.id for m in mcqs],
        flashcard_ids=[f.id for f in flashcards],
        new_chapter=new_chapter,
    )


def approve_job(
    db: Session,
    job_id: str,
    request: ApproveRequest,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> ApproveResponse:
    """
    Commit a pending-review job's content atomically.

    Raises:
        NotFound / FailedPrecondition / InvalidArgument: rejected before any write
        TransactionFailed: the transaction rolled back; the job is now in error
    """
    # Precondition + payload checks happen before anything is written.
    job = job_machine.get_job(db, job_id)
    job_machine.next_status(job.status, JobAction.APPROVE)
    resolve_drafts(job, request)

    last_error: Optional[Exception] = None
    for attempt in range(1, max(1, max_attempts) + 1):
        try:
            result = _commit_once(db, job_id, request)
            log.info(
                f"[APPROVE] job={job_id}: {len(result.mcq_ids)} MCQs, {len(result.flashcard_ids)} flashcards "
                f"→ {request.topic} / {request.chapter} (new chapter: {result.new_chapter})"
            )
            return result
        except (StaleDataError, IntegrityError) as e:
            db.rollback()
            db.expire_all()
            last_error = e
            log.warning(f"[APPROVE] job={job_id}: write conflict on attempt {attempt}/{max_attempts}: {e}")
            # another approval of this same job may have won the race
            current = job_machine.get_job(db, job_id).status
            if current != JobStatus.PENDING_REVIEW.value:
                raise FailedPrecondition(f"Job {job_id} is now '{current}'; approval not applied")
        except (FailedPrecondition, InvalidArgument, NotFound):
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            last_error = e
            break

    message = f"Approval transaction failed: {last_error}"
    log.error(f"[APPROVE] job={job_id}: {message}")
    job_machine.fail(db, job_id, message, expected=JobStatus.PENDING_REVIEW)
    raise TransactionFailed(message)
