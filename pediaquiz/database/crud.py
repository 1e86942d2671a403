"""
CRUD operations for the question bank and learner attempts.
Pipeline writes (job transitions, approval) live in pediaquiz.generation.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from pediaquiz.database import models, schemas
from pediaquiz.errors import InvalidArgument, NotFound


# ==========================================
# TAXONOMY
# ==========================================

def get_taxonomy(db: Session) -> Dict[str, List[str]]:
    """Topic name → chapter names, as stored."""
    topics = db.execute(select(models.Topic).order_by(models.Topic.name)).scalars().all()
    return {t.name: list(t.chapters or []) for t in topics}


def list_topics(db: Session) -> List[schemas.TopicResponse]:
    """Topics with derived chapter and MCQ counts, sorted by name."""
    mcq_counts = Counter(
        chapter for (chapter,) in db.execute(select(models.Mcq.chapter)).all() if chapter
    )
    result = []
    for name, chapter_names in get_taxonomy(db).items():
        chapters = sorted(
            (schemas.ChapterResponse(name=c, mcq_count=mcq_counts.get(c, 0)) for c in chapter_names),
            key=lambda c: c.name,
        )
        result.append(schemas.TopicResponse(
            name=name,
            chapters=chapters,
            chapter_count=len(chapters),
            total_mcq_count=sum(c.mcq_count for c in chapters),
        ))
    return result


# ==========================================
# MCQ / FLASHCARD CRUD
# ==========================================

def get_mcq(db: Session, mcq_id: str) -> Optional[models.Mcq]:
    return db.get(models.Mcq, mcq_id)


def list_mcqs(db: Session, topic: Optional[str] = None, chapter: Optional[str] = None) -> List[models.Mcq]:
    q = select(models.Mcq)
    if topic:
        q = q.where(models.Mcq.topic == topic)
    if chapter:
        q = q.where(models.Mcq.chapter == chapter)
    return list(db.execute(q.order_by(models.Mcq.created_at, models.Mcq.id)).scalars().all())


def list_flashcards(db: Session, topic: Optional[str] = None, chapter: Optional[str] = None) -> List[models.Flashcard]:
    q = select(models.Flashcard)
    if topic:
        q = q.where(models.Flashcard.topic == topic)
    if chapter:
        q = q.where(models.Flashcard.chapter == chapter)
    return list(db.execute(q.order_by(models.Flashcard.created_at, models.Flashcard.id)).scalars().all())


def delete_content_item(db: Session, item_id: str, kind: str) -> None:
    """Delete one MCQ or flashcard by id."""
    model = {"mcq": models.Mcq, "flashcard": models.Flashcard}.get(kind)
    if model is None:
        raise InvalidArgument("Valid ID and type required.")
    item = db.get(model, item_id)
    if item is None:
        raise NotFound(f"{kind} {item_id} not found")
    db.delete(item)
    db.commit()


# ==========================================
# ATTEMPTS
# ==========================================

def record_attempt(db: Session, user_id: int, mcq_id: str, selected_answer: Optional[str]) -> models.Attempt:
    """Upsert the learner's last attempt on an MCQ. Correctness is judged server-side."""
    mcq = get_mcq(db, mcq_id)
    if mcq is None:
        raise NotFound(f"MCQ {mcq_id} not found")

    is_correct = selected_answer is not None and selected_answer == mcq.answer
    attempt = db.execute(
        select(models.Attempt).where(models.Attempt.user_id == user_id, models.Attempt.mcq_id == mcq_id)
    ).scalar_one_or_none()

    if attempt is None:
        attempt = models.Attempt(user_id=user_id, mcq_id=mcq_id, incorrect_streak=0)
        db.add(attempt)

    attempt.is_correct = is_correct
    attempt.selected_answer = selected_answer
    attempt.incorrect_streak = 0 if is_correct else (attempt.incorrect_streak or 0) + 1
    attempt.last_seen = datetime.now(timezone.utc)
    db.commit()
    db.refresh(attempt)
    return attempt


def get_attempts(db: Session, user_id: int) -> Dict[str, models.Attempt]:
    rows = db.execute(select(models.Attempt).where(models.Attempt.user_id == user_id)).scalars().all()
    return {a.mcq_id: a for a in rows}


def reset_attempts(db: Session, user_id: int) -> int:
    rows = db.execute(select(models.Attempt).where(models.Attempt.user_id == user_id)).scalars().all()
    for attempt in rows:
        db.delete(attempt)
    db.commit()
    return len(rows)
