"""
SQLAlchemy models for the question bank and the generation pipeline.
Topic → Chapter names → {MCQ, Flashcard}, plus GenerationJob and per-learner attempts.

Chapters are not a table: they are a sorted name list on Topic and a label on
every MCQ/Flashcard. Chapter and MCQ counts are derived at read time.
"""

import uuid

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Text, JSON, UniqueConstraint
from sqlalchemy.sql import func

from pediaquiz.database.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# ==========================================
# AUTH: USERS
# ==========================================

class User(Base):
    """
    Learner or admin account.
    is_admin is copied into the access token as a claim; admin endpoints trust the claim.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False, default="")
    is_active = Column(Boolean, default=True, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    refresh_token = Column(String(64), nullable=True, index=True)  # sha256 digest; set on login, cleared on logout
    refresh_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', is_admin={self.is_admin})>"


# ==========================================
# CONTENT STORE
# ==========================================

class Topic(Base):
    """
    Top-level subject grouping, keyed by its human-readable name.
    chapters: sorted list of chapter names. version guards concurrent chapter additions.
    """
    __tablename__ = "topics"

    name = Column(String(255), primary_key=True)
    chapters = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Topic(name='{self.name}', chapters={len(self.chapters or [])})>"


class Mcq(Base):
    """
    Multiple-choice question. options holds exactly 4 strings (A–D), answer is the letter.
    A NULL explanation means it has not been generated yet.
    """
    __tablename__ = "mcqs"

    id = Column(String(36), primary_key=True, default=_uuid)
    question = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)
    answer = Column(String(1), nullable=False)
    explanation = Column(Text, nullable=True)
    topic = Column(String(255), nullable=False, index=True)
    chapter = Column(String(255), nullable=False, index=True)
    source_job_id = Column(String(36), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Mcq(id={self.id}, topic='{self.topic}', chapter='{self.chapter}')>"


class Flashcard(Base):
    __tablename__ = "flashcards"

    id = Column(String(36), primary_key=True, default=_uuid)
    front = Column(Text, nullable=False)
    back = Column(Text, nullable=False)
    topic = Column(String(255), nullable=False, index=True)
    chapter = Column(String(255), nullable=False, index=True)
    source_job_id = Column(String(36), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Flashcard(id={self.id}, topic='{self.topic}', chapter='{self.chapter}')>"


# ==========================================
# GENERATION PIPELINE
# ==========================================

class GenerationJob(Base):
    """
    One upload's journey through the pipeline.
    status is the cooperative lock: every stage compare-and-sets it before acting.
    staged_content: {"mcqs": [...], "flashcards": [...]} drafts awaiting review.
    """
    __tablename__ = "generation_jobs"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    file_name = Column(String(512), nullable=False)
    original_file_path = Column(String(1024), unique=True, nullable=False)
    content_type = Column(String(255), nullable=False)
    extracted_text = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default="pending_ocr", index=True)

    suggestion = Column(JSON, nullable=True)  # classifier output, advisory
    confirmed_topic = Column(String(255), nullable=True)
    confirmed_chapter = Column(String(255), nullable=True)
    confirmed_mcq_count = Column(Integer, nullable=True)
    confirmed_flashcard_count = Column(Integer, nullable=True)
    source_citation = Column(String(512), nullable=True)
    staged_content = Column(JSON, nullable=True)

    error = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<GenerationJob(id={self.id}, status='{self.status}')>"


# ==========================================
# LEARNER ATTEMPTS
# ==========================================

class Attempt(Base):
    """Last attempt of one learner on one MCQ."""
    __tablename__ = "attempts"
    __table_args__ = (UniqueConstraint("user_id", "mcq_id", name="uq_attempt_user_mcq"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    mcq_id = Column(String(36), ForeignKey("mcqs.id", ondelete="CASCADE"), nullable=False, index=True)
    is_correct = Column(Boolean, nullable=False)
    selected_answer = Column(String(1), nullable=True)
    incorrect_streak = Column(Integer, nullable=False, default=0)
    last_seen = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Attempt(user_id={self.user_id}, mcq_id={self.mcq_id}, correct={self.is_correct})>"
