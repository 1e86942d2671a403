"""
Pydantic schemas for the content-generation pipeline.
Request bodies are validated here before any storage or AI call is made.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ANSWER_LETTERS = ("A", "B", "C", "D")
MAX_ITEMS_PER_JOB = 200


# ─── Drafts ────────────────────────────────────────────────────────────────────

class McqDraft(BaseModel):
    """MCQ before publication: no id, no topic/chapter."""
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=4, max_length=4)
    answer: Literal["A", "B", "C", "D"]
    explanation: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("answer", mode="before")
    @classmethod
    def _normalise_answer(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("options")
    @classmethod
    def _options_not_blank(cls, value: List[str]) -> List[str]:
        cleaned = [opt.strip() for opt in value]
        if any(not opt for opt in cleaned):
            raise ValueError("options must be non-empty strings")
        return cleaned


class GeneratedMcq(McqDraft):
    """MCQ as returned by the generator: the explanation is mandatory."""
    explanation: str = Field(..., min_length=1)


class FlashcardDraft(BaseModel):
    front: str = Field(..., min_length=1)
    back: str = Field(..., min_length=1)

    model_config = ConfigDict(str_strip_whitespace=True)


class StagedContent(BaseModel):
    mcqs: List[GeneratedMcq] = Field(default_factory=list)
    flashcards: List[FlashcardDraft] = Field(default_factory=list)


# ─── Classifier ────────────────────────────────────────────────────────────────

class ClassificationResult(BaseModel):
    """Advisory classifier output. Every field is always present."""
    suggested_topic: str = Field(..., min_length=1)
    suggested_chapter: str = Field(..., min_length=1)
    is_new_chapter: bool = True
    suggested_mcq_count: int
    suggested_flashcard_count: int
    source_citation: str = ""

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("suggested_mcq_count", "suggested_flashcard_count")
    @classmethod
    def _clamp_count(cls, v: int) -> int:
        # estimates outside what one job can generate are clamped, not rejected
        return max(0, min(v, MAX_ITEMS_PER_JOB))


# ─── Requests ──────────────────────────────────────────────────────────────────

class ObjectFinalizedEvent(BaseModel):
    """Storage notification: an object finished uploading."""
    path: str = Field(..., min_length=1, description="uploads/<uid>/<filename>")
    content_type: str = Field(..., min_length=1)


class GenerateRequest(BaseModel):
    """Admin confirmation of taxonomy and exact quantities."""
    topic: str = Field(..., min_length=1, max_length=255)
    chapter: str = Field(..., min_length=1, max_length=255)
    mcq_count: int = Field(..., ge=0, le=MAX_ITEMS_PER_JOB)
    flashcard_count: int = Field(..., ge=0, le=MAX_ITEMS_PER_JOB)
    source_citation: Optional[str] = Field(None, max_length=512)

    model_config = ConfigDict(str_strip_whitespace=True)

    @model_validator(mode="after")
    def _something_to_generate(self) -> "GenerateRequest":
        if self.mcq_count == 0 and self.flashcard_count == 0:
            raise ValueError("mcq_count and flashcard_count cannot both be zero")
        if self.source_citation is not None:
            self.source_citation = self.source_citation.strip() or None
        return self


class ApproveRequest(BaseModel):
    """
    Final admin decision. mcqs/flashcards replace the staged drafts when given
    (manual edits); omitted lists publish the staged drafts unchanged.
    """
    topic: str = Field(..., min_length=1, max_length=255)
    chapter: str = Field(..., min_length=1, max_length=255)
    mcqs: Optional[List[McqDraft]] = None
    flashcards: Optional[List[FlashcardDraft]] = None

    model_config = ConfigDict(str_strip_whitespace=True)


# ─── Responses ─────────────────────────────────────────────────────────────────

class JobResponse(BaseModel):
    id: str
    owner_id: Optional[int]
    file_name: str
    original_file_path: str
    content_type: str
    status: str
    has_extracted_text: bool
    extracted_text_length: int
    suggestion: Optional[Dict[str, Any]] = None
    confirmed_topic: Optional[str] = None
    confirmed_chapter: Optional[str] = None
    confirmed_mcq_count: Optional[int] = None
    confirmed_flashcard_count: Optional[int] = None
    source_citation: Optional[str] = None
    staged_content: Optional[StagedContent] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job) -> "JobResponse":
        text = job.extracted_text or ""
        return cls(
            id=job.id,
            owner_id=job.owner_id,
            file_name=job.file_name,
            original_file_path=job.original_file_path,
            content_type=job.content_type,
            status=job.status,
            has_extracted_text=bool(text),
            extracted_text_length=len(text),
            suggestion=job.suggestion,
            confirmed_topic=job.confirmed_topic,
            confirmed_chapter=job.confirmed_chapter,
            confirmed_mcq_count=job.confirmed_mcq_count,
            confirmed_flashcard_count=job.confirmed_flashcard_count,
            source_citation=job.source_citation,
            staged_content=job.staged_content,
            error=job.error,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


class ApproveResponse(BaseModel):
    success: bool = True
    message: str
    job_id: str
    topic: str
    chapter: str
    mcq_ids: List[str]
    flashcard_ids: List[str]
    new_chapter: bool
