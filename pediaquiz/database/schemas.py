"""
Pydantic schemas for the question bank and learner attempts.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# ==========================================
# CONTENT STORE
# ==========================================

class ChapterResponse(BaseModel):
    name: str
    mcq_count: int


class TopicResponse(BaseModel):
    name: str
    chapters: List[ChapterResponse]
    chapter_count: int
    total_mcq_count: int


class McqResponse(BaseModel):
    id: str
    question: str
    options: List[str]
    answer: str
    explanation: Optional[str] = None
    topic: str
    chapter: str
    source_job_id: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class FlashcardResponse(BaseModel):
    id: str
    front: str
    back: str
    topic: str
    chapter: str
    source_job_id: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AppDataResponse(BaseModel):
    topics: List[TopicResponse]
    mcqs: List[McqResponse]
    flashcards: List[FlashcardResponse]


class ExplanationResponse(BaseModel):
    mcq_id: str
    explanation: str


class DeleteResponse(BaseModel):
    success: bool = True
    message: str


# ==========================================
# ATTEMPTS & ADAPTIVE TESTS
# ==========================================

class AttemptCreate(BaseModel):
    mcq_id: str = Field(..., min_length=1)
    selected_answer: Optional[Literal["A", "B", "C", "D"]] = Field(
        None, description="Chosen option letter; null records a skipped question"
    )


class AttemptState(BaseModel):
    is_correct: bool
    selected_answer: Optional[str] = None
    incorrect_streak: int = 0
    last_seen: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AttemptResponse(AttemptState):
    mcq_id: str
    correct_answer: str


class WeaknessTestRequest(BaseModel):
    test_size: int = Field(20, ge=1, le=200)
    attempted: Optional[Dict[str, AttemptState]] = Field(
        None, description="Explicit attempt map; the caller's stored attempts are used when omitted"
    )


class WeaknessTestResponse(BaseModel):
    mcq_ids: List[str]


class AdviceRequest(BaseModel):
    strong_topics: List[str] = Field(default_factory=list)
    weak_topics: List[str] = Field(default_factory=list)
    overall_accuracy: float = Field(..., ge=0, le=100)


class AdviceResponse(BaseModel):
    advice: str
