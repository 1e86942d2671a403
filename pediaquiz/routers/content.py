"""
Question bank router.
Read access for every signed-in user; deletes are admin only.
"""

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pediaquiz.context import AppContext, get_context
from pediaquiz.database import crud
from pediaquiz.database.database import get_db
from pediaquiz.database.schemas import (
    AppDataResponse, DeleteResponse, ExplanationResponse, FlashcardResponse, McqResponse, TopicResponse,
)
from pediaquiz.generation.explanations import get_or_generate_explanation
from pediaquiz.routers.auth import get_token_claims, require_admin

log = logging.getLogger(__name__)

router = APIRouter(prefix="/content", tags=["content"])


@router.get("", response_model=AppDataResponse)
def get_app_data(_: dict = Depends(get_token_claims), db: Session = Depends(get_db)):
    """Whole bank in one call: topics with derived counts, MCQs, flashcards."""
    return AppDataResponse(
        topics=crud.list_topics(db),
        mcqs=[McqResponse.model_validate(m) for m in crud.list_mcqs(db)],
        flashcards=[FlashcardResponse.model_validate(f) for f in crud.list_flashcards(db)],
    )


@router.get("/topics", response_model=List[TopicResponse])
def list_topics(_: dict = Depends(get_token_claims), db: Session = Depends(get_db)):
    return crud.list_topics(db)


@router.get("/mcqs", response_model=List[McqResponse])
def list_mcqs(
    topic: Optional[str] = None,
    chapter: Optional[str] = None,
    _: dict = Depends(get_token_claims),
    db: Session = Depends(get_db),
):
    return crud.list_mcqs(db, topic=topic, chapter=chapter)


@router.get("/flashcards", response_model=List[FlashcardResponse])
def list_flashcards(
    topic: Optional[str] = None,
    chapter: Optional[str] = None,
    _: dict = Depends(get_token_claims),
    db: Session = Depends(get_db),
):
    return crud.list_flashcards(db, topic=topic, chapter=chapter)


@router.get("/mcqs/{mcq_id}/explanation", response_model=ExplanationResponse)
async def get_explanation(
    mcq_id: str,
    _: dict = Depends(get_token_claims),
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_context),
):
    """Stored explanation, or a freshly generated one that is cached on the MCQ."""
    explanation = await get_or_generate_explanation(db, ctx.ai, mcq_id)
    return ExplanationResponse(mcq_id=mcq_id, explanation=explanation)


@router.delete("/{kind}/{item_id}", response_model=DeleteResponse)
def delete_item(
    kind: Literal["mcq", "flashcard"],
    item_id: str,
    claims: dict = Depends(require_admin),
    db: Session = Depends(get_db),
):
    crud.delete_content_item(db, item_id, kind)
    log.info(f"Admin {claims.get('sub')} deleted {kind} {item_id}")
    return DeleteResponse(message=f"Successfully deleted {kind}.")
