"""
Student router: /student

Attempt history, weakness tests and study advice for the signed-in learner.
Endpoints:
  POST   /student/attempts       : record an answer (graded server-side)
  GET    /student/attempts       : attempt map keyed by MCQ id
  DELETE /student/attempts       : reset progress
  POST   /student/weakness-test  : MCQ ids biased toward weakest chapters
  POST   /student/advice         : short markdown study advice
"""

import logging
from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pediaquiz.context import AppContext, get_context
from pediaquiz.database import crud
from pediaquiz.database.database import get_db
from pediaquiz.database.models import User
from pediaquiz.database.schemas import (
    AdviceRequest, AdviceResponse, AttemptCreate, AttemptResponse, AttemptState,
    WeaknessTestRequest, WeaknessTestResponse,
)
from pediaquiz.generation.advice import generate_performance_advice
from pediaquiz.generation.weakness import assemble_weakness_test
from pediaquiz.routers.auth import get_current_user

log = logging.getLogger("pediaquiz.pipeline")

router = APIRouter(prefix="/student", tags=["student"])


@router.post("/attempts", response_model=AttemptResponse)
def record_attempt(
    request: AttemptCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    attempt = crud.record_attempt(db, user.id, request.mcq_id, request.selected_answer)
    mcq = crud.get_mcq(db, request.mcq_id)
    return AttemptResponse(
        mcq_id=attempt.mcq_id,
        correct_answer=mcq.answer,
        is_correct=attempt.is_correct,
        selected_answer=attempt.selected_answer,
        incorrect_streak=attempt.incorrect_streak,
        last_seen=attempt.last_seen,
    )


@router.get("/attempts", response_model=Dict[str, AttemptState])
def get_attempts(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {mcq_id: AttemptState.model_validate(a) for mcq_id, a in crud.get_attempts(db, user.id).items()}


@router.delete("/attempts")
def reset_attempts(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    deleted = crud.reset_attempts(db, user.id)
    return {"message": f"Progress reset ({deleted} attempts removed)", "deleted": deleted}


@router.post("/weakness-test", response_model=WeaknessTestResponse)
def weakness_test(
    request: WeaknessTestRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Assemble a test from the request's attempt map, or from the learner's
    stored attempts when none is given.
    """
    attempted = request.attempted if request.attempted is not None else crud.get_attempts(db, user.id)
    mcqs = crud.list_mcqs(db)
    mcq_ids = assemble_weakness_test(attempted, mcqs, request.test_size)
    log.info(f"[WEAKNESS] user={user.id}: {len(mcq_ids)} of {request.test_size} requested from {len(attempted)} attempts")
    return WeaknessTestResponse(mcq_ids=mcq_ids)


@router.post("/advice", response_model=AdviceResponse)
async def advice(
    request: AdviceRequest,
    _: User = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    text = await generate_performance_advice(
        ctx.ai, request.strong_topics, request.weak_topics, request.overall_accuracy,
    )
    return AdviceResponse(advice=text)
