"""
Read-through cache for MCQ explanations.
The stored explanation is served when present; otherwise one is generated,
written back to the MCQ and returned.
"""

import logging

from sqlalchemy.orm import Session

from pediaquiz.database import crud
from pediaquiz.errors import GenerationFailed, NotFound
from pediaquiz.generation.gpt_client import AIBackendError, GptClient

log = logging.getLogger(__name__)

EXPLANATION_PROMPT = """You are a concise pediatric medical expert.
Explain this MCQ. Structure:
**Correct Answer Explanation:** [Explain why.]
**Incorrect Options Explanation:** [Briefly explain why each is wrong.]
Question: {question}
Options:
{options}
Correct Answer: {answer}

Provide your explanation without conversational filler."""


def format_options(options) -> str:
    return "\n".join(f"{chr(65 + i)}. {opt}" for i, opt in enumerate(options))


async def get_or_generate_explanation(db: Session, ai: GptClient, mcq_id: str) -> str:
    mcq = crud.get_mcq(db, mcq_id)
    if mcq is None:
        raise NotFound(f"MCQ {mcq_id} not found")
    if mcq.explanation:
        return mcq.explanation

    prompt = EXPLANATION_PROMPT.format(
        question=mcq.question,
        options=format_options(mcq.options),
        answer=mcq.answer,
    )
    try:
        explanation = await ai.generate_text(prompt, temperature=0.3, max_tokens=800)
    except AIBackendError as e:
        raise GenerationFailed(f"AI Error: {e}") from e

    mcq.explanation = explanation
    db.commit()
    log.info(f"Cached generated explanation for MCQ {mcq_id}")
    return explanation
