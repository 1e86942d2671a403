"""
Study advice from a learner's performance summary.
"""

from typing import List

from pediaquiz.errors import GenerationFailed
from pediaquiz.generation.gpt_client import AIBackendError, GptClient

ADVICE_PROMPT = """You are an encouraging medical study advisor.
User's performance:
- Accuracy: {accuracy:.1f}%
- Strong Topics: {strong}
- Weak Topics: {weak}
Provide short, actionable advice in markdown with two sections:
**Areas to Consolidate** and **Areas for Revision**.
Keep it under 150 words."""


async def generate_performance_advice(
    ai: GptClient,
    strong_topics: List[str],
    weak_topics: List[str],
    overall_accuracy: float,
) -> str:
    prompt = ADVICE_PROMPT.format(
        accuracy=overall_accuracy,
        strong=", ".join(strong_topics) or "None yet",
        weak=", ".join(weak_topics) or "None yet",
    )
    try:
        return await ai.generate_text(prompt, temperature=0.6, max_tokens=400)
    except AIBackendError as e:
        raise GenerationFailed(f"AI Error: {e}") from e
