"""
Content Generator: extracted text + confirmed quantities → staged drafts.

Counts are hard requirements. The backend is asked in batches of at most
GENERATION_BATCH_SIZE items; every batch must come back with exactly the
requested number of well-formed drafts or the whole generation fails.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from pediaquiz.errors import GenerationFailed
from pediaquiz.generation.classifier import truncate_source
from pediaquiz.generation.gpt_client import AIBackendError, GptClient
from pediaquiz.generation.schemas import FlashcardDraft, GeneratedMcq, StagedContent

log = logging.getLogger("pediaquiz.pipeline")

GENERATION_BATCH_SIZE = 20


# ─── Prompts ───────────────────────────────────────────────────────────────────

MCQ_PROMPT = """You are an expert pediatrics exam question setter.

Generate EXACTLY {count} multiple-choice questions from the source material below.

Topic: {topic}
Chapter: {chapter}
{avoid_block}
SOURCE MATERIAL (use ONLY facts from this text):
\"\"\"
{source_text}
\"\"\"

OUTPUT FORMAT (STRICT JSON):
{{
  "mcqs": [
    {{
      "question": "<clear, self-contained question stem>",
      "options": ["<option A>", "<option B>", "<option C>", "<option D>"],
      "answer": "<A|B|C|D>",
      "explanation": "<why the answer is correct and the others are not>"
    }}
  ]
}}

RULES:
1. The "mcqs" array must contain exactly {count} items
2. Exactly 4 options per question, exactly ONE correct
3. Do NOT use "All of the above" or "None of the above"
4. Return ONLY the JSON object"""


FLASHCARD_PROMPT = """You are an expert pediatrics educator writing revision flashcards.

Generate EXACTLY {count} flashcards from the source material below.

Topic: {topic}
Chapter: {chapter}
{avoid_block}
SOURCE MATERIAL (use ONLY facts from this text):
\"\"\"
{source_text}
\"\"\"

OUTPUT FORMAT (STRICT JSON):
{{
  "flashcards": [
    {{"front": "<prompt or term>", "back": "<concise answer>"}}
  ]
}}

RULES:
1. The "flashcards" array must contain exactly {count} items
2. One fact per card; keep the back under 40 words
3. Return ONLY the JSON object"""


def _avoid_block(previous: List[str]) -> str:
    if not previous:
        return ""
    listed = "\n".join(f"- {p[:160]}" for p in previous[-40:])
    return f"\nALREADY WRITTEN (do not repeat these):\n{listed}\n"


def _batches(total: int, size: int = GENERATION_BATCH_SIZE) -> List[int]:
    sizes = []
    while total > 0:
        sizes.append(min(size, total))
        total -= size
    return sizes


# ─── Parsing ───────────────────────────────────────────────────────────────────

def _items(data: Any, key: str, kind: str) -> List[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get(key), list):
        return data[key]
    raise GenerationFailed(f"{kind} generation returned no '{key}' array")


def _normalise_options(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Accept [{"label": "A", "text": ...}, ...] option objects as well as plain strings."""
    options = raw.get("options")
    if isinstance(options, list) and options and all(isinstance(o, dict) for o in options):
        ordered = sorted(options, key=lambda o: str(o.get("label", "")))
        raw = {**raw, "options": [o.get("text") for o in ordered]}
    return raw


def _validate_batch(items: List[Any], model: type, expected: int, kind: str) -> List[BaseModel]:
    if len(items) != expected:
        raise GenerationFailed(f"{kind} generation returned {len(items)} item(s), expected exactly {expected}")
    drafts = []
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise GenerationFailed(f"{kind} #{index} is not an object")
        if model is GeneratedMcq:
            item = _normalise_options(item)
        try:
            drafts.append(model.model_validate(item))
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise GenerationFailed(f"{kind} #{index} is malformed ({fields})") from e
    return drafts


def apply_citation(mcqs: List[GeneratedMcq], source_citation: Optional[str]) -> List[GeneratedMcq]:
    """Append "(Source: <citation>)" to every explanation."""
    if not source_citation:
        return mcqs
    return [
        m.model_copy(update={"explanation": f"{m.explanation} (Source: {source_citation})"})
        for m in mcqs
    ]


# ─── Main entry ────────────────────────────────────────────────────────────────

async def generate_content(
    ai: GptClient,
    extracted_text: str,
    topic: str,
    chapter: str,
    mcq_count: int,
    flashcard_count: int,
    source_citation: Optional[str] = None,
) -> StagedContent:
    """
    Produce exactly `mcq_count` MCQ drafts and `flashcard_count` flashcard drafts.

    Raises:
        GenerationFailed: backend error, wrong count or any malformed draft
    """
    source_text = truncate_source(extracted_text)
    mcqs: List[GeneratedMcq] = []
    flashcards: List[FlashcardDraft] = []

    try:
        for size in _batches(mcq_count):
            prompt = MCQ_PROMPT.format(
                count=size, topic=topic, chapter=chapter, source_text=source_text,
                avoid_block=_avoid_block([m.question for m in mcqs]),
            )
            data = await ai.generate_json(prompt, temperature=0.7)
            mcqs.extend(_validate_batch(_items(data, "mcqs", "MCQ"), GeneratedMcq, size, "MCQ"))

        for size in _batches(flashcard_count):
            prompt = FLASHCARD_PROMPT.format(
                count=size, topic=topic, chapter=chapter, source_text=source_text,
                avoid_block=_avoid_block([f.front for f in flashcards]),
            )
            data = await ai.generate_json(prompt, temperature=0.7)
            flashcards.extend(_validate_batch(_items(data, "flashcards", "Flashcard"), FlashcardDraft, size, "Flashcard"))
    except AIBackendError as e:
        raise GenerationFailed(f"Content generation failed: {e}") from e

    log.info(f"[GENERATE] {topic} / {chapter}: {len(mcqs)} MCQs, {len(flashcards)} flashcards")
    return StagedContent(mcqs=apply_citation(mcqs, source_citation), flashcards=flashcards)
