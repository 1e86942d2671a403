"""
Classifier: extracted text + existing taxonomy → topic/chapter suggestion and
MCQ/flashcard quantity estimates.

The output is ADVISORY ONLY: the admin may override every field before
generation runs, so every field is always returned.
"""

import json
import logging
from typing import Dict, List

from pydantic import ValidationError

from pediaquiz.errors import ClassificationFailed
from pediaquiz.generation.gpt_client import AIBackendError, GptClient
from pediaquiz.generation.schemas import ClassificationResult

log = logging.getLogger("pediaquiz.pipeline")

MAX_SOURCE_CHARS = 20000


CLASSIFICATION_PROMPT = """You are organising study material for a pediatrics / medical exam question bank.

EXISTING TAXONOMY (topic → chapters):
{taxonomy}

TASK:
1. Pick the topic this material belongs to. Prefer an existing topic name EXACTLY as written.
   Only propose a new topic when none fits.
2. Pick a chapter within that topic. Reuse an existing chapter name EXACTLY when it fits,
   otherwise propose a short new chapter name.
3. Estimate how many high-quality MCQs and flashcards the material can support
   without repeating itself.
4. Give a short citation for the source (book/chapter/lecture title) if one is evident,
   otherwise an empty string.

SOURCE MATERIAL:
\"\"\"
{source_text}
\"\"\"

OUTPUT FORMAT (STRICT JSON, all fields required):
{{
  "suggested_topic": "<topic name>",
  "suggested_chapter": "<chapter name>",
  "suggested_mcq_count": <integer >= 0>,
  "suggested_flashcard_count": <integer >= 0>,
  "source_citation": "<citation or empty string>"
}}

Return ONLY the JSON object."""


def format_taxonomy(taxonomy: Dict[str, List[str]]) -> str:
    if not taxonomy:
        return "(none yet: this is the first upload, propose a new topic and chapter)"
    lines = []
    for topic in sorted(taxonomy):
        chapters = ", ".join(sorted(taxonomy[topic])) or "(no chapters)"
        lines.append(f"- {topic}: {chapters}")
    return "\n".join(lines)


def truncate_source(text: str, limit: int = MAX_SOURCE_CHARS) -> str:
    return (text or "")[:limit]


async def classify_content(
    ai: GptClient,
    extracted_text: str,
    taxonomy: Dict[str, List[str]],
) -> ClassificationResult:
    """
    Suggest topic, chapter and quantities for a document.

    Raises:
        ClassificationFailed: backend error, unparseable or incomplete output
    """
    prompt = CLASSIFICATION_PROMPT.format(
        taxonomy=format_taxonomy(taxonomy),
        source_text=truncate_source(extracted_text),
    )

    try:
        data = await ai.generate_json(prompt)
    except AIBackendError as e:
        raise ClassificationFailed(f"Classification failed: {e}") from e

    if not isinstance(data, dict):
        raise ClassificationFailed(f"Classification failed: expected a JSON object, got {type(data).__name__}")

    try:
        result = ClassificationResult.model_validate(data)
    except ValidationError as e:
        raise ClassificationFailed(
            f"Classification failed: malformed suggestion {json.dumps(data)[:300]} ({e.error_count()} error(s))"
        ) from e

    # never trust the model on whether the chapter already exists
    existing = taxonomy.get(result.suggested_topic, [])
    result.is_new_chapter = result.suggested_chapter not in existing
    return result
