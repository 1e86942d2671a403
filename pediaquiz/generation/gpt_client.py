"""
Generative text backend used by the pipeline.

Used by:
  - classifier.py          (topic/chapter + quantity suggestions, JSON mode)
  - content_generator.py   (MCQ / flashcard drafts, JSON mode)
  - explanations.py        (MCQ explanations, text mode)
  - advice.py              (study advice, text mode)

Any OpenAI-compatible Chat Completions endpoint works: set AI_BASE_URL to
e.g. https://generativelanguage.googleapis.com/v1beta/openai/ for Gemini.
"""

import json
import re
from typing import Any, Optional

import json_repair
from openai import AsyncOpenAI

DEFAULT_SYSTEM = "You are a concise medical education assistant. Output only what is asked."


class AIBackendError(RuntimeError):
    """The backend failed or returned nothing usable."""


def extract_json(raw: str) -> Any:
    """
    Parse a JSON object/array out of a model response.
    Tolerates markdown code fences and surrounding prose; json_repair
    fixes small syntax slips such as trailing commas.
    """
    text = (raw or "").strip()
    text = re.sub(r"^```(?:json)?\s*", "", text, flags=re.MULTILINE)
    text = re.sub(r"\s*```$", "", text, flags=re.MULTILINE)
    if not text:
        raise AIBackendError("Empty response from generative backend")

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start = text.find(open_ch)
        end = text.rfind(close_ch) + 1
        if start != -1 and end > start:
            repaired = json_repair.loads(text[start:end])
            if isinstance(repaired, (dict, list)) and repaired:
                return repaired
    raise AIBackendError(f"Response is not valid JSON: {text[:200]}")


class GptClient:
    """Thin wrapper over AsyncOpenAI with a plain-text mode and a JSON mode."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self._api_key = api_key
        self._base_url = base_url
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise AIBackendError("OPENAI_API_KEY is not set. Add it to your .env file.")
            self._client = AsyncOpenAI(api_key=self._api_key, base_url=self._base_url)
        return self._client

    async def _complete(self, prompt: str, system: str, temperature: float, max_tokens: int, json_mode: bool) -> str:
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except AIBackendError:
            raise
        except Exception as e:
            raise AIBackendError(f"Generative backend call failed: {e}") from e

        if not response.choices:
            raise AIBackendError("Generative backend returned no choices")
        return response.choices[0].message.content or ""

    async def generate_text(
        self,
        prompt: str,
        system: str = DEFAULT_SYSTEM,
        temperature: float = 0.4,
        max_tokens: int = 2048,
    ) -> str:
        """Plain-text completion. Empty output is an error, not a default."""
        content = (await self._complete(prompt, system, temperature, max_tokens, json_mode=False)).strip()
        if not content:
            raise AIBackendError("Generative backend returned an empty response")
        return content

    async def generate_json(
        self,
        prompt: str,
        system: str = "Return only valid JSON.",
        temperature: float = 0.2,
        max_tokens: int = 8192,
    ) -> Any:
        """JSON-mode completion, parsed defensively (no schema guarantee from the backend)."""
        raw = await self._complete(prompt, system, temperature, max_tokens, json_mode=True)
        return extract_json(raw)
