"""
Document OCR backend.

Batch annotation of a stored PDF: page text is extracted with PyMuPDF and
written as page-level JSON files into object storage, `batch_size` pages per
file:

    <output_prefix>/output-1-to-20.json
    <output_prefix>/output-21-to-40.json
    {"responses": [{"page": 1, "text": "..."}, ...]}

Pages without a text layer can optionally be transcribed by a vision model
(rendered to PNG and sent with an exact-text prompt).
"""

import asyncio
import base64
import json
import logging
from typing import List, Optional, Tuple

import fitz  # PyMuPDF
from openai import AsyncOpenAI

from pediaquiz.ingestion.storage import LocalObjectStorage

log = logging.getLogger(__name__)

# Suppress verbose MuPDF warnings on malformed PDFs
fitz.TOOLS.mupdf_display_errors(False)

DEFAULT_BATCH_SIZE = 20
RENDER_DPI = 150


def batch_file_name(output_prefix: str, first_page: int, last_page: int) -> str:
    return f"{output_prefix}/output-{first_page}-to-{last_page}.json"


class VisionTranscriber:
    """Transcribe a rendered page image with an OpenAI vision model."""

    SYSTEM_PROMPT = """You are an expert at extracting text from scanned medical study material.

Your task: extract ALL text in this page image EXACTLY as shown.
- Include every heading, label, number and word. Preserve spelling and symbols.
- Preserve structure: use line breaks for separate lines; keep bullet points where visible.
- Output plain text only. No markdown, no commentary."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o"):
        self.client = client
        self.model = model

    async def transcribe_png(self, png_bytes: bytes, context: str = "") -> str:
        image_data = base64.b64encode(png_bytes).decode("utf-8")
        user_prompt = "Extract all text in this page exactly as shown."
        if context:
            user_prompt += f"\n\nContext: {context}"
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": self.SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": user_prompt},
                        {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{image_data}"}},
                    ],
                },
            ],
            temperature=0.0,
            max_tokens=2000,
        )
        return (response.choices[0].message.content or "").strip()


def _read_pdf_pages(pdf_bytes: bytes, render_blank: bool) -> List[Tuple[int, str, Optional[bytes]]]:
    """(page_no, text, png-or-None) for every page; PNG only for text-less pages when requested."""
    pages = []
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        for index, page in enumerate(doc):
            text = page.get_text("text") or ""
            png = None
            if render_blank and not text.strip():
                png = page.get_pixmap(dpi=RENDER_DPI).tobytes("png")
            pages.append((index + 1, text, png))
    return pages


class PdfOcrBackend:
    """
    Async batch annotator for PDFs stored in LocalObjectStorage.
    Results are written to storage; the caller reads, concatenates and deletes them.
    """

    def __init__(
        self,
        storage: LocalObjectStorage,
        batch_size: int = DEFAULT_BATCH_SIZE,
        vision: Optional[VisionTranscriber] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.storage = storage
        self.batch_size = batch_size
        self.vision = vision

    async def batch_annotate(self, source_path: str, output_prefix: str) -> List[str]:
        """
        Annotate every page of `source_path`, writing JSON batches under `output_prefix`.

        Returns:
            Object names of the written batch files
        """
        pdf_bytes = await asyncio.to_thread(self.storage.read_bytes, source_path)
        pages = await asyncio.to_thread(_read_pdf_pages, pdf_bytes, self.vision is not None)
        log.info(f"[OCR] {source_path}: {len(pages)} page(s), batch size {self.batch_size}")

        responses = []
        for page_no, text, png in pages:
            if png is not None:
                log.info(f"[OCR] {source_path}: page {page_no} has no text layer, using vision model")
                text = await self.vision.transcribe_png(png, context=f"page {page_no}")
            responses.append({"page": page_no, "text": text})

        written = []
        for start in range(0, len(responses), self.batch_size):
            batch = responses[start:start + self.batch_size]
            name = batch_file_name(output_prefix, batch[0]["page"], batch[-1]["page"])
            payload = json.dumps({"responses": batch}).encode("utf-8")
            await asyncio.to_thread(self.storage.write_bytes, name, payload)
            written.append(name)
        return written
