"""
OCR Extractor: stored object + declared content type → plain text.

Text uploads are decoded directly. PDFs go through the OCR backend's batch
annotation; its page-level JSON outputs are read back, concatenated in page
order and deleted.
"""

import asyncio
import json
import logging
import re
import uuid
from typing import List

from pediaquiz.errors import InsufficientContent, UnsupportedFormat
from pediaquiz.ingestion.ocr_backend import PdfOcrBackend
from pediaquiz.ingestion.storage import LocalObjectStorage

log = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 100
OCR_OUTPUT_PREFIX = "ocr-output"
PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf"}

_BATCH_NAME = re.compile(r"output-(\d+)-to-(\d+)\.json$")


def _base_content_type(content_type: str) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def is_supported_content_type(content_type: str) -> bool:
    base = _base_content_type(content_type)
    return base.startswith("text/") or base in PDF_CONTENT_TYPES


def _batch_sort_key(name: str) -> int:
    match = _BATCH_NAME.search(name)
    if not match:
        return 0
    return int(match.group(1))


def collect_batch_text(storage: LocalObjectStorage, output_prefix: str) -> str:
    """Concatenate page texts from every batch file under the prefix, in page order."""
    pages: List[tuple] = []
    for name in sorted(storage.list(output_prefix), key=_batch_sort_key):
        if not _BATCH_NAME.search(name):
            continue
        payload = json.loads(storage.read_bytes(name).decode("utf-8"))
        for response in payload.get("responses", []):
            pages.append((int(response.get("page", 0)), response.get("text") or ""))
    pages.sort(key=lambda p: p[0])
    return "\n".join(text for _, text in pages)


def discard_batch_outputs(storage: LocalObjectStorage, output_prefix: str) -> None:
    for name in storage.list(output_prefix):
        storage.delete(name)


async def extract_text(
    storage: LocalObjectStorage,
    ocr_backend: PdfOcrBackend,
    path: str,
    content_type: str,
    job_id: str = "",
) -> str:
    """
    Extract plain text from a stored object.

    Raises:
        UnsupportedFormat: content type is neither text nor PDF
        InsufficientContent: fewer than MIN_TEXT_LENGTH characters recovered
    """
    base = _base_content_type(content_type)

    if base.startswith("text/"):
        raw = await asyncio.to_thread(storage.read_bytes, path)
        text = raw.decode("utf-8", errors="replace")
    elif base in PDF_CONTENT_TYPES:
        output_prefix = f"{OCR_OUTPUT_PREFIX}/{job_id or 'adhoc'}/{uuid.uuid4().hex}"
        try:
            await ocr_backend.batch_annotate(path, output_prefix)
            text = await asyncio.to_thread(collect_batch_text, storage, output_prefix)
        finally:
            await asyncio.to_thread(discard_batch_outputs, storage, output_prefix)
    else:
        raise UnsupportedFormat(f"Unsupported content type: {content_type}")

    text = text.strip()
    if len(text) < MIN_TEXT_LENGTH:
        raise InsufficientContent(
            f"Extracted only {len(text)} characters (minimum {MIN_TEXT_LENGTH}); "
            "the document may be blank or image-only."
        )
    return text
