"""
Ingestion package
Uploaded objects → plain text:
1. Storage   (local object store, uploads/<uid>/<file> paths)
2. OCR       (PyMuPDF batch annotation into page-level JSON files)
3. Extract   (read back, concatenate in page order, discard intermediates)
"""

from .storage import LocalObjectStorage, parse_upload_path, upload_object_path
from .ocr_backend import PdfOcrBackend, VisionTranscriber
from .extractor import MIN_TEXT_LENGTH, extract_text, is_supported_content_type

__all__ = [
    "LocalObjectStorage",
    "parse_upload_path",
    "upload_object_path",
    "PdfOcrBackend",
    "VisionTranscriber",
    "MIN_TEXT_LENGTH",
    "extract_text",
    "is_supported_content_type",
]
