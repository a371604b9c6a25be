"""Utility modules for document intake."""

from .documents import DocumentInfo, calculate_content_hash, inspect_document
from .forms import FormData, UploadedFile, parse_event_form, parse_multipart_form
from .safe_log import redact_pii, safe_log

__all__ = [
    # Document inspection
    "DocumentInfo",
    "calculate_content_hash",
    "inspect_document",
    # Forms
    "FormData",
    "UploadedFile",
    "parse_event_form",
    "parse_multipart_form",
    # Logging
    "redact_pii",
    "safe_log",
]
