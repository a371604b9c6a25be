"""Helpers for inspecting uploaded documents before they go to Textract."""

import hashlib
import io
import os
from dataclasses import dataclass
from typing import Optional

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ..common.exceptions import RequestValidationError

# Formats StartDocumentAnalysis accepts
SUPPORTED_EXTENSIONS = {".pdf", ".png", ".jpg", ".jpeg", ".tif", ".tiff"}

# Textract asynchronous analysis limit
MAX_PDF_PAGES = 3000


@dataclass
class DocumentInfo:
    """What we learned about an upload before sending it anywhere."""

    file_name: str
    extension: str
    size: int
    content_hash: str
    page_count: Optional[int] = None


def calculate_content_hash(content: bytes) -> str:
    """SHA-256 hex digest of the raw upload."""
    return hashlib.sha256(content).hexdigest()


def file_extension(file_name: str) -> str:
    return os.path.splitext(file_name)[1].lower()


def count_pdf_pages(content: bytes) -> int:
    """Count pages of a PDF, raising RequestValidationError if it is unreadable."""
    try:
        reader = PdfReader(io.BytesIO(content))
        if reader.is_encrypted:
            raise RequestValidationError("Encrypted PDFs are not supported", field_name="file")
        return len(reader.pages)
    except (PdfReadError, ValueError) as e:
        raise RequestValidationError(f"Unreadable PDF: {e}", field_name="file", cause=e) from e


def inspect_document(file_name: str, content: bytes, max_size: int) -> DocumentInfo:
    """Validate an upload and describe it.

    Raises:
        RequestValidationError: Empty, oversized, unsupported or unreadable file.
    """
    if not content:
        raise RequestValidationError("Uploaded file is empty", field_name="file")

    if len(content) > max_size:
        raise RequestValidationError(
            f"File too large. Maximum size is {max_size / (1024 * 1024):g}MB",
            field_name="file",
        )

    extension = file_extension(file_name)
    if extension not in SUPPORTED_EXTENSIONS:
        raise RequestValidationError(
            f"Unsupported file type '{extension or file_name}'. "
            f"Supported types: {', '.join(sorted(SUPPORTED_EXTENSIONS))}",
            field_name="file",
        )

    page_count = None
    if extension == ".pdf":
        page_count = count_pdf_pages(content)
        if page_count == 0:
            raise RequestValidationError("PDF has no pages", field_name="file")
        if page_count > MAX_PDF_PAGES:
            raise RequestValidationError(
                f"PDF has {page_count} pages; the maximum is {MAX_PDF_PAGES}",
                field_name="file",
            )

    return DocumentInfo(
        file_name=file_name,
        extension=extension,
        size=len(content),
        content_hash=calculate_content_hash(content),
        page_count=page_count,
    )
