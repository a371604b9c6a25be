"""Document and result storage (S3 and DynamoDB)."""

from .results import ResultStore, convert_floats_to_decimal
from .s3 import (
    build_upload_key,
    check_bucket_access,
    content_type_for,
    document_exists,
    upload_document,
)

__all__ = [
    "ResultStore",
    "convert_floats_to_decimal",
    "build_upload_key",
    "check_bucket_access",
    "content_type_for",
    "document_exists",
    "upload_document",
]
