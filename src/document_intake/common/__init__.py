"""Common utilities for the Document Intake Lambda functions."""

from .aws_clients import (
    get_s3_client,
    get_textract_client,
    get_dynamodb_resource,
    get_sagemaker_client,
    get_a2i_client,
)
from .config import Settings, get_settings
from .models import ExtractedDocument, ProcessingResult, ResultRecord, TableCell
from .exceptions import (
    DocumentProcessingError,
    RequestValidationError,
    StorageError,
    AnalysisError,
)

__all__ = [
    "get_s3_client",
    "get_textract_client",
    "get_dynamodb_resource",
    "get_sagemaker_client",
    "get_a2i_client",
    "Settings",
    "get_settings",
    "ExtractedDocument",
    "ProcessingResult",
    "ResultRecord",
    "TableCell",
    "DocumentProcessingError",
    "RequestValidationError",
    "StorageError",
    "AnalysisError",
]
