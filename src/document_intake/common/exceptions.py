"""Custom exceptions for Document Intake."""


class DocumentProcessingError(Exception):
    """Base exception for document processing errors."""

    http_status = 500

    def __init__(self, message: str, document_id: str | None = None, cause: Exception | None = None):
        self.message = message
        self.document_id = document_id
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "documentId": self.document_id,
            "cause": str(self.cause) if self.cause else None,
        }


class RequestValidationError(DocumentProcessingError):
    """The request was missing or carried invalid input."""

    http_status = 400

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        document_id: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, document_id, cause)
        self.field_name = field_name


class RecordNotFoundError(DocumentProcessingError):
    """No stored result exists for the requested file id."""

    http_status = 404


class StorageError(DocumentProcessingError):
    """Error during storage operations."""

    def __init__(
        self,
        message: str,
        document_id: str | None = None,
        storage_type: str | None = None,  # "s3" or "dynamodb"
        cause: Exception | None = None,
    ):
        super().__init__(message, document_id, cause)
        self.storage_type = storage_type

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["storageType"] = self.storage_type
        return result


class AnalysisError(DocumentProcessingError):
    """Error while starting or polling a Textract analysis job."""

    def __init__(
        self,
        message: str,
        document_id: str | None = None,
        job_id: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, document_id, cause)
        self.job_id = job_id

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["jobId"] = self.job_id
        return result


class AnalysisFailedError(AnalysisError):
    """Textract reported the job as FAILED."""
    pass


class AnalysisTimeoutError(AnalysisError):
    """The job did not finish within the allowed number of polls."""

    def __init__(
        self,
        message: str,
        document_id: str | None = None,
        job_id: str | None = None,
        attempts: int = 0,
        cause: Exception | None = None,
    ):
        super().__init__(message, document_id, job_id, cause)
        self.attempts = attempts


class DuplicatePollError(AnalysisError):
    """A polling loop is already running for this job id."""
    pass


class ParsingError(DocumentProcessingError):
    """Error while turning Textract blocks into structured data."""
    pass


class HumanReviewError(DocumentProcessingError):
    """Error starting an A2I human loop."""
    pass


class TrainingError(DocumentProcessingError):
    """Error triggering a SageMaker training job."""
    pass
