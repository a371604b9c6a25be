"""Data models for Document Intake."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class JobStatus(str, Enum):
    """Textract asynchronous job status."""
    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"


class ProcessingStatus(str, Enum):
    """Status of a stored result record."""
    PROCESSED = "PROCESSED"
    PENDING_REVIEW = "PENDING_REVIEW"
    REPROCESSED = "REPROCESSED"


CONTENT_CLASSIFIERS = [
    "FreeOfPersonallyIdentifiableInformation",
    "FreeOfAdultContent",
]


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class TableCell:
    """A single cell of a reconstructed table grid."""

    text: str
    confidence: float
    row_index: int
    column_index: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "rowIndex": self.row_index,
            "columnIndex": self.column_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TableCell":
        return cls(
            text=data.get("text", ""),
            confidence=float(data.get("confidence", 0)),
            row_index=int(data.get("rowIndex", 0)),
            column_index=int(data.get("columnIndex", 0)),
        )

    @classmethod
    def empty(cls, row_index: int, column_index: int) -> "TableCell":
        """Placeholder for a grid position Textract returned no cell for."""
        return cls(text="", confidence=0, row_index=row_index, column_index=column_index)


@dataclass
class ExtractedDocument:
    """Form fields and tables parsed out of a Textract block graph."""

    key_value_pairs: dict[str, str] = field(default_factory=dict)
    confidence_scores: dict[str, float] = field(default_factory=dict)
    tables: list[list[list[TableCell]]] = field(default_factory=list)

    def iter_cells(self):
        for table in self.tables:
            for row in table:
                yield from row

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "keyValuePairs": dict(self.key_value_pairs),
            "confidenceScores": dict(self.confidence_scores),
            "tables": [
                [[cell.to_dict() for cell in row] for row in table]
                for table in self.tables
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExtractedDocument":
        """Create from dictionary."""
        return cls(
            key_value_pairs=dict(data.get("keyValuePairs") or {}),
            confidence_scores={
                k: float(v) for k, v in (data.get("confidenceScores") or {}).items()
            },
            tables=[
                [[TableCell.from_dict(cell) for cell in row] for row in table]
                for table in data.get("tables") or []
            ],
        )


@dataclass
class HumanLoopActivation:
    """Human loop Textract started on its own during analysis."""

    human_loop_arn: Optional[str] = None
    activation_reasons: list[str] = field(default_factory=list)
    activation_conditions_evaluation_results: Optional[str] = None

    @classmethod
    def from_response(cls, output: Optional[dict[str, Any]]) -> Optional["HumanLoopActivation"]:
        """Build from a GetDocumentAnalysis ``HumanLoopActivationOutput``."""
        if not output:
            return None
        return cls(
            human_loop_arn=output.get("HumanLoopArn"),
            activation_reasons=list(output.get("HumanLoopActivationReasons") or []),
            activation_conditions_evaluation_results=output.get(
                "HumanLoopActivationConditionsEvaluationResults"
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "humanLoopArn": self.human_loop_arn,
            "activationReasons": self.activation_reasons,
        }


@dataclass
class AnalysisResult:
    """Completed Textract analysis with every result page merged."""

    job_id: str
    status: JobStatus
    blocks: list[dict[str, Any]] = field(default_factory=list)
    document_metadata: dict[str, Any] = field(default_factory=dict)
    human_loop_activation: Optional[HumanLoopActivation] = None
    pages_fetched: int = 1
    warnings: list[dict[str, Any]] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return int(self.document_metadata.get("Pages", 0))

    def as_response(self) -> dict[str, Any]:
        """Shape accepted by the block parser, like a single API response."""
        return {
            "JobStatus": self.status.value,
            "DocumentMetadata": self.document_metadata,
            "Blocks": self.blocks,
        }


@dataclass
class ProcessingResult:
    """Response body for a processed upload."""

    file_id: str
    extracted_data: ExtractedDocument
    requires_human_review: bool
    human_loop_arn: str = ""
    message: str = "Document processed successfully"
    debug_info: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "fileId": self.file_id,
            "extractedData": self.extracted_data.to_dict(),
            "requiresHumanReview": self.requires_human_review,
            "message": self.message,
            "debugInfo": self.debug_info,
        }
        if self.human_loop_arn:
            result["humanLoopArn"] = self.human_loop_arn
        return result


@dataclass
class ResultRecord:
    """Processed document as stored in DynamoDB."""

    file_id: str
    file_name: str
    s3_key: str
    extracted_data: ExtractedDocument
    requires_human_review: bool
    human_loop_arn: str = ""
    job_id: str = ""
    status: ProcessingStatus = ProcessingStatus.PROCESSED
    confidence_summary: dict[str, Any] = field(default_factory=dict)
    page_count: int = 0
    content_hash: str = ""
    reprocess_count: int = 0
    timestamp: str = field(default_factory=utc_timestamp)
    updated_at: Optional[str] = None

    def to_item(self) -> dict[str, Any]:
        """Convert to a DynamoDB item. Extracted data is stored as a JSON string."""
        return {
            "fileId": self.file_id,
            "fileName": self.file_name,
            "s3Key": self.s3_key,
            "processedData": json.dumps(self.extracted_data.to_dict()),
            "requiresHumanReview": self.requires_human_review,
            "humanLoopArn": self.human_loop_arn or "",
            "jobId": self.job_id,
            "status": self.status.value,
            "confidenceSummary": self.confidence_summary,
            "pageCount": self.page_count,
            "contentHash": self.content_hash,
            "reprocessCount": self.reprocess_count,
            "timestamp": self.timestamp,
            "updatedAt": self.updated_at or self.timestamp,
        }

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "ResultRecord":
        """Create from a DynamoDB item."""
        processed = item.get("processedData") or "{}"
        if isinstance(processed, str):
            processed = json.loads(processed)
        return cls(
            file_id=item["fileId"],
            file_name=item.get("fileName", ""),
            s3_key=item.get("s3Key", ""),
            extracted_data=ExtractedDocument.from_dict(processed),
            requires_human_review=bool(item.get("requiresHumanReview", False)),
            human_loop_arn=item.get("humanLoopArn", ""),
            job_id=item.get("jobId", ""),
            status=ProcessingStatus(item.get("status", ProcessingStatus.PROCESSED.value)),
            confidence_summary=dict(item.get("confidenceSummary") or {}),
            page_count=int(item.get("pageCount", 0)),
            content_hash=item.get("contentHash", ""),
            reprocess_count=int(item.get("reprocessCount", 0)),
            timestamp=item.get("timestamp", ""),
            updated_at=item.get("updatedAt"),
        )
