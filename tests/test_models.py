"""Tests for data models."""

import json
from datetime import datetime, timezone

from document_intake.common.models import (
    AnalysisResult,
    ExtractedDocument,
    HumanLoopActivation,
    JobStatus,
    ProcessingResult,
    ProcessingStatus,
    ResultRecord,
    TableCell,
    utc_timestamp,
)


def _document():
    return ExtractedDocument(
        key_value_pairs={"Employee Name:": "Jane Citizen"},
        confidence_scores={"Employee Name:": 92.3},
        tables=[[
            [TableCell("Day", 99.0, 1, 1), TableCell("Hours", 97.0, 1, 2)],
            [TableCell("Monday", 88.0, 2, 1), TableCell.empty(2, 2)],
        ]],
    )


class TestTableCell:
    """Tests for TableCell model."""

    def test_to_dict(self):
        cell = TableCell(text="Monday", confidence=88.0, row_index=2, column_index=1)

        assert cell.to_dict() == {
            "text": "Monday",
            "confidence": 88.0,
            "rowIndex": 2,
            "columnIndex": 1,
        }

    def test_empty(self):
        """Placeholder cells are blank with zero confidence."""
        cell = TableCell.empty(3, 4)

        assert cell.text == ""
        assert cell.confidence == 0
        assert (cell.row_index, cell.column_index) == (3, 4)


class TestExtractedDocument:
    """Tests for ExtractedDocument model."""

    def test_to_dict(self):
        """Test conversion to dictionary."""
        result = _document().to_dict()

        assert result["keyValuePairs"] == {"Employee Name:": "Jane Citizen"}
        assert result["confidenceScores"] == {"Employee Name:": 92.3}
        assert len(result["tables"]) == 1
        assert result["tables"][0][1][1] == {"text": "", "confidence": 0, "rowIndex": 2, "columnIndex": 2}

    def test_from_dict(self):
        """Test creation from dictionary."""
        document = ExtractedDocument.from_dict(_document().to_dict())

        assert document == _document()

    def test_from_dict_with_missing_sections(self):
        document = ExtractedDocument.from_dict({})

        assert document.key_value_pairs == {}
        assert document.tables == []

    def test_iter_cells(self):
        assert [cell.text for cell in _document().iter_cells()] == ["Day", "Hours", "Monday", ""]


class TestHumanLoopActivation:
    """Tests for HumanLoopActivation model."""

    def test_from_response(self):
        activation = HumanLoopActivation.from_response({
            "HumanLoopArn": "arn:aws:sagemaker:ap-southeast-2:1:human-loop/abc",
            "HumanLoopActivationReasons": ["ImportantFormKeyConfidenceCheck"],
        })

        assert activation.human_loop_arn.endswith("human-loop/abc")
        assert activation.activation_reasons == ["ImportantFormKeyConfidenceCheck"]

    def test_from_empty_response(self):
        assert HumanLoopActivation.from_response(None) is None
        assert HumanLoopActivation.from_response({}) is None


class TestAnalysisResult:
    """Tests for AnalysisResult model."""

    def test_as_response(self):
        result = AnalysisResult(
            job_id="job-1",
            status=JobStatus.SUCCEEDED,
            blocks=[{"BlockType": "PAGE", "Id": "p"}],
            document_metadata={"Pages": 2},
        )

        assert result.page_count == 2
        assert result.as_response() == {
            "JobStatus": "SUCCEEDED",
            "DocumentMetadata": {"Pages": 2},
            "Blocks": [{"BlockType": "PAGE", "Id": "p"}],
        }


class TestProcessingResult:
    """Tests for ProcessingResult model."""

    def test_to_dict_without_human_loop(self):
        result = ProcessingResult(file_id="f-1", extracted_data=_document(), requires_human_review=False)

        data = result.to_dict()

        assert data["fileId"] == "f-1"
        assert data["message"] == "Document processed successfully"
        assert data["requiresHumanReview"] is False
        assert "humanLoopArn" not in data

    def test_to_dict_with_human_loop(self):
        result = ProcessingResult(
            file_id="f-1",
            extracted_data=_document(),
            requires_human_review=True,
            human_loop_arn="arn:loop",
        )

        assert result.to_dict()["humanLoopArn"] == "arn:loop"


class TestResultRecord:
    """Tests for ResultRecord model."""

    def test_to_item(self):
        """processedData is stored as a JSON string."""
        record = ResultRecord(
            file_id="f-1",
            file_name="timesheet.pdf",
            s3_key="uploads/f-1-timesheet.pdf",
            extracted_data=_document(),
            requires_human_review=True,
            status=ProcessingStatus.PENDING_REVIEW,
            timestamp="2024-07-14T00:00:00Z",
        )

        item = record.to_item()

        assert item["fileId"] == "f-1"
        assert item["fileName"] == "timesheet.pdf"
        assert isinstance(item["processedData"], str)
        assert json.loads(item["processedData"]) == _document().to_dict()
        assert item["requiresHumanReview"] is True
        assert item["humanLoopArn"] == ""
        assert item["status"] == "PENDING_REVIEW"
        assert item["timestamp"] == "2024-07-14T00:00:00Z"
        assert item["updatedAt"] == "2024-07-14T00:00:00Z"

    def test_from_item(self):
        record = ResultRecord.from_item({
            "fileId": "f-1",
            "fileName": "timesheet.pdf",
            "s3Key": "uploads/f-1-timesheet.pdf",
            "processedData": json.dumps(_document().to_dict()),
            "requiresHumanReview": True,
            "status": "REPROCESSED",
            "reprocessCount": 2,
            "contentHash": "abc",
        })

        assert record.extracted_data == _document()
        assert record.status == ProcessingStatus.REPROCESSED
        assert record.reprocess_count == 2
        assert record.content_hash == "abc"
        assert record.human_loop_arn == ""

    def test_default_timestamp_is_utc(self):
        record = ResultRecord(
            file_id="f-1",
            file_name="timesheet.pdf",
            s3_key="uploads/f-1-timesheet.pdf",
            extracted_data=_document(),
            requires_human_review=False,
        )

        assert record.timestamp.endswith("Z")
        stored = datetime.fromisoformat(record.timestamp[:-1] + "+00:00")
        assert stored.utcoffset().total_seconds() == 0
        assert abs((datetime.now(timezone.utc) - stored).total_seconds()) < 60


class TestUtcTimestamp:
    """Tests for utc_timestamp."""

    def test_z_suffix(self):
        stamp = utc_timestamp()

        assert stamp.endswith("Z")
        assert "+00:00" not in stamp
