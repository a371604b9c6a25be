"""Tests for starting and polling Textract analysis jobs."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import EndpointConnectionError

from conftest import FLOW_DEFINITION_ARN, client_error
from document_intake.common.exceptions import (
    AnalysisError,
    AnalysisFailedError,
    AnalysisTimeoutError,
    DuplicatePollError,
)
from document_intake.common.models import JobStatus
from document_intake.textract import jobs
from textract_blocks import timesheet_blocks

NOW = datetime(2024, 7, 14, tzinfo=timezone.utc)


@pytest.fixture
def textract(monkeypatch):
    client = MagicMock()
    monkeypatch.setattr(jobs, "get_textract_client", lambda region=None: client)
    return client


class TestHumanLoopConfig:
    """Tests for the HumanLoopConfig sent with StartDocumentAnalysis."""

    def test_disabled_without_flow_definition(self, settings):
        assert jobs.build_human_loop_config(settings, NOW) is None

    def test_config(self, review_settings):
        config = jobs.build_human_loop_config(review_settings, NOW)

        assert config["FlowDefinitionArn"] == FLOW_DEFINITION_ARN
        assert config["HumanLoopName"] == "textract-review-1720915200000"
        assert config["DataAttributes"] == {
            "ContentClassifiers": [
                "FreeOfPersonallyIdentifiableInformation",
                "FreeOfAdultContent",
            ]
        }

        conditions = json.loads(config["HumanLoopActivationConditions"])["Conditions"]
        assert conditions[0]["ConditionType"] == "ImportantFormKeyConfidenceCheck"
        assert conditions[0]["ConditionParameters"]["ImportantFormKey"] == "*"
        assert conditions[0]["ConditionParameters"]["KeyValueBlockConfidenceLessThan"] == 99.0
        assert conditions[0]["ConditionParameters"]["WordBlockConfidenceLessThan"] == 99.0


class TestStartDocumentAnalysis:
    """Tests for start_document_analysis."""

    def test_starts_forms_and_tables_job(self, settings, textract):
        textract.start_document_analysis.return_value = {"JobId": "job-1"}

        job_id = jobs.start_document_analysis("uploads/f-1-timesheet.pdf", settings)

        assert job_id == "job-1"
        textract.start_document_analysis.assert_called_once_with(
            DocumentLocation={"S3Object": {"Bucket": "test-bucket", "Name": "uploads/f-1-timesheet.pdf"}},
            FeatureTypes=["FORMS", "TABLES"],
        )

    def test_includes_human_loop_config(self, review_settings, textract):
        textract.start_document_analysis.return_value = {"JobId": "job-1"}

        jobs.start_document_analysis("uploads/a.pdf", review_settings, now=NOW)

        params = textract.start_document_analysis.call_args.kwargs
        assert params["HumanLoopConfig"]["HumanLoopName"] == "textract-review-1720915200000"

    def test_client_error(self, settings, textract):
        textract.start_document_analysis.side_effect = client_error(
            "InvalidS3ObjectException", "Unable to get object metadata from S3"
        )

        with pytest.raises(AnalysisError, match="Failed to start Textract job: Unable to get object metadata"):
            jobs.start_document_analysis("uploads/a.pdf", settings)

    def test_missing_job_id(self, settings, textract):
        textract.start_document_analysis.return_value = {}

        with pytest.raises(AnalysisError, match="No JobId returned"):
            jobs.start_document_analysis("uploads/a.pdf", settings)


class TestWaitForResults:
    """Tests for the polling loop."""

    def test_in_progress_then_succeeded(self, settings, textract):
        sleeps = []
        textract.get_document_analysis.side_effect = [
            {"JobStatus": "IN_PROGRESS"},
            {"JobStatus": "SUCCEEDED", "DocumentMetadata": {"Pages": 1}, "Blocks": timesheet_blocks()},
        ]

        result = jobs.wait_for_results("job-1", settings, sleep=sleeps.append)

        assert result.status == JobStatus.SUCCEEDED
        assert result.page_count == 1
        assert len(result.blocks) == len(timesheet_blocks())
        assert sleeps == [3.0]
        assert not jobs.is_polling("job-1")

    def test_paginated_results_are_merged(self, settings, textract, capsys):
        blocks = timesheet_blocks()
        textract.get_document_analysis.side_effect = [
            {"JobStatus": "SUCCEEDED", "Blocks": blocks[:5], "NextToken": "t1",
             "Warnings": [{"ErrorCode": "W1", "Pages": [1]}]},
            {"JobStatus": "SUCCEEDED", "Blocks": blocks[5:10], "NextToken": "t2"},
            {"JobStatus": "SUCCEEDED", "Blocks": blocks[10:]},
        ]

        result = jobs.wait_for_results("job-1", settings, sleep=lambda s: None)

        assert result.blocks == blocks
        assert result.pages_fetched == 3
        assert result.warnings == [{"ErrorCode": "W1", "Pages": [1]}]
        assert textract.get_document_analysis.call_args_list[1].kwargs == {"JobId": "job-1", "NextToken": "t1"}
        out = capsys.readouterr().out
        assert "[WARNING] Textract returned warnings" in out
        assert "W1" in out

    def test_partial_success_is_returned(self, settings, textract):
        textract.get_document_analysis.return_value = {
            "JobStatus": "PARTIAL_SUCCESS",
            "StatusMessage": "Some pages failed",
            "Blocks": [],
        }

        result = jobs.wait_for_results("job-1", settings, sleep=lambda s: None)

        assert result.status == JobStatus.PARTIAL_SUCCESS

    def test_human_loop_activation(self, settings, textract):
        textract.get_document_analysis.return_value = {
            "JobStatus": "SUCCEEDED",
            "Blocks": [],
            "HumanLoopActivationOutput": {"HumanLoopArn": "arn:loop"},
        }

        result = jobs.wait_for_results("job-1", settings, sleep=lambda s: None)

        assert result.human_loop_activation.human_loop_arn == "arn:loop"

    def test_failed(self, settings, textract):
        textract.get_document_analysis.return_value = {
            "JobStatus": "FAILED",
            "StatusMessage": "Request has unsupported document format",
        }

        with pytest.raises(AnalysisFailedError, match="Textract job failed: Request has unsupported"):
            jobs.wait_for_results("job-1", settings, sleep=lambda s: None)
        assert not jobs.is_polling("job-1")

    def test_failed_without_message(self, settings, textract):
        textract.get_document_analysis.return_value = {"JobStatus": "FAILED"}

        with pytest.raises(AnalysisFailedError, match="Unknown reason"):
            jobs.wait_for_results("job-1", settings, sleep=lambda s: None)

    def test_transient_errors_back_off(self, settings, textract):
        sleeps = []
        textract.get_document_analysis.side_effect = [
            client_error("ThrottlingException", "Rate exceeded"),
            EndpointConnectionError(endpoint_url="https://textract.ap-southeast-2.amazonaws.com"),
            {"JobStatus": "SUCCEEDED", "Blocks": []},
        ]

        result = jobs.wait_for_results("job-1", settings, sleep=sleeps.append)

        assert result.status == JobStatus.SUCCEEDED
        assert sleeps == [5.0, 5.0]

    def test_errors_exhaust_attempts(self, settings, textract):
        sleeps = []
        textract.get_document_analysis.side_effect = client_error("ThrottlingException", "Rate exceeded")

        with pytest.raises(AnalysisTimeoutError, match="after 3 attempts: Rate exceeded") as exc_info:
            jobs.wait_for_results("job-1", settings, sleep=sleeps.append)

        assert exc_info.value.attempts == 3
        assert textract.get_document_analysis.call_count == 3
        assert sleeps == [5.0, 5.0]

    def test_never_completes(self, settings, textract):
        sleeps = []
        textract.get_document_analysis.return_value = {"JobStatus": "IN_PROGRESS"}

        with pytest.raises(AnalysisTimeoutError, match="did not complete"):
            jobs.wait_for_results("job-1", settings, sleep=sleeps.append)

        assert textract.get_document_analysis.call_count == 3
        assert sleeps == [3.0, 3.0, 3.0]

    def test_second_poller_for_same_job_is_rejected(self, settings, textract):
        """Only one polling loop per job id runs at a time."""
        nested_errors = []

        def sleep(seconds):
            assert jobs.is_polling("job-1")
            with pytest.raises(DuplicatePollError) as exc_info:
                jobs.wait_for_results("job-1", settings, sleep=lambda s: None)
            nested_errors.append(exc_info.value)

        textract.get_document_analysis.side_effect = [
            {"JobStatus": "IN_PROGRESS"},
            {"JobStatus": "SUCCEEDED", "Blocks": []},
        ]

        result = jobs.wait_for_results("job-1", settings, sleep=sleep)

        assert result.status == JobStatus.SUCCEEDED
        assert len(nested_errors) == 1
        assert nested_errors[0].job_id == "job-1"
        assert not jobs.is_polling("job-1")


class TestDescribeFlowDefinition:
    """Tests for describe_flow_definition."""

    def test_uses_name_from_arn(self, review_settings, monkeypatch):
        sagemaker = MagicMock()
        sagemaker.describe_flow_definition.return_value = {
            "FlowDefinitionStatus": "Active",
            "HumanLoopConfig": {"WorkteamArn": "arn:workteam", "TaskCount": 1},
        }
        monkeypatch.setattr(jobs, "get_sagemaker_client", lambda region=None: sagemaker)

        flow_def = jobs.describe_flow_definition(FLOW_DEFINITION_ARN, review_settings)

        assert flow_def["FlowDefinitionStatus"] == "Active"
        sagemaker.describe_flow_definition.assert_called_once_with(FlowDefinitionName="timesheet-review")
