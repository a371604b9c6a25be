"""Shared fixtures for Document Intake tests."""

import pytest
from botocore.exceptions import ClientError

from document_intake.common.aws_clients import reset_clients
from document_intake.common.config import Settings, reset_settings
from document_intake.textract import jobs

SETTINGS_ENV_VARS = [
    "AWS_REGION",
    "S3_BUCKET_NAME",
    "UPLOAD_PREFIX",
    "MAX_FILE_SIZE",
    "DYNAMODB_TABLE_NAME",
    "HUMAN_LOOP_FLOW_DEFINITION_ARN",
    "CONFIDENCE_THRESHOLD",
    "HUMAN_LOOP_CONFIDENCE_THRESHOLD",
    "POLL_INTERVAL_SECONDS",
    "ERROR_POLL_INTERVAL_SECONDS",
    "MAX_POLL_ATTEMPTS",
    "SAGEMAKER_TRAINING_ROLE_ARN",
    "SAGEMAKER_TRAINING_IMAGE",
    "SAGEMAKER_TRAINING_INSTANCE_TYPE",
    "SAGEMAKER_TRAINING_PREFIX",
    "CORS_ORIGIN",
]

FLOW_DEFINITION_ARN = "arn:aws:sagemaker:ap-southeast-2:123456789012:flow-definition/timesheet-review"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Every test starts from default settings and no cached clients."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    reset_clients()
    jobs._active_polls.clear()
    yield
    reset_settings()
    reset_clients()


@pytest.fixture
def settings():
    """Settings with fast polling and no human review or training."""
    return Settings(
        region="ap-southeast-2",
        bucket_name="test-bucket",
        table_name="test-table",
        flow_definition_arn="",
        poll_interval_seconds=3.0,
        error_poll_interval_seconds=5.0,
        max_poll_attempts=3,
    )


@pytest.fixture
def review_settings(settings):
    """Settings with an A2I flow definition configured."""
    settings.flow_definition_arn = FLOW_DEFINITION_ARN
    return settings


def client_error(code, message="error", operation="Operation", status=400, request_id="req-123"):
    """Build a botocore ClientError the way a failed AWS call raises it."""
    return ClientError(
        {
            "Error": {"Code": code, "Message": message},
            "ResponseMetadata": {"HTTPStatusCode": status, "RequestId": request_id},
        },
        operation,
    )
