"""DynamoDB persistence for processed documents."""

import json
from decimal import Decimal
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..common.aws_clients import get_dynamodb_resource
from ..common.config import Settings
from ..common.exceptions import StorageError
from ..common.models import ExtractedDocument, ProcessingStatus, ResultRecord, utc_timestamp
from ..utils.safe_log import safe_log


def convert_floats_to_decimal(obj: Any) -> Any:
    """Recursively convert floats to Decimal for DynamoDB."""
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: convert_floats_to_decimal(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [convert_floats_to_decimal(v) for v in obj]
    return obj


class ResultStore:
    """Reads and writes result records in the DynamoDB results table.

    The table is keyed on ``fileId`` alone.
    """

    def __init__(self, settings: Settings, table: Any = None):
        self.settings = settings
        self._table = table

    @property
    def table(self) -> Any:
        if self._table is None:
            self._table = get_dynamodb_resource(self.settings.region).Table(self.settings.table_name)
        return self._table

    def put_result(self, record: ResultRecord) -> None:
        """Store a new result record.

        Raises:
            StorageError: If the write fails.
        """
        try:
            self.table.put_item(Item=convert_floats_to_decimal(record.to_item()))
        except (ClientError, BotoCoreError) as e:
            safe_log("Error storing results in DynamoDB", level="ERROR", file_id=record.file_id, error=str(e))
            raise StorageError(
                f"Failed to store results in DynamoDB: {e}",
                document_id=record.file_id,
                storage_type="dynamodb",
                cause=e,
            ) from e
        safe_log(f"Results stored in DynamoDB table {self.settings.table_name}", file_id=record.file_id)

    def get_result(self, file_id: str) -> Optional[ResultRecord]:
        """Load a result record, or None if there is none for ``file_id``."""
        try:
            response = self.table.get_item(Key={"fileId": file_id})
        except (ClientError, BotoCoreError) as e:
            safe_log("Error reading results from DynamoDB", level="ERROR", file_id=file_id, error=str(e))
            raise StorageError(
                f"Failed to read results from DynamoDB: {e}",
                document_id=file_id,
                storage_type="dynamodb",
                cause=e,
            ) from e

        item = response.get("Item")
        return ResultRecord.from_item(item) if item else None

    def update_result(
        self,
        file_id: str,
        extracted: ExtractedDocument,
        requires_human_review: bool,
        human_loop_arn: str,
        job_id: str,
        confidence_summary: dict,
    ) -> str:
        """Overwrite a record's results after reprocessing.

        Returns:
            The update timestamp.

        Raises:
            StorageError: If the record does not exist or the write fails.
        """
        timestamp = utc_timestamp()
        try:
            self.table.update_item(
                Key={"fileId": file_id},
                UpdateExpression=(
                    "SET processedData = :data, requiresHumanReview = :review, "
                    "humanLoopArn = :arn, jobId = :job, #s = :status, "
                    "confidenceSummary = :summary, updatedAt = :timestamp "
                    "ADD reprocessCount :one"
                ),
                ConditionExpression="attribute_exists(fileId)",
                ExpressionAttributeNames={"#s": "status"},
                ExpressionAttributeValues=convert_floats_to_decimal({
                    ":data": json.dumps(extracted.to_dict()),
                    ":review": requires_human_review,
                    ":arn": human_loop_arn or "",
                    ":job": job_id,
                    ":status": ProcessingStatus.REPROCESSED.value,
                    ":summary": confidence_summary,
                    ":timestamp": timestamp,
                    ":one": 1,
                }),
            )
        except (ClientError, BotoCoreError) as e:
            safe_log("Error updating results in DynamoDB", level="ERROR", file_id=file_id, error=str(e))
            raise StorageError(
                f"Failed to store results in DynamoDB: {e}",
                document_id=file_id,
                storage_type="dynamodb",
                cause=e,
            ) from e

        safe_log(f"Results updated in DynamoDB table {self.settings.table_name}", file_id=file_id)
        return timestamp
