"""Amazon Augmented AI (A2I) human review loops.

Textract starts a human loop on its own when StartDocumentAnalysis carries a
HumanLoopConfig and the activation conditions fire. This module covers the
other path: starting a loop directly when our own confidence check asks for
review and Textract did not. Review is best-effort; nothing here is allowed
to fail the document.
"""

import json
from typing import Any, Dict

from botocore.exceptions import BotoCoreError, ClientError

from ..common.aws_clients import get_a2i_client
from ..common.config import Settings
from ..common.exceptions import HumanReviewError
from ..common.models import ExtractedDocument
from ..utils.safe_log import safe_log


def human_loop_name(file_id: str) -> str:
    """A2I loop names are limited to 63 lowercase alphanumerics and hyphens."""
    return f"textract-review-{file_id}".lower()[:63]


def build_human_loop_input(s3_key: str, bucket: str, extracted: ExtractedDocument) -> Dict[str, Any]:
    return {
        "document": {
            "s3ObjectName": s3_key,
            "s3Bucket": bucket,
        },
        "extractedData": extracted.to_dict(),
    }


def _start_human_loop(file_id: str, s3_key: str, extracted: ExtractedDocument, settings: Settings) -> str:
    if not settings.human_review_enabled:
        raise HumanReviewError("Human loop flow definition ARN is not configured", document_id=file_id)

    input_content = build_human_loop_input(s3_key, settings.bucket_name, extracted)
    try:
        response = get_a2i_client(settings.region).start_human_loop(
            HumanLoopName=human_loop_name(file_id),
            FlowDefinitionArn=settings.flow_definition_arn,
            HumanLoopInput={"InputContent": json.dumps(input_content)},
        )
    except (ClientError, BotoCoreError) as e:
        raise HumanReviewError(f"Failed to start human review: {e}", document_id=file_id, cause=e) from e

    human_loop_arn = response.get("HumanLoopArn")
    if not human_loop_arn:
        raise HumanReviewError("Failed to create human review loop", document_id=file_id)
    return human_loop_arn


def start_human_review(file_id: str, s3_key: str, extracted: ExtractedDocument, settings: Settings) -> str:
    """Start an A2I human loop for a processed document.

    Returns:
        The HumanLoopArn, or "" if the loop could not be started.
    """
    try:
        human_loop_arn = _start_human_loop(file_id, s3_key, extracted, settings)
    except HumanReviewError as e:
        details: Dict[str, Any] = {"error": e.message}
        if isinstance(e.cause, ClientError):
            metadata = e.cause.response.get("ResponseMetadata", {})
            details.update({
                "code": e.cause.response.get("Error", {}).get("Code"),
                "statusCode": metadata.get("HTTPStatusCode"),
                "requestId": metadata.get("RequestId"),
            })
        safe_log("Error starting human review", level="ERROR", file_id=file_id, **details)
        safe_log("Continuing without human review due to error", level="WARNING", file_id=file_id)
        return ""

    safe_log("Started human review loop", file_id=file_id, human_loop_arn=human_loop_arn)
    return human_loop_arn
