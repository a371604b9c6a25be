"""Textract asynchronous document analysis: start a job and poll it to completion.

StartDocumentAnalysis returns a JobId immediately; results are fetched with
GetDocumentAnalysis until the job leaves IN_PROGRESS. Large documents are
paginated with NextToken, so a finished job may take several calls to read.
"""

import json
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..common.aws_clients import get_sagemaker_client, get_textract_client
from ..common.config import Settings
from ..common.exceptions import (
    AnalysisError,
    AnalysisFailedError,
    AnalysisTimeoutError,
    DuplicatePollError,
)
from ..common.models import CONTENT_CLASSIFIERS, AnalysisResult, HumanLoopActivation, JobStatus
from ..utils.safe_log import safe_log

FEATURE_TYPES = ["FORMS", "TABLES"]

# Job ids with a polling loop currently running in this process
_active_polls: set = set()
_active_polls_lock = threading.Lock()


@contextmanager
def _poll_guard(job_id: str):
    """Hold the job id for the lifetime of one polling loop."""
    with _active_polls_lock:
        if job_id in _active_polls:
            raise DuplicatePollError(
                f"Textract job {job_id} is already being polled", job_id=job_id
            )
        _active_polls.add(job_id)
    try:
        yield
    finally:
        with _active_polls_lock:
            _active_polls.discard(job_id)


def is_polling(job_id: str) -> bool:
    with _active_polls_lock:
        return job_id in _active_polls


def _error_details(error: Exception) -> Dict[str, Any]:
    if isinstance(error, ClientError):
        metadata = error.response.get("ResponseMetadata", {})
        return {
            "code": error.response.get("Error", {}).get("Code", "Unknown"),
            "error": error.response.get("Error", {}).get("Message", str(error)),
            "httpStatusCode": metadata.get("HTTPStatusCode"),
            "requestId": metadata.get("RequestId"),
        }
    return {"error": str(error)}


def build_activation_conditions(threshold: float) -> str:
    """Activation conditions that send any low-confidence form key to review."""
    return json.dumps({
        "Conditions": [
            {
                "ConditionType": "ImportantFormKeyConfidenceCheck",
                "ConditionParameters": {
                    "ImportantFormKey": "*",
                    "ImportantFormKeyAliases": ["*"],
                    "KeyValueBlockConfidenceLessThan": threshold,
                    "WordBlockConfidenceLessThan": threshold,
                },
            }
        ]
    })


def build_human_loop_config(settings: Settings, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """HumanLoopConfig for StartDocumentAnalysis, or None without a flow definition."""
    if not settings.human_review_enabled:
        return None

    now = now or datetime.now(timezone.utc)
    return {
        "FlowDefinitionArn": settings.flow_definition_arn,
        "HumanLoopName": f"textract-review-{int(now.timestamp() * 1000)}",
        "DataAttributes": {"ContentClassifiers": list(CONTENT_CLASSIFIERS)},
        "HumanLoopActivationConditions": build_activation_conditions(
            settings.human_loop_confidence_threshold
        ),
    }


def start_document_analysis(s3_key: str, settings: Settings, now: Optional[datetime] = None) -> str:
    """Start a FORMS + TABLES analysis job for an S3 object.

    Returns:
        The Textract JobId.

    Raises:
        AnalysisError: If the job could not be started.
    """
    params: Dict[str, Any] = {
        "DocumentLocation": {
            "S3Object": {
                "Bucket": settings.bucket_name,
                "Name": s3_key,
            }
        },
        "FeatureTypes": list(FEATURE_TYPES),
    }

    human_loop_config = build_human_loop_config(settings, now)
    if human_loop_config:
        safe_log("Setting up human review with flow definition", settings.flow_definition_arn)
        safe_log("Using HumanLoopConfig", human_loop_config)
        params["HumanLoopConfig"] = human_loop_config
    else:
        safe_log("No flow definition ARN configured. Proceeding without human review option.")

    try:
        response = get_textract_client(settings.region).start_document_analysis(**params)
    except (ClientError, BotoCoreError) as e:
        details = _error_details(e)
        safe_log("Error starting Textract job", level="ERROR", **details)
        if "HumanLoop" in details["error"]:
            safe_log("HumanLoopConfig error details", human_loop_config, level="ERROR")
        raise AnalysisError(f"Failed to start Textract job: {details['error']}", cause=e) from e

    job_id = response.get("JobId")
    if not job_id:
        raise AnalysisError("Failed to start Textract job: No JobId returned from Textract")

    safe_log("Started Textract analysis job", job_id=job_id, s3_key=s3_key)
    return job_id


def _log_human_loop(activation: Optional[HumanLoopActivation]) -> None:
    if not activation:
        safe_log("No human loops were created by Textract")
        return
    safe_log("Textract created human review", activation.to_dict())
    if activation.human_loop_arn:
        safe_log("Human loop ARN", activation.human_loop_arn)
    if activation.activation_reasons:
        safe_log("Activation reasons", activation.activation_reasons)


def _collect_remaining_pages(client: Any, job_id: str, first_page: Dict[str, Any]) -> AnalysisResult:
    blocks: List[Dict[str, Any]] = list(first_page.get("Blocks") or [])
    warnings: List[Dict[str, Any]] = list(first_page.get("Warnings") or [])
    pages_fetched = 1
    next_token = first_page.get("NextToken")

    while next_token:
        page = client.get_document_analysis(JobId=job_id, NextToken=next_token)
        blocks.extend(page.get("Blocks") or [])
        warnings.extend(page.get("Warnings") or [])
        pages_fetched += 1
        next_token = page.get("NextToken")

    if pages_fetched > 1:
        safe_log(f"Fetched {pages_fetched} result pages for job", job_id=job_id, blocks=len(blocks))
    if warnings:
        safe_log("Textract returned warnings", level="WARNING", job_id=job_id, warnings=warnings)

    return AnalysisResult(
        job_id=job_id,
        status=JobStatus(first_page["JobStatus"]),
        blocks=blocks,
        document_metadata=dict(first_page.get("DocumentMetadata") or {}),
        human_loop_activation=HumanLoopActivation.from_response(
            first_page.get("HumanLoopActivationOutput")
        ),
        pages_fetched=pages_fetched,
        warnings=warnings,
    )


def wait_for_results(
    job_id: str,
    settings: Settings,
    sleep: Callable[[float], None] = time.sleep,
) -> AnalysisResult:
    """Poll GetDocumentAnalysis until the job finishes.

    Polls every ``poll_interval_seconds`` while the job is in progress and
    backs off to ``error_poll_interval_seconds`` after a failed call. Every
    call, failed or not, counts toward ``max_poll_attempts``.

    Raises:
        DuplicatePollError: Another loop in this process is polling ``job_id``.
        AnalysisFailedError: Textract reported the job as FAILED.
        AnalysisTimeoutError: The attempts ran out.
    """
    client = get_textract_client(settings.region)
    max_attempts = settings.max_poll_attempts

    with _poll_guard(job_id):
        attempts = 0
        while attempts < max_attempts:
            try:
                response = client.get_document_analysis(JobId=job_id)
                status = response.get("JobStatus")

                if status in (JobStatus.SUCCEEDED.value, JobStatus.PARTIAL_SUCCESS.value):
                    if status == JobStatus.PARTIAL_SUCCESS.value:
                        safe_log(
                            "Textract job finished with partial success",
                            level="WARNING",
                            job_id=job_id,
                            status_message=response.get("StatusMessage"),
                        )
                    result = _collect_remaining_pages(client, job_id, response)
                    _log_human_loop(result.human_loop_activation)
                    return result

                if status == JobStatus.FAILED.value:
                    raise AnalysisFailedError(
                        f"Textract job failed: {response.get('StatusMessage') or 'Unknown reason'}",
                        job_id=job_id,
                    )

                safe_log(f"Textract job status: {status}, waiting...", job_id=job_id, attempt=attempts + 1)
                attempts += 1
                sleep(settings.poll_interval_seconds)

            except (ClientError, BotoCoreError) as e:
                attempts += 1
                safe_log(
                    f"Error checking Textract job status (attempt {attempts})",
                    level="ERROR",
                    job_id=job_id,
                    **_error_details(e),
                )
                if attempts >= max_attempts:
                    raise AnalysisTimeoutError(
                        f"Failed to get Textract results after {max_attempts} attempts: "
                        f"{_error_details(e)['error']}",
                        job_id=job_id,
                        attempts=attempts,
                        cause=e,
                    ) from e
                sleep(settings.error_poll_interval_seconds)

    raise AnalysisTimeoutError(
        f"Textract job {job_id} did not complete in the allowed time",
        job_id=job_id,
        attempts=max_attempts,
    )


def describe_flow_definition(flow_definition_arn: str, settings: Settings) -> Dict[str, Any]:
    """Log the A2I flow definition's status, workforce and task configuration.

    Raises:
        ClientError: If the flow definition cannot be described.
    """
    flow_definition_name = flow_definition_arn.rstrip("/").split("/")[-1]
    safe_log("Checking flow definition details", flow_definition_name=flow_definition_name)

    flow_def = get_sagemaker_client(settings.region).describe_flow_definition(
        FlowDefinitionName=flow_definition_name
    )

    safe_log(
        "Flow Definition Details",
        status=flow_def.get("FlowDefinitionStatus"),
        creation_time=flow_def.get("CreationTime"),
    )

    human_loop_config = flow_def.get("HumanLoopConfig") or {}
    if human_loop_config.get("WorkteamArn"):
        safe_log("Workforce Configuration", workteam_arn=human_loop_config["WorkteamArn"])
    if human_loop_config:
        safe_log(
            "Human Loop Configuration",
            task_count=human_loop_config.get("TaskCount"),
            task_title=human_loop_config.get("TaskTitle"),
            task_description=human_loop_config.get("TaskDescription"),
        )

    return flow_def
