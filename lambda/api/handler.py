"""API Lambda - REST API for the document intake service.

This Lambda function provides REST API endpoints for:
- Uploading a document and running it through Textract (action=upload)
- Re-running Textract on a stored document (action=reprocess)
- Starting a SageMaker training job (action=sagemaker-train)
- Checking AWS credentials and bucket access (GET /health)
"""

import json
from decimal import Decimal
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from document_intake.common.config import Settings, get_settings
from document_intake.common.exceptions import (
    DocumentProcessingError,
    RecordNotFoundError,
    RequestValidationError,
    TrainingError,
)
from document_intake.pipeline import DocumentPipeline
from document_intake.storage import check_bucket_access
from document_intake.textract import describe_flow_definition
from document_intake.training import trigger_training
from document_intake.utils.forms import FormData, parse_event_form
from document_intake.utils.safe_log import safe_log

TEXTRACT_PATHS = ("/textract", "/api/textract")
HEALTH_PATHS = ("/health", "/api/health")

ACTION_UPLOAD = "upload"
ACTION_REPROCESS = "reprocess"
ACTION_TRAIN = "sagemaker-train"


def log_configuration(settings: Settings) -> None:
    safe_log(
        "Environment configuration",
        region=settings.region,
        bucket=settings.bucket_name,
        table=settings.table_name,
        human_loop_flow_definition_arn=settings.flow_definition_arn or "Not configured",
        training_configured=settings.training_enabled,
    )


log_configuration(get_settings())


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal types."""
    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return float(obj)
        return super().default(obj)


def cors_headers() -> dict[str, str]:
    """Return CORS headers for API responses."""
    return {
        "Access-Control-Allow-Origin": get_settings().cors_origin,
        "Access-Control-Allow-Headers": "Content-Type,Authorization,X-Api-Key",
        "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
        "Content-Type": "application/json",
    }


def response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    """Create API Gateway response with CORS headers."""
    return {
        "statusCode": status_code,
        "headers": cors_headers(),
        "body": json.dumps(body, cls=DecimalEncoder),
    }


def error_response(status_code: int, error: str, details: str | None = None) -> dict[str, Any]:
    body = {"error": error}
    if details:
        body["details"] = details
    return response(status_code, body)


def check_flow_definition(settings: Settings) -> None:
    """Log the A2I flow definition; a failure here never blocks the request."""
    if not settings.human_review_enabled:
        safe_log("No flow definition ARN configured. Proceeding without human review option.")
        return
    try:
        describe_flow_definition(settings.flow_definition_arn, settings)
    except (ClientError, BotoCoreError) as e:
        safe_log("Warning: Could not describe flow definition", level="WARNING", error=str(e))


def health_check(settings: Settings) -> dict[str, Any]:
    """GET /health - verify AWS credentials against the upload bucket."""
    ok, message = check_bucket_access(settings)
    if ok:
        return response(200, {"success": True, "message": message})
    return response(500, {"success": False, "error": message})


def upload_document(form: FormData, settings: Settings) -> dict[str, Any]:
    """action=upload - store, analyze and persist a new document."""
    uploaded = form.get_file("file")
    if uploaded is None:
        return error_response(400, "No file uploaded")

    try:
        result = DocumentPipeline(settings).process_upload(uploaded.file_name, uploaded.content)
    except RequestValidationError as e:
        return error_response(400, e.message)
    except DocumentProcessingError as e:
        return error_response(e.http_status, "Failed to process document", e.message)

    return response(200, result.to_dict())


def reprocess_document(form: FormData, settings: Settings) -> dict[str, Any]:
    """action=reprocess - re-run Textract for a stored fileId."""
    file_id = form.get("fileId")
    if not file_id:
        return error_response(400, "No fileId provided")

    try:
        result = DocumentPipeline(settings).reprocess(file_id)
    except RecordNotFoundError as e:
        return error_response(404, "Document not found", e.message)
    except DocumentProcessingError as e:
        return error_response(e.http_status, "Failed to reprocess document", e.message)

    return response(200, result)


def start_training(settings: Settings) -> dict[str, Any]:
    """action=sagemaker-train - start a SageMaker training job."""
    try:
        return response(200, trigger_training(settings))
    except TrainingError as e:
        return error_response(500, "Failed to start SageMaker training", e.message)


def handle_textract_request(event: dict[str, Any], settings: Settings) -> dict[str, Any]:
    """POST /textract - dispatch on the form's ``action`` field."""
    try:
        form = parse_event_form(event)
    except RequestValidationError as e:
        return error_response(400, e.message)

    action = form.get("action", ACTION_UPLOAD)
    safe_log(f"Processing {action} action")
    check_flow_definition(settings)

    if action == ACTION_REPROCESS:
        return reprocess_document(form, settings)
    elif action == ACTION_TRAIN:
        return start_training(settings)
    # Anything else, including a missing action, is an upload
    return upload_document(form, settings)


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Main Lambda handler for API Gateway requests."""
    # Handle OPTIONS (CORS preflight)
    http_method = event.get("httpMethod", event.get("requestContext", {}).get("http", {}).get("method", ""))
    if http_method == "OPTIONS":
        return response(200, {"message": "CORS preflight"})

    path = event.get("path", event.get("rawPath", ""))
    safe_log(f"Processing {http_method} {path}")

    try:
        settings = get_settings()

        if path in HEALTH_PATHS and http_method == "GET":
            return health_check(settings)

        elif path in TEXTRACT_PATHS and http_method == "POST":
            return handle_textract_request(event, settings)

        else:
            return response(404, {"error": "Not found", "path": path, "method": http_method})

    except Exception as e:
        safe_log("Error processing request", level="ERROR", error=str(e))
        return error_response(500, "Failed to process the request", str(e))
