"""S3 storage for uploaded documents."""

import os
from typing import Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from ..common.aws_clients import get_s3_client
from ..common.config import Settings
from ..common.exceptions import StorageError
from ..utils.safe_log import safe_log

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(file_name: str) -> str:
    """MIME type from a file name's extension."""
    return CONTENT_TYPES.get(os.path.splitext(file_name)[1].lower(), DEFAULT_CONTENT_TYPE)


def build_upload_key(file_id: str, file_name: str, prefix: str = "uploads/") -> str:
    """S3 key for an upload: ``<prefix><fileId>-<file name>``."""
    base_name = os.path.basename(file_name.replace("\\", "/")) or "document"
    if prefix and not prefix.endswith("/"):
        prefix += "/"
    return f"{prefix}{file_id}-{base_name}"


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "Unknown")


def upload_document(content: bytes, s3_key: str, settings: Settings, file_name: Optional[str] = None) -> None:
    """Upload document bytes to the configured bucket.

    Raises:
        StorageError: With a readable message for the common failure modes.
    """
    bucket = settings.bucket_name
    safe_log(f'Uploading to S3 bucket: "{bucket}", key: "{s3_key}"')

    params = {
        "Bucket": bucket,
        "Key": s3_key,
        "Body": content,
        "ContentType": content_type_for(file_name or s3_key),
    }
    if file_name:
        # S3 user metadata must be ASCII
        params["Metadata"] = {"originalFileName": file_name.encode("ascii", "replace").decode("ascii")}

    try:
        get_s3_client(settings.region).put_object(**params)
    except ClientError as e:
        code = _error_code(e)
        metadata = e.response.get("ResponseMetadata", {})
        safe_log(
            "Error uploading to S3",
            level="ERROR",
            code=code,
            request_id=metadata.get("RequestId"),
            http_status_code=metadata.get("HTTPStatusCode"),
        )
        if code == "NoSuchBucket":
            message = f'S3 bucket "{bucket}" does not exist'
        elif code in ("AccessDenied", "AllAccessDisabled"):
            message = f'Access denied to S3 bucket "{bucket}". Check IAM permissions.'
        else:
            message = f"Failed to upload to S3: {e}"
        raise StorageError(message, storage_type="s3", cause=e) from e
    except BotoCoreError as e:
        safe_log("Error uploading to S3", level="ERROR", error=str(e))
        raise StorageError(f"Failed to upload to S3: {e}", storage_type="s3", cause=e) from e

    safe_log(f"File uploaded successfully to {bucket}/{s3_key}")


def document_exists(s3_key: str, settings: Settings) -> bool:
    """True if the object is still in the bucket."""
    try:
        get_s3_client(settings.region).head_object(Bucket=settings.bucket_name, Key=s3_key)
        return True
    except ClientError as e:
        if _error_code(e) in ("404", "NoSuchKey", "NotFound"):
            return False
        raise StorageError(f"Failed to check S3 object: {e}", storage_type="s3", cause=e) from e


def check_bucket_access(settings: Settings) -> Tuple[bool, str]:
    """Verify credentials and bucket access with HeadBucket.

    Returns:
        Tuple of (ok, message).
    """
    bucket = settings.bucket_name
    try:
        get_s3_client(settings.region).head_bucket(Bucket=bucket)
    except NoCredentialsError:
        return False, "No AWS credentials found. Please check your environment variables or configuration"
    except ClientError as e:
        code = _error_code(e)
        safe_log("Error checking AWS credentials", level="ERROR", code=code)
        if code in ("403", "AccessDenied"):
            return False, (
                "Access denied. The provided AWS credentials do not have permission to access the bucket"
            )
        if code in ("404", "NotFound", "NoSuchBucket"):
            return False, f"Bucket '{bucket}' not found. Please check your bucket name"
        return False, str(e)
    except BotoCoreError as e:
        return False, str(e)

    return True, "AWS credentials are valid and S3 bucket is accessible"
