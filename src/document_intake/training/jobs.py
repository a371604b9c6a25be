"""SageMaker training jobs fed by reviewed Textract output."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..common.aws_clients import get_sagemaker_client
from ..common.config import Settings
from ..common.exceptions import TrainingError
from ..utils.safe_log import safe_log

MAX_RUNTIME_SECONDS = 3600
VOLUME_SIZE_GB = 30


def build_training_job_name(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"textract-model-{int(now.timestamp() * 1000)}"


def build_training_job_request(job_name: str, settings: Settings) -> Dict[str, Any]:
    """CreateTrainingJob parameters for the configured image, role and data prefix."""
    prefix = settings.training_data_prefix.strip("/")
    return {
        "TrainingJobName": job_name,
        "AlgorithmSpecification": {
            "TrainingImage": settings.training_image_uri,
            "TrainingInputMode": "File",
        },
        "RoleArn": settings.training_role_arn,
        "InputDataConfig": [
            {
                "ChannelName": "training",
                "DataSource": {
                    "S3DataSource": {
                        "S3DataType": "S3Prefix",
                        "S3Uri": f"s3://{settings.bucket_name}/{prefix}/",
                        "S3DataDistributionType": "FullyReplicated",
                    }
                },
            }
        ],
        "OutputDataConfig": {"S3OutputPath": f"s3://{settings.bucket_name}/models/"},
        "ResourceConfig": {
            "InstanceType": settings.training_instance_type,
            "InstanceCount": 1,
            "VolumeSizeInGB": VOLUME_SIZE_GB,
        },
        "StoppingCondition": {"MaxRuntimeInSeconds": MAX_RUNTIME_SECONDS},
    }


def trigger_training(settings: Settings, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Start a training job.

    Raises:
        TrainingError: If training is not configured or SageMaker rejects the job.
    """
    if not settings.training_role_arn:
        raise TrainingError("SAGEMAKER_TRAINING_ROLE_ARN environment variable is required for training")
    if not settings.training_image_uri:
        raise TrainingError("SAGEMAKER_TRAINING_IMAGE environment variable is required for training")

    job_name = build_training_job_name(now)
    safe_log("Starting SageMaker training job", training_job_name=job_name)

    try:
        response = get_sagemaker_client(settings.region).create_training_job(
            **build_training_job_request(job_name, settings)
        )
    except (ClientError, BotoCoreError) as e:
        safe_log("SageMaker training error", level="ERROR", training_job_name=job_name, error=str(e))
        raise TrainingError(f"Failed to start SageMaker training job: {e}", cause=e) from e

    return {
        "message": "SageMaker training job started successfully",
        "trainingJobName": job_name,
        "trainingJobArn": response["TrainingJobArn"],
    }
