"""Configuration management for Document Intake."""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_float(name: str, default: str) -> float:
    return float(os.environ.get(name, default))


def _env_int(name: str, default: str) -> int:
    return int(os.environ.get(name, default))


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    # AWS
    region: str = field(default_factory=lambda: os.environ.get("AWS_REGION", "ap-southeast-2"))

    # S3 Configuration
    bucket_name: str = field(default_factory=lambda: os.environ.get("S3_BUCKET_NAME", "pcpanel"))
    upload_prefix: str = field(default_factory=lambda: os.environ.get("UPLOAD_PREFIX", "uploads/"))
    max_file_size: int = field(default_factory=lambda: _env_int("MAX_FILE_SIZE", str(10 * 1024 * 1024)))

    # DynamoDB Configuration
    table_name: str = field(
        default_factory=lambda: os.environ.get("DYNAMODB_TABLE_NAME", "textract-results")
    )

    # Human review (SageMaker A2I)
    flow_definition_arn: str = field(
        default_factory=lambda: os.environ.get("HUMAN_LOOP_FLOW_DEFINITION_ARN", "")
    )
    # Fields below this confidence mark the document for review
    confidence_threshold: float = field(
        default_factory=lambda: _env_float("CONFIDENCE_THRESHOLD", "85.0")
    )
    # Threshold handed to Textract's built-in human loop activation conditions
    human_loop_confidence_threshold: float = field(
        default_factory=lambda: _env_float("HUMAN_LOOP_CONFIDENCE_THRESHOLD", "99.0")
    )

    # Textract polling
    poll_interval_seconds: float = field(
        default_factory=lambda: _env_float("POLL_INTERVAL_SECONDS", "3.0")
    )
    error_poll_interval_seconds: float = field(
        default_factory=lambda: _env_float("ERROR_POLL_INTERVAL_SECONDS", "5.0")
    )
    max_poll_attempts: int = field(default_factory=lambda: _env_int("MAX_POLL_ATTEMPTS", "30"))

    # SageMaker training
    training_role_arn: str = field(
        default_factory=lambda: os.environ.get("SAGEMAKER_TRAINING_ROLE_ARN", "")
    )
    training_image_uri: str = field(
        default_factory=lambda: os.environ.get("SAGEMAKER_TRAINING_IMAGE", "")
    )
    training_instance_type: str = field(
        default_factory=lambda: os.environ.get("SAGEMAKER_TRAINING_INSTANCE_TYPE", "ml.m5.large")
    )
    training_data_prefix: str = field(
        default_factory=lambda: os.environ.get("SAGEMAKER_TRAINING_PREFIX", "training/")
    )

    # API
    cors_origin: str = field(default_factory=lambda: os.environ.get("CORS_ORIGIN", "*"))

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings instance from environment variables."""
        return cls()

    @property
    def human_review_enabled(self) -> bool:
        return bool(self.flow_definition_arn)

    @property
    def training_enabled(self) -> bool:
        return bool(self.training_role_arn and self.training_image_uri)

    def validate(self) -> None:
        """Validate required settings are present and in range."""
        if not self.bucket_name:
            raise ValueError("S3_BUCKET_NAME environment variable is required")
        if not self.table_name:
            raise ValueError("DYNAMODB_TABLE_NAME environment variable is required")
        for name, value in (
            ("CONFIDENCE_THRESHOLD", self.confidence_threshold),
            ("HUMAN_LOOP_CONFIDENCE_THRESHOLD", self.human_loop_confidence_threshold),
        ):
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be between 0 and 100, got {value}")
        if self.max_poll_attempts < 1:
            raise ValueError("MAX_POLL_ATTEMPTS must be at least 1")
        if self.max_file_size < 1:
            raise ValueError("MAX_FILE_SIZE must be positive")


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
