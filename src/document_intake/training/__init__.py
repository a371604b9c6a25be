"""SageMaker model training."""

from .jobs import build_training_job_name, trigger_training

__all__ = ["build_training_job_name", "trigger_training"]
