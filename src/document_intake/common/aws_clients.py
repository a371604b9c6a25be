"""AWS client factory functions with connection pooling."""

import boto3
from botocore.config import Config
from functools import lru_cache
from typing import Any, Optional

from .config import get_settings


def _client_config(region: str) -> Config:
    return Config(region_name=region, retries={"max_attempts": 3, "mode": "standard"})


def _region(region: Optional[str]) -> str:
    return region or get_settings().region


@lru_cache(maxsize=4)
def _s3_client(region: str) -> Any:
    # Regional endpoint, SigV4 signing
    return boto3.client(
        "s3",
        region_name=region,
        config=_client_config(region).merge(Config(signature_version="s3v4")),
    )


@lru_cache(maxsize=4)
def _textract_client(region: str) -> Any:
    return boto3.client("textract", region_name=region, config=_client_config(region))


@lru_cache(maxsize=4)
def _dynamodb_resource(region: str) -> Any:
    return boto3.resource("dynamodb", region_name=region, config=_client_config(region))


@lru_cache(maxsize=4)
def _sagemaker_client(region: str) -> Any:
    return boto3.client("sagemaker", region_name=region, config=_client_config(region))


@lru_cache(maxsize=4)
def _a2i_client(region: str) -> Any:
    return boto3.client("sagemaker-a2i-runtime", region_name=region, config=_client_config(region))


def get_s3_client(region: Optional[str] = None) -> Any:
    """Get a cached S3 client instance."""
    return _s3_client(_region(region))


def get_textract_client(region: Optional[str] = None) -> Any:
    """Get a cached Textract client instance."""
    return _textract_client(_region(region))


def get_dynamodb_resource(region: Optional[str] = None) -> Any:
    """Get a cached DynamoDB resource instance."""
    return _dynamodb_resource(_region(region))


def get_sagemaker_client(region: Optional[str] = None) -> Any:
    """Get a cached SageMaker client instance."""
    return _sagemaker_client(_region(region))


def get_a2i_client(region: Optional[str] = None) -> Any:
    """Get a cached SageMaker A2I Runtime client instance."""
    return _a2i_client(_region(region))


def reset_clients() -> None:
    """Drop every cached client so the next call builds a fresh one."""
    for factory in (_s3_client, _textract_client, _dynamodb_resource, _sagemaker_client, _a2i_client):
        factory.cache_clear()
