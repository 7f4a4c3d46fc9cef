"""Dependency injection container for the application."""

from pathlib import Path

import boto3
from dependency_injector import providers
from dependency_injector.containers import DeclarativeContainer

from batch_predictor.config import Config, config
from batch_predictor.infrastructure.inference_client import InferenceClient
from batch_predictor.infrastructure.s3_client import S3Client


def _create_session(settings: Config) -> boto3.Session:
    """Create boto3 session using default credential chain.

    - On EC2 / Cloud Run: uses the attached identity
    - Locally: uses ~/.aws/credentials
    """
    return boto3.Session(region_name=settings.aws_region)


def _create_s3_boto_client(session: boto3.Session, settings: Config):
    """S3 client, optionally pointed at an S3-compatible endpoint."""
    return session.client("s3", endpoint_url=settings.s3_endpoint_url or None)


def _create_object_tree(s3_client: S3Client):
    """Factory for ObjectTreeSync to avoid circular import."""
    from batch_predictor.services.object_tree import ObjectTreeSync

    return ObjectTreeSync(s3_client)


def _create_inference_server(settings: Config, model_base_path: Path):
    """Factory for a fresh InferenceServer, one per request."""
    from batch_predictor.services.inference_server import InferenceServer

    return InferenceServer.from_config(settings, model_base_path)


class DependenciesContainer(DeclarativeContainer):
    """DI container for the application."""

    settings = providers.Object(config)

    # Session with default credentials
    session = providers.Singleton(_create_session, settings=settings)

    # S3 dependency chain
    s3_boto_client = providers.Singleton(
        _create_s3_boto_client,
        session=session,
        settings=settings,
    )

    s3_client = providers.Singleton(
        S3Client,
        client=s3_boto_client,
        scheme=settings.provided.store_prefix,
    )

    object_tree = providers.Singleton(
        _create_object_tree,
        s3_client=s3_client,
    )

    # Inference server chain
    inference_client = providers.Singleton(
        InferenceClient,
        predict_url=settings.provided.predict_url,
        timeout=settings.provided.request_timeout,
    )

    inference_server = providers.Factory(
        _create_inference_server,
        settings=settings,
    )
