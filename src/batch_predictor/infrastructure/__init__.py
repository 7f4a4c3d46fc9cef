"""Infrastructure layer for object store and inference server clients and DI container."""

from .dependency_injection import DependenciesContainer
from .inference_client import InferenceClient
from .s3_client import S3Client

__all__ = ["DependenciesContainer", "InferenceClient", "S3Client"]
