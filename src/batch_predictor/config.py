"""Configuration management for the batch prediction service."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from batch_predictor.models.staging import StagingArea

# Load .env file from project root
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(env_path)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Service configuration loaded from environment variables."""

    # Object store
    aws_region: str = os.getenv("AWS_REGION", "us-east-1")
    s3_endpoint_url: str = os.getenv("S3_ENDPOINT_URL", "")
    store_prefix: str = os.getenv("STORE_PREFIX", "s3://")

    # Local staging
    staging_root: Path = Path(os.getenv("STAGING_ROOT", "/tmp"))
    model_version: str = os.getenv("MODEL_VERSION", "000000")
    output_prefix: str = os.getenv("OUTPUT_PREFIX", "prediction_")

    # TensorFlow Serving
    server_binary: str = os.getenv("TF_SERVER_BINARY", "tensorflow_model_server")
    model_name: str = os.getenv("TF_MODEL_NAME", "mymodel")
    server_host: str = os.getenv("TF_HOST", "localhost")
    grpc_port: int = int(os.getenv("TF_GRPC_PORT", "8500"))
    rest_port: int = int(os.getenv("TF_REST_PORT", "8501"))
    readiness_marker: str = os.getenv("TF_READY_MARKER", "Exporting HTTP/REST API")
    startup_timeout: float = float(os.getenv("STARTUP_TIMEOUT", "30"))
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", "300"))

    # Double every backslash of a response body before parsing it
    escape_backslashes: bool = _env_flag("ESCAPE_BACKSLASHES", "true")

    @property
    def predict_url(self) -> str:
        """REST endpoint of the running model."""
        return (
            f"http://{self.server_host}:{self.rest_port}"
            f"/v1/models/{self.model_name}:predict"
        )

    def staging_area(self) -> StagingArea:
        """Local directories used by one request."""
        root = Path(self.staging_root)
        return StagingArea(
            model_dir=root / "model",
            input_dir=root / "input",
            output_dir=root / "output",
            model_version=self.model_version,
        )

    def validate(self) -> None:
        """Validate required configuration."""
        if not self.store_prefix:
            raise ValueError("STORE_PREFIX environment variable is required")
        if not self.model_name:
            raise ValueError("TF_MODEL_NAME environment variable is required")
        if not self.model_version or "/" in self.model_version:
            raise ValueError("MODEL_VERSION must be a single directory name")
        if self.grpc_port == self.rest_port:
            raise ValueError("TF_GRPC_PORT and TF_REST_PORT must differ")
        if self.startup_timeout <= 0:
            raise ValueError("STARTUP_TIMEOUT must be positive")


config = Config()
