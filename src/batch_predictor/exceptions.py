"""
Custom exceptions for the batch prediction service.

Every failure of a prediction request is raised as one of these, so the
request boundary can turn it into a single status and message.
"""


class BatchPredictionError(Exception):
    """Base exception for batch prediction errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ValidationError(BatchPredictionError):
    """Raised when a location parameter is malformed or has the wrong shape."""


class StoreError(BatchPredictionError):
    """Raised when a list, read or write against the object store fails."""

    def __init__(
        self,
        operation: str,
        bucket: str,
        key: str,
        reason: str,
        scheme: str = "s3://",
    ):
        self.operation = operation
        self.bucket = bucket
        self.key = key
        self.reason = reason
        self.uri = f"{scheme}{bucket}/{key}"
        message = f"Failed to {operation} {self.uri}: {reason}"
        super().__init__(message)


class ProcessError(BatchPredictionError):
    """Raised when the inference server cannot be launched or reached."""


class ReadinessTimeoutError(ProcessError, TimeoutError):
    """Raised when the inference server does not report ready in time."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        message = f"Inference server not ready after {timeout:g} seconds"
        super().__init__(message)


class FormatError(BatchPredictionError):
    """Raised when an input line or a response body is not the expected JSON."""


class PredictionError(BatchPredictionError):
    """Raised when the inference server reports an error for a batch."""
