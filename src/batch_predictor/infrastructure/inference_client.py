"""HTTP client for the TensorFlow Serving REST predict endpoint."""

import logging

import httpx

from batch_predictor.exceptions import ProcessError

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/json"


class InferenceClient:
    """Posts request envelopes to the local inference server."""

    def __init__(
        self,
        predict_url: str,
        timeout: float = 300.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize the inference client.

        Args:
            predict_url: Full URL of the model's predict endpoint.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self._predict_url = predict_url
        self._timeout = timeout
        self._transport = transport

    @property
    def predict_url(self) -> str:
        return self._predict_url

    def predict(self, body: bytes) -> bytes:
        """
        Submit one request envelope and return the raw response body.

        Error statuses are not raised here: the server describes a failed batch
        in the body as ``{"error": ...}``, which the response decoder handles.

        Raises:
            ProcessError: If the server cannot be reached.
        """
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(
                    self._predict_url,
                    content=body,
                    headers={"Content-Type": CONTENT_TYPE},
                )
        except httpx.HTTPError as e:
            logger.error("Prediction request to %s failed: %s", self._predict_url, e)
            raise ProcessError(f"Inference server unreachable at {self._predict_url}: {e}") from e

        if response.is_error:
            logger.warning(
                "Inference server answered %d: %s",
                response.status_code,
                response.text[:200],
            )
        return response.content
