"""Request handler for batch prediction.

Receives the already parsed query parameters of a prediction request
(``model``, ``input`` and ``output`` object store addresses) and runs the
whole pipeline. Input files must be JSON lines: one complete JSON value per
line.
"""

import json
import logging
from typing import Mapping

from batch_predictor.exceptions import BatchPredictionError, ValidationError
from batch_predictor.handlers.prediction import failed_step, process_request
from batch_predictor.infrastructure.dependency_injection import DependenciesContainer
from batch_predictor.models.schemas import PredictionRequest

logger = logging.getLogger(__name__)

PARAMS = ("model", "input", "output")


def _response(status_code: int, body: dict) -> dict:
    return {
        "statusCode": status_code,
        "body": json.dumps(body),
    }


def _get_param(params: Mapping[str, str], name: str) -> str:
    value = params.get(name)
    if not value:
        raise ValidationError(f"Query Param '{name}' is missing")
    return value


def handle_request(
    params: Mapping[str, str],
    container: DependenciesContainer | None = None,
) -> dict:
    """
    Run one batch prediction.

    Args:
        params: Query parameters with the model, input and output addresses.
        container: DI container; a new one is created when omitted.

    Returns:
        Response dict with statusCode and body.
    """
    if container is None:
        container = DependenciesContainer()
    settings = container.settings()

    try:
        request = PredictionRequest.from_addresses(
            *(_get_param(params, name) for name in PARAMS),
            prefix=settings.store_prefix,
        )
    except ValidationError as e:
        logger.warning("Rejected request: %s", e.message)
        return _response(400, {"error": e.message})

    logger.info("Params parsed successfully. Start process")

    try:
        result = process_request(
            request=request,
            object_tree=container.object_tree(),
            server_factory=lambda model_base_path: container.inference_server(
                model_base_path=model_base_path
            ),
            inference_client=container.inference_client(),
            settings=settings,
        )
    except ValidationError as e:
        return _response(400, {"error": e.message})
    except (BatchPredictionError, OSError) as e:
        message = failed_step(e) or "error during batch prediction"
        logger.error("%s: %s", message, e, exc_info=True)
        return _response(500, {"message": message, "error": str(e)})
    except Exception as e:
        logger.exception("Unexpected failure during batch prediction: %s", e)
        return _response(500, {"message": "error during batch prediction", "error": str(e)})

    logger.info("Predictions completed: %s", result.model_dump_json())
    return _response(
        200,
        {"message": "predictions completed", **result.model_dump()},
    )
