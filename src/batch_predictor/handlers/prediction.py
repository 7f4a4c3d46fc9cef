"""Prediction handler for orchestrating one batch prediction request."""

import logging
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Callable, Iterator

from batch_predictor.config import Config
from batch_predictor.infrastructure.inference_client import InferenceClient
from batch_predictor.models.schemas import PredictionRequest, PredictionResult
from batch_predictor.models.staging import StagingArea
from batch_predictor.services.inference_server import InferenceServer
from batch_predictor.services.jsonl_transcoder import (
    decode_response,
    encode_file,
    write_predictions,
)
from batch_predictor.services.object_tree import ObjectTreeSync, walk_local_tree

logger = logging.getLogger(__name__)

STEP_STAGING = "error when preparing local storage"
STEP_MODEL = "error when downloading model files"
STEP_SERVER = "error when starting the inference server"
STEP_INPUT = "error when downloading input files"
STEP_PREDICT = "error during predictions"
STEP_UPLOAD = "error when uploading predictions"


@contextmanager
def pipeline_step(description: str) -> Iterator[None]:
    """Attach the failing step's description to any error raised inside."""
    try:
        yield
    except Exception as e:
        if not getattr(e, "__notes__", None):
            e.add_note(description)
        logger.error("%s: %s", description, e)
        raise


def failed_step(error: BaseException) -> str | None:
    """Description of the step an error was raised in, if any."""
    notes = getattr(error, "__notes__", None)
    return notes[0] if notes else None


def prepare_staging(settings: Config) -> StagingArea:
    """Clear the previous execution and recreate the staging directories."""
    staging = settings.staging_area()
    staging.reset()
    return staging


def predict_tree(
    input_dir: Path,
    output_dir: Path,
    inference_client: InferenceClient,
    settings: Config,
) -> tuple[int, int]:
    """
    Submit every input file to the inference server.

    Each output file mirrors its input's relative location, with the output
    prefix added to the file name.

    Args:
        input_dir: Local directory holding JSON lines files.
        output_dir: Local directory to write predictions into.
        inference_client: Client of the running inference server.
        settings: Service configuration.

    Returns:
        Tuple of (files processed, prediction lines written).

    Raises:
        FormatError: If an input line or a response is malformed.
        PredictionError: If the server reports an error for a file.
        ProcessError: If the server cannot be reached.
    """
    input_dir = Path(input_dir)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    files = 0
    lines = 0
    for staged in walk_local_tree(input_dir):
        logger.info("Predicting %s", staged.relative_key)

        request_body = encode_file(input_dir / staged.relative_key)
        response_body = inference_client.predict(request_body)
        predictions = decode_response(response_body, escape=settings.escape_backslashes)

        output_name = f"{settings.output_prefix}{staged.name}"
        output_file = output_dir / staged.relative_path / output_name
        lines += write_predictions(predictions, output_file)
        files += 1

        logger.info("Wrote %d predictions to %s", len(predictions), output_file)

    return files, lines


def process_request(
    request: PredictionRequest,
    object_tree: ObjectTreeSync,
    server_factory: Callable[[Path], InferenceServer],
    inference_client: InferenceClient,
    settings: Config,
) -> PredictionResult:
    """
    Run one batch prediction from model download to output upload.

    Steps run strictly in order and the first failure aborts the rest. The
    inference server is killed on every exit path.

    Args:
        request: Validated model, input and output locations.
        object_tree: Object tree synchronizer.
        server_factory: Builds an InferenceServer for a model base path.
        inference_client: Client of the inference server's predict endpoint.
        settings: Service configuration.

    Returns:
        PredictionResult summarizing the run.
    """
    logger.info(
        "Processing: model=%s input=%s output=%s",
        request.model.uri,
        request.input.uri,
        request.output.uri,
    )

    with pipeline_step(STEP_STAGING):
        staging = prepare_staging(settings)

    with pipeline_step(STEP_MODEL):
        object_tree.download_tree(request.model, staging.model_version_dir)
    logger.info("Model loaded to %s", staging.model_version_dir)

    with ExitStack() as stack:
        # Killed when the stack unwinds, whichever step fails
        with pipeline_step(STEP_SERVER):
            stack.enter_context(server_factory(staging.model_dir))

        # Copy a full directory if the input ends with '/', else only the file
        with pipeline_step(STEP_INPUT):
            if request.input.is_directory:
                object_tree.download_tree(request.input, staging.input_dir)
            else:
                object_tree.download_one(
                    request.input, staging.input_dir / request.input.name
                )
        logger.info("Input loaded to %s", staging.input_dir)

        with pipeline_step(STEP_PREDICT):
            files, lines = predict_tree(
                staging.input_dir, staging.output_dir, inference_client, settings
            )
        logger.info("Predictions done: %d files, %d lines", files, lines)

        with pipeline_step(STEP_UPLOAD):
            output_keys = object_tree.upload_tree(staging.output_dir, request.output)
        logger.info("Output uploaded to %s", request.output.as_directory().uri)

    return PredictionResult(
        model=request.model.uri,
        input=request.input.uri,
        output=request.output.as_directory().uri,
        files_processed=files,
        predictions_written=lines,
        output_keys=output_keys,
    )
