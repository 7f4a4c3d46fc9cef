"""Convert JSON lines to TensorFlow Serving request envelopes and back."""

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from batch_predictor.exceptions import FormatError, PredictionError

logger = logging.getLogger(__name__)

INSTANCES_FIELD = "instances"
PREDICTIONS_FIELD = "predictions"
ERROR_FIELD = "error"


def _dumps(value: Any) -> bytes:
    """Compact JSON, keys sorted, non-ASCII kept as UTF-8."""
    return json.dumps(
        value,
        separators=(",", ":"),
        sort_keys=True,
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not a JSON value")


def _loads(data: bytes) -> Any:
    """Strict JSON parsing: NaN and Infinity are rejected."""
    return json.loads(data, parse_constant=_reject_constant)


def encode_request(lines: Iterable[bytes]) -> bytes:
    """
    Wrap JSON lines into a single ``{"instances": [...]}`` envelope.

    Empty lines are skipped. An empty input gives an empty instances array.

    Args:
        lines: Raw lines of one input file, each holding one JSON value.

    Returns:
        Serialized request envelope.

    Raises:
        FormatError: If any other line is not valid JSON. Nothing is submitted.
    """
    instances = []
    for number, line in enumerate(lines, start=1):
        if not line.rstrip(b"\r\n"):
            continue
        try:
            instances.append(_loads(line))
        except ValueError as e:
            raise FormatError(f"line {number} is not valid JSON: {e}") from e

    return _dumps({INSTANCES_FIELD: instances})


def escape_backslashes(body: bytes) -> bytes:
    """
    Double every backslash of a raw response body.

    TensorFlow Serving has been seen to return values (such as arrays encoded
    as strings) containing backslash sequences that are not valid JSON. Doubling
    them makes the body parseable, but it also turns any legitimate escape
    (``\\"``, ``\\n``, ``\\u00e9``) into a literal backslash followed by the
    character. Controlled by ``Config.escape_backslashes``.
    """
    return body.replace(b"\\", b"\\\\")


def decode_response(body: bytes, *, escape: bool = True) -> list[bytes]:
    """
    Turn a ``{"predictions": [...]}`` response into JSON lines.

    Args:
        body: Raw response body.
        escape: Apply escape_backslashes before parsing.

    Returns:
        One compact JSON line per prediction, in order. A response with
        neither predictions nor error gives no lines.

    Raises:
        PredictionError: If the response carries a non-empty error.
        FormatError: If the body is not a JSON object of the expected shape.
    """
    if escape:
        body = escape_backslashes(body)

    try:
        answer = _loads(body)
    except ValueError as e:
        logger.error("Error during answer unmarshal %s", body[:500])
        raise FormatError(f"response is not valid JSON: {e}") from e

    if not isinstance(answer, dict):
        raise FormatError(f"response must be a JSON object, got {type(answer).__name__}")

    error = answer.get(ERROR_FIELD)
    if error:
        raise PredictionError(str(error))

    predictions = answer.get(PREDICTIONS_FIELD)
    if predictions is None:
        return []
    if not isinstance(predictions, list):
        raise FormatError(f"'{PREDICTIONS_FIELD}' must be an array")

    return [_dumps(prediction) for prediction in predictions]


def encode_file(path: Path) -> bytes:
    """Read a JSON lines file and build its request envelope."""
    with open(path, "rb") as f:
        return encode_request(f)


def write_predictions(lines: list[bytes], path: Path) -> int:
    """
    Write prediction lines to a file, one per line.

    Returns:
        Number of lines written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        for line in lines:
            f.write(line + b"\n")
    return len(lines)
