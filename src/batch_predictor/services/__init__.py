from .inference_server import InferenceServer, ReadinessWatcher, ServerState
from .jsonl_transcoder import (
    decode_response,
    encode_file,
    encode_request,
    escape_backslashes,
    write_predictions,
)
from .object_tree import ObjectTreeSync, walk_local_tree

__all__ = [
    "InferenceServer",
    "ReadinessWatcher",
    "ServerState",
    "decode_response",
    "encode_file",
    "encode_request",
    "escape_backslashes",
    "write_predictions",
    "ObjectTreeSync",
    "walk_local_tree",
]
