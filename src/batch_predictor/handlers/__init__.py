"""Handlers package."""

from batch_predictor.handlers.prediction import predict_tree, prepare_staging, process_request

__all__ = ["predict_tree", "prepare_staging", "process_request"]
