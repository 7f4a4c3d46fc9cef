"""Main entry point for running one batch prediction from the command line."""

import argparse
import json
import logging
import sys

from batch_predictor.config import config
from batch_predictor.handler import handle_request
from batch_predictor.infrastructure import DependenciesContainer


def setup_logging() -> None:
    """Configure logging with UTF-8 support."""
    if sys.stdout.encoding != "utf-8":
        sys.stdout.reconfigure(encoding="utf-8")

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def main():
    """Entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description="Run TensorFlow Serving batch predictions on JSON lines files"
    )
    parser.add_argument(
        "--model",
        required=True,
        help="Directory of the saved model (e.g., s3://bucket/models/v1/)",
    )
    parser.add_argument(
        "--input",
        required=True,
        help="Input file, or directory when ending with '/' (e.g., s3://bucket/input/)",
    )
    parser.add_argument(
        "--output",
        required=True,
        help="Output directory (e.g., s3://bucket/output/)",
    )
    args = parser.parse_args()

    setup_logging()
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("Starting Batch Prediction")
    logger.info("=" * 60)

    try:
        config.validate()
        container = DependenciesContainer()
        response = handle_request(
            {"model": args.model, "input": args.input, "output": args.output},
            container=container,
        )
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error("Fatal error: %s", e, exc_info=True)
        sys.exit(1)

    print(json.dumps(json.loads(response["body"]), indent=2))
    logger.info("=" * 60)
    sys.exit(0 if response["statusCode"] == 200 else 1)


if __name__ == "__main__":
    main()
