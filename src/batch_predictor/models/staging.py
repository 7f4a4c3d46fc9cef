"""Local staging directories for one prediction request."""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class StagingArea:
    """Model, input and output scratch directories."""

    model_dir: Path
    input_dir: Path
    output_dir: Path
    model_version: str = "000000"

    @property
    def model_version_dir(self) -> Path:
        """Where the model files go. TensorFlow Serving expects a version directory."""
        return self.model_dir / self.model_version

    def reset(self) -> None:
        """Remove anything left by a previous request and recreate the directories."""
        for directory in (self.model_dir, self.input_dir, self.output_dir):
            if directory.exists():
                logger.info("Clearing %s", directory)
                shutil.rmtree(directory)
            directory.mkdir(parents=True, exist_ok=True)
