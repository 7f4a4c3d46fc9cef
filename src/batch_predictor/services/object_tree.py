"""Mirror directory trees between the object store and local disk."""

import logging
import os
from pathlib import Path
from typing import Iterator

from batch_predictor.exceptions import ValidationError
from batch_predictor.infrastructure.s3_client import S3Client
from batch_predictor.models.schemas import SEPARATOR, RemoteLocation
from batch_predictor.models.staged_file import StagedFile

logger = logging.getLogger(__name__)


def walk_local_tree(root: Path) -> Iterator[StagedFile]:
    """
    Walk a local directory depth first.

    Entries of each directory are visited in name order and subdirectories are
    descended into in place. Every call returns a fresh iterator.

    Args:
        root: Local directory to walk.

    Yields:
        One StagedFile per regular file, relative to root.
    """
    yield from _walk(Path(root), "")


def _walk(directory: Path, relative_path: str) -> Iterator[StagedFile]:
    entries = sorted(os.scandir(directory), key=lambda entry: entry.name)
    for entry in entries:
        if entry.is_dir():
            yield from _walk(Path(entry.path), relative_path + entry.name + SEPARATOR)
        else:
            yield StagedFile(relative_path=relative_path, name=entry.name)


class ObjectTreeSync:
    """Downloads and uploads whole directory trees."""

    def __init__(self, s3_client: S3Client):
        """
        Initialize the tree synchronizer.

        Args:
            s3_client: S3Client instance.
        """
        self._s3_client = s3_client

    def list_tree(self, root: RemoteLocation) -> Iterator[StagedFile]:
        """
        List every object below a directory prefix.

        The prefix key itself and directory marker keys (ending with a
        separator) are skipped. Leading separators of a relative key are
        dropped, so ``in//a/1.jsonl`` below ``in/`` lists as ``a/1.jsonl``.

        Raises:
            StoreError: If the listing fails.
        """
        for _, staged in self._list_objects(root):
            yield staged

    def _list_objects(self, root: RemoteLocation) -> Iterator[tuple[str, StagedFile]]:
        for key in self._s3_client.list_keys(root.bucket, root.path):
            relative_key = key[len(root.path):]
            if not relative_key or relative_key.endswith(SEPARATOR):
                continue
            yield key, StagedFile.from_key(relative_key.lstrip(SEPARATOR))

    def download_tree(self, root: RemoteLocation, local_dest: Path) -> list[StagedFile]:
        """
        Download every object below a directory prefix, keeping the hierarchy.

        Args:
            root: Remote directory; its path must end with a separator.
            local_dest: Local directory to download into.

        Returns:
            The downloaded files, relative to local_dest.

        Raises:
            ValidationError: If root is not a directory, or a key would land
                outside local_dest.
            StoreError: If listing or reading fails.
            OSError: If a local file cannot be written.
        """
        if not root.is_directory:
            raise ValidationError(f"{root.uri} must be a directory (end with '/')")

        logger.info("Downloading tree %s to %s", root.uri, local_dest)
        local_dest = Path(local_dest)
        local_dest.mkdir(parents=True, exist_ok=True)
        dest_root = local_dest.resolve()

        downloaded = []
        for key, staged in self._list_objects(root):
            local_file = local_dest / staged.relative_key
            if dest_root not in local_file.resolve().parents:
                raise ValidationError(
                    f"{root.with_path(key).uri} would be written outside {local_dest}"
                )
            local_file.parent.mkdir(parents=True, exist_ok=True)
            self._copy_to_local(root.with_path(key), local_file)
            downloaded.append(staged)

        logger.info("Downloaded %d files from %s", len(downloaded), root.uri)
        return downloaded

    def download_one(self, location: RemoteLocation, local_file: Path) -> None:
        """
        Download a single object.

        Raises:
            ValidationError: If location is a directory.
            StoreError: If reading fails.
            OSError: If the local file cannot be written.
        """
        if location.is_directory:
            raise ValidationError(f"{location.uri} must be a file (not end with '/')")

        local_file = Path(local_file)
        local_file.parent.mkdir(parents=True, exist_ok=True)
        self._copy_to_local(location, local_file)

    def upload_tree(self, local_src: Path, root: RemoteLocation) -> list[str]:
        """
        Upload every file below a local directory, keeping the hierarchy.

        Args:
            local_src: Local directory to upload.
            root: Remote location; used as a directory prefix.

        Returns:
            Uploaded object keys, in traversal order.

        Raises:
            StoreError: If a write fails.
            OSError: If a local file cannot be read.
        """
        root = root.as_directory()
        local_src = Path(local_src)
        logger.info("Uploading tree %s to %s", local_src, root.uri)

        uploaded = []
        for staged in walk_local_tree(local_src):
            target = root.child(staged.relative_key)
            with open(local_src / staged.relative_key, "rb") as f:
                self._s3_client.upload_fileobj(f, target.bucket, target.path)
            uploaded.append(target.path)

        logger.info("Uploaded %d files to %s", len(uploaded), root.uri)
        return uploaded

    def _copy_to_local(self, location: RemoteLocation, local_file: Path) -> None:
        with open(local_file, "wb") as f:
            self._s3_client.download_fileobj(location.bucket, location.path, f)
