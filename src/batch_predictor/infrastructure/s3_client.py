"""S3 client wrapper for object store operations."""

import logging
from typing import Any, BinaryIO, Iterator

from boto3.exceptions import Boto3Error
from botocore.exceptions import BotoCoreError, ClientError

from batch_predictor.exceptions import StoreError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class S3Client:
    """Handles S3 operations. Every failure is raised as StoreError."""

    def __init__(self, client: Any, scheme: str = "s3://"):
        """
        Initialize S3 client wrapper.

        Args:
            client: boto3 S3 client instance.
            scheme: Address prefix used when reporting locations.
        """
        self._client = client
        self._scheme = scheme

    def _uri(self, bucket: str, key: str) -> str:
        return f"{self._scheme}{bucket}/{key}"

    def list_keys(self, bucket: str, prefix: str = "") -> Iterator[str]:
        """
        List every object key starting with a prefix.

        Args:
            bucket: S3 bucket name.
            prefix: Key prefix to filter objects.

        Yields:
            Object keys, in the order the store returns them.

        Raises:
            StoreError: If a listing page cannot be fetched.
        """
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            count = 0
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    count += 1
                    yield obj["Key"]
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to list objects in %s: %s", self._uri(bucket, prefix), e)
            raise StoreError("list", bucket, prefix, str(e), self._scheme) from e

        logger.info("Found %d objects in %s", count, self._uri(bucket, prefix))

    def download_fileobj(self, bucket: str, key: str, fileobj: BinaryIO) -> int:
        """
        Stream an object into an open binary file.

        Args:
            bucket: S3 bucket name.
            key: S3 object key.
            fileobj: Writable binary file.

        Returns:
            Number of bytes copied.

        Raises:
            StoreError: If the object cannot be read.
        """
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
            body = response["Body"]
            try:
                size = 0
                for chunk in body.iter_chunks(chunk_size=CHUNK_SIZE):
                    fileobj.write(chunk)
                    size += len(chunk)
            finally:
                body.close()
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to download %s: %s", self._uri(bucket, key), e)
            raise StoreError("download", bucket, key, str(e), self._scheme) from e

        logger.info("Downloaded %d bytes from %s", size, self._uri(bucket, key))
        return size

    def upload_fileobj(
        self,
        fileobj: BinaryIO,
        bucket: str,
        key: str,
        content_type: str | None = None,
    ) -> None:
        """
        Write an open binary file to an object.

        The upload is committed when this returns; a failed commit is raised,
        not swallowed.

        Args:
            fileobj: Readable binary file.
            bucket: S3 bucket name.
            key: S3 object key.
            content_type: Optional content type.

        Raises:
            StoreError: If the object cannot be written.
        """
        extra_args = {}
        if content_type:
            extra_args["ContentType"] = content_type

        try:
            self._client.upload_fileobj(
                fileobj,
                bucket,
                key,
                ExtraArgs=extra_args if extra_args else None,
            )
        except (ClientError, BotoCoreError, Boto3Error) as e:
            logger.error("Failed to upload %s: %s", self._uri(bucket, key), e)
            raise StoreError("upload", bucket, key, str(e), self._scheme) from e

        logger.info("Uploaded: %s", self._uri(bucket, key))
