"""Shared fixtures: an in-memory object store and test configuration."""

from pathlib import Path

import pytest

from batch_predictor.config import Config
from batch_predictor.exceptions import StoreError


class InMemoryS3Client:
    """Stands in for S3Client, keeping objects in a dict keyed by (bucket, key)."""

    def __init__(self, objects: dict[tuple[str, str], bytes] | None = None):
        self.objects = dict(objects or {})
        self.downloads: list[tuple[str, str]] = []
        self.uploads: list[tuple[str, str]] = []

    def with_objects(self, objects: dict[tuple[str, str], bytes] | None = None):
        self.objects.update(objects or {})
        return self

    def list_keys(self, bucket: str, prefix: str = ""):
        for obj_bucket, key in sorted(self.objects):
            if obj_bucket == bucket and key.startswith(prefix):
                yield key

    def download_fileobj(self, bucket: str, key: str, fileobj) -> int:
        if (bucket, key) not in self.objects:
            raise StoreError("download", bucket, key, "NoSuchKey")
        data = self.objects[(bucket, key)]
        fileobj.write(data)
        self.downloads.append((bucket, key))
        return len(data)

    def upload_fileobj(self, fileobj, bucket: str, key: str, content_type=None) -> None:
        self.objects[(bucket, key)] = fileobj.read()
        self.uploads.append((bucket, key))

    def keys(self, bucket: str) -> list[str]:
        return sorted(key for obj_bucket, key in self.objects if obj_bucket == bucket)


class FakeInferenceServer:
    """Context manager standing in for InferenceServer."""

    def __init__(self, model_base_path: Path, fail_with: Exception | None = None):
        self.model_base_path = model_base_path
        self.fail_with = fail_with
        self.entered = False
        self.exited = False

    def __enter__(self):
        self.entered = True
        if self.fail_with is not None:
            raise self.fail_with
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.exited = True
        return False


@pytest.fixture
def s3_store():
    return InMemoryS3Client()


@pytest.fixture
def fake_server_factory():
    """Builds FakeInferenceServers and remembers them."""
    servers = []

    def factory(model_base_path: Path, fail_with: Exception | None = None):
        server = FakeInferenceServer(model_base_path, fail_with=fail_with)
        servers.append(server)
        return server

    factory.servers = servers
    return factory


@pytest.fixture
def settings(tmp_path):
    return Config(
        staging_root=tmp_path / "staging",
        store_prefix="s3://",
        model_version="000000",
        output_prefix="prediction_",
        model_name="mymodel",
        grpc_port=18500,
        rest_port=18501,
        startup_timeout=1.0,
        escape_backslashes=True,
    )
