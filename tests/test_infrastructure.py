"""Tests for infrastructure layer."""

import io
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest
from botocore.exceptions import ClientError
from dependency_injector import providers

from batch_predictor.exceptions import ProcessError, StoreError
from batch_predictor.infrastructure.dependency_injection import DependenciesContainer
from batch_predictor.infrastructure.inference_client import InferenceClient
from batch_predictor.infrastructure.s3_client import S3Client
from batch_predictor.services.inference_server import InferenceServer


class TestS3Client:
    """Tests for S3Client."""

    def test_list_keys_paginates(self):
        """Test list_keys yields keys from every page."""
        mock_boto_client = MagicMock()
        mock_boto_client.get_paginator.return_value.paginate.return_value = [
            {"Contents": [{"Key": "in/a.jsonl"}, {"Key": "in/b.jsonl"}]},
            {"Contents": [{"Key": "in/c/d.jsonl"}]},
            {},
        ]

        client = S3Client(mock_boto_client)
        keys = list(client.list_keys("test-bucket", "in/"))

        assert keys == ["in/a.jsonl", "in/b.jsonl", "in/c/d.jsonl"]
        mock_boto_client.get_paginator.assert_called_once_with("list_objects_v2")
        mock_boto_client.get_paginator.return_value.paginate.assert_called_once_with(
            Bucket="test-bucket", Prefix="in/"
        )

    def test_list_keys_raises_store_error(self):
        """Test a listing failure is raised, not hidden as an empty listing."""
        mock_boto_client = MagicMock()
        error_response = {"Error": {"Code": "AccessDenied"}}
        mock_boto_client.get_paginator.return_value.paginate.side_effect = ClientError(
            error_response, "ListObjectsV2"
        )

        client = S3Client(mock_boto_client)

        with pytest.raises(StoreError) as exc_info:
            list(client.list_keys("test-bucket", "in/"))

        assert exc_info.value.bucket == "test-bucket"
        assert exc_info.value.operation == "list"

    def test_download_fileobj_streams_body(self):
        """Test download_fileobj copies every chunk and closes the body."""
        body = MagicMock()
        body.iter_chunks.return_value = [b'{"x":', b"1}\n"]
        mock_boto_client = MagicMock()
        mock_boto_client.get_object.return_value = {"Body": body}

        client = S3Client(mock_boto_client)
        buffer = io.BytesIO()
        size = client.download_fileobj("test-bucket", "in/a.jsonl", buffer)

        assert buffer.getvalue() == b'{"x":1}\n'
        assert size == 8
        body.close.assert_called_once()
        mock_boto_client.get_object.assert_called_once_with(
            Bucket="test-bucket", Key="in/a.jsonl"
        )

    def test_download_fileobj_failure(self):
        """Test download_fileobj raises StoreError on a missing key."""
        mock_boto_client = MagicMock()
        error_response = {"Error": {"Code": "NoSuchKey"}}
        mock_boto_client.get_object.side_effect = ClientError(error_response, "GetObject")

        client = S3Client(mock_boto_client)

        with pytest.raises(StoreError, match="s3://test-bucket/in/a.jsonl"):
            client.download_fileobj("test-bucket", "in/a.jsonl", io.BytesIO())

    def test_errors_use_configured_scheme(self):
        """Test failures report addresses with the configured prefix."""
        mock_boto_client = MagicMock()
        error_response = {"Error": {"Code": "NoSuchKey"}}
        mock_boto_client.get_object.side_effect = ClientError(error_response, "GetObject")

        client = S3Client(mock_boto_client, scheme="gs://")

        with pytest.raises(StoreError) as exc_info:
            client.download_fileobj("test-bucket", "in/a.jsonl", io.BytesIO())

        assert exc_info.value.uri == "gs://test-bucket/in/a.jsonl"
        assert "s3://" not in exc_info.value.message

    def test_upload_fileobj_success(self):
        """Test upload_fileobj passes the file and content type."""
        mock_boto_client = MagicMock()
        fileobj = io.BytesIO(b"data")

        client = S3Client(mock_boto_client)
        client.upload_fileobj(fileobj, "test-bucket", "out/a.jsonl", content_type="application/json")

        mock_boto_client.upload_fileobj.assert_called_once_with(
            fileobj,
            "test-bucket",
            "out/a.jsonl",
            ExtraArgs={"ContentType": "application/json"},
        )

    def test_upload_fileobj_failure(self):
        """Test a failed upload is surfaced."""
        mock_boto_client = MagicMock()
        error_response = {"Error": {"Code": "AccessDenied"}}
        mock_boto_client.upload_fileobj.side_effect = ClientError(error_response, "PutObject")

        client = S3Client(mock_boto_client)

        with pytest.raises(StoreError):
            client.upload_fileobj(io.BytesIO(b"data"), "test-bucket", "out/a.jsonl")


class TestInferenceClient:
    """Tests for InferenceClient."""

    def test_predict_posts_envelope(self):
        """Test predict posts the body as JSON and returns the raw response."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["content_type"] = request.headers["Content-Type"]
            seen["body"] = request.content
            return httpx.Response(200, content=b'{"predictions":[1]}')

        client = InferenceClient(
            "http://localhost:8501/v1/models/mymodel:predict",
            transport=httpx.MockTransport(handler),
        )
        result = client.predict(b'{"instances":[1]}')

        assert result == b'{"predictions":[1]}'
        assert seen["url"] == "http://localhost:8501/v1/models/mymodel:predict"
        assert seen["content_type"] == "application/json"
        assert seen["body"] == b'{"instances":[1]}'

    def test_predict_returns_error_body(self):
        """Test an error status still returns the body for decoding."""
        transport = httpx.MockTransport(
            lambda request: httpx.Response(400, content=b'{"error":"shape mismatch"}')
        )

        client = InferenceClient("http://localhost:8501/v1/models/m:predict", transport=transport)

        assert client.predict(b"{}") == b'{"error":"shape mismatch"}'

    def test_predict_unreachable(self):
        """Test a connection failure raises ProcessError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = InferenceClient(
            "http://localhost:8501/v1/models/m:predict",
            transport=httpx.MockTransport(handler),
        )

        with pytest.raises(ProcessError, match="unreachable"):
            client.predict(b"{}")


class TestDependenciesContainer:
    """Tests for DependenciesContainer wiring."""

    def test_inference_client_uses_settings(self, settings):
        """Test the inference client targets the configured REST port."""
        container = DependenciesContainer()
        container.settings.override(providers.Object(settings))

        client = container.inference_client()

        assert client.predict_url == "http://localhost:18501/v1/models/mymodel:predict"

    def test_s3_client_uses_store_prefix(self, settings):
        """Test the S3 client reports addresses with the configured prefix."""
        settings.store_prefix = "gs://"
        container = DependenciesContainer()
        container.settings.override(providers.Object(settings))
        mock_boto_client = MagicMock()
        mock_boto_client.get_object.side_effect = ClientError(
            {"Error": {"Code": "NoSuchKey"}}, "GetObject"
        )
        container.s3_boto_client.override(providers.Object(mock_boto_client))

        with pytest.raises(StoreError, match="gs://b/k"):
            container.s3_client().download_fileobj("b", "k", io.BytesIO())

    def test_inference_server_is_a_fresh_factory(self, settings, tmp_path):
        """Test each call builds a new server for the given model path."""
        container = DependenciesContainer()
        container.settings.override(providers.Object(settings))

        first = container.inference_server(model_base_path=tmp_path / "model")
        second = container.inference_server(model_base_path=tmp_path / "model")

        assert isinstance(first, InferenceServer)
        assert first is not second
        assert first.model_base_path == Path(tmp_path / "model")
        assert first.rest_port == 18501
