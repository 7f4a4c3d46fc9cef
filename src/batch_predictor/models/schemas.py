"""Pydantic models for object store locations and prediction requests."""

from pydantic import BaseModel

from batch_predictor.exceptions import ValidationError

SEPARATOR = "/"
DEFAULT_SCHEME = "s3://"


class RemoteLocation(BaseModel):
    """A bucket and a path inside it.

    A path ending with a separator is a directory prefix, anything else is a
    single object key. An empty path is the root of the bucket. ``scheme`` is
    the address prefix the location was given with and is only used to render
    it back.
    """

    bucket: str
    path: str = ""
    scheme: str = DEFAULT_SCHEME

    @classmethod
    def parse(cls, address: str, prefix: str = DEFAULT_SCHEME) -> "RemoteLocation":
        """
        Build a location from an address such as ``s3://bucket/dir/``.

        Args:
            address: Caller supplied address.
            prefix: Store address prefix the address must start with.

        Returns:
            Parsed RemoteLocation.

        Raises:
            ValidationError: If the address is malformed.
        """
        if not address.startswith(prefix):
            raise ValidationError(f"location must start with '{prefix}'")

        bucket, sep, path = address[len(prefix):].partition(SEPARATOR)
        if not bucket:
            raise ValidationError("location must name a bucket")
        if not sep:
            raise ValidationError(
                f"location must be '{prefix}<bucket>/<path>', got '{address}'"
            )
        return cls(bucket=bucket, path=path, scheme=prefix)

    @property
    def is_directory(self) -> bool:
        return self.path == "" or self.path.endswith(SEPARATOR)

    @property
    def name(self) -> str:
        """Leaf name of a single object key."""
        return self.path.rsplit(SEPARATOR, 1)[-1]

    @property
    def uri(self) -> str:
        return f"{self.scheme}{self.bucket}/{self.path}"

    def with_path(self, path: str) -> "RemoteLocation":
        """Another key in the same bucket."""
        return RemoteLocation(bucket=self.bucket, path=path, scheme=self.scheme)

    def as_directory(self) -> "RemoteLocation":
        """Same location, normalized to directory form."""
        if self.is_directory:
            return self
        return self.with_path(self.path + SEPARATOR)

    def child(self, relative_key: str) -> "RemoteLocation":
        """Location of a key below this directory."""
        return self.with_path(self.as_directory().path + relative_key)


class PredictionRequest(BaseModel):
    """The three locations of one batch prediction."""

    model: RemoteLocation
    input: RemoteLocation
    output: RemoteLocation

    @classmethod
    def from_addresses(
        cls,
        model: str,
        input: str,
        output: str,
        prefix: str = DEFAULT_SCHEME,
    ) -> "PredictionRequest":
        """
        Parse and normalize the three addresses of a request.

        The model location must be the directory holding the saved model, so
        it is always normalized to directory form.
        """
        locations = {}
        for param, address in (("model", model), ("input", input), ("output", output)):
            try:
                locations[param] = RemoteLocation.parse(address, prefix)
            except ValidationError as e:
                raise ValidationError(f"'{param}' bad formatted: {e.message}") from e

        locations["model"] = locations["model"].as_directory()
        return cls(**locations)


class PredictionResult(BaseModel):
    """Summary of a completed batch prediction."""

    model: str
    input: str
    output: str
    files_processed: int = 0
    predictions_written: int = 0
    output_keys: list[str] = []
