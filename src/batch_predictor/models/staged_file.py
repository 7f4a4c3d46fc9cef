"""A file discovered below a local or remote directory."""

from dataclasses import dataclass

SEPARATOR = "/"


@dataclass(frozen=True)
class StagedFile:
    """Relative location of one file below a tree root.

    ``relative_path`` is empty for files directly under the root, otherwise it
    ends with a separator. ``name`` never contains a separator.
    """

    relative_path: str
    name: str

    def __post_init__(self):
        if self.relative_path and not self.relative_path.endswith(SEPARATOR):
            raise ValueError(
                f"relative_path must end with '{SEPARATOR}': {self.relative_path!r}"
            )
        if not self.name or SEPARATOR in self.name:
            raise ValueError(f"invalid file name: {self.name!r}")

    @classmethod
    def from_key(cls, relative_key: str) -> "StagedFile":
        """Split a key relative to the root into directory part and leaf name."""
        head, sep, name = relative_key.rpartition(SEPARATOR)
        return cls(relative_path=head + sep, name=name)

    @property
    def relative_key(self) -> str:
        return self.relative_path + self.name
