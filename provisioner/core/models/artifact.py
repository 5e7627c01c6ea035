"""
Artifact models — what to download and where it lands.

``ArtifactSource`` is the declaration from provision.yml. ``Artifact``
is the immutable, fully-resolved form bound to a working area.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

SUPPORTED_SCHEMES = ("https", "http", "file")


def check_url(value: str) -> str:
    """Validate a locator and return it stripped.

    Raises:
        ValueError: If the URL is empty or uses an unsupported scheme.
    """
    value = value.strip()
    if not value:
        raise ValueError("url must not be empty")
    scheme = urlparse(value).scheme.lower()
    if scheme not in SUPPORTED_SCHEMES:
        raise ValueError(
            f"unsupported URL scheme '{scheme or '<none>'}' in {value!r} "
            f"(expected one of: {', '.join(SUPPORTED_SCHEMES)})"
        )
    return value


def check_filename(value: str) -> str:
    """Require a bare file name, so the artifact lands inside the working area.

    Raises:
        ValueError: On separators, ``.``/``..`` or NUL.
    """
    if value in ("", ".", "..") or any(c in value for c in ("/", "\\", "\x00")):
        raise ValueError(f"filename must be a plain file name, got {value!r}")
    return value


class Artifact(BaseModel):
    """A remote artifact bound to a local destination. Never mutated."""

    model_config = ConfigDict(frozen=True)

    name: str
    source: str           # URI
    destination: str      # absolute path inside the working area

    @property
    def path(self) -> Path:
        return Path(self.destination)


class ArtifactSource(BaseModel):
    """An artifact declared in configuration."""

    name: str
    url: str
    filename: str = ""

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return check_url(value)

    @field_validator("filename")
    @classmethod
    def _check_filename(cls, value: str) -> str:
        # Empty means "derive from the URL".
        return check_filename(value) if value else value

    @model_validator(mode="after")
    def _check_resolved(self) -> ArtifactSource:
        check_filename(self.resolved_filename)
        return self

    @property
    def resolved_filename(self) -> str:
        """Explicit filename, else the last URL path segment, else the name."""
        if self.filename:
            return self.filename
        segment = PurePosixPath(unquote(urlparse(self.url).path)).name
        return segment or self.name

    def to_artifact(self, work_dir: Path) -> Artifact:
        return Artifact(
            name=self.name,
            source=self.url,
            destination=str(work_dir / self.resolved_filename),
        )
