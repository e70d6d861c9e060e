"""Registry index (index.json).

Format:
    {
        "components": {
            "Button": {
                "latest": "1.1.0",
                "versions": ["1.0.0", "1.1.0"],
                "description": "Button component for WordPress",
                "updatedAt": "2026-01-25T12:00:00.000Z"
            }
        }
    }

Merging never drops a published version.
"""

from __future__ import annotations

import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from wpsyde.errors import ComponentNotFound, VersionNotFound, WpsydeError
from wpsyde.registry.version import LATEST

if TYPE_CHECKING:
    from wpsyde.registry.manifest import Manifest

INDEX_FILENAME = "index.json"


class RegistryIndexError(WpsydeError):
    """Raised when index.json cannot be loaded or parsed."""


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class IndexEntry(BaseModel):
    """Per-component index record."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    latest: str
    versions: list[str] = Field(default_factory=list)
    description: str = ""
    updated_at: str = Field(default="", alias="updatedAt")

    @model_validator(mode="after")
    def latest_is_published(self) -> IndexEntry:
        if self.latest not in self.versions:
            raise ValueError(f"latest {self.latest!r} is not among versions {self.versions}")
        return self


class RegistryIndex(BaseModel):
    """Mapping of component name to its index record."""

    model_config = ConfigDict(extra="forbid")

    components: dict[str, IndexEntry] = Field(default_factory=dict)

    @property
    def names(self) -> list[str]:
        return list(self.components)

    def __len__(self) -> int:
        return len(self.components)

    def __contains__(self, name: object) -> bool:
        return name in self.components

    def resolve(self, name: str, version: str = LATEST) -> str:
        """Resolve a requested version against the index.

        Raises:
            ComponentNotFound: If name is not in the index.
            VersionNotFound: If version was never published.
        """
        entry = self.components.get(name)
        if entry is None:
            raise ComponentNotFound(f'Component "{name}" not found in registry', component=name)

        target = entry.latest if version == LATEST else version
        if target not in entry.versions:
            available = ", ".join(entry.versions)
            raise VersionNotFound(
                f"Version {target} not found for {name}. Available: {available}",
                component=name,
                version=target,
            )
        return target

    def merge(self, manifest: Manifest, *, updated_at: str | None = None) -> IndexEntry:
        """Record a (re-)packaged component version.

        latest is last-write-wins; versions is append-only; description is
        taken from the new manifest.
        """
        existing = self.components.get(manifest.name)
        versions = list(existing.versions) if existing else []
        if manifest.version not in versions:
            versions.append(manifest.version)

        entry = IndexEntry(
            latest=manifest.version,
            versions=versions,
            description=manifest.description,
            updated_at=updated_at or utc_now_iso(),
        )
        self.components[manifest.name] = entry
        return entry

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict(), option=orjson.OPT_INDENT_2) + b"\n"

    @classmethod
    def from_json(cls, data: bytes | str) -> RegistryIndex:
        if isinstance(data, str):
            data = data.encode()
        return cls.model_validate(orjson.loads(data))


def load_index(path: Path) -> RegistryIndex:
    """Load index.json, returning an empty index if the file is absent.

    Raises:
        RegistryIndexError: If the file exists but is not a valid index.
    """
    path = Path(path)
    if not path.exists():
        return RegistryIndex()
    try:
        return RegistryIndex.from_json(path.read_bytes())
    except (orjson.JSONDecodeError, ValidationError) as e:
        raise RegistryIndexError(f"Invalid registry index {path}: {e}") from e


def save_index(index: RegistryIndex, path: Path) -> None:
    """Write index.json via a temporary file and atomic rename.

    Raises:
        RegistryIndexError: If the file cannot be written.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as e:
        raise RegistryIndexError(f"Cannot write registry index {path}: {e}") from e
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(index.to_json())
        os.replace(tmp_name, path)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise RegistryIndexError(f"Cannot write registry index {path}: {e}") from e
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
