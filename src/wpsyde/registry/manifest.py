"""Component manifest schema and builder.

manifest.json format (one per published component version):
    {
        "name": "Button",
        "version": "1.0.0",
        "description": "Button component for WordPress",
        "files": [
            {
                "sourcePath": "template-parts/components/Button/component.php",
                "destPath": "template-parts/components/Button/button.php",
                "integrity": "sha256-..."
            },
            ...
        ],
        "archives": {"zip": "component.zip", "integrity": "sha256-..."},
        "checksum": "sha256-...",
        "dependencies": [],
        "pro": false,
        "signature": ""
    }

Once published, the content-bearing fields (IMMUTABLE_FIELDS) never change.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from wpsyde.errors import WpsydeError
from wpsyde.registry.integrity import compute_integrity, is_integrity_tag
from wpsyde.registry.naming import dest_path, sanitize_component_name, source_path
from wpsyde.registry.source import ComponentSource
from wpsyde.registry.version import parse_version

ARCHIVE_FILENAME = "component.zip"
MANIFEST_FILENAME = "manifest.json"

IMMUTABLE_FIELDS: tuple[str, ...] = (
    "version",
    "files",
    "archives",
    "checksum",
    "signature",
)


class ManifestError(WpsydeError):
    """Raised when a manifest cannot be loaded or parsed."""


def _check_integrity_tag(v: str) -> str:
    if not is_integrity_tag(v):
        raise ValueError(f"not a sha256 integrity tag: {v!r}")
    return v


class ManifestFile(BaseModel):
    """Single file entry of a manifest.

    Attributes:
        source_path: Path of the file inside the archive.
        dest_path: Theme-relative install path after the filename remap.
        integrity: Digest tag of the file content.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    source_path: str = Field(..., alias="sourcePath", min_length=1)
    dest_path: str = Field(..., alias="destPath", min_length=1)
    integrity: str = Field(..., description="sha256-<base64> digest of file content")

    @field_validator("integrity")
    @classmethod
    def validate_integrity(cls, v: str) -> str:
        return _check_integrity_tag(v)


class ManifestArchives(BaseModel):
    """Archive pointer of a manifest."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    zip: str = Field(default=ARCHIVE_FILENAME, min_length=1)
    integrity: str

    @field_validator("integrity")
    @classmethod
    def validate_integrity(cls, v: str) -> str:
        return _check_integrity_tag(v)


class Manifest(BaseModel):
    """Descriptor of one published component version."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str = Field(..., min_length=1)
    version: str
    description: str = ""
    files: list[ManifestFile] = Field(default_factory=list)
    archives: ManifestArchives | None = None
    checksum: str = ""
    dependencies: list[str] = Field(default_factory=list)
    pro: bool = False
    signature: str = ""
    author: str | None = None
    license: str | None = None
    repository: str | None = None
    keywords: list[str] = Field(default_factory=list)
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        sanitized = sanitize_component_name(v)
        if sanitized != v:
            raise ValueError(f"component name {v!r} is not a clean path segment")
        return v

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        return parse_version(v).raw

    @field_validator("dependencies")
    @classmethod
    def validate_dependencies(cls, v: list[str]) -> list[str]:
        for dep in v:
            sanitize_component_name(dep)
        return v

    @property
    def archive_integrity(self) -> str | None:
        return self.archives.integrity if self.archives else None

    @property
    def is_published(self) -> bool:
        """True once the archive pointer and checksum are set."""
        return self.archives is not None and bool(self.checksum)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-ready dictionary with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> bytes:
        """Serialize to indented JSON bytes using orjson."""
        return orjson.dumps(self.to_dict(), option=orjson.OPT_INDENT_2) + b"\n"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Manifest:
        return cls.model_validate(data)

    @classmethod
    def from_json(cls, data: bytes | str) -> Manifest:
        """Deserialize from JSON."""
        if isinstance(data, str):
            data = data.encode()
        return cls.model_validate(orjson.loads(data))


def default_description(name: str) -> str:
    return f"{name} component for WordPress"


def build_manifest(
    source: ComponentSource,
    version: str,
    description: str | None = None,
    *,
    dependencies: list[str] | None = None,
    pro: bool = False,
    created_at: str | None = None,
) -> Manifest:
    """Derive an unpublished manifest from a component's file set.

    Pure function over the file bytes: each present logical file gets a
    sha256 integrity tag and a remapped destination path. The archive
    pointer and checksum are filled in by with_archive().

    Args:
        source: Component file set.
        version: Semantic version being packaged.
        description: Human description; defaults to "<Name> component for WordPress".
        dependencies: Other component names this one needs.
        pro: Pro-tier flag.
        created_at: ISO timestamp recorded as createdAt/updatedAt.

    Returns:
        Manifest without archives/checksum.
    """
    files = [
        ManifestFile(
            source_path=source_path(source.name, f.logical_name),
            dest_path=dest_path(source.name, f.logical_name),
            integrity=compute_integrity(f.content),
        )
        for f in source.files
    ]

    return Manifest(
        name=source.name,
        version=version,
        description=description if description is not None else default_description(source.name),
        files=files,
        dependencies=dependencies or [],
        pro=pro,
        created_at=created_at,
        updated_at=created_at,
    )


def with_archive(manifest: Manifest, archive_integrity: str) -> Manifest:
    """Attach the archive pointer; checksum mirrors the archive digest."""
    return manifest.model_copy(
        update={
            "archives": ManifestArchives(zip=ARCHIVE_FILENAME, integrity=archive_integrity),
            "checksum": archive_integrity,
        }
    )


def immutable_subset(manifest: Manifest | dict[str, Any]) -> dict[str, Any]:
    """Extract the content-bearing fields for immutability comparison.

    Accepts a raw dict so that manifests written by older tooling (which may
    not validate against the current schema) can still be compared.
    """
    data = manifest.to_dict() if isinstance(manifest, Manifest) else manifest
    return {key: data[key] for key in IMMUTABLE_FIELDS if data.get(key) is not None}


def changed_immutable_fields(
    old: Manifest | dict[str, Any],
    new: Manifest | dict[str, Any],
) -> list[str]:
    """Names of immutable fields whose values differ between two manifests."""
    old_subset = immutable_subset(old)
    new_subset = immutable_subset(new)
    return [key for key in IMMUTABLE_FIELDS if old_subset.get(key) != new_subset.get(key)]


def load_manifest(path: Path) -> Manifest:
    """Load and validate a manifest.json file.

    Raises:
        ManifestError: If the file is missing, not JSON, or fails validation.
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except FileNotFoundError as e:
        raise ManifestError(f"Manifest not found: {path}") from e

    try:
        return Manifest.from_json(raw)
    except orjson.JSONDecodeError as e:
        raise ManifestError(f"Manifest is not valid JSON: {path}: {e}") from e
    except ValidationError as e:
        raise ManifestError(f"Manifest failed validation: {path}: {e}") from e


def load_manifest_dict(path: Path) -> dict[str, Any]:
    """Load a manifest.json as a raw dict without schema validation."""
    try:
        data = orjson.loads(Path(path).read_bytes())
    except orjson.JSONDecodeError as e:
        raise ManifestError(f"Manifest is not valid JSON: {path}: {e}") from e
    if not isinstance(data, dict):
        raise ManifestError(f"Manifest is not a JSON object: {path}")
    return data


def save_manifest(manifest: Manifest, path: Path) -> None:
    """Write manifest.json, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(manifest.to_json())
