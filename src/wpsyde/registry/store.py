"""On-disk registry layout.

    registry/
        index.json
        health.json
        _headers
        public-key.pem                      (optional)
        components/<name>/<version>/manifest.json
        components/<name>/<version>/component.zip

The store is the only writer of published manifests and archives. A
(name, version) that already exists may only be rewritten when its
content-bearing manifest fields are unchanged.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

import orjson

from wpsyde.errors import ImmutableContentChanged, IntegrityMismatch
from wpsyde.registry.archive import ArchiveResult
from wpsyde.registry.index import (
    INDEX_FILENAME,
    IndexEntry,
    RegistryIndex,
    load_index,
    save_index,
    utc_now_iso,
)
from wpsyde.registry.manifest import (
    ARCHIVE_FILENAME,
    MANIFEST_FILENAME,
    Manifest,
    changed_immutable_fields,
    immutable_subset,
    load_manifest_dict,
    save_manifest,
)
from wpsyde.registry.naming import sanitize_component_name
from wpsyde.registry.version import parse_version

logger = logging.getLogger(__name__)

HEALTH_FILENAME = "health.json"
HEADERS_FILENAME = "_headers"
PUBLIC_KEY_FILENAME = "public-key.pem"
PEM_PUBLIC_KEY_HEADER = "-----BEGIN PUBLIC KEY-----"

CACHE_INDEX = "public, max-age=60"
CACHE_IMMUTABLE = "public, max-age=31536000, immutable"
CACHE_NO_STORE = "no-store"

HEADERS_TEMPLATE = f"""/{INDEX_FILENAME}
  Cache-Control: {CACHE_INDEX}
  Content-Type: application/json

/components/*
  Cache-Control: {CACHE_IMMUTABLE}

/{PUBLIC_KEY_FILENAME}
  Cache-Control: {CACHE_IMMUTABLE}

/{HEALTH_FILENAME}
  Cache-Control: {CACHE_NO_STORE}
"""


@dataclass(frozen=True)
class PublishResult:
    """Outcome of publishing one component version.

    Attributes:
        manifest: Manifest as written.
        entry: Index record after the merge.
        created: False when an existing (name, version) was rewritten.
    """

    manifest: Manifest
    entry: IndexEntry
    created: bool


class RegistryStore:
    """Registry directory writer and reader."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @property
    def index_path(self) -> Path:
        return self.root / INDEX_FILENAME

    def component_dir(self, name: str, version: str) -> Path:
        name = sanitize_component_name(name)
        version = parse_version(version).raw
        return self.root / "components" / name / version

    def manifest_path(self, name: str, version: str) -> Path:
        return self.component_dir(name, version) / MANIFEST_FILENAME

    def archive_path(self, name: str, version: str) -> Path:
        return self.component_dir(name, version) / ARCHIVE_FILENAME

    def read_index(self) -> RegistryIndex:
        return load_index(self.index_path)

    def check_immutable(self, manifest: Manifest) -> bool:
        """Guard a (re-)publish against content changes.

        Returns:
            True if a manifest already exists at (name, version).

        Raises:
            ImmutableContentChanged: If any immutable field would change.
        """
        path = self.manifest_path(manifest.name, manifest.version)
        if not path.exists():
            return False

        old = load_manifest_dict(path)
        changed = changed_immutable_fields(old, manifest)
        if changed:
            old_subset = immutable_subset(old)
            new_subset = immutable_subset(manifest)
            details = "; ".join(
                f"{key}: {old_subset.get(key)!r} -> {new_subset.get(key)!r}" for key in changed
            )
            raise ImmutableContentChanged(
                f"{manifest.name}@{manifest.version} is already published and its "
                f"immutable content would change ({', '.join(changed)}). "
                f"Publish a new version instead. {details}",
                component=manifest.name,
                version=manifest.version,
                fields=changed,
            )
        return True

    def publish(
        self,
        manifest: Manifest,
        archive: ArchiveResult,
        *,
        updated_at: str | None = None,
    ) -> PublishResult:
        """Materialize manifest and archive, then merge into index.json.

        Args:
            manifest: Manifest with archives/checksum set.
            archive: Archive whose digest the manifest references.
            updated_at: Timestamp for the index record (default: now).

        Raises:
            IntegrityMismatch: If the manifest does not reference this archive.
            ImmutableContentChanged: If (name, version) exists with other content.
        """
        if manifest.archive_integrity != archive.integrity:
            raise IntegrityMismatch(
                f"{manifest.name}@{manifest.version}: manifest archive integrity "
                f"{manifest.archive_integrity} does not match built archive {archive.integrity}",
                component=manifest.name,
                version=manifest.version,
                expected=manifest.archive_integrity,
                actual=archive.integrity,
            )

        existed = self.check_immutable(manifest)
        manifest_path = self.manifest_path(manifest.name, manifest.version)

        if existed:
            # Metadata-only rewrite keeps the original publish time
            old = load_manifest_dict(manifest_path)
            if old.get("createdAt"):
                manifest = manifest.model_copy(update={"created_at": old["createdAt"]})
            logger.info(
                "Republishing %s@%s (metadata only)", manifest.name, manifest.version
            )

        archive_path = self.archive_path(manifest.name, manifest.version)
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        archive_path.write_bytes(archive.data)
        save_manifest(manifest, manifest_path)

        index = self.read_index()
        entry = index.merge(manifest, updated_at=updated_at)
        save_index(index, self.index_path)

        logger.info(
            "Published %s@%s (%d files, %d bytes)",
            manifest.name,
            manifest.version,
            len(manifest.files),
            archive.size_bytes,
        )
        return PublishResult(manifest=manifest, entry=entry, created=not existed)

    def write_static_assets(self, public_key: Path | None = None) -> list[Path]:
        """Write health.json and _headers; copy public-key.pem if given.

        Raises:
            ValueError: If public_key is not a PEM public key.
        """
        self.root.mkdir(parents=True, exist_ok=True)
        written: list[Path] = []

        health_path = self.root / HEALTH_FILENAME
        health = {"status": "ok", "ts": utc_now_iso()}
        health_path.write_bytes(orjson.dumps(health, option=orjson.OPT_INDENT_2) + b"\n")
        written.append(health_path)

        headers_path = self.root / HEADERS_FILENAME
        headers_path.write_text(HEADERS_TEMPLATE)
        written.append(headers_path)

        if public_key is not None:
            content = Path(public_key).read_text()
            if PEM_PUBLIC_KEY_HEADER not in content:
                raise ValueError(f"{public_key} is not a PEM public key")
            key_path = self.root / PUBLIC_KEY_FILENAME
            shutil.copyfile(public_key, key_path)
            written.append(key_path)

        return written
