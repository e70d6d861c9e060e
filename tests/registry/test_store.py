"""Tests for the registry store: publish, immutability, static assets."""

from __future__ import annotations

from typing import TYPE_CHECKING

import orjson
import pytest

from wpsyde.errors import ImmutableContentChanged, IntegrityMismatch, InvalidInput
from wpsyde.registry.archive import build_archive
from wpsyde.registry.integrity import compute_integrity
from wpsyde.registry.manifest import build_manifest, load_manifest, with_archive
from wpsyde.registry.source import ComponentSource, SourceFile
from wpsyde.registry.store import CACHE_IMMUTABLE, CACHE_INDEX, RegistryStore

if TYPE_CHECKING:
    from pathlib import Path

    from wpsyde.registry.archive import ArchiveResult
    from wpsyde.registry.manifest import Manifest


def _package(
    php: bytes = b"<?php echo 'v1'; ?>",
    version: str = "1.0.0",
    description: str | None = None,
    created_at: str = "2026-01-01T00:00:00.000Z",
) -> tuple[Manifest, ArchiveResult]:
    source = ComponentSource(name="Button", files=[SourceFile("component.php", php)])
    manifest = build_manifest(source, version, description, created_at=created_at)
    archive = build_archive(source, manifest)
    return with_archive(manifest, archive.integrity), archive


class TestPublish:
    """Tests for RegistryStore.publish."""

    def test_writes_layout(self, tmp_path: Path) -> None:
        store = RegistryStore(tmp_path)
        manifest, archive = _package()
        result = store.publish(manifest, archive)

        assert result.created
        assert store.archive_path("Button", "1.0.0").read_bytes() == archive.data
        assert load_manifest(store.manifest_path("Button", "1.0.0")) == manifest
        assert store.read_index().resolve("Button") == "1.0.0"

    def test_archive_digest_equals_manifest(self, tmp_path: Path) -> None:
        store = RegistryStore(tmp_path)
        manifest, archive = _package()
        store.publish(manifest, archive)
        on_disk = store.archive_path("Button", "1.0.0").read_bytes()
        assert compute_integrity(on_disk) == manifest.archive_integrity == manifest.checksum

    def test_rejects_unreferenced_archive(self, tmp_path: Path) -> None:
        store = RegistryStore(tmp_path)
        manifest, _ = _package()
        _, other_archive = _package(php=b"<?php echo 'other'; ?>")
        with pytest.raises(IntegrityMismatch):
            store.publish(manifest, other_archive)
        assert not store.manifest_path("Button", "1.0.0").exists()

    def test_second_version_appended(self, tmp_path: Path) -> None:
        store = RegistryStore(tmp_path)
        store.publish(*_package())
        store.publish(*_package(php=b"<?php echo 'v2'; ?>", version="1.1.0"))
        entry = store.read_index().components["Button"]
        assert entry.versions == ["1.0.0", "1.1.0"]
        assert entry.latest == "1.1.0"

    def test_traversal_name_rejected_by_paths(self, tmp_path: Path) -> None:
        with pytest.raises(InvalidInput):
            RegistryStore(tmp_path).manifest_path("../x", "1.0.0")


class TestImmutability:
    """A published (name, version) keeps its content forever."""

    def test_identical_republish_accepted(self, tmp_path: Path) -> None:
        store = RegistryStore(tmp_path)
        store.publish(*_package())
        result = store.publish(*_package())
        assert not result.created

    def test_metadata_only_republish_accepted(self, tmp_path: Path) -> None:
        store = RegistryStore(tmp_path)
        store.publish(*_package(description="Old"))
        result = store.publish(*_package(description="New", created_at="2027-01-01T00:00:00.000Z"))

        stored = load_manifest(store.manifest_path("Button", "1.0.0"))
        assert not result.created
        assert stored.description == "New"
        assert stored.created_at == "2026-01-01T00:00:00.000Z"
        assert store.read_index().components["Button"].description == "New"

    def test_content_change_rejected(self, tmp_path: Path) -> None:
        store = RegistryStore(tmp_path)
        original, archive = _package()
        store.publish(original, archive)

        with pytest.raises(ImmutableContentChanged) as exc_info:
            store.publish(*_package(php=b"<?php echo 'changed'; ?>"))

        assert "files" in exc_info.value.fields
        assert "checksum" in exc_info.value.fields
        assert exc_info.value.component == "Button"
        # Prior artifacts untouched
        assert store.archive_path("Button", "1.0.0").read_bytes() == archive.data
        assert load_manifest(store.manifest_path("Button", "1.0.0")) == original


class TestStaticAssets:
    def test_health_and_headers(self, tmp_path: Path) -> None:
        store = RegistryStore(tmp_path)
        written = store.write_static_assets()
        assert [p.name for p in written] == ["health.json", "_headers"]

        health = orjson.loads((tmp_path / "health.json").read_bytes())
        assert health["status"] == "ok"
        assert health["ts"]

        headers = (tmp_path / "_headers").read_text()
        assert f"Cache-Control: {CACHE_INDEX}" in headers
        assert f"Cache-Control: {CACHE_IMMUTABLE}" in headers

    def test_public_key_copied(self, tmp_path: Path) -> None:
        key = tmp_path / "key.pem"
        key.write_text("-----BEGIN PUBLIC KEY-----\nMFkw\n-----END PUBLIC KEY-----\n")
        store = RegistryStore(tmp_path / "registry")
        store.write_static_assets(key)
        assert (tmp_path / "registry" / "public-key.pem").read_text() == key.read_text()

    def test_non_pem_key_rejected(self, tmp_path: Path) -> None:
        key = tmp_path / "key.txt"
        key.write_text("not a key")
        with pytest.raises(ValueError, match="PEM"):
            RegistryStore(tmp_path / "registry").write_static_assets(key)
