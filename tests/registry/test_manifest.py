"""Tests for manifest building and serialization."""

from __future__ import annotations

from typing import TYPE_CHECKING

import orjson
import pytest
from pydantic import ValidationError

from wpsyde.registry.integrity import compute_integrity
from wpsyde.registry.manifest import (
    Manifest,
    ManifestError,
    build_manifest,
    changed_immutable_fields,
    immutable_subset,
    load_manifest,
    save_manifest,
    with_archive,
)
from wpsyde.registry.source import ComponentSource, SourceFile

if TYPE_CHECKING:
    from pathlib import Path


def _source(name: str = "Button", **files: bytes) -> ComponentSource:
    files = files or {"component.php": b"<?php echo 1; ?>", "styles.css": b".btn{}"}
    return ComponentSource(
        name=name,
        files=[SourceFile(logical_name=k.replace("_", "."), content=v) for k, v in files.items()],
    )


class TestBuildManifest:
    """Tests for build_manifest function."""

    def test_one_entry_per_present_file(self) -> None:
        manifest = build_manifest(_source(), "1.0.0")
        assert [f.source_path for f in manifest.files] == [
            "template-parts/components/Button/component.php",
            "template-parts/components/Button/styles.css",
        ]

    def test_dest_paths_remapped(self) -> None:
        manifest = build_manifest(_source(), "1.0.0")
        assert [f.dest_path for f in manifest.files] == [
            "template-parts/components/Button/button.php",
            "template-parts/components/Button/Button.css",
        ]

    def test_integrity_per_file(self) -> None:
        manifest = build_manifest(_source(), "1.0.0")
        assert manifest.files[0].integrity == compute_integrity(b"<?php echo 1; ?>")
        assert manifest.files[1].integrity == compute_integrity(b".btn{}")

    def test_default_description(self) -> None:
        assert build_manifest(_source(), "1.0.0").description == "Button component for WordPress"

    def test_explicit_description(self) -> None:
        assert build_manifest(_source(), "1.0.0", "Clickable").description == "Clickable"

    def test_unpublished_until_archive_attached(self) -> None:
        manifest = build_manifest(_source(), "1.0.0")
        assert not manifest.is_published
        assert manifest.archives is None
        assert manifest.checksum == ""
        assert manifest.signature == ""
        assert manifest.dependencies == []
        assert manifest.pro is False

    def test_deterministic(self) -> None:
        """Same input bytes produce the same manifest."""
        a = build_manifest(_source(), "1.0.0", created_at="2026-01-01T00:00:00.000Z")
        b = build_manifest(_source(), "1.0.0", created_at="2026-01-01T00:00:00.000Z")
        assert a == b

    def test_invalid_version_rejected(self) -> None:
        with pytest.raises(ValidationError):
            build_manifest(_source(), "1.0")


class TestWithArchive:
    def test_sets_archive_and_checksum(self) -> None:
        tag = compute_integrity(b"zip bytes")
        manifest = with_archive(build_manifest(_source(), "1.0.0"), tag)
        assert manifest.archives is not None
        assert manifest.archives.zip == "component.zip"
        assert manifest.archive_integrity == tag
        assert manifest.checksum == tag
        assert manifest.is_published


class TestManifestSerialization:
    """JSON uses camelCase keys and round-trips through the model."""

    def test_camel_case_keys(self) -> None:
        manifest = with_archive(
            build_manifest(_source(), "1.0.0", created_at="2026-01-01T00:00:00.000Z"),
            compute_integrity(b"z"),
        )
        data = orjson.loads(manifest.to_json())
        assert set(data["files"][0]) == {"sourcePath", "destPath", "integrity"}
        assert data["createdAt"] == "2026-01-01T00:00:00.000Z"
        assert data["archives"]["zip"] == "component.zip"
        assert Manifest.from_json(manifest.to_json()) == manifest

    def test_none_fields_omitted(self) -> None:
        data = build_manifest(_source(), "1.0.0").to_dict()
        assert "author" not in data
        assert "archives" not in data

    def test_unknown_field_rejected(self) -> None:
        data = build_manifest(_source(), "1.0.0").to_dict()
        data["surprise"] = True
        with pytest.raises(ValidationError):
            Manifest.from_dict(data)

    def test_traversal_name_rejected(self) -> None:
        data = build_manifest(_source(), "1.0.0").to_dict()
        data["name"] = "../evil"
        with pytest.raises(ValidationError):
            Manifest.from_dict(data)

    def test_bad_integrity_rejected(self) -> None:
        data = build_manifest(_source(), "1.0.0").to_dict()
        data["files"][0]["integrity"] = "md5-abc"
        with pytest.raises(ValidationError):
            Manifest.from_dict(data)


class TestImmutableFields:
    """Only content-bearing fields count as changes."""

    def _published(self, **overrides: object) -> Manifest:
        manifest = with_archive(build_manifest(_source(), "1.0.0"), compute_integrity(b"z"))
        return manifest.model_copy(update=overrides)

    def test_metadata_change_allowed(self) -> None:
        old = self._published()
        new = self._published(description="New words", keywords=["ui"], author="Someone")
        assert changed_immutable_fields(old, new) == []

    def test_checksum_change_detected(self) -> None:
        old = self._published()
        new = self._published(checksum=compute_integrity(b"other"))
        assert changed_immutable_fields(old, new) == ["checksum"]

    def test_files_change_detected(self) -> None:
        old = self._published()
        new = with_archive(
            build_manifest(_source(component_php=b"<?php echo 2; ?>"), "1.0.0"),
            compute_integrity(b"z"),
        )
        assert "files" in changed_immutable_fields(old, new)

    def test_works_on_raw_dicts(self) -> None:
        old = self._published().to_dict()
        new = dict(old, signature="sig")
        assert changed_immutable_fields(old, new) == ["signature"]

    def test_subset_contains_only_immutable_keys(self) -> None:
        subset = immutable_subset(self._published())
        assert set(subset) <= {"version", "files", "archives", "checksum", "signature"}
        assert "description" not in subset


class TestLoadSave:
    def test_round_trip(self, tmp_path: Path) -> None:
        manifest = build_manifest(_source(), "1.0.0")
        path = tmp_path / "nested" / "manifest.json"
        save_manifest(manifest, path)
        assert load_manifest(path) == manifest

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestError, match="not found"):
            load_manifest(tmp_path / "manifest.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "manifest.json"
        path.write_text("{not json")
        with pytest.raises(ManifestError, match="not valid JSON"):
            load_manifest(path)

    def test_schema_violation(self, tmp_path: Path) -> None:
        path = tmp_path / "manifest.json"
        path.write_text('{"name": "Button"}')
        with pytest.raises(ManifestError, match="failed validation"):
            load_manifest(path)
