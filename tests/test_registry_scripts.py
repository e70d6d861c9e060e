"""Tests for scripts/build_registry.py, verify_registry.py and check_immutable_changes.py."""

from __future__ import annotations

import io
import shutil
import subprocess
from typing import TYPE_CHECKING

import orjson
import pytest
from scripts.build_registry import main as build_main
from scripts.check_immutable_changes import (
    check_changes,
    check_manifest,
    is_manifest_path,
)
from scripts.check_immutable_changes import main as check_main
from scripts.verify_registry import main as verify_main

from wpsyde.registry.store import RegistryStore
from wpsyde.reporter import Reporter

if TYPE_CHECKING:
    from pathlib import Path


def _build(components_dir: Path, registry: Path, *extra: str) -> tuple[int, str]:
    out = io.StringIO()
    argv = ["--components-dir", str(components_dir), "--registry-dir", str(registry), *extra]
    code = build_main(argv, reporter=Reporter(out, color=False))
    return code, out.getvalue()


class TestBuildScript:
    def test_builds_and_verifies(self, tmp_path: Path, components_dir: Path) -> None:
        registry = tmp_path / "registry"
        code, output = _build(components_dir, registry)
        assert code == 0
        assert "Registry build complete: 2 components at 1.0.0 (2 new)" in output
        assert verify_main(["--registry-dir", str(registry)]) == 0

    def test_only_and_version(self, tmp_path: Path, components_dir: Path) -> None:
        registry = tmp_path / "registry"
        code, _ = _build(components_dir, registry, "--only", "Card", "--version", "2.0.0")
        assert code == 0
        assert RegistryStore(registry).read_index().resolve("Card") == "2.0.0"
        assert "Button" not in RegistryStore(registry).read_index()

    def test_immutable_violation_fails(self, tmp_path: Path, components_dir: Path) -> None:
        registry = tmp_path / "registry"
        assert _build(components_dir, registry)[0] == 0
        (components_dir / "Card" / "component.php").write_text("<?php echo 'changed'; ?>")
        code, output = _build(components_dir, registry)
        assert code == 1
        assert "ERROR Build failed: Card@1.0.0 is already published" in output

    def test_missing_components_dir(self, tmp_path: Path) -> None:
        code, output = _build(tmp_path / "nope", tmp_path / "registry")
        assert code == 1
        assert "Components directory not found" in output

    def test_public_key(self, tmp_path: Path, components_dir: Path) -> None:
        key = tmp_path / "public.pem"
        key.write_text("-----BEGIN PUBLIC KEY-----\nMFkw\n-----END PUBLIC KEY-----\n")
        registry = tmp_path / "registry"
        assert _build(components_dir, registry, "--public-key", str(key))[0] == 0
        assert (registry / "public-key.pem").exists()


class TestVerifyScript:
    def test_tampered_registry_fails(
        self, registry_dir: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        archive = RegistryStore(registry_dir).archive_path("Card", "1.0.0")
        archive.write_bytes(b"junk")
        assert verify_main(["--registry-dir", str(registry_dir)]) == 1
        assert "FAILED" in capsys.readouterr().out


class TestIsManifestPath:
    @pytest.mark.parametrize(
        "path",
        [
            "components/Button/1.0.0/manifest.json",
            "registry/components/Button/1.10.2/manifest.json",
            "components/Button/2.1.0-beta.1/manifest.json",
            "registry/components/Card/1.0.0+build.5/manifest.json",
        ],
    )
    def test_matches(self, path: str) -> None:
        assert is_manifest_path(path)

    @pytest.mark.parametrize(
        "path",
        [
            "components/Button/component.php",
            "registry/index.json",
            "components/Button/latest/manifest.json",
            "components/Button/1.0/manifest.json",
            "src/components/Button/1.0.0/manifest.json",
        ],
    )
    def test_ignores(self, path: str) -> None:
        assert not is_manifest_path(path)


class TestCheckManifest:
    def _manifest(self, **overrides: object) -> dict[str, object]:
        base: dict[str, object] = {
            "name": "Button",
            "version": "1.0.0",
            "description": "Button component for WordPress",
            "files": [{"sourcePath": "a", "destPath": "b", "integrity": "sha256-x"}],
            "checksum": "sha256-x",
        }
        base.update(overrides)
        return base

    def test_new_file(self) -> None:
        result = check_manifest("p", "A", None, self._manifest())
        assert result.note == "new file"
        assert result.changed_fields == []

    def test_metadata_only(self) -> None:
        result = check_manifest("p", "M", self._manifest(), self._manifest(description="New"))
        assert result.changed_fields == []

    def test_checksum_changed(self) -> None:
        result = check_manifest("p", "M", self._manifest(), self._manifest(checksum="sha256-y"))
        assert result.changed_fields == ["checksum"]


def _git(repo: Path, *args: str) -> None:
    subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True)


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
class TestCheckChangesInRepo:
    """End-to-end against a throwaway git repository."""

    @pytest.fixture()
    def repo(self, tmp_path: Path, registry_dir: Path) -> Path:
        repo = tmp_path / "repo"
        shutil.copytree(registry_dir, repo / "registry")
        _git(repo, "init", "-q", "-b", "main")
        _git(repo, "config", "user.email", "ci@example.com")
        _git(repo, "config", "user.name", "CI")
        _git(repo, "add", ".")
        _git(repo, "commit", "-q", "-m", "publish 1.0.0")
        _git(repo, "checkout", "-q", "-b", "feature")
        return repo

    def _edit_manifest(self, repo: Path, **changes: object) -> None:
        path = repo / "registry/components/Button/1.0.0/manifest.json"
        data = orjson.loads(path.read_bytes())
        data.update(changes)
        path.write_bytes(orjson.dumps(data))
        _git(repo, "commit", "-q", "-am", "edit")

    def test_metadata_change_passes(self, repo: Path) -> None:
        self._edit_manifest(repo, description="Better words")
        results = check_changes("main", "HEAD", repo)
        assert [r.path for r in results] == ["registry/components/Button/1.0.0/manifest.json"]
        assert results[0].changed_fields == []
        assert check_main(["--base", "main", "--head", "HEAD", "--repo", str(repo)]) == 0

    def test_content_change_fails(self, repo: Path) -> None:
        self._edit_manifest(repo, checksum="sha256-forged")
        assert check_main(["--base", "main", "--head", "HEAD", "--repo", str(repo)]) == 1

    def test_env_refs(self, repo: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        self._edit_manifest(repo, signature="sig")
        monkeypatch.setenv("GITHUB_BASE_REF", "main")
        monkeypatch.setenv("GITHUB_SHA", "HEAD")
        assert check_main(["--repo", str(repo)]) == 1

    def test_prerelease_manifest_checked(self, repo: Path) -> None:
        beta = "registry/components/Button/2.1.0-beta.1/manifest.json"
        _git(repo, "checkout", "-q", "main")
        data = orjson.loads((repo / "registry/components/Button/1.0.0/manifest.json").read_bytes())
        data["version"] = "2.1.0-beta.1"
        (repo / beta).parent.mkdir()
        (repo / beta).write_bytes(orjson.dumps(data))
        _git(repo, "add", ".")
        _git(repo, "commit", "-q", "-m", "publish 2.1.0-beta.1")
        _git(repo, "checkout", "-q", "-b", "beta-edit")

        data["checksum"] = "sha256-forged"
        (repo / beta).write_bytes(orjson.dumps(data))
        _git(repo, "commit", "-q", "-am", "edit beta")

        results = check_changes("main", "HEAD", repo)
        assert [(r.path, r.changed_fields) for r in results] == [(beta, ["checksum"])]
        assert check_main(["--base", "main", "--head", "HEAD", "--repo", str(repo)]) == 1
