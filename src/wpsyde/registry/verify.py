"""Local registry verification.

Checks a registry directory before deployment:
1. index.json parses and every indexed version has manifest.json + component.zip
2. Archive digest equals manifests' archives.integrity and checksum
3. Every manifest file is in the archive with a matching integrity tag
4. health.json, _headers and public-key.pem (when present) are well-formed
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import orjson

from wpsyde.errors import ExtractionFailed, WpsydeError
from wpsyde.registry.archive import read_component_entries
from wpsyde.registry.integrity import compute_file_integrity, integrity_matches
from wpsyde.registry.manifest import load_manifest
from wpsyde.registry.naming import component_prefix
from wpsyde.registry.store import (
    CACHE_IMMUTABLE,
    CACHE_INDEX,
    HEADERS_FILENAME,
    HEALTH_FILENAME,
    PEM_PUBLIC_KEY_HEADER,
    PUBLIC_KEY_FILENAME,
    RegistryStore,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


def verify_version(store: RegistryStore, name: str, version: str) -> list[str]:
    """Verify one published (name, version). Returns error messages."""
    errors: list[str] = []
    label = f"{name}@{version}"

    manifest_path = store.manifest_path(name, version)
    archive_path = store.archive_path(name, version)

    try:
        manifest = load_manifest(manifest_path)
    except WpsydeError as e:
        return [f"{label}: {e}"]

    if manifest.name != name or manifest.version != version:
        errors.append(
            f"{label}: manifest identifies as {manifest.name}@{manifest.version}"
        )

    if not manifest.is_published:
        errors.append(f"{label}: manifest has no archive integrity or checksum")

    if not archive_path.exists():
        errors.append(f"{label}: {archive_path.name} missing")
        return errors

    actual = compute_file_integrity(archive_path)
    if manifest.archive_integrity != actual:
        errors.append(
            f"{label}: archive integrity mismatch: expected {manifest.archive_integrity}, "
            f"got {actual}"
        )
    if manifest.checksum != actual:
        errors.append(f"{label}: checksum does not match archive digest")

    try:
        entries = read_component_entries(archive_path.read_bytes(), name)
    except ExtractionFailed as e:
        errors.append(f"{label}: {e}")
        return errors

    prefix = component_prefix(name)
    for entry in manifest.files:
        relative = entry.source_path.removeprefix(prefix)
        content = entries.get(relative)
        if content is None:
            errors.append(f"{label}: {entry.source_path} listed in manifest but not in archive")
            continue
        if not integrity_matches(content, entry.integrity):
            errors.append(f"{label}: integrity mismatch for {entry.source_path}")

    return errors


def verify_static_assets(root: Path) -> list[str]:
    errors: list[str] = []

    health_path = root / HEALTH_FILENAME
    if not health_path.exists():
        errors.append(f"{HEALTH_FILENAME} missing")
    else:
        try:
            health = orjson.loads(health_path.read_bytes())
        except orjson.JSONDecodeError as e:
            errors.append(f"{HEALTH_FILENAME} is not valid JSON: {e}")
        else:
            if not isinstance(health, dict) or health.get("status") != "ok" or not health.get("ts"):
                errors.append(f"{HEALTH_FILENAME} must contain status=ok and ts")

    headers_path = root / HEADERS_FILENAME
    if not headers_path.exists():
        errors.append(f"{HEADERS_FILENAME} missing")
    else:
        headers = headers_path.read_text()
        for directive in (CACHE_INDEX, CACHE_IMMUTABLE):
            if f"Cache-Control: {directive}" not in headers:
                errors.append(f"{HEADERS_FILENAME} lacks cache directive {directive!r}")

    key_path = root / PUBLIC_KEY_FILENAME
    if key_path.exists() and PEM_PUBLIC_KEY_HEADER not in key_path.read_text():
        errors.append(f"{PUBLIC_KEY_FILENAME} is not in PEM format")

    return errors


def verify_registry(root: Path) -> list[str]:
    """Verify a whole registry directory.

    Returns:
        List of validation error messages (empty if valid).
    """
    store = RegistryStore(root)
    errors: list[str] = []

    if not store.index_path.exists():
        return [f"{store.index_path.name} missing in {root}"]

    try:
        index = store.read_index()
    except WpsydeError as e:
        return [str(e)]

    if len(index) == 0:
        errors.append("index.json lists no components")

    for name, entry in index.components.items():
        for version in entry.versions:
            try:
                errors.extend(verify_version(store, name, version))
            except WpsydeError as e:
                errors.append(f"{name}@{version}: {e}")

    errors.extend(verify_static_assets(root))

    logger.info("Registry verification finished", extra={"error_count": len(errors)})
    return errors
