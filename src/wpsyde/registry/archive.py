"""Deterministic component archives.

component.zip layout mirrors the theme install path:

    template-parts/components/Button/component.php
    template-parts/components/Button/styles.css
    ...

Entries are written in manifest order with a fixed timestamp and fixed
permissions, so identical inputs always produce byte-identical archives and
the archive digest is stable across rebuilds.
"""

from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from wpsyde.errors import ExtractionFailed, MissingSourceFile
from wpsyde.registry.integrity import compute_integrity
from wpsyde.registry.naming import component_prefix

if TYPE_CHECKING:
    from wpsyde.registry.manifest import Manifest
    from wpsyde.registry.source import ComponentSource

# Earliest timestamp representable in a zip header
FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
FILE_MODE = 0o100644
MAX_ENTRY_BYTES = 16 * 1024 * 1024


@dataclass(frozen=True)
class ArchiveResult:
    """Built archive blob and its integrity tag."""

    data: bytes
    integrity: str

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def build_archive(source: ComponentSource, manifest: Manifest) -> ArchiveResult:
    """Package every manifest file into a deterministic zip.

    Args:
        source: Component file set the manifest was built from.
        manifest: Manifest listing the files to include.

    Returns:
        ArchiveResult with the zip bytes and its digest.

    Raises:
        MissingSourceFile: If a manifest entry has no matching source file.
    """
    prefix = component_prefix(source.name)
    buffer = io.BytesIO()

    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for entry in manifest.files:
            if not entry.source_path.startswith(prefix):
                msg = f"{source.name}: manifest path {entry.source_path} is outside {prefix}"
                raise MissingSourceFile(msg, component=source.name, version=manifest.version)

            logical_name = entry.source_path[len(prefix) :]
            source_file = source.get(logical_name)
            if source_file is None:
                msg = f"{source.name}: {logical_name} is listed in the manifest but missing"
                raise MissingSourceFile(msg, component=source.name, version=manifest.version)

            info = zipfile.ZipInfo(entry.source_path, date_time=FIXED_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = FILE_MODE << 16
            info.create_system = 3
            zf.writestr(info, source_file.content)

    data = buffer.getvalue()
    return ArchiveResult(data=data, integrity=compute_integrity(data))


def _is_safe_relative(name: str) -> bool:
    pure = PurePosixPath(name)
    if not name or pure.is_absolute() or "\\" in name:
        return False
    return ".." not in pure.parts and "." not in pure.parts


def read_component_entries(data: bytes, component: str) -> dict[str, bytes]:
    """Read the files of one component from an archive blob.

    Only entries under the component's path prefix are returned, keyed by
    their path relative to that prefix. Directory entries are skipped.

    Raises:
        ExtractionFailed: If the blob is not a readable zip or an entry name
            would escape the component directory.
    """
    prefix = component_prefix(component)
    entries: dict[str, bytes] = {}

    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            for info in zf.infolist():
                if info.is_dir() or not info.filename.startswith(prefix):
                    continue
                relative = info.filename[len(prefix) :]
                if not _is_safe_relative(relative):
                    msg = f"{component}: unsafe archive entry {info.filename!r}"
                    raise ExtractionFailed(msg, component=component)
                if info.file_size > MAX_ENTRY_BYTES:
                    msg = f"{component}: archive entry {info.filename} exceeds size limit"
                    raise ExtractionFailed(msg, component=component)
                entries[relative] = zf.read(info)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as e:
        raise ExtractionFailed(f"{component}: malformed archive: {e}", component=component) from e

    return entries
