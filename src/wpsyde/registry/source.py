"""Component source file sets.

A component source directory looks like:

    components/Button/
        component.php      (required)
        styles.css
        enhancer.js
        example.php
        README.md

Only the logical files in naming.SOURCE_FILES are packaged; anything else in
the directory is ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from wpsyde.errors import MissingSourceFile
from wpsyde.registry.naming import PRIMARY_SOURCE, SOURCE_FILES, sanitize_component_name

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceFile:
    """One logical file of a component.

    Attributes:
        logical_name: Filename inside the component directory (e.g. "styles.css").
        content: Raw file bytes.
    """

    logical_name: str
    content: bytes


@dataclass
class ComponentSource:
    """Ordered file set of a single component."""

    name: str
    files: list[SourceFile] = field(default_factory=list)

    @property
    def logical_names(self) -> list[str]:
        return [f.logical_name for f in self.files]

    def get(self, logical_name: str) -> SourceFile | None:
        for source_file in self.files:
            if source_file.logical_name == logical_name:
                return source_file
        return None


def discover_components(components_dir: Path, only: list[str] | None = None) -> list[str]:
    """List component directory names, sorted, optionally filtered.

    Raises:
        FileNotFoundError: If components_dir doesn't exist.
    """
    if not components_dir.is_dir():
        msg = f"Components directory not found: {components_dir}"
        raise FileNotFoundError(msg)

    names = sorted(p.name for p in components_dir.iterdir() if p.is_dir())
    if only:
        wanted = set(only)
        names = [n for n in names if n in wanted]
    return names


def load_component_source(components_dir: Path, name: str) -> ComponentSource:
    """Read a component's logical files from disk.

    Optional files that are absent are omitted; the primary template is
    required.

    Raises:
        InvalidInput: If the directory name is not a valid component name.
        MissingSourceFile: If component.php is absent.
    """
    name = sanitize_component_name(name)
    component_dir = components_dir / name

    primary = component_dir / PRIMARY_SOURCE
    if not primary.is_file():
        msg = f"{name}: required source file {PRIMARY_SOURCE} not found in {component_dir}"
        raise MissingSourceFile(msg, component=name)

    files: list[SourceFile] = []
    for logical_name in SOURCE_FILES:
        path = component_dir / logical_name
        if not path.is_file():
            logger.debug("Optional file %s absent for %s", logical_name, name)
            continue
        files.append(SourceFile(logical_name=logical_name, content=path.read_bytes()))

    return ComponentSource(name=name, files=files)
