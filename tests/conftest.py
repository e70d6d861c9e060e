"""Shared fixtures: component sources, built registries and theme projects."""

from __future__ import annotations

from pathlib import Path

import pytest

from wpsyde.client.config import Project, ProjectConfig, save_config
from wpsyde.registry.builder import BuildConfig, build_registry

BUTTON_FILES: dict[str, bytes] = {
    "component.php": (
        b"<?php\n$label = $args['label'] ?? 'Click';\n?>\n"
        b"<button class=\"btn\"><?= esc_html($label) ?></button>\n"
    ),
    "styles.css": b".btn { padding: 0.5rem 1rem; }\n",
    "enhancer.js": b"document.querySelectorAll('.btn').forEach((b) => b.dataset.ready = '1');\n",
    "example.php": b"<?php get_template_part('template-parts/components/Button/button'); ?>\n",
    "README.md": b"# Button\n\nA button.\n",
}

CARD_FILES: dict[str, bytes] = {
    "component.php": b"<?php\n?>\n<div class=\"card\"><?= $args['body'] ?? '' ?></div>\n",
    "styles.css": b".card { border: 1px solid #ddd; }\n",
}


def write_component(components_dir: Path, name: str, files: dict[str, bytes]) -> Path:
    """Create components/<name>/ with the given files."""
    component_dir = components_dir / name
    component_dir.mkdir(parents=True, exist_ok=True)
    for filename, content in files.items():
        (component_dir / filename).write_bytes(content)
    return component_dir


@pytest.fixture()
def components_dir(tmp_path: Path) -> Path:
    """Source tree with Button (all files) and Card (php + css)."""
    root = tmp_path / "components"
    write_component(root, "Button", BUTTON_FILES)
    write_component(root, "Card", CARD_FILES)
    return root


@pytest.fixture()
def registry_dir(tmp_path: Path, components_dir: Path) -> Path:
    """Registry built from components_dir at 1.0.0."""
    root = tmp_path / "registry"
    build_registry(BuildConfig(components_dir=components_dir, registry_dir=root, version="1.0.0"))
    return root


@pytest.fixture()
def project(tmp_path: Path) -> Project:
    """Theme project with a default wpsyde.json."""
    path = tmp_path / "theme-project" / "wpsyde.json"
    config = ProjectConfig(registry="http://registry.invalid")
    save_config(config, path)
    return Project(path=path, config=config)


@pytest.fixture()
def make_component():
    """Factory writing an extra component source directory."""
    return write_component
