"""Registry build pipeline.

Packages every component directory under components/ at one version:
    load source -> build manifest -> build archive -> publish -> merge index

Any packaging error (missing primary source, immutable content change)
aborts the build; nothing is skipped silently.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from wpsyde.registry.archive import build_archive
from wpsyde.registry.index import utc_now_iso
from wpsyde.registry.manifest import build_manifest, with_archive
from wpsyde.registry.source import discover_components, load_component_source
from wpsyde.registry.store import PublishResult, RegistryStore
from wpsyde.registry.version import parse_version
from wpsyde.reporter import Reporter

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


class BuildError(Exception):
    """Raised when a build selects no components."""


@dataclass
class BuildConfig:
    """Registry build options.

    Attributes:
        components_dir: Directory holding one sub-directory per component.
        registry_dir: Output registry root.
        version: Version assigned to every packaged component.
        only: Restrict the build to these component names.
        public_key: Optional PEM file copied to the registry root.
    """

    components_dir: Path
    registry_dir: Path
    version: str = "1.0.0"
    only: list[str] = field(default_factory=list)
    public_key: Path | None = None

    def __post_init__(self) -> None:
        parse_version(self.version)


@dataclass
class BuildReport:
    """Summary of a registry build."""

    version: str
    published: list[PublishResult] = field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [r.manifest.name for r in self.published]

    @property
    def created_count(self) -> int:
        return sum(1 for r in self.published if r.created)


def package_component(
    store: RegistryStore,
    components_dir: Path,
    name: str,
    version: str,
    *,
    now: str | None = None,
) -> PublishResult:
    """Package and publish a single component version."""
    source = load_component_source(components_dir, name)
    manifest = build_manifest(source, version, created_at=now or utc_now_iso())
    archive = build_archive(source, manifest)
    manifest = with_archive(manifest, archive.integrity)
    return store.publish(manifest, archive, updated_at=now)


def build_registry(config: BuildConfig, reporter: Reporter | None = None) -> BuildReport:
    """Package all selected components into the registry directory.

    Raises:
        BuildError: If no components match.
        MissingSourceFile: If a component lacks its primary template.
        ImmutableContentChanged: If a published version's content would change.
    """
    reporter = reporter or Reporter.quiet()
    store = RegistryStore(config.registry_dir)

    names = discover_components(config.components_dir, config.only or None)
    if not names:
        wanted = ", ".join(config.only) if config.only else "any"
        raise BuildError(f"No components found matching: {wanted}")

    reporter.heading(f"Building registry {config.registry_dir} at version {config.version}")
    reporter.info("Found %d components to build", len(names))

    report = BuildReport(version=config.version)
    now = utc_now_iso()
    for name in names:
        reporter.step(f"Packaging {name}@{config.version}...")
        result = package_component(store, config.components_dir, name, config.version, now=now)
        report.published.append(result)
        state = "published" if result.created else "unchanged content, metadata refreshed"
        reporter.success(f"{name}@{config.version} {state}")

    store.write_static_assets(config.public_key)

    index = store.read_index()
    reporter.success(f"Updated {store.index_path.name} with {len(index)} components")
    logger.info(
        "Registry build complete",
        extra={"components": len(report.published), "created": report.created_count},
    )
    return report
