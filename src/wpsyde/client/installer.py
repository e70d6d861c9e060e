"""
Install/remove state machine for registry components.

Per component install:
    RESOLVING -> DOWNLOADING -> VERIFYING -> EXTRACTING -> RECORDED
with FAILED reachable from any state. Nothing is written under the
components directory before verification passes; extraction is staged in a
sibling temporary directory and committed by rename, so a failed install
leaves neither files nor an install-state record.

Batch installs run the single-install machine sequentially, one component
at a time, and collect per-component outcomes instead of aborting.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from wpsyde.client.config import InstalledComponent, Project
from wpsyde.client.registry_client import RegistryClient, verify_archive
from wpsyde.errors import ExtractionFailed, IntegrityMismatch, WpsydeError
from wpsyde.registry.archive import read_component_entries
from wpsyde.registry.index import RegistryIndex
from wpsyde.registry.integrity import compute_integrity
from wpsyde.registry.manifest import ARCHIVE_FILENAME, MANIFEST_FILENAME, Manifest
from wpsyde.registry.naming import component_prefix, dest_filename, sanitize_component_name
from wpsyde.registry.version import LATEST, validate_requested_version
from wpsyde.reporter import Reporter

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[int], bool]
ClockFn = Callable[[], str]


def _utc_now() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class InstallState(str, Enum):
    """Stage of a single component install."""

    RESOLVING = "resolving"
    DOWNLOADING = "downloading"
    VERIFYING = "verifying"
    EXTRACTING = "extracting"
    RECORDED = "recorded"
    FAILED = "failed"


@dataclass
class InstallOutcome:
    """Result of one component install.

    Attributes:
        name: Component name as requested.
        requested_version: Version as requested ("latest" or X.Y.Z).
        version: Resolved version, once known.
        state: Final state (RECORDED or FAILED).
        failed_in: State in which the failure occurred.
        error: Error raised, if any.
        files: Paths written under the components directory.
    """

    name: str
    requested_version: str = LATEST
    version: str | None = None
    state: InstallState = InstallState.RESOLVING
    failed_in: InstallState | None = None
    error: WpsydeError | None = None
    files: list[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is InstallState.RECORDED

    def advance(self, state: InstallState) -> None:
        logger.debug("%s: %s -> %s", self.name, self.state.value, state.value)
        self.state = state

    def fail(self, error: WpsydeError) -> None:
        self.failed_in = self.state
        self.error = error
        self.state = InstallState.FAILED


@dataclass
class BatchReport:
    """Per-component outcomes of a multi-component install."""

    outcomes: list[InstallOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def succeeded(self) -> list[InstallOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[InstallOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def ok(self) -> bool:
        return not self.cancelled and not self.failed


@dataclass
class RemoveOutcome:
    """Result of removing a component."""

    name: str
    removed: bool
    version: str | None = None
    warning: str | None = None


class Installer:
    """Installs and removes registry components in a theme project.

    Args:
        client: Registry client used for all network access.
        project: Loaded wpsyde.json and its location.
        reporter: User-facing output.
        clock: Returns the ISO timestamp recorded as installedAt.
    """

    def __init__(
        self,
        client: RegistryClient,
        project: Project,
        reporter: Reporter | None = None,
        clock: ClockFn | None = None,
    ) -> None:
        self._client = client
        self._project = project
        self._reporter = reporter or Reporter.quiet()
        self._clock = clock or _utc_now
        self._index: RegistryIndex | None = None

    async def _get_index(self) -> RegistryIndex:
        if self._index is None:
            self._index = await self._client.fetch_index()
        return self._index

    async def install(self, name: str, version: str = LATEST) -> InstallOutcome:
        """Run the install state machine for one component.

        Raises:
            WpsydeError: Whatever failed; the outcome is never RECORDED then.
        """
        outcome = InstallOutcome(name=name, requested_version=version)
        try:
            await self._run(outcome)
        except WpsydeError as e:
            outcome.fail(e)
            raise
        return outcome

    async def _run(self, outcome: InstallOutcome) -> None:
        reporter = self._reporter

        # RESOLVING: input validation precedes any network access
        name = sanitize_component_name(outcome.name)
        requested = validate_requested_version(outcome.requested_version)
        outcome.name = name
        reporter.heading(f"Adding {name}...")
        reporter.step("Fetching component information...")
        index = await self._get_index()
        outcome.version = index.resolve(name, requested)
        version = outcome.version
        reporter.step(f"Installing {name}@{version}")

        outcome.advance(InstallState.DOWNLOADING)
        reporter.step("Downloading manifest...")
        manifest = await self._client.fetch_manifest(name, version)
        reporter.step("Downloading component files...")
        data = await self._client.fetch_archive(
            name, version, progress=reporter.progress, locator=_archive_locator(manifest)
        )

        outcome.advance(InstallState.VERIFYING)
        verify_archive(manifest, data)
        files = _verified_files(manifest, data)

        outcome.advance(InstallState.EXTRACTING)
        reporter.step("Extracting component...")
        target = self._project.component_dir(name)
        backup = self._extract(manifest, files)

        try:
            self._record(name, version)
        except WpsydeError:
            _restore(target, backup)
            raise
        if backup is not None:
            shutil.rmtree(backup, ignore_errors=True)

        outcome.files = [target / filename for filename in files]
        outcome.advance(InstallState.RECORDED)
        reporter.success(f"Installed {name}@{version} into {target}")
        reporter.info(
            "Include it in your theme with: "
            f"get_template_part('template-parts/components/{name}/{name.lower()}')"
        )

    def _extract(self, manifest: Manifest, files: dict[str, bytes]) -> Path | None:
        """Write verified files into <componentsDir>/<name>/, all or nothing.

        Returns:
            The moved-aside previous install, if any, until the caller records.
        """
        name = manifest.name
        target = self._project.component_dir(name)
        components_dir = self._project.components_dir

        try:
            components_dir.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=f".{name}.", dir=components_dir))
        except OSError as e:
            raise ExtractionFailed(
                f"{name}: cannot create {components_dir}: {e}",
                component=name,
                version=manifest.version,
            ) from e

        backup: Path | None = None
        try:
            for filename, content in files.items():
                path = staging / filename
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(content)
            (staging / MANIFEST_FILENAME).write_bytes(manifest.to_json())

            if target.exists():
                backup = components_dir / f".{name}.previous"
                if backup.exists():
                    shutil.rmtree(backup)
                target.rename(backup)
            staging.rename(target)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            if backup is not None and backup.exists() and not target.exists():
                _move_back(backup, target)
            raise ExtractionFailed(
                f"{name}: failed to write component files: {e}",
                component=name,
                version=manifest.version,
            ) from e

        return backup

    def _record(self, name: str, version: str) -> None:
        """Save the install record; the in-memory state is unchanged on failure."""
        installed = self._project.config.installed
        previous = installed.get(name)
        installed[name] = InstalledComponent(version=version, installed_at=self._clock())
        try:
            self._project.save()
        except WpsydeError:
            if previous is None:
                del installed[name]
            else:
                installed[name] = previous
            raise

    async def install_many(self, names: list[str], version: str = LATEST) -> BatchReport:
        """Install components one by one; a failure never aborts the rest."""
        report = BatchReport()
        self._reporter.heading(f"Adding {len(names)} components...")
        for name in names:
            outcome = InstallOutcome(name=name, requested_version=version)
            try:
                await self._run(outcome)
            except WpsydeError as e:
                outcome.fail(e)
                self._reporter.error(f"Failed to add {name}: {e}")
            report.outcomes.append(outcome)

        self._report_summary(report)
        return report

    async def install_all(self, confirm: ConfirmFn) -> BatchReport:
        """Install every component in the index after confirmation.

        Args:
            confirm: Receives the component count; returns True to proceed.
        """
        index = await self._get_index()
        names = index.names
        if not names:
            self._reporter.warn("No components found in registry")
            return BatchReport()

        self._reporter.info("Found %d components to install", len(names))
        if not confirm(len(names)):
            self._reporter.warn("Installation cancelled.")
            return BatchReport(cancelled=True)

        return await self.install_many(names, LATEST)

    def _report_summary(self, report: BatchReport) -> None:
        total = len(report.outcomes)
        self._reporter.heading(f"Installed {len(report.succeeded)}/{total} components")
        for outcome in report.failed:
            stage = outcome.failed_in.value if outcome.failed_in else "unknown"
            self._reporter.info("  %s: failed while %s: %s", outcome.name, stage, outcome.error)

    def remove(self, name: str) -> RemoveOutcome:
        """Delete an installed component's directory and its state entry.

        Removing a component that is not installed is a warning, not an
        error, and leaves wpsyde.json untouched.
        """
        name = sanitize_component_name(name)
        config = self._project.config
        record = config.installed.get(name)
        if record is None:
            message = f'Component "{name}" is not installed'
            self._reporter.warn(message)
            return RemoveOutcome(name=name, removed=False, warning=message)

        self._reporter.heading(f"Removing {name}...")
        target = self._project.component_dir(name)
        if target.exists():
            try:
                shutil.rmtree(target)
            except OSError as e:
                raise ExtractionFailed(
                    f"{name}: cannot remove {target}: {e}", component=name, version=record.version
                ) from e
            self._reporter.success(f"Removed component directory: {target}")

        del config.installed[name]
        try:
            self._project.save()
        except WpsydeError:
            config.installed[name] = record
            raise
        self._reporter.success(f"Removed {name}")
        return RemoveOutcome(name=name, removed=True, version=record.version)


def _move_back(backup: Path, target: Path) -> None:
    try:
        backup.rename(target)
    except OSError:
        logger.warning("Could not restore previous install from %s", backup, exc_info=True)


def _restore(target: Path, backup: Path | None) -> None:
    """Undo a committed extraction whose install record could not be saved."""
    shutil.rmtree(target, ignore_errors=True)
    if backup is not None:
        _move_back(backup, target)


def _archive_locator(manifest: Manifest) -> str:
    """Archive filename within the version directory."""
    if manifest.archives is None:
        return ARCHIVE_FILENAME
    locator = manifest.archives.zip
    if "/" in locator or not locator:
        return ARCHIVE_FILENAME
    return locator


def _verified_files(manifest: Manifest, data: bytes) -> dict[str, bytes]:
    """Map installed filename -> content, checking every manifest entry.

    Raises:
        ExtractionFailed: If the archive is malformed or lacks a listed file.
        IntegrityMismatch: If a file's digest differs from the manifest.
    """
    name = manifest.name
    entries = read_component_entries(data, name)
    prefix = component_prefix(name)
    files: dict[str, bytes] = {}

    for entry in manifest.files:
        relative = entry.source_path.removeprefix(prefix)
        content = entries.get(relative)
        if content is None:
            raise ExtractionFailed(
                f"{name}@{manifest.version}: {entry.source_path} missing from archive",
                component=name,
                version=manifest.version,
            )
        actual = compute_integrity(content)
        if actual != entry.integrity:
            raise IntegrityMismatch(
                f"{name}@{manifest.version}: integrity mismatch for {entry.source_path}",
                component=name,
                version=manifest.version,
                expected=entry.integrity,
                actual=actual,
            )

    for relative, content in entries.items():
        files[dest_filename(name, relative)] = content

    return files
