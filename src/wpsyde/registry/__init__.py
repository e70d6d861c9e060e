"""Component registry packaging.

Implements the registry side of the distribution protocol:
- Manifest builder with per-file sha256 integrity tags
- Deterministic component archives
- Versioned registry store with content immutability
- index.json merge rules
"""

from wpsyde.registry.archive import ArchiveResult, build_archive, read_component_entries
from wpsyde.registry.builder import BuildConfig, BuildReport, build_registry, package_component
from wpsyde.registry.index import IndexEntry, RegistryIndex, load_index, save_index
from wpsyde.registry.integrity import compute_file_integrity, compute_integrity, integrity_matches
from wpsyde.registry.manifest import (
    IMMUTABLE_FIELDS,
    Manifest,
    ManifestArchives,
    ManifestError,
    ManifestFile,
    build_manifest,
    changed_immutable_fields,
    immutable_subset,
    load_manifest,
    save_manifest,
    with_archive,
)
from wpsyde.registry.naming import dest_filename, sanitize_component_name
from wpsyde.registry.source import ComponentSource, SourceFile, load_component_source
from wpsyde.registry.store import PublishResult, RegistryStore
from wpsyde.registry.verify import verify_registry
from wpsyde.registry.version import ComponentVersion, parse_version

__all__ = [
    "IMMUTABLE_FIELDS",
    "ArchiveResult",
    "BuildConfig",
    "BuildReport",
    "ComponentSource",
    "ComponentVersion",
    "IndexEntry",
    "Manifest",
    "ManifestArchives",
    "ManifestError",
    "ManifestFile",
    "PublishResult",
    "RegistryIndex",
    "RegistryStore",
    "SourceFile",
    "build_archive",
    "build_manifest",
    "build_registry",
    "changed_immutable_fields",
    "compute_file_integrity",
    "compute_integrity",
    "dest_filename",
    "immutable_subset",
    "integrity_matches",
    "load_component_source",
    "load_index",
    "load_manifest",
    "package_component",
    "parse_version",
    "read_component_entries",
    "sanitize_component_name",
    "save_index",
    "save_manifest",
    "verify_registry",
    "with_archive",
]
