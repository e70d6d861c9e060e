#!/usr/bin/env python3
"""Block content changes to published component manifests.

Compares every component manifest.json touched between a base ref and the
current ref. Changes to mutable metadata (description, keywords, ...) and
formatting are allowed; any change to an immutable field fails the check.

Refs come from the CI environment:
    GITHUB_BASE_REF (default: main)
    GITHUB_SHA      (default: HEAD)

Exit code 0 = no immutable changes; 1 = immutable content changed.
"""

from __future__ import annotations

import argparse
import os
import re
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import orjson

from wpsyde.registry.manifest import IMMUTABLE_FIELDS, changed_immutable_fields
from wpsyde.registry.version import is_version

MANIFEST_PATH_PATTERN = re.compile(
    r"^(registry/)?components/[^/]+/(?P<version>[^/]+)/manifest\.json$"
)

GIT_TIMEOUT_S = 30


@dataclass
class ManifestChange:
    """Result of checking one changed manifest."""

    path: str
    status: str
    changed_fields: list[str]
    note: str = ""


def _git(*args: str, cwd: Path | None = None) -> str:
    result = subprocess.run(
        ["git", *args],
        capture_output=True,
        text=True,
        check=True,
        timeout=GIT_TIMEOUT_S,
        cwd=cwd,
    )
    return result.stdout


def is_manifest_path(path: str) -> bool:
    """True for components/<Name>/<semver>/manifest.json, optionally under registry/."""
    match = MANIFEST_PATH_PATTERN.match(path)
    return match is not None and is_version(match.group("version"))


def changed_manifest_paths(
    base_ref: str, head_ref: str, cwd: Path | None = None
) -> list[tuple[str, str]]:
    """List (status, path) of added/modified component manifests."""
    diff = _git("diff", "--name-status", f"{base_ref}...{head_ref}", cwd=cwd)
    changes: list[tuple[str, str]] = []
    for line in diff.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        status, path = parts[0], parts[-1]
        if status[0] in ("A", "M", "R") and is_manifest_path(path):
            changes.append((status[0], path))
    return changes


def read_base_manifest(
    base_ref: str, path: str, cwd: Path | None = None
) -> dict[str, Any] | None:
    """Manifest content at base_ref, or None if it did not exist there."""
    try:
        content = _git("show", f"{base_ref}:{path}", cwd=cwd)
    except subprocess.CalledProcessError:
        return None
    return orjson.loads(content)


def check_manifest(
    path: str,
    status: str,
    old: dict[str, Any] | None,
    new: dict[str, Any],
) -> ManifestChange:
    if old is None:
        return ManifestChange(path, status, [], note="new file")
    return ManifestChange(path, status, changed_immutable_fields(old, new))


def check_changes(base_ref: str, head_ref: str, repo: Path) -> list[ManifestChange]:
    results: list[ManifestChange] = []
    for status, path in changed_manifest_paths(base_ref, head_ref, cwd=repo):
        old = read_base_manifest(base_ref, path, cwd=repo)
        new = orjson.loads((repo / path).read_bytes())
        results.append(check_manifest(path, status, old, new))
    return results


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check published manifests for immutable changes.")
    parser.add_argument(
        "--base",
        default=os.environ.get("GITHUB_BASE_REF") or "main",
        help="Base ref (default: $GITHUB_BASE_REF or main)",
    )
    parser.add_argument(
        "--head",
        default=os.environ.get("GITHUB_SHA") or "HEAD",
        help="Current ref (default: $GITHUB_SHA or HEAD)",
    )
    parser.add_argument("--repo", type=Path, default=Path("."), help="Repository root")
    args = parser.parse_args(argv)

    print("Checking for meaningful changes in component manifests...\n")
    try:
        results = check_changes(args.base, args.head, args.repo)
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError) as e:
        print(f"ERROR: git diff failed: {e}")
        return 1
    except orjson.JSONDecodeError as e:
        print(f"ERROR: manifest is not valid JSON: {e}")
        return 1

    violations = 0
    for result in results:
        print(f"  {result.path} ({result.status})")
        if result.note:
            print(f"    OK {result.note}, no immutability concerns")
        elif result.changed_fields:
            violations += 1
            print(f"    IMMUTABLE CONTENT CHANGED: {', '.join(result.changed_fields)}")
        else:
            print("    OK only formatting/metadata changes")

    if violations:
        print("\nFAILED: immutable changes detected.")
        print("The following fields must never change in published versions:")
        for field in IMMUTABLE_FIELDS:
            print(f"  - {field}")
        return 1

    print("\nPASSED: no immutable changes detected")
    return 0


if __name__ == "__main__":
    sys.exit(main())
