"""Component version parsing and validation.

Version string format: semantic versioning,
    {major}.{minor}.{patch}[-{prerelease}][+{build}]

Example:
    1.0.0
    2.1.0-beta.1
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from wpsyde.errors import InvalidInput

LATEST = "latest"


@dataclass(frozen=True)
class ComponentVersion:
    """Parsed semantic version.

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
        prerelease: Pre-release identifier (e.g., "beta.1"), empty if none.
        build: Build metadata, empty if none.
        raw: Original version string.
    """

    major: int
    minor: int
    patch: int
    prerelease: str
    build: str
    raw: str

    def __str__(self) -> str:
        """Return the raw version string."""
        return self.raw


VERSION_PATTERN = re.compile(
    r"^"
    r"(?P<major>0|[1-9]\d*)\."
    r"(?P<minor>0|[1-9]\d*)\."
    r"(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"$"
)


def parse_version(version_str: str) -> ComponentVersion:
    """Parse a semantic version string.

    Raises:
        InvalidInput: If the string is not a valid semantic version.
    """
    match = VERSION_PATTERN.match(version_str)
    if match is None:
        msg = f"Invalid version string: {version_str!r}. Expected format: X.Y.Z"
        raise InvalidInput(msg, version=version_str)
    return ComponentVersion(
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(match.group("patch")),
        prerelease=match.group("prerelease") or "",
        build=match.group("build") or "",
        raw=version_str,
    )


def is_version(value: str) -> bool:
    return VERSION_PATTERN.match(value) is not None


def validate_requested_version(version_str: str) -> str:
    """Validate a user-requested version, allowing the ``latest`` alias."""
    if version_str == LATEST:
        return version_str
    return parse_version(version_str).raw

