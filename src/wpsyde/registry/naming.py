"""Component naming rules and the destination filename remap.

The remap table is shared by the manifest builder (destPath) and the
installer (extracted filenames) so both sides agree on every filename.
"""

from __future__ import annotations

import re

from wpsyde.errors import InvalidInput

# Logical source files in archive/manifest order; component.php is required
PRIMARY_SOURCE = "component.php"
SOURCE_FILES: tuple[str, ...] = (
    "component.php",
    "styles.css",
    "enhancer.js",
    "example.php",
    "README.md",
)

COMPONENTS_PREFIX = "template-parts/components"

_STRIPPED_CHARS = re.compile(r'[<>:"|?*\x00-\x1f\x7f]')
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_component_name(name: str) -> str:
    """Validate a component name for use as a path segment.

    Strips characters that are invalid in filenames, then rejects empty
    names, control characters, separators and traversal sequences.

    Raises:
        InvalidInput: If the name is unusable.
    """
    if not isinstance(name, str):
        raise InvalidInput("Component name must be a string")

    if _CONTROL_CHARS.search(name):
        raise InvalidInput(
            f"Invalid component name {name!r}: contains control characters",
            component=name,
        )

    sanitized = _STRIPPED_CHARS.sub("", name).strip()

    if not sanitized or sanitized.isspace():
        raise InvalidInput(f"Invalid component name {name!r}: empty", component=name)

    if ".." in sanitized or "//" in sanitized:
        raise InvalidInput(
            f"Invalid component name {name!r}: contains dangerous characters or patterns",
            component=name,
        )

    if "/" in sanitized or "\\" in sanitized:
        raise InvalidInput(
            f"Invalid component name {name!r}: contains path separator",
            component=name,
        )

    if sanitized in (".", ".."):
        raise InvalidInput(f"Invalid component name {name!r}: special directory", component=name)

    return sanitized


def dest_filename(component: str, logical_name: str) -> str:
    """Map a logical source filename to its installed filename."""
    if logical_name == "component.php":
        return f"{component.lower()}.php"
    if logical_name == "styles.css":
        return f"{component}.css"
    if logical_name == "enhancer.js":
        return f"{component.lower()}.js"
    return logical_name


def component_prefix(component: str) -> str:
    """Archive/theme path prefix for a component, with trailing slash."""
    return f"{COMPONENTS_PREFIX}/{component}/"


def source_path(component: str, logical_name: str) -> str:
    return component_prefix(component) + logical_name


def dest_path(component: str, logical_name: str) -> str:
    return component_prefix(component) + dest_filename(component, logical_name)
