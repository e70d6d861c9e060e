"""
Error taxonomy for registry packaging and component installation.

Packaging-side errors (ImmutableContentChanged, MissingSourceFile) abort the
publish step that raised them. Client-side errors abort only the affected
component install; batch installs collect them per component.
"""

from __future__ import annotations


class WpsydeError(Exception):
    """Base exception for all registry and install operations.

    Attributes:
        component: Offending component name, if known.
        version: Offending version string, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        component: str | None = None,
        version: str | None = None,
    ) -> None:
        super().__init__(message)
        self.component = component
        self.version = version


class InvalidInput(WpsydeError, ValueError):
    """Raised for a malformed component name or version string."""


class ConfigError(WpsydeError):
    """Raised when wpsyde.json is missing, cannot be parsed or cannot be written."""


class ComponentNotFound(WpsydeError):
    """Raised when a component is absent from the registry index."""


class VersionNotFound(WpsydeError):
    """Raised when a requested version was never published."""


class RegistryUnavailable(WpsydeError):
    """Raised on non-200 responses or HTML served where JSON was expected."""


class DownloadFailed(WpsydeError):
    """Raised on network errors, timeouts, or a failed archive download."""


class IntegrityMismatch(WpsydeError):
    """Raised when a recomputed digest differs from the published one."""

    def __init__(
        self,
        message: str,
        *,
        component: str | None = None,
        version: str | None = None,
        expected: str | None = None,
        actual: str | None = None,
    ) -> None:
        super().__init__(message, component=component, version=version)
        self.expected = expected
        self.actual = actual


class ExtractionFailed(WpsydeError):
    """Raised for a malformed archive or a failed destination write."""


class MissingSourceFile(WpsydeError):
    """Raised when a component's required source file is absent at package time."""


class ImmutableContentChanged(WpsydeError):
    """Raised when a republish would alter content-bearing manifest fields.

    Attributes:
        fields: Names of the immutable fields whose values differ.
    """

    def __init__(
        self,
        message: str,
        *,
        component: str | None = None,
        version: str | None = None,
        fields: list[str] | None = None,
    ) -> None:
        super().__init__(message, component=component, version=version)
        self.fields = fields or []
