"""Tests for component version parsing."""

from __future__ import annotations

import pytest

from wpsyde.errors import InvalidInput
from wpsyde.registry.version import (
    LATEST,
    is_version,
    parse_version,
    validate_requested_version,
)


class TestParseVersion:
    """Tests for parse_version function."""

    def test_plain_version(self) -> None:
        v = parse_version("1.2.3")
        assert (v.major, v.minor, v.patch) == (1, 2, 3)
        assert v.prerelease == ""
        assert str(v) == "1.2.3"

    def test_prerelease_and_build(self) -> None:
        v = parse_version("2.0.0-beta.1+build.7")
        assert v.prerelease == "beta.1"
        assert v.build == "build.7"
        assert v.raw == "2.0.0-beta.1+build.7"

    @pytest.mark.parametrize(
        "value",
        ["", "1", "1.0", "v1.0.0", "01.0.0", "1.0.0-", "latest", "../1.0.0", "1.0.0/../x"],
    )
    def test_invalid_raises(self, value: str) -> None:
        with pytest.raises(InvalidInput, match="Invalid version string"):
            parse_version(value)

    def test_invalid_is_value_error(self) -> None:
        """InvalidInput doubles as ValueError for pydantic validators."""
        with pytest.raises(ValueError):
            parse_version("nope")


class TestRequestedVersion:
    def test_latest_alias_allowed(self) -> None:
        assert validate_requested_version(LATEST) == "latest"

    def test_semver_allowed(self) -> None:
        assert validate_requested_version("1.1.0") == "1.1.0"

    def test_garbage_rejected(self) -> None:
        with pytest.raises(InvalidInput):
            validate_requested_version("newest")

    def test_is_version(self) -> None:
        assert is_version("1.0.0")
        assert is_version("2.1.0-beta.1")
        assert is_version("1.0.0+build.7")
        assert not is_version("Button")
        assert not is_version(LATEST)
