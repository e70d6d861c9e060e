#!/usr/bin/env python3
"""
Build the static component registry.

Packages every component under components/ into registry/:
    registry/components/<Name>/<version>/manifest.json
    registry/components/<Name>/<version>/component.zip
    registry/index.json, health.json, _headers[, public-key.pem]

Usage:
    python -m scripts.build_registry
    python -m scripts.build_registry --version 1.1.0 --only Button,Card

Exit code 0 = registry built; 1 = packaging error.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from wpsyde.errors import WpsydeError
from wpsyde.logging_config import setup_logging
from wpsyde.registry.builder import BuildConfig, BuildError, build_registry
from wpsyde.reporter import Reporter

logger = logging.getLogger(__name__)


def _parse_only(value: str | None) -> list[str]:
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


def main(argv: list[str] | None = None, reporter: Reporter | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Build the WPSyde component registry.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        default="1.0.0",
        help="Version assigned to every packaged component (default: 1.0.0)",
    )
    parser.add_argument(
        "--only",
        type=str,
        default=None,
        help="Comma-separated component names to package (default: all)",
    )
    parser.add_argument(
        "--components-dir",
        type=Path,
        default=Path("components"),
        help="Component source directory (default: components)",
    )
    parser.add_argument(
        "--registry-dir",
        type=Path,
        default=Path("registry"),
        help="Registry output directory (default: registry)",
    )
    parser.add_argument(
        "--public-key",
        type=Path,
        default=None,
        help="PEM public key copied to the registry root",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")

    args = parser.parse_args(argv)
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_format=args.json_logs,
    )
    reporter = reporter or Reporter()

    try:
        config = BuildConfig(
            components_dir=args.components_dir,
            registry_dir=args.registry_dir,
            version=args.version,
            only=_parse_only(args.only),
            public_key=args.public_key,
        )
        report = build_registry(config, reporter)
    except (WpsydeError, BuildError, FileNotFoundError, ValueError) as e:
        reporter.error(f"Build failed: {e}")
        return 1

    reporter.heading(
        f"\nRegistry build complete: {len(report.published)} components at {report.version} "
        f"({report.created_count} new)"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
