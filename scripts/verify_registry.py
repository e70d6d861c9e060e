#!/usr/bin/env python3
"""Verify a built registry before deployment.

Checks that every indexed version has a valid manifest and archive, that
all integrity tags match their bytes, and that the static assets
(health.json, _headers, public-key.pem) are well-formed.

Exit code 0 = registry valid; 1 = errors found.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from wpsyde.registry.verify import verify_registry


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Verify a WPSyde registry directory.")
    parser.add_argument(
        "--registry-dir",
        type=Path,
        default=Path("registry"),
        help="Registry directory (default: registry)",
    )
    args = parser.parse_args(argv)

    print(f"=== Verifying {args.registry_dir} ===")
    errors = verify_registry(args.registry_dir)

    print()
    if errors:
        print(f"FAILED: {len(errors)} error(s):")
        for e in errors:
            print(f"  - {e}")
        return 1

    print("PASSED: registry verified, all integrity tags match.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
