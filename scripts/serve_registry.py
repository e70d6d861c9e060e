#!/usr/bin/env python3
"""
Serve a built registry directory locally for CLI testing.

Usage:
    python -m scripts.serve_registry [--port 3001] [--registry-dir registry]

Then point the CLI at it:
    WPSYDE_REGISTRY_URL=http://localhost:3001 wpsyde list

Runs until Ctrl+C.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path

from wpsyde.logging_config import setup_logging
from wpsyde.registry.index import INDEX_FILENAME
from wpsyde.reporter import Reporter
from wpsyde.server import start_registry_server, stop_registry_server

logger = logging.getLogger(__name__)


async def serve(registry_dir: Path, host: str, port: int, reporter: Reporter) -> int:
    runner = await start_registry_server(registry_dir, host=host, port=port)

    base = f"http://{host}:{port}"
    reporter.success(f"Local registry server running at {base}")
    reporter.info(f"Serving files from: {registry_dir}")
    reporter.info("Test endpoints:")
    for path in (INDEX_FILENAME, "health.json", "metrics"):
        reporter.info(f"  {base}/{path}")
    reporter.info(f"To test the CLI: WPSYDE_REGISTRY_URL={base} wpsyde list")
    reporter.warn("Press Ctrl+C to stop the server")

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    try:
        await stop.wait()
    finally:
        await stop_registry_server(runner)
        reporter.info("Shutting down server...")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Serve a WPSyde registry directory over HTTP.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=3001, help="Port (default: 3001)")
    parser.add_argument(
        "--registry-dir",
        type=Path,
        default=Path("registry"),
        help="Registry directory to serve (default: registry)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every request")

    args = parser.parse_args(argv)
    setup_logging(level=logging.INFO if args.verbose else logging.WARNING)
    reporter = Reporter()

    if not args.registry_dir.is_dir():
        reporter.error(f"Registry directory not found: {args.registry_dir}")
        reporter.info("Run `python -m scripts.build_registry` first")
        return 1

    return asyncio.run(serve(args.registry_dir, args.host, args.port, reporter))


if __name__ == "__main__":
    sys.exit(main())
