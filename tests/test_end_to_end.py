"""Build a registry, serve it over HTTP and drive the CLI against it."""

from __future__ import annotations

import asyncio
import io
import threading
from collections.abc import Iterator
from typing import TYPE_CHECKING

import pytest

from wpsyde.cli import main
from wpsyde.client.config import load_config
from wpsyde.reporter import Reporter
from wpsyde.server import start_registry_server, stop_registry_server

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def live_registry(registry_dir: Path) -> Iterator[str]:
    """Serve registry_dir from a background event loop; yield its base URL."""
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()

    runner = asyncio.run_coroutine_threadsafe(
        start_registry_server(registry_dir, port=0), loop
    ).result(timeout=10)
    host, port = runner.addresses[0][:2]
    try:
        yield f"http://{host}:{port}"
    finally:
        asyncio.run_coroutine_threadsafe(stop_registry_server(runner), loop).result(timeout=10)
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout=10)
        loop.close()


def _run(*argv: str) -> tuple[int, str]:
    out = io.StringIO()
    code = main(list(argv), reporter=Reporter(out, color=False))
    return code, out.getvalue()


class TestEndToEnd:
    def test_init_add_remove(self, tmp_path: Path, live_registry: str) -> None:
        config = str(tmp_path / "site" / "wpsyde.json")

        assert _run("--config", config, "--registry", live_registry, "init")[0] == 0

        code, output = _run("--config", config, "list")
        assert code == 0
        assert "Total: 2 components available" in output

        code, output = _run("--config", config, "add", "Button", "Card")
        assert code == 0, output
        components = tmp_path / "site" / "theme" / "template-parts" / "components"
        assert (components / "Button" / "button.php").exists()
        assert (components / "Card" / "Card.css").exists()

        code, _ = _run("--config", config, "remove", "Button")
        assert code == 0
        assert not (components / "Button").exists()
        assert set(load_config(tmp_path / "site" / "wpsyde.json").installed) == {"Card"}

    def test_health(self, live_registry: str) -> None:
        code, output = _run("--registry", live_registry, "health")
        assert code == 0
        assert "OK Registry is healthy - 2 components available" in output

    def test_missing_version(self, tmp_path: Path, live_registry: str) -> None:
        config = str(tmp_path / "wpsyde.json")
        _run("--config", config, "--registry", live_registry, "init")
        code, output = _run("--config", config, "add", "Card", "3.0.0")
        assert code == 1
        assert "Version 3.0.0 not found for Card" in output
