"""
Local static registry server for testing the CLI against a built registry.

Serves a registry directory the way the production static host does:
- GET /                      -> 302 to /index.json
- GET /index.json            (Cache-Control: public, max-age=60)
- GET /health.json
- GET /public-key.pem        (immutable)
- GET /components/{name}/{version}/{file}   (immutable)
- GET /metrics               Prometheus request counters

Uses aiohttp.web (also the client's HTTP stack).
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from aiohttp import web
from prometheus_client import Counter, generate_latest
from prometheus_client.registry import CollectorRegistry

from wpsyde.errors import InvalidInput
from wpsyde.registry.index import INDEX_FILENAME
from wpsyde.registry.naming import sanitize_component_name
from wpsyde.registry.store import (
    CACHE_IMMUTABLE,
    CACHE_INDEX,
    CACHE_NO_STORE,
    HEALTH_FILENAME,
    PUBLIC_KEY_FILENAME,
)
from wpsyde.registry.version import parse_version

logger = logging.getLogger(__name__)

METRICS_CONTENT_TYPE = "text/plain; version=0.0.4"

CONTENT_TYPES: dict[str, str] = {
    ".json": "application/json",
    ".zip": "application/zip",
    ".pem": "application/x-pem-file",
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".php": "text/plain",
}

_Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

REGISTRY_ROOT_KEY: web.AppKey[Path] = web.AppKey("registry_root", Path)
REQUESTS_KEY: web.AppKey[Counter] = web.AppKey("requests_total", Counter)
METRICS_REGISTRY_KEY: web.AppKey[CollectorRegistry] = web.AppKey(
    "metrics_registry", CollectorRegistry
)


def _content_type(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix, "application/octet-stream")


def _serve_file(
    request: web.Request, path: Path, route: str, cache_control: str
) -> web.Response:
    counter = request.app[REQUESTS_KEY]
    if not path.is_file():
        counter.labels(route=route, status="404").inc()
        logger.info("404 %s", request.path)
        return web.Response(status=404, text="Not Found")

    counter.labels(route=route, status="200").inc()
    logger.info("200 %s", request.path)
    return web.Response(
        body=path.read_bytes(),
        headers={"Content-Type": _content_type(path), "Cache-Control": cache_control},
    )


async def _root_handler(request: web.Request) -> web.StreamResponse:
    raise web.HTTPFound(f"/{INDEX_FILENAME}")


async def _index_handler(request: web.Request) -> web.StreamResponse:
    root = request.app[REGISTRY_ROOT_KEY]
    return _serve_file(request, root / INDEX_FILENAME, "index", CACHE_INDEX)


async def _health_handler(request: web.Request) -> web.StreamResponse:
    root = request.app[REGISTRY_ROOT_KEY]
    return _serve_file(request, root / HEALTH_FILENAME, "health", CACHE_NO_STORE)


async def _public_key_handler(request: web.Request) -> web.StreamResponse:
    root = request.app[REGISTRY_ROOT_KEY]
    return _serve_file(request, root / PUBLIC_KEY_FILENAME, "public_key", CACHE_IMMUTABLE)


async def _component_handler(request: web.Request) -> web.StreamResponse:
    root = request.app[REGISTRY_ROOT_KEY]
    name = request.match_info["name"]
    version = request.match_info["version"]
    filename = request.match_info["file"]

    try:
        if sanitize_component_name(name) != name:
            raise InvalidInput(f"unclean component name {name!r}")
        parse_version(version)
    except InvalidInput:
        request.app[REQUESTS_KEY].labels(route="component", status="404").inc()
        return web.Response(status=404, text="Not Found")

    if filename in ("", ".", "..") or "/" in filename or "\\" in filename:
        request.app[REQUESTS_KEY].labels(route="component", status="404").inc()
        return web.Response(status=404, text="Not Found")

    path = root / "components" / name / version / filename
    return _serve_file(request, path, "component", CACHE_IMMUTABLE)


def _make_metrics_handler(registry: CollectorRegistry) -> _Handler:
    async def handler(request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(registry),
            content_type="text/plain; version=0.0.4",
            charset="utf-8",
        )

    return handler


def create_registry_app(
    registry_root: Path,
    *,
    metrics_registry: CollectorRegistry | None = None,
) -> web.Application:
    """
    Create aiohttp Application serving a registry directory.

    Args:
        registry_root: Directory produced by the registry build.
        metrics_registry: Prometheus registry for request counters
            (a fresh one if None).

    Returns:
        aiohttp.web.Application ready to be started.
    """
    metrics_registry = metrics_registry or CollectorRegistry()
    requests_total = Counter(
        "wpsyde_registry_requests",
        "Registry HTTP requests by route kind and status",
        ["route", "status"],
        registry=metrics_registry,
    )

    app = web.Application()
    app[REGISTRY_ROOT_KEY] = Path(registry_root)
    app[REQUESTS_KEY] = requests_total
    app[METRICS_REGISTRY_KEY] = metrics_registry

    app.router.add_get("/", _root_handler)
    app.router.add_get(f"/{INDEX_FILENAME}", _index_handler)
    app.router.add_get(f"/{HEALTH_FILENAME}", _health_handler)
    app.router.add_get(f"/{PUBLIC_KEY_FILENAME}", _public_key_handler)
    app.router.add_get("/components/{name}/{version}/{file}", _component_handler)
    app.router.add_get("/metrics", _make_metrics_handler(metrics_registry))
    return app


async def start_registry_server(
    registry_root: Path,
    host: str = "127.0.0.1",
    port: int = 3001,
) -> web.AppRunner:
    """
    Start the local registry server.

    Returns:
        AppRunner (call stop_registry_server() on shutdown).
    """
    app = create_registry_app(registry_root)
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("Registry server started on http://%s:%d serving %s", host, port, registry_root)
    return runner


async def stop_registry_server(runner: web.AppRunner) -> None:
    await runner.cleanup()
    logger.info("Registry server stopped")
