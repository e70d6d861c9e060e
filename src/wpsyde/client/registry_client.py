"""
Async HTTP client for a static component registry.

Endpoints:
- GET /index.json
- GET /components/{name}/{version}/manifest.json
- GET /components/{name}/{version}/component.zip
- GET /health.json

JSON endpoints that answer with an HTML page (a misdeployed static host
typically serves its 404/SPA page with status 200) are treated as the
registry being unavailable. There is no retry: callers re-run the whole
operation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import aiohttp
import orjson
from pydantic import ValidationError

from wpsyde.client.config import ClientConfig
from wpsyde.errors import (
    DownloadFailed,
    IntegrityMismatch,
    RegistryUnavailable,
    WpsydeError,
)
from wpsyde.registry.index import INDEX_FILENAME, RegistryIndex
from wpsyde.registry.integrity import compute_integrity
from wpsyde.registry.manifest import ARCHIVE_FILENAME, MANIFEST_FILENAME, Manifest

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int, int | None], None]

_HTML_MARKERS = (b"<!doctype", b"<html")


def looks_like_html(body: bytes, content_type: str = "") -> bool:
    """Detect an HTML error/SPA page served in place of JSON."""
    if content_type.lower().startswith("text/html"):
        return True
    head = body[:256].lstrip().lower()
    return head.startswith(_HTML_MARKERS)


def verify_archive(manifest: Manifest, data: bytes) -> str:
    """Recompute an archive digest and compare it with the manifest.

    Returns:
        The verified integrity tag.

    Raises:
        IntegrityMismatch: If the manifest has no archive digest or it differs.
    """
    expected = manifest.archive_integrity
    actual = compute_integrity(data)
    if expected is None or expected != actual:
        raise IntegrityMismatch(
            f"{manifest.name}@{manifest.version}: archive integrity mismatch "
            f"(expected {expected}, got {actual})",
            component=manifest.name,
            version=manifest.version,
            expected=expected,
            actual=actual,
        )
    return actual


@dataclass
class HealthReport:
    """Result of a registry health check."""

    healthy: bool
    component_count: int = 0
    message: str = ""


class RegistryClient:
    """
    Async client for registry index, manifests and archives.

    Usage:
        async with RegistryClient(ClientConfig(base_url=url)) as client:
            index = await client.fetch_index()
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._session = session
        self._owns_session = session is None

    @property
    def base_url(self) -> str:
        return self._config.base_url

    async def __aenter__(self) -> RegistryClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session and not self._session.closed and self._owns_session:
            await self._session.close()
        self._session = None

    def url_for(self, *parts: str) -> str:
        return "/".join([self._config.base_url, *parts])

    async def _get_json(
        self,
        url: str,
        *,
        component: str | None = None,
        version: str | None = None,
    ) -> Any:
        """
        GET a JSON document.

        Raises:
            RegistryUnavailable: On non-200, HTML body, or unparseable JSON.
            DownloadFailed: On network errors or timeout.
        """
        session = await self._get_session()
        try:
            async with session.get(url) as response:
                body = await response.read()
                status = response.status
                content_type = response.headers.get("Content-Type", "")
        except (TimeoutError, asyncio.TimeoutError) as e:
            raise DownloadFailed(
                f"Request timed out after {self._config.timeout_s}s: {url}",
                component=component,
                version=version,
            ) from e
        except aiohttp.ClientError as e:
            raise DownloadFailed(
                f"Request failed: {url}: {e}", component=component, version=version
            ) from e

        if status != 200:
            raise RegistryUnavailable(
                f"HTTP {status} from {url}", component=component, version=version
            )

        if looks_like_html(body, content_type):
            raise RegistryUnavailable(
                f"Registry returned HTML instead of JSON for {url}. "
                "The registry may not be properly deployed.",
                component=component,
                version=version,
            )

        try:
            return orjson.loads(body)
        except orjson.JSONDecodeError as e:
            raise RegistryUnavailable(
                f"Invalid JSON from {url}: {e}", component=component, version=version
            ) from e

    async def fetch_index(self) -> RegistryIndex:
        """Fetch and validate index.json."""
        url = self.url_for(INDEX_FILENAME)
        data = await self._get_json(url)
        try:
            index = RegistryIndex.model_validate(data)
        except ValidationError as e:
            raise RegistryUnavailable(f"Malformed registry index at {url}: {e}") from e
        logger.debug("Fetched index", extra={"components": len(index)})
        return index

    async def fetch_manifest(self, name: str, version: str) -> Manifest:
        """Fetch and validate a component version's manifest.json."""
        url = self.url_for("components", name, version, MANIFEST_FILENAME)
        data = await self._get_json(url, component=name, version=version)
        try:
            manifest = Manifest.model_validate(data)
        except ValidationError as e:
            raise RegistryUnavailable(
                f"Malformed manifest for {name}@{version}: {e}", component=name, version=version
            ) from e

        if manifest.name != name or manifest.version != version:
            raise RegistryUnavailable(
                f"Manifest at {url} describes {manifest.name}@{manifest.version}, "
                f"expected {name}@{version}",
                component=name,
                version=version,
            )
        return manifest

    async def fetch_archive(
        self,
        name: str,
        version: str,
        progress: ProgressFn | None = None,
        locator: str = ARCHIVE_FILENAME,
    ) -> bytes:
        """
        Download a component archive.

        Args:
            name: Component name.
            version: Resolved version.
            progress: Called with (bytes received, Content-Length or None).
            locator: Archive filename relative to the version directory.

        Raises:
            DownloadFailed: On non-200, network error, timeout or short read.
        """
        url = self.url_for("components", name, version, locator)
        session = await self._get_session()
        chunks: list[bytes] = []
        received = 0

        try:
            async with session.get(url) as response:
                if response.status != 200:
                    raise DownloadFailed(
                        f"HTTP {response.status} downloading {url}",
                        component=name,
                        version=version,
                    )
                # Content-Length counts encoded bytes when a transfer encoding applies
                total = (
                    None
                    if response.headers.get("Content-Encoding")
                    else response.content_length
                )
                async for chunk in response.content.iter_chunked(
                    self._config.progress_chunk_bytes
                ):
                    chunks.append(chunk)
                    received += len(chunk)
                    if progress is not None:
                        progress(received, total)
        except (TimeoutError, asyncio.TimeoutError) as e:
            raise DownloadFailed(
                f"Download timed out after {self._config.timeout_s}s: {url}",
                component=name,
                version=version,
            ) from e
        except aiohttp.ClientError as e:
            raise DownloadFailed(
                f"Download failed: {url}: {e}", component=name, version=version
            ) from e

        if total is not None and received != total:
            raise DownloadFailed(
                f"Incomplete download of {url}: {received}/{total} bytes",
                component=name,
                version=version,
            )

        logger.debug("Downloaded archive", extra={"component": name, "size_bytes": received})
        return b"".join(chunks)

    async def check_health(self) -> HealthReport:
        """Check the index is reachable and component endpoints serve JSON."""
        try:
            index = await self.fetch_index()
        except WpsydeError as e:
            return HealthReport(healthy=False, message=f"Registry health check failed: {e}")

        if len(index) == 0:
            return HealthReport(healthy=False, message="Registry index is empty or invalid")

        name = index.names[0]
        version = index.components[name].latest
        try:
            await self.fetch_manifest(name, version)
        except WpsydeError as e:
            return HealthReport(
                healthy=False,
                component_count=len(index),
                message=f"Component endpoint test failed: {e}",
            )

        return HealthReport(
            healthy=True,
            component_count=len(index),
            message=f"Registry is healthy - {len(index)} components available",
        )
