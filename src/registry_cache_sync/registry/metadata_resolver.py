# SPDX-License-Identifier: MIT
"""Registry client resolving a package name to its installable metadata."""

import asyncio
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import aiohttp

from ..constants import (
    DEFAULT_REGISTRY_MAX_RETRIES,
    DEFAULT_REGISTRY_TIMEOUT,
    DEFAULT_REGISTRY_URL,
)
from ..exceptions import ResolutionError
from ..logging_config import get_detail_logger
from ..models import CacheManifestEntry, PackageMetadata
from ..retry_utils import async_retry_with_backoff


detail_logger = get_detail_logger()


def packument_url(registry_url: str, name: str) -> str:
    """Build the metadata URL for ``name`` (``@scope/pkg`` -> ``@scope%2Fpkg``)."""
    return f"{registry_url.rstrip('/')}/{quote(name, safe='@')}"


def parse_packument(name: str, data: Any) -> PackageMetadata:
    """Extract latest-version metadata from a registry document.

    A document without ``dist-tags.latest``, or whose latest version is
    deprecated or has no tarball, yields ``deprecated=True``.

    Raises:
        ResolutionError: If the document is not a JSON object, or its latest
            version or tarball is not a string
    """
    if not isinstance(data, dict):
        raise ResolutionError(
            f"Unexpected registry document for {name}: {type(data).__name__}",
            package=name,
            retryable=False,
        )

    dist_tags = data.get("dist-tags") or {}
    latest = dist_tags.get("latest") if isinstance(dist_tags, dict) else None
    if not latest:
        detail_logger.debug(f"{name}: no dist-tags, treating as deprecated")
        return PackageMetadata(name=name, deprecated=True)
    if not isinstance(latest, str):
        raise ResolutionError(
            f"Malformed dist-tags.latest for {name}: {type(latest).__name__}",
            package=name,
            retryable=False,
        )

    versions = data.get("versions") or {}
    version_info = versions.get(latest) if isinstance(versions, dict) else None
    if not isinstance(version_info, dict):
        detail_logger.debug(f"{name}: latest {latest} missing from versions")
        return PackageMetadata(name=name, latest_version=latest, deprecated=True)

    dist = version_info.get("dist") or {}
    tarball = dist.get("tarball") if isinstance(dist, dict) else None
    if tarball is not None and not isinstance(tarball, str):
        raise ResolutionError(
            f"Malformed tarball for {name}@{latest}: {type(tarball).__name__}",
            package=name,
            retryable=False,
        )
    deprecated = bool(version_info.get("deprecated")) or not tarball

    return PackageMetadata(
        name=name,
        latest_version=latest,
        tarball=tarball,
        deprecated=deprecated,
    )


class RegistryMetadataResolver:
    """Resolves package metadata from an npm-compatible registry."""

    def __init__(
        self,
        registry_url: str = DEFAULT_REGISTRY_URL,
        timeout: int = DEFAULT_REGISTRY_TIMEOUT,
        max_concurrent: int = 20,
        max_retries: int = DEFAULT_REGISTRY_MAX_RETRIES,
        retry_delay: float = 1.0,
    ):
        """Initialize the resolver.

        Args:
            registry_url: Registry base URL
            timeout: Total timeout per request in seconds
            max_concurrent: Maximum concurrent registry requests
            max_retries: Retries for transient failures
            retry_delay: Initial backoff delay in seconds
        """
        self.registry_url = registry_url
        self.timeout = timeout
        self.headers = {"Accept": "application/json"}
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.session: aiohttp.ClientSession | None = None
        self._fetch_with_retry = async_retry_with_backoff(
            max_retries=max_retries,
            initial_delay=retry_delay,
            exceptions=(ResolutionError,),
            should_retry=lambda e: getattr(e, "retryable", False),
        )(self._fetch)

    async def __aenter__(self) -> "RegistryMetadataResolver":
        """Async context manager entry."""
        self._ensure_session()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        if self.session:
            await self.session.close()
            self.session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            self.session = aiohttp.ClientSession(
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self.session

    async def resolve(self, name: str) -> PackageMetadata:
        """Resolve current metadata for ``name``.

        Raises:
            ResolutionError: On network failure, unexpected status or bad JSON
        """
        async with self.semaphore:
            return await self._fetch_with_retry(name)

    async def _fetch(self, name: str) -> PackageMetadata:
        url = packument_url(self.registry_url, name)
        session = self._ensure_session()
        detail_logger.debug(f"GET {url}")

        try:
            async with session.get(url) as response:
                if response.status == 404:
                    detail_logger.debug(f"{name}: not in registry, treating as removed")
                    return PackageMetadata(name=name, deprecated=True)
                if response.status != 200:
                    raise ResolutionError(
                        f"Registry returned status {response.status} for {name}",
                        package=name,
                        retryable=response.status == 429 or response.status >= 500,
                    )
                data = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise ResolutionError(f"Registry timeout for {name}", package=name) from e
        except aiohttp.ClientError as e:
            raise ResolutionError(
                f"Registry request failed for {name}: {e}", package=name
            ) from e
        except ValueError as e:
            raise ResolutionError(
                f"Malformed registry document for {name}: {e}",
                package=name,
                retryable=False,
            ) from e

        return parse_packument(name, data)


def registry_origin_filter(registry_url: str) -> Callable[[CacheManifestEntry], bool]:
    """Build a predicate accepting cache entries resolved from ``registry_url``.

    Entries with no recorded origin, or an origin on another host or path, are
    rejected.
    """
    prefix = registry_url.rstrip("/") + "/"

    def originates_from_registry(entry: CacheManifestEntry) -> bool:
        return bool(entry.resolved_from) and entry.resolved_from.startswith(prefix)

    return originates_from_registry
