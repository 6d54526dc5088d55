# SPDX-License-Identifier: MIT
"""Local npm cache adapter.

Mutations shell out to the npm CLI; lookups and manifest listing read the
legacy on-disk layout directly::

    <cache_dir>/<name>/<version>/package.tgz
    <cache_dir>/<name>/<version>/package/package.json
"""

import asyncio
import json
from collections.abc import Iterator
from pathlib import Path

from ..constants import DEFAULT_NPM_COMMAND
from ..exceptions import CacheStoreError
from ..logging_config import get_detail_logger
from ..models import CacheManifestEntry


detail_logger = get_detail_logger()


class NpmCacheStore:
    """CacheStore and ManifestLister backed by an npm cache directory."""

    def __init__(self, cache_dir: Path, npm_command: str = DEFAULT_NPM_COMMAND):
        self.cache_dir = Path(cache_dir)
        self.npm_command = npm_command

    async def _run_npm(self, *args: str, package: str | None = None) -> str:
        """Run npm with ``args`` and return its stdout.

        Raises:
            CacheStoreError: If npm cannot be started or exits non-zero
        """
        command = " ".join((self.npm_command, *args))
        detail_logger.debug(f"Running: {command}")

        try:
            process = await asyncio.create_subprocess_exec(
                self.npm_command,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()
        except OSError as e:
            raise CacheStoreError(f"Could not run {command}: {e}", package) from e

        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip() or "no output"
            raise CacheStoreError(
                f"{command} failed: {message}",
                package,
                returncode=process.returncode,
            )

        return stdout.decode(errors="replace")

    def _package_dir(self, name: str) -> Path:
        parts = name.split("/")
        if (
            not name
            or name.startswith(("/", "_", "."))
            or any(part in ("", ".", "..") for part in parts)
        ):
            raise CacheStoreError(f"Invalid package name: {name!r}", name)
        return self.cache_dir.joinpath(*parts)

    def _exists_on_disk(self, name: str, version: str | None) -> bool:
        package_dir = self._package_dir(name)
        if version is not None:
            return (package_dir / version / "package.tgz").is_file()
        if not package_dir.is_dir():
            return False
        return any(
            (child / "package.tgz").is_file()
            for child in package_dir.iterdir()
            if child.is_dir()
        )

    async def exists(self, name: str, version: str | None = None) -> bool:
        """Check whether ``name`` (optionally at ``version``) is cached."""
        try:
            return await asyncio.to_thread(self._exists_on_disk, name, version)
        except OSError as e:
            raise CacheStoreError(f"Could not inspect cache for {name}: {e}", name) from e

    async def add(self, name: str, version: str, tarball: str) -> None:
        """Warm the cache from ``tarball``."""
        await self._run_npm("cache", "add", tarball, "--silent", package=name)
        detail_logger.debug(f"Cached {name}@{version} from {tarball}")

    async def invalidate(self, name: str, version: str | None = None) -> None:
        """Remove ``name`` (or only ``name@version``) from the cache."""
        spec = f"{name}@{version}" if version else name
        await self._run_npm("cache", "clean", spec, "--silent", package=name)
        detail_logger.debug(f"Cleared {spec} from cache")

    async def get_config(self, key: str) -> str:
        """Read an npm config value."""
        output = await self._run_npm("config", "get", key)
        return output.strip()

    async def set_config(self, key: str, value: str) -> None:
        """Write an npm config value."""
        await self._run_npm("--silent", "config", "set", key, value)

    def list_manifests(self) -> Iterator[CacheManifestEntry]:
        """Yield one entry per cached ``package.json``."""
        if not self.cache_dir.is_dir():
            detail_logger.debug(f"Cache directory {self.cache_dir} does not exist")
            return

        patterns = ("*/*/package/package.json", "@*/*/*/package/package.json")
        for pattern in patterns:
            for manifest_path in sorted(self.cache_dir.glob(pattern)):
                relative = manifest_path.relative_to(self.cache_dir)
                top = relative.parts[0]
                # Scoped packages are handled by the second pattern; npm keeps
                # its own bookkeeping under underscore-prefixed directories
                if pattern.startswith("*") and top.startswith(("@", "_", ".")):
                    continue
                entry = self._read_manifest(manifest_path, relative)
                if entry is not None:
                    yield entry

    def _read_manifest(
        self, manifest_path: Path, relative: Path
    ) -> CacheManifestEntry | None:
        # relative is <name...>/<version>/package/package.json
        dir_name = "/".join(relative.parts[:-3])
        dir_version = relative.parts[-3]
        try:
            with open(manifest_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            detail_logger.debug(f"Skipping unreadable manifest {manifest_path}: {e}")
            return None
        if not isinstance(data, dict):
            return None

        resolved = data.get("_resolved")
        return CacheManifestEntry(
            name=str(data.get("name") or dir_name),
            version=str(data.get("version") or dir_version),
            resolved_from=resolved if isinstance(resolved, str) else None,
        )
