# SPDX-License-Identifier: MIT
"""Registry cache sync - keep a local package cache in step with a registry change feed."""

from importlib.metadata import PackageNotFoundError, version


__all__: list[str] = ["__version__"]

# Get version from installed package metadata
__version__: str
try:
    __version__ = version("registry-cache-sync")
except PackageNotFoundError:
    # Package is not installed, use development fallback
    __version__ = "development"
