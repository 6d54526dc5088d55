# SPDX-License-Identifier: MIT
"""Registry metadata lookups."""

from .metadata_resolver import (
    RegistryMetadataResolver,
    packument_url,
    parse_packument,
    registry_origin_filter,
)


__all__ = [
    "RegistryMetadataResolver",
    "packument_url",
    "parse_packument",
    "registry_origin_filter",
]
