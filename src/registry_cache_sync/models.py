# SPDX-License-Identifier: MIT
"""Core data models for registry cache sync."""

from pydantic import BaseModel, ConfigDict, Field

from .enums import MutationOutcome


class ChangeRecord(BaseModel):
    """One entry from the registry change feed."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Package name the change refers to")
    seq: int = Field(..., description="Feed sequence number (non-decreasing)")


class PackageMetadata(BaseModel):
    """Registry metadata resolved for a package name."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Package name")
    latest_version: str | None = Field(None, description="Version behind 'latest'")
    tarball: str | None = Field(None, description="Tarball URL of latest version")
    deprecated: bool = Field(
        False, description="No installable version exists (deprecated or removed)"
    )

    @property
    def installable(self) -> bool:
        return (
            not self.deprecated
            and self.latest_version is not None
            and self.tarball is not None
        )


class WorkItem(BaseModel):
    """Unit of work for the sync worker pool.

    A ``seq`` of None marks an item created by reconciliation: it is processed
    like any other item but never moves the checkpoint.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Package name")
    seq: int | None = Field(None, description="Originating feed seq, if any")
    version: str | None = Field(None, description="Version to warm")
    tarball: str | None = Field(None, description="Tarball to warm from")
    deprecated: bool = Field(False, description="Invalidate instead of warm")

    @classmethod
    def from_change(cls, change: ChangeRecord, metadata: PackageMetadata) -> "WorkItem":
        return cls._from_metadata(metadata, seq=change.seq)

    @classmethod
    def for_reconciliation(cls, metadata: PackageMetadata) -> "WorkItem":
        return cls._from_metadata(metadata, seq=None)

    @classmethod
    def _from_metadata(cls, metadata: PackageMetadata, seq: int | None) -> "WorkItem":
        # Anything we cannot install is treated as deprecated
        if not metadata.installable:
            return cls(name=metadata.name, seq=seq, deprecated=True)
        return cls(
            name=metadata.name,
            seq=seq,
            version=metadata.latest_version,
            tarball=metadata.tarball,
            deprecated=False,
        )

    @property
    def commits_checkpoint(self) -> bool:
        return self.seq is not None

    @property
    def spec(self) -> str:
        """Package identity as ``name@version`` (``*`` for any version)."""
        return f"{self.name}@{self.version or '*'}"


class WorkResult(BaseModel):
    """Outcome of processing one work item."""

    model_config = ConfigDict(frozen=True)

    outcome: MutationOutcome = Field(..., description="What happened to the cache")
    error: str | None = Field(None, description="Error details if outcome is failed")

    @property
    def ok(self) -> bool:
        return self.outcome != MutationOutcome.FAILED


class CacheManifestEntry(BaseModel):
    """A package manifest found in the cache's backing storage."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Package name")
    version: str | None = Field(None, description="Cached version")
    resolved_from: str | None = Field(
        None, description="URL the cached artifact was resolved from"
    )
