# SPDX-License-Identifier: MIT
"""One-shot startup pass cross-checking cached packages against the registry."""

import asyncio
from collections.abc import Callable

from ..exceptions import PoolClosedError, ResolutionError
from ..logging_config import get_detail_logger, get_status_logger
from ..models import CacheManifestEntry, WorkItem
from ..protocols import ManifestLister, MetadataResolver
from .worker_pool import SyncWorkerPool


OriginFilter = Callable[[CacheManifestEntry], bool]


class ReconciliationScanner:
    """Resubmits every tracked cache entry so drift since the last run is fixed.

    Work items created here carry no seq, so they never move the checkpoint.
    Entries rejected by ``origin_filter`` (other registries, local tarballs,
    git dependencies) are left alone.
    """

    def __init__(
        self,
        lister: ManifestLister,
        resolver: MetadataResolver,
        pool: SyncWorkerPool,
        origin_filter: OriginFilter,
        max_concurrent_resolutions: int = 20,
    ) -> None:
        self.lister = lister
        self.resolver = resolver
        self.pool = pool
        self.origin_filter = origin_filter
        self.max_concurrent_resolutions = max_concurrent_resolutions
        self.detail_logger = get_detail_logger()
        self.status_logger = get_status_logger()

    async def run(self) -> dict[str, int]:
        """List, filter, resolve and submit all cached packages.

        Returns once every item has been submitted; use the pool's ``join``
        to wait for the mutations themselves.

        Returns:
            Counts of scanned entries, tracked packages, submitted items,
            unresolved packages and entries ignored by the filter
        """
        entries = await asyncio.to_thread(lambda: list(self.lister.list_manifests()))

        names: list[str] = []
        seen: set[str] = set()
        ignored = 0
        for entry in entries:
            if not self.origin_filter(entry):
                ignored += 1
                continue
            # One item per package: the item targets the latest version
            if entry.name not in seen:
                seen.add(entry.name)
                names.append(entry.name)

        self.detail_logger.info(
            f"Reconciliation: {len(entries)} manifests, {len(names)} tracked packages, "
            f"{ignored} from other sources"
        )

        semaphore = asyncio.Semaphore(self.max_concurrent_resolutions)
        results = await asyncio.gather(
            *(self._reconcile_package(name, semaphore) for name in names),
            return_exceptions=True,
        )

        submitted = 0
        unresolved = 0
        for name, result in zip(names, results, strict=True):
            if isinstance(result, BaseException):
                # Cancellation of the whole scan is propagated by gather itself
                self.detail_logger.error(
                    f"Unexpected error reconciling {name}: {type(result).__name__} - {result}"
                )
                unresolved += 1
            elif result:
                submitted += 1
            else:
                unresolved += 1

        summary = {
            "scanned": len(entries),
            "tracked": len(names),
            "submitted": submitted,
            "unresolved": unresolved,
            "ignored": ignored,
        }
        self.status_logger.info(
            f"Reconciliation submitted {submitted} of {len(names)} cached packages"
        )
        return summary

    async def _reconcile_package(self, name: str, semaphore: asyncio.Semaphore) -> bool:
        async with semaphore:
            try:
                metadata = await self.resolver.resolve(name)
            except ResolutionError as e:
                self.status_logger.warning(f"reconcile skipped {name}: {e}")
                return False

            try:
                await self.pool.submit(WorkItem.for_reconciliation(metadata))
            except PoolClosedError:
                self.detail_logger.debug(f"Pool closed, not reconciling {name}")
                return False
            return True
