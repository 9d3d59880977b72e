# gtin_pool/services/allocator.py
"""
Pool Allocator - assign / release / archive transitions on pool entries.

    available --assign--> assigned --release--> available
    available|assigned --archive--> archived (terminal)

Every transition is a single conditional update in the store, so two
concurrent assigns on the same entry cannot both succeed. Precondition
failures are raised to the caller as-is and never retried.
"""
from __future__ import annotations
import logging
from typing import List, Optional

from gtin_pool.db_models import PoolStatus
from gtin_pool.errors import (
    AlreadyAssigned, ConflictError, EntryArchived, NotAssigned, ValidationError
)
from gtin_pool.models import PoolEntry, PoolStats
from gtin_pool.services.pool_store import PoolStore
from gtin_pool.settings import settings

logger = logging.getLogger(__name__)


class PoolAllocator:
    """State transitions for GTIN pool entries of one owner scope."""

    def __init__(self, store: PoolStore, owner_scope: str, low_stock_threshold: Optional[int] = None):
        self.store = store
        self.owner_scope = owner_scope
        self.low_stock_threshold = (
            settings.POOL_LOW_STOCK_THRESHOLD if low_stock_threshold is None else low_stock_threshold
        )

    # =========================================================================
    # Transitions
    # =========================================================================

    async def assign(self, entry_id: int, project_ref: str) -> PoolEntry:
        project_ref = (project_ref or "").strip()
        if not project_ref:
            raise ValidationError("project_ref is required to assign a GTIN")
        try:
            entry = await self.store.update_entry_status(
                self.owner_scope,
                entry_id,
                PoolStatus.available,
                PoolStatus.assigned,
                owner_ref=project_ref,
            )
        except ConflictError as e:
            if e.current_status == PoolStatus.archived.value:
                raise EntryArchived(f"GTIN pool entry {entry_id} is archived", entry_id=entry_id) from e
            raise AlreadyAssigned(f"GTIN pool entry {entry_id} is already assigned", entry_id=entry_id) from e
        logger.info("GTIN %s (entry %s) assigned to project %s", entry.code, entry_id, project_ref)
        return entry

    async def release(self, entry_id: int) -> PoolEntry:
        try:
            entry = await self.store.update_entry_status(
                self.owner_scope,
                entry_id,
                PoolStatus.assigned,
                PoolStatus.available,
            )
        except ConflictError as e:
            raise NotAssigned(
                f"GTIN pool entry {entry_id} is not assigned ({e.current_status})",
                entry_id=entry_id,
                current_status=e.current_status,
            ) from e
        logger.info("GTIN %s (entry %s) released back to pool", entry.code, entry_id)
        return entry

    async def archive(self, entry_id: int) -> PoolEntry:
        entry = await self.store.archive_entry(self.owner_scope, entry_id)
        logger.info("GTIN %s (entry %s) archived", entry.code, entry_id)
        return entry

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_entries(self, status: Optional[PoolStatus] = None, search: Optional[str] = None) -> List[PoolEntry]:
        return await self.store.list_entries(self.owner_scope, status=status, search=search)

    async def available_entries(self) -> List[PoolEntry]:
        return await self.store.list_entries(self.owner_scope, status=PoolStatus.available)

    async def stats(self) -> PoolStats:
        counts = await self.store.count_by_status(self.owner_scope)
        available = counts[PoolStatus.available.value]
        return PoolStats(
            total=sum(counts.values()),
            low_stock=0 < available < self.low_stock_threshold,
            **counts,
        )
