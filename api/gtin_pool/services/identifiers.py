# gtin_pool/services/identifiers.py
"""
Project Identifier Binder - one GTIN/ASIN/FNSKU record per project.

Handles:
- Loading a project's identifiers and whether its code is backed by a pool
  entry currently assigned to that project (enables Release)
- Manual save with the GTIN_EXEMPT rules
- Assign-from-pool / release, delegating the transition to PoolAllocator

Releasing a pool entry leaves the project's stored code in place for the
historical record; only an explicit save changes it.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gtin_pool.db_models import GtinType, PoolStatus, ProjectIdentifier
from gtin_pool.errors import NotAssigned, NotFound, ValidationError
from gtin_pool.models import IdentifierIn, IdentifierRecord, IdentifierView, PoolEntry
from gtin_pool.services.allocator import PoolAllocator
from gtin_pool.services.pool_store import PoolStore, SqlPoolStore

logger = logging.getLogger(__name__)


def _clean(v: Optional[str]) -> Optional[str]:
    v = (v or "").strip()
    return v or None


class IdentifierBinder:
    """Keeps a project's identifier record consistent with pool assignments."""

    def __init__(self, db: AsyncSession, owner_scope: str, store: Optional[PoolStore] = None):
        self.db = db
        self.owner_scope = owner_scope
        self.store = store or SqlPoolStore(db)
        self.allocator = PoolAllocator(self.store, owner_scope)

    # =========================================================================
    # Rules
    # =========================================================================

    @staticmethod
    def is_gtin_ready(record: Optional[Union[IdentifierRecord, IdentifierIn, ProjectIdentifier]]) -> bool:
        """A project has a usable GTIN: EAN/UPC with a code, or exempt with a reason."""
        if record is None or not record.gtin_type:
            return False
        gtin_type = GtinType(record.gtin_type)
        if gtin_type == GtinType.GTIN_EXEMPT:
            return bool(_clean(record.exemption_reason))
        return bool(_clean(record.gtin_code))

    @staticmethod
    def check_manual(data: IdentifierIn) -> Dict[str, Any]:
        """
        Validate a manual save and return the column values to persist.

        GTIN_EXEMPT requires a reason and forces the code to NULL; EAN/UPC
        require a code and drop any reason.
        """
        code = _clean(data.gtin_code)
        reason = _clean(data.exemption_reason)
        if data.gtin_type == GtinType.GTIN_EXEMPT:
            if not reason:
                raise ValidationError("exemption_reason is required for GTIN_EXEMPT", field="exemption_reason")
            code = None
        elif data.gtin_type is not None:
            if not code:
                raise ValidationError(f"gtin_code is required for {data.gtin_type.value}", field="gtin_code")
            reason = None
        else:
            if code:
                raise ValidationError("gtin_type is required when gtin_code is set", field="gtin_type")
            reason = None
        return {
            "gtin_type": data.gtin_type.value if data.gtin_type else None,
            "gtin_code": code,
            "exemption_reason": reason,
            "asin": _clean(data.asin),
            "fnsku": _clean(data.fnsku),
        }

    # =========================================================================
    # Persistence
    # =========================================================================

    async def _get_record(self, project_ref: str) -> Optional[ProjectIdentifier]:
        stmt = (
            select(ProjectIdentifier)
            .where(
                ProjectIdentifier.owner_scope == self.owner_scope,
                ProjectIdentifier.project_ref == project_ref,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _upsert(self, project_ref: str, **values: Any) -> IdentifierRecord:
        record = await self._get_record(project_ref)
        if record is None:
            record = ProjectIdentifier(owner_scope=self.owner_scope, project_ref=project_ref)
            self.db.add(record)
        for k, v in values.items():
            setattr(record, k, v)
        await self.db.flush()
        await self.db.refresh(record)
        await self.db.commit()
        return IdentifierRecord.model_validate(record)

    async def _pool_entry_for(self, project_ref: str, record: ProjectIdentifier) -> Optional[PoolEntry]:
        """Pool entry behind the record's code, if currently assigned to this project."""
        entry = None
        if record.gtin_code:
            entry = await self.store.find_by_code(self.owner_scope, record.gtin_code)
        elif record.pool_entry_id is not None:
            # exempt entries have no code to look up; the reference may dangle
            try:
                entry = await self.store.get_entry(self.owner_scope, record.pool_entry_id)
            except NotFound:
                entry = None
        if entry and entry.status == PoolStatus.assigned and entry.owner_ref == project_ref:
            return entry
        return None

    # =========================================================================
    # Operations
    # =========================================================================

    async def load(self, project_ref: str) -> IdentifierView:
        view = IdentifierView(project_ref=project_ref)
        record = await self._get_record(project_ref)
        if record is None:
            return view
        view.record = IdentifierRecord.model_validate(record)
        view.gtin_ready = self.is_gtin_ready(view.record)
        entry = await self._pool_entry_for(project_ref, record)
        if entry is not None:
            view.sourced_from_pool = True
            view.can_release = True
            view.pool_entry_id = entry.id
        return view

    async def save_manual(self, project_ref: str, data: IdentifierIn) -> IdentifierRecord:
        values = self.check_manual(data)
        current = await self._get_record(project_ref)
        # the weak pool reference only survives while the code is unchanged
        if current is None or current.gtin_code != values["gtin_code"]:
            values["pool_entry_id"] = None
        saved = await self._upsert(project_ref, **values)
        logger.info("Identifiers saved for project %s (%s)", project_ref, values["gtin_type"])
        return saved

    async def assign_from_pool(self, project_ref: str, entry_id: int) -> IdentifierView:
        """
        Assign a pool entry to the project and mirror it on the record.

        A project holds at most one pool entry: the one it held before goes
        back to the pool once the new assignment has succeeded.
        """
        previous = (await self.load(project_ref)).pool_entry_id
        entry = await self.allocator.assign(entry_id, project_ref)
        if previous is not None and previous != entry.id:
            try:
                await self.allocator.release(previous)
            except NotAssigned:
                # already released or archived elsewhere; nothing left to return
                logger.info("Previous pool entry %s of project %s was no longer assigned", previous, project_ref)
        reason = None
        if entry.gtin_type == GtinType.GTIN_EXEMPT:
            # exempt pool entries carry no code; the record still needs a reason
            reason = _clean(entry.notes) or f"GTIN exempt (pool entry {entry.id})"
        await self._upsert(
            project_ref,
            gtin_type=entry.gtin_type.value,
            gtin_code=entry.code,
            exemption_reason=reason,
            pool_entry_id=entry.id,
        )
        return await self.load(project_ref)

    async def release(self, project_ref: str, entry_id: Optional[int] = None) -> PoolEntry:
        """Release the project's pool entry; the identifier record is left as is."""
        if entry_id is None:
            view = await self.load(project_ref)
            if view.pool_entry_id is None:
                raise NotAssigned(f"Project {project_ref} holds no pool GTIN", project_ref=project_ref)
            entry_id = view.pool_entry_id
        else:
            entry = await self.store.get_entry(self.owner_scope, entry_id)
            if entry.status == PoolStatus.assigned and entry.owner_ref != project_ref:
                raise NotAssigned(
                    f"GTIN pool entry {entry_id} is not assigned to project {project_ref}",
                    entry_id=entry_id,
                    project_ref=project_ref,
                )
        return await self.allocator.release(entry_id)
