# gtin_pool/services/pool_store.py
"""
Pool Store - durable storage of GTIN pool entries.

PoolStore is the contract the allocator and the import pipeline depend on.
SqlPoolStore implements it with SQLAlchemy 2.0 async:
- every write is its own transaction (committed immediately)
- status changes are conditional UPDATEs (compare-and-swap on status)
- code uniqueness and type checks are enforced by database constraints and
  translated into AlreadyExists / InvalidTypeValue
"""
from __future__ import annotations
import abc
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set, Union

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gtin_pool.db_models import GtinPoolEntry, GtinType, PoolStatus
from gtin_pool.errors import AlreadyExists, ConflictError, InvalidTypeValue, NotFound
from gtin_pool.models import PoolEntry

logger = logging.getLogger(__name__)

StatusArg = Union[PoolStatus, str]

UNIQUE_VIOLATION = "23505"
CHECK_VIOLATION = "23514"

_IN_CHUNK = 500


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PoolStore(abc.ABC):
    """Storage contract for pool entries. All calls are scoped by owner_scope."""

    @abc.abstractmethod
    async def list_entries(
        self, owner_scope: str, status: Optional[StatusArg] = None, search: Optional[str] = None
    ) -> List[PoolEntry]: ...

    @abc.abstractmethod
    async def get_entry(self, owner_scope: str, entry_id: int) -> PoolEntry: ...

    @abc.abstractmethod
    async def find_by_code(self, owner_scope: str, code: str) -> Optional[PoolEntry]: ...

    @abc.abstractmethod
    async def existing_codes(self, owner_scope: str, codes: Iterable[str]) -> Set[str]: ...

    @abc.abstractmethod
    async def insert_entry(
        self,
        owner_scope: str,
        code: Optional[str],
        gtin_type: Union[GtinType, str],
        notes: Optional[str] = None,
        status: StatusArg = PoolStatus.available,
        owner_ref: Optional[str] = None,
    ) -> PoolEntry: ...

    @abc.abstractmethod
    async def update_entry_status(
        self,
        owner_scope: str,
        entry_id: int,
        expected_status: Union[StatusArg, Iterable[StatusArg]],
        new_status: StatusArg,
        owner_ref: Optional[str] = None,
    ) -> PoolEntry: ...

    @abc.abstractmethod
    async def archive_entry(self, owner_scope: str, entry_id: int) -> PoolEntry: ...

    @abc.abstractmethod
    async def count_by_status(self, owner_scope: str) -> Dict[str, int]: ...


def _statuses(expected: Union[StatusArg, Iterable[StatusArg]]) -> List[str]:
    if isinstance(expected, (str, PoolStatus)):
        return [PoolStatus(expected).value]
    return [PoolStatus(s).value for s in expected]


def _integrity_kind(exc: IntegrityError) -> Optional[str]:
    """Classify a driver integrity error as 'unique' or 'check' (None if neither)."""
    orig = getattr(exc, "orig", None)
    candidates = [orig, getattr(orig, "__cause__", None)]
    for c in candidates:
        state = getattr(c, "sqlstate", None) or getattr(c, "pgcode", None)
        if state == UNIQUE_VIOLATION:
            return "unique"
        if state == CHECK_VIOLATION:
            return "check"
    # sqlite reports constraint kind in the message only
    msg = str(orig if orig is not None else exc).lower()
    if "unique" in msg or "duplicate key" in msg:
        return "unique"
    if "check constraint" in msg:
        return "check"
    return None


class SqlPoolStore(PoolStore):
    """PoolStore on an AsyncSession; each mutation commits on its own."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Reads
    # =========================================================================

    def _scoped(self, owner_scope: str):
        return select(GtinPoolEntry).where(GtinPoolEntry.owner_scope == owner_scope)

    async def _get_row(self, owner_scope: str, entry_id: int) -> GtinPoolEntry:
        stmt = (
            self._scoped(owner_scope)
            .where(GtinPoolEntry.id == entry_id)
            .execution_options(populate_existing=True)
        )
        row = (await self.db.execute(stmt)).scalar_one_or_none()
        if row is None:
            raise NotFound(f"GTIN pool entry {entry_id} not found", entry_id=entry_id)
        return row

    async def list_entries(
        self, owner_scope: str, status: Optional[StatusArg] = None, search: Optional[str] = None
    ) -> List[PoolEntry]:
        stmt = self._scoped(owner_scope)
        if status:
            stmt = stmt.where(GtinPoolEntry.status == PoolStatus(status).value)
        term = (search or "").strip()
        if term:
            stmt = stmt.where(GtinPoolEntry.code.contains(term, autoescape=True))
        stmt = stmt.order_by(GtinPoolEntry.created_at.desc(), GtinPoolEntry.id.desc())
        result = await self.db.execute(stmt)
        return [PoolEntry.model_validate(r) for r in result.scalars()]

    async def get_entry(self, owner_scope: str, entry_id: int) -> PoolEntry:
        return PoolEntry.model_validate(await self._get_row(owner_scope, entry_id))

    async def find_by_code(self, owner_scope: str, code: str) -> Optional[PoolEntry]:
        if not code:
            return None
        stmt = self._scoped(owner_scope).where(GtinPoolEntry.code == code).limit(1)
        row = (await self.db.execute(stmt)).scalar_one_or_none()
        return PoolEntry.model_validate(row) if row is not None else None

    async def existing_codes(self, owner_scope: str, codes: Iterable[str]) -> Set[str]:
        wanted = sorted({c for c in codes if c})
        found: Set[str] = set()
        for i in range(0, len(wanted), _IN_CHUNK):
            chunk = wanted[i:i + _IN_CHUNK]
            stmt = select(GtinPoolEntry.code).where(
                GtinPoolEntry.owner_scope == owner_scope,
                GtinPoolEntry.code.in_(chunk),
            )
            found.update((await self.db.execute(stmt)).scalars())
        return found

    async def count_by_status(self, owner_scope: str) -> Dict[str, int]:
        stmt = (
            select(GtinPoolEntry.status, func.count(GtinPoolEntry.id))
            .where(GtinPoolEntry.owner_scope == owner_scope)
            .group_by(GtinPoolEntry.status)
        )
        counts = {s.value: 0 for s in PoolStatus}
        for status, n in (await self.db.execute(stmt)).all():
            counts[status] = n
        return counts

    # =========================================================================
    # Writes
    # =========================================================================

    async def insert_entry(
        self,
        owner_scope: str,
        code: Optional[str],
        gtin_type: Union[GtinType, str],
        notes: Optional[str] = None,
        status: StatusArg = PoolStatus.available,
        owner_ref: Optional[str] = None,
    ) -> PoolEntry:
        type_value = gtin_type.value if isinstance(gtin_type, GtinType) else str(gtin_type)
        status = PoolStatus(status)
        entry = GtinPoolEntry(
            owner_scope=owner_scope,
            code=code or None,
            gtin_type=type_value,
            status=status.value,
            owner_ref=owner_ref if status == PoolStatus.assigned else None,
            assigned_at=utcnow() if status == PoolStatus.assigned else None,
            notes=notes,
        )
        self.db.add(entry)
        try:
            await self.db.flush()
            await self.db.refresh(entry)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            kind = _integrity_kind(e)
            if kind == "unique":
                raise AlreadyExists(f"GTIN {code} already exists in the pool", code=code) from e
            if kind == "check":
                raise InvalidTypeValue(
                    f"Type '{type_value}' rejected for code {code}", attempted_type=type_value, code=code
                ) from e
            raise
        logger.info("GTIN %s (%s) added to pool %s as %s", code, type_value, owner_scope, status.value)
        return PoolEntry.model_validate(entry)

    async def update_entry_status(
        self,
        owner_scope: str,
        entry_id: int,
        expected_status: Union[StatusArg, Iterable[StatusArg]],
        new_status: StatusArg,
        owner_ref: Optional[str] = None,
    ) -> PoolEntry:
        """
        Compare-and-swap on status.

        Raises ConflictError(current_status=...) when the row exists but is
        not in an expected status, NotFound when it does not exist in scope.
        """
        new_status = PoolStatus(new_status)
        assigned = new_status == PoolStatus.assigned
        stmt = (
            update(GtinPoolEntry)
            .where(
                GtinPoolEntry.id == entry_id,
                GtinPoolEntry.owner_scope == owner_scope,
                GtinPoolEntry.status.in_(_statuses(expected_status)),
            )
            .values(
                status=new_status.value,
                owner_ref=owner_ref if assigned else None,
                assigned_at=utcnow() if assigned else None,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            await self.db.rollback()
            current = await self._get_row(owner_scope, entry_id)
            raise ConflictError(
                f"GTIN pool entry {entry_id} is {current.status}",
                current_status=current.status,
                entry_id=entry_id,
            )
        await self.db.commit()
        return await self.get_entry(owner_scope, entry_id)

    async def archive_entry(self, owner_scope: str, entry_id: int) -> PoolEntry:
        """Idempotent: an already archived entry is returned unchanged."""
        try:
            return await self.update_entry_status(
                owner_scope,
                entry_id,
                (PoolStatus.available, PoolStatus.assigned),
                PoolStatus.archived,
            )
        except ConflictError as e:
            if e.current_status == PoolStatus.archived.value:
                return await self.get_entry(owner_scope, entry_id)
            raise
