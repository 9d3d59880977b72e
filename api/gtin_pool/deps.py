# gtin_pool/deps.py
"""FastAPI dependencies shared by the routers."""
from __future__ import annotations
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from gtin_pool.database import get_session
from gtin_pool.settings import settings
from gtin_pool.services import GtinImportService, IdentifierBinder, PoolAllocator, SqlPoolStore


def get_owner_scope(x_owner_scope: Optional[str] = Header(default=None)) -> str:
    """Owner scope comes from the caller; authentication happens upstream."""
    scope = (x_owner_scope or "").strip()
    return scope or settings.DEFAULT_OWNER_SCOPE


def get_allocator(
    db: AsyncSession = Depends(get_session),
    owner_scope: str = Depends(get_owner_scope),
) -> PoolAllocator:
    return PoolAllocator(SqlPoolStore(db), owner_scope)


def get_importer(
    db: AsyncSession = Depends(get_session),
    owner_scope: str = Depends(get_owner_scope),
) -> GtinImportService:
    return GtinImportService(SqlPoolStore(db), owner_scope)


def get_binder(
    db: AsyncSession = Depends(get_session),
    owner_scope: str = Depends(get_owner_scope),
) -> IdentifierBinder:
    return IdentifierBinder(db, owner_scope)
