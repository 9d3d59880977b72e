# gtin_pool/routers/pool.py
"""
GTIN Pool Router - list, stats, bulk import and release/archive of pool entries.
"""
from __future__ import annotations
from fastapi import APIRouter, HTTPException, Depends, Query, Request, UploadFile, File
from typing import List, Optional

from gtin_pool.db_models import PoolStatus
from gtin_pool.deps import get_allocator, get_importer
from gtin_pool.models import ImportCommitResult, ImportPreview, PoolEntry, PoolStats
from gtin_pool.services import GtinImportService, PoolAllocator
from gtin_pool.settings import settings

router = APIRouter(prefix="/gtin-pool", tags=["GTIN Pool"])


def _check_size(raw: bytes) -> bytes:
    if len(raw) > settings.IMPORT_MAX_BYTES:
        raise HTTPException(413, detail=f"Import file exceeds {settings.IMPORT_MAX_BYTES} bytes")
    return raw


# ============================================================================
# Listing
# ============================================================================

@router.get("", response_model=List[PoolEntry])
async def list_pool(
    status: Optional[PoolStatus] = Query(None),
    search: Optional[str] = Query(None, description="Substring of the GTIN code"),
    allocator: PoolAllocator = Depends(get_allocator),
):
    return await allocator.list_entries(status=status, search=search)


@router.get("/stats", response_model=PoolStats)
async def pool_stats(allocator: PoolAllocator = Depends(get_allocator)):
    return await allocator.stats()


@router.get("/available", response_model=List[PoolEntry])
async def available_codes(allocator: PoolAllocator = Depends(get_allocator)):
    return await allocator.available_entries()


# ============================================================================
# Import
# ============================================================================

@router.post("/import/preview", response_model=ImportPreview)
async def import_preview(
    file: UploadFile = File(...),
    importer: GtinImportService = Depends(get_importer),
):
    raw = _check_size(await file.read())
    return await importer.preview(raw)


@router.post("/import/preview-text", response_model=ImportPreview)
async def import_preview_text(
    request: Request,
    importer: GtinImportService = Depends(get_importer),
):
    """Same as /import/preview with the CSV sent as the raw request body."""
    raw = _check_size(await request.body())
    return await importer.preview(raw)


@router.post("/import/commit", response_model=ImportCommitResult)
async def import_commit(
    preview: ImportPreview,
    importer: GtinImportService = Depends(get_importer),
):
    return await importer.commit(preview)


# ============================================================================
# Transitions
# ============================================================================

@router.post("/{entry_id}/release", response_model=PoolEntry)
async def release_entry(entry_id: int, allocator: PoolAllocator = Depends(get_allocator)):
    return await allocator.release(entry_id)


@router.post("/{entry_id}/archive", response_model=PoolEntry)
async def archive_entry(entry_id: int, allocator: PoolAllocator = Depends(get_allocator)):
    return await allocator.archive(entry_id)
