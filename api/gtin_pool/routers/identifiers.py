# gtin_pool/routers/identifiers.py
"""
Project Identifiers Router - GTIN/ASIN/FNSKU per project, assign/release from pool.

Responses always reflect the stored state after the operation; clients
reload from them instead of patching local state.
"""
from __future__ import annotations
from typing import Optional
from fastapi import APIRouter, Body, Depends

from gtin_pool.deps import get_binder
from gtin_pool.models import AssignIn, IdentifierIn, IdentifierView, ReleaseIn
from gtin_pool.services import IdentifierBinder

router = APIRouter(prefix="/projects/{project_ref}/identifiers", tags=["Project Identifiers"])


@router.get("", response_model=IdentifierView)
async def get_identifiers(project_ref: str, binder: IdentifierBinder = Depends(get_binder)):
    return await binder.load(project_ref)


@router.put("", response_model=IdentifierView)
async def save_identifiers(
    project_ref: str,
    payload: IdentifierIn,
    binder: IdentifierBinder = Depends(get_binder),
):
    await binder.save_manual(project_ref, payload)
    return await binder.load(project_ref)


@router.post("/assign", response_model=IdentifierView)
async def assign_from_pool(
    project_ref: str,
    payload: AssignIn,
    binder: IdentifierBinder = Depends(get_binder),
):
    return await binder.assign_from_pool(project_ref, payload.entry_id)


@router.post("/release", response_model=IdentifierView)
async def release_to_pool(
    project_ref: str,
    payload: Optional[ReleaseIn] = Body(None),
    binder: IdentifierBinder = Depends(get_binder),
):
    await binder.release(project_ref, payload.entry_id if payload else None)
    return await binder.load(project_ref)
