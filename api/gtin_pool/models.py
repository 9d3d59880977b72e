from __future__ import annotations
from datetime import datetime
from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field

from gtin_pool.db_models import GtinType, PoolStatus

# ---------- pool ----------

class PoolEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_scope: str
    code: Optional[str] = None
    gtin_type: GtinType
    status: PoolStatus
    owner_ref: Optional[str] = None
    assigned_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class PoolStats(BaseModel):
    total: int = 0
    available: int = 0
    assigned: int = 0
    archived: int = 0
    low_stock: bool = False

# ---------- import ----------

class ImportPreviewRow(BaseModel):
    row_number: int
    code: str = ""
    gtin_type: GtinType = GtinType.EAN
    notes: Optional[str] = None
    valid: bool = False
    duplicate: bool = False
    conflict: bool = False
    check_digit_ok: bool = False

class ImportPreview(BaseModel):
    layout: Literal["gtin_columns", "upc_ean_columns"] = "gtin_columns"
    has_header: bool = False
    rows: List[ImportPreviewRow] = Field(default_factory=list)
    duplicates: List[str] = Field(default_factory=list)
    conflicts: List[str] = Field(default_factory=list)
    valid: int = 0
    invalid: int = 0

class TypeErrorItem(BaseModel):
    code: Optional[str] = None
    attempted_type: Optional[str] = None

class ImportCommitResult(BaseModel):
    inserted: List[str] = Field(default_factory=list)
    already_existed: List[str] = Field(default_factory=list)
    type_errors: List[TypeErrorItem] = Field(default_factory=list)
    skipped_conflicts: List[str] = Field(default_factory=list)
    invalid: int = 0

# ---------- project identifiers ----------

class IdentifierIn(BaseModel):
    gtin_type: Optional[GtinType] = None
    gtin_code: Optional[str] = None
    exemption_reason: Optional[str] = None
    asin: Optional[str] = None
    fnsku: Optional[str] = None

class IdentifierRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_ref: str
    gtin_type: Optional[GtinType] = None
    gtin_code: Optional[str] = None
    exemption_reason: Optional[str] = None
    asin: Optional[str] = None
    fnsku: Optional[str] = None
    pool_entry_id: Optional[int] = None
    updated_at: Optional[datetime] = None

class IdentifierView(BaseModel):
    project_ref: str
    record: Optional[IdentifierRecord] = None
    sourced_from_pool: bool = False
    can_release: bool = False
    pool_entry_id: Optional[int] = None
    gtin_ready: bool = False

class AssignIn(BaseModel):
    entry_id: int

class ReleaseIn(BaseModel):
    entry_id: Optional[int] = None
