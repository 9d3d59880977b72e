# gtin_pool/db_models.py
"""
SQLAlchemy ORM Models for the GTIN pool.

Two tables: gtin_pool (allocatable codes) and project_identifiers
(one identifier record per project).
"""
from __future__ import annotations
from datetime import datetime
from typing import Optional
import enum

from sqlalchemy import (
    String, Integer, BigInteger, Text, DateTime,
    Index, CheckConstraint, UniqueConstraint, func
)
from sqlalchemy.orm import Mapped, mapped_column

from gtin_pool.database import Base

# ============================================================================
# ENUMS
# ============================================================================

class GtinType(str, enum.Enum):
    EAN = "EAN"
    UPC = "UPC"
    GTIN_EXEMPT = "GTIN_EXEMPT"


class PoolStatus(str, enum.Enum):
    available = "available"
    assigned = "assigned"
    archived = "archived"


# ============================================================================
# MIXIN for updated_at
# ============================================================================

class TimestampMixin:
    """Mixin for created_at and updated_at columns."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        onupdate=func.now(),
        nullable=False
    )


# ============================================================================
# 1. GTIN POOL
# ============================================================================

class GtinPoolEntry(TimestampMixin, Base):
    __tablename__ = "gtin_pool"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    owner_scope: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String(14))
    # plain string + CHECK so a bad value surfaces as a constraint violation
    gtin_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PoolStatus.available.value)
    owner_ref: Mapped[Optional[str]] = mapped_column(String(100))
    assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        UniqueConstraint("owner_scope", "code", name="uq_gtin_pool_scope_code"),
        CheckConstraint(
            "gtin_type IN ('EAN', 'UPC', 'GTIN_EXEMPT')",
            name="chk_gtin_pool_type"
        ),
        # code is NULL only for GTIN_EXEMPT
        CheckConstraint(
            "(gtin_type = 'GTIN_EXEMPT' AND code IS NULL) OR (gtin_type <> 'GTIN_EXEMPT' AND code IS NOT NULL)",
            name="chk_gtin_pool_type_code"
        ),
        CheckConstraint(
            "status IN ('available', 'assigned', 'archived')",
            name="chk_gtin_pool_status"
        ),
        # owner_ref/assigned_at set iff assigned
        CheckConstraint(
            "(status = 'assigned' AND owner_ref IS NOT NULL AND assigned_at IS NOT NULL) "
            "OR (status <> 'assigned' AND owner_ref IS NULL AND assigned_at IS NULL)",
            name="chk_gtin_pool_assignment"
        ),
        Index("idx_gtin_pool_scope_status", "owner_scope", "status"),
        Index("idx_gtin_pool_owner_ref", "owner_scope", "owner_ref"),
    )

    def __repr__(self) -> str:
        return f"<GtinPoolEntry {self.id} {self.code} {self.status}>"


# ============================================================================
# 2. PROJECT IDENTIFIERS
# ============================================================================

class ProjectIdentifier(TimestampMixin, Base):
    __tablename__ = "project_identifiers"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    owner_scope: Mapped[str] = mapped_column(String(100), nullable=False)
    project_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    gtin_type: Mapped[Optional[str]] = mapped_column(String(20))
    gtin_code: Mapped[Optional[str]] = mapped_column(String(14))
    exemption_reason: Mapped[Optional[str]] = mapped_column(Text)
    asin: Mapped[Optional[str]] = mapped_column(String(20))
    fnsku: Mapped[Optional[str]] = mapped_column(String(20))
    # weak back-reference, no FK: the pool stays the only source of truth
    pool_entry_id: Mapped[Optional[int]] = mapped_column(BigInteger)

    __table_args__ = (
        UniqueConstraint("owner_scope", "project_ref", name="uq_project_identifiers_project"),
        CheckConstraint(
            "gtin_type IS NULL OR gtin_type IN ('EAN', 'UPC', 'GTIN_EXEMPT')",
            name="chk_project_identifiers_type"
        ),
        CheckConstraint(
            "(gtin_type = 'GTIN_EXEMPT' AND exemption_reason IS NOT NULL AND gtin_code IS NULL) "
            "OR ((gtin_type IS NULL OR gtin_type <> 'GTIN_EXEMPT') AND exemption_reason IS NULL)",
            name="chk_project_identifiers_exemption"
        ),
        Index("idx_project_identifiers_code", "owner_scope", "gtin_code"),
    )
