# gtin_pool/services/__init__.py
"""
Business logic services for the GTIN pool.
"""
from gtin_pool.services.pool_store import PoolStore, SqlPoolStore
from gtin_pool.services.allocator import PoolAllocator
from gtin_pool.services.importer import GtinImportService
from gtin_pool.services.identifiers import IdentifierBinder

__all__ = [
    "PoolStore",
    "SqlPoolStore",
    "PoolAllocator",
    "GtinImportService",
    "IdentifierBinder",
]
