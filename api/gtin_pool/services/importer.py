# gtin_pool/services/importer.py
"""
GTIN Import Service - bulk import of pool codes from CSV text.

preview():  parse -> normalize/validate per row -> flag in-batch duplicates and
            codes that already exist in the pool. Nothing is written.
commit():   insert rows that are valid and not pool conflicts, one at a time.
            A failing row never aborts the batch and never rolls back rows
            that were already inserted.
"""
from __future__ import annotations
import logging
from collections import Counter
from typing import List, Union

from gtin_pool.db_models import PoolStatus
from gtin_pool.errors import AlreadyExists, InvalidTypeValue
from gtin_pool.models import (
    ImportCommitResult, ImportPreview, ImportPreviewRow, TypeErrorItem
)
from gtin_pool.services.batch_parser import decode_payload, parse_batch
from gtin_pool.services.codes import digits_only, has_valid_check_digit, resolve_type, validate_code
from gtin_pool.services.pool_store import PoolStore

logger = logging.getLogger(__name__)


class GtinImportService:
    """Preview and commit GTIN pool imports for one owner scope."""

    def __init__(self, store: PoolStore, owner_scope: str):
        self.store = store
        self.owner_scope = owner_scope

    # =========================================================================
    # Preview
    # =========================================================================

    @staticmethod
    def build_rows(text: str) -> tuple[str, bool, List[ImportPreviewRow]]:
        """Parse and validate rows without touching the store."""
        batch = parse_batch(text)
        rows: List[ImportPreviewRow] = []
        for rec in batch.records:
            code = digits_only(rec.code)
            rows.append(ImportPreviewRow(
                row_number=rec.row_number,
                code=code,
                gtin_type=resolve_type(rec.declared_type, code),
                notes=rec.notes,
                valid=validate_code(code).valid,
                check_digit_ok=has_valid_check_digit(code),
            ))
        return batch.layout, batch.has_header, rows

    async def preview(self, payload: Union[str, bytes]) -> ImportPreview:
        text = decode_payload(payload) if isinstance(payload, bytes) else payload
        layout, has_header, rows = self.build_rows(text)

        counts = Counter(r.code for r in rows if r.code)
        duplicates = sorted(code for code, n in counts.items() if n > 1)
        existing = await self.store.existing_codes(self.owner_scope, counts.keys())
        conflicts = sorted(existing)

        for r in rows:
            r.duplicate = r.code in counts and counts[r.code] > 1
            r.conflict = r.code in existing

        valid = sum(1 for r in rows if r.valid)
        preview = ImportPreview(
            layout=layout,
            has_header=has_header,
            rows=rows,
            duplicates=duplicates,
            conflicts=conflicts,
            valid=valid,
            invalid=len(rows) - valid,
        )
        logger.info(
            "GTIN import preview for %s: %d rows, %d valid, %d invalid, %d duplicates, %d conflicts",
            self.owner_scope, len(rows), preview.valid, preview.invalid, len(duplicates), len(conflicts),
        )
        return preview

    # =========================================================================
    # Commit
    # =========================================================================

    async def commit(self, preview: ImportPreview) -> ImportCommitResult:
        result = ImportCommitResult(invalid=preview.invalid)
        conflicts = set(preview.conflicts)

        for row in preview.rows:
            # previews round-trip through the client; re-check before writing
            code = digits_only(row.code)
            if not row.valid or not validate_code(code).valid:
                continue
            if row.conflict or code in conflicts:
                if code not in result.skipped_conflicts:
                    result.skipped_conflicts.append(code)
                continue
            try:
                await self.store.insert_entry(
                    self.owner_scope,
                    code,
                    row.gtin_type,
                    notes=row.notes,
                    status=PoolStatus.available,
                )
            except AlreadyExists:
                result.already_existed.append(code)
            except InvalidTypeValue as e:
                logger.warning("GTIN import row %d rejected: %s", row.row_number, e)
                result.type_errors.append(TypeErrorItem(code=code, attempted_type=e.attempted_type))
            else:
                result.inserted.append(code)

        logger.info(
            "GTIN import commit for %s: %d inserted, %d already existed, %d type errors, %d conflicts skipped",
            self.owner_scope, len(result.inserted), len(result.already_existed),
            len(result.type_errors), len(result.skipped_conflicts),
        )
        return result
