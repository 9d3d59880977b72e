"""Unit tests for the GTIN import pipeline (preview + commit)."""
import pytest

from gtin_pool.db_models import GtinType, PoolStatus
from gtin_pool.services import GtinImportService
from gtin_pool.services.batch_parser import LAYOUT_UPC_EAN


UPC_EAN_FILE = (
    "UPC,EAN,SKU,FNSKU\n"
    "012345678905,8437012345678,SKU-001,FNSKU-001\n"
    ",8437012345679,SKU-002,\n"
)


@pytest.mark.unit
@pytest.mark.asyncio
class TestPreview:
    """Preview never writes and flags rows independently."""

    async def test_upc_ean_layout(self, importer: GtinImportService):
        preview = await importer.preview(UPC_EAN_FILE)

        assert preview.layout == LAYOUT_UPC_EAN
        assert [(r.code, r.gtin_type, r.valid) for r in preview.rows] == [
            ("8437012345678", GtinType.EAN, True),
            ("8437012345679", GtinType.EAN, True),
        ]
        assert preview.valid == 2
        assert preview.invalid == 0

    async def test_gtin_layout(self, importer):
        preview = await importer.preview(b"gtin_code,gtin_type,notes\n8437012345678,EAN,Lot GS1\n")

        assert len(preview.rows) == 1
        row = preview.rows[0]
        assert row.code == "8437012345678"
        assert row.gtin_type == GtinType.EAN
        assert row.valid is True
        assert row.notes == "Lot GS1"
        assert row.row_number == 2

    async def test_headerless_gtin_file(self, importer):
        preview = await importer.preview("8437012345678,EAN,Lot GS1\n8437012345679,EAN,Lot GS1\n")

        assert preview.layout == "gtin_columns"
        assert preview.has_header is False
        assert [(r.row_number, r.code, r.valid) for r in preview.rows] == [
            (1, "8437012345678", True),
            (2, "8437012345679", True),
        ]

    async def test_type_fallbacks(self, importer):
        preview = await importer.preview(
            "012345678905\n"        # no label -> detected UPC
            "8437012345678,EAN13\n"  # synonym
            "123,vendor-code\n"      # unknown label, undetectable -> EAN
        )

        assert [r.gtin_type for r in preview.rows] == [GtinType.UPC, GtinType.EAN, GtinType.EAN]
        assert [r.valid for r in preview.rows] == [True, True, False]
        assert preview.valid == 2
        assert preview.invalid == 1

    async def test_non_digits_stripped(self, importer):
        preview = await importer.preview('"843-7012-345678",EAN\n')

        assert preview.rows[0].code == "8437012345678"
        assert preview.rows[0].valid is True

    async def test_in_batch_duplicates(self, importer):
        preview = await importer.preview("8437012345678\n8437012345678\n012345678905\n")

        assert preview.duplicates == ["8437012345678"]
        assert len(preview.rows) == 3
        assert [r.duplicate for r in preview.rows] == [True, True, False]

    async def test_duplicates_counted_over_invalid_rows_too(self, importer):
        preview = await importer.preview("123\n123\n")

        assert preview.duplicates == ["123"]
        assert preview.invalid == 2

    async def test_conflicts_any_status(self, importer, store, scope):
        archived = await store.insert_entry(scope, "8437012345678", GtinType.EAN)
        await store.archive_entry(scope, archived.id)
        await store.insert_entry(scope, "012345678905", GtinType.UPC)

        preview = await importer.preview("8437012345678\n012345678905\n8437012345679\n")

        assert preview.conflicts == ["012345678905", "8437012345678"]
        assert [r.conflict for r in preview.rows] == [True, True, False]
        # conflicts are still valid rows in the preview
        assert preview.valid == 3

    async def test_classifications_are_independent(self, importer, store, scope):
        await store.insert_entry(scope, "8437012345678", GtinType.EAN)

        preview = await importer.preview("8437012345678\n8437012345678\n99\n")

        assert preview.valid == 2
        assert preview.invalid == 1
        assert preview.duplicates == ["8437012345678"]
        assert preview.conflicts == ["8437012345678"]

    async def test_preview_does_not_write(self, importer, store, scope):
        await importer.preview(UPC_EAN_FILE)

        assert await store.list_entries(scope) == []


@pytest.mark.unit
@pytest.mark.asyncio
class TestCommit:
    """Commit inserts valid, non-conflicting rows one at a time."""

    async def test_commit_inserts_available_entries(self, importer, store, scope):
        preview = await importer.preview(UPC_EAN_FILE)

        result = await importer.commit(preview)

        assert result.inserted == ["8437012345678", "8437012345679"]
        assert result.already_existed == []
        assert result.type_errors == []
        entries = await store.list_entries(scope, status=PoolStatus.available)
        assert {e.code for e in entries} == {"8437012345678", "8437012345679"}

    async def test_conflicts_excluded_from_insert(self, importer, store, scope):
        await store.insert_entry(scope, "8437012345678", GtinType.EAN, notes="original")
        preview = await importer.preview("8437012345678,EAN,new lot\n012345678905\n")

        result = await importer.commit(preview)

        assert result.inserted == ["012345678905"]
        assert result.skipped_conflicts == ["8437012345678"]
        kept = await store.find_by_code(scope, "8437012345678")
        assert kept.notes == "original"

    async def test_invalid_rows_skipped_and_reported(self, importer, store, scope):
        preview = await importer.preview("8437012345678\n123\n\n4567\n")

        result = await importer.commit(preview)

        assert result.inserted == ["8437012345678"]
        assert result.invalid == 2

    async def test_in_batch_duplicate_hits_store_uniqueness(self, importer):
        preview = await importer.preview("8437012345678\n8437012345678\n012345678905\n")

        result = await importer.commit(preview)

        assert result.inserted == ["8437012345678", "012345678905"]
        assert result.already_existed == ["8437012345678"]

    async def test_type_error_does_not_abort_batch(self, importer, store, scope):
        preview = await importer.preview("8437012345678,EXEMPT\n012345678905,UPC\n")

        result = await importer.commit(preview)

        assert [(t.code, t.attempted_type) for t in result.type_errors] == [("8437012345678", "GTIN_EXEMPT")]
        assert result.inserted == ["012345678905"]
        assert await store.find_by_code(scope, "8437012345678") is None

    async def test_retry_is_idempotent(self, importer, store, scope):
        preview = await importer.preview(UPC_EAN_FILE)
        await importer.commit(preview)

        # same (now stale) preview committed again
        again = await importer.commit(preview)

        assert again.inserted == []
        assert again.already_existed == ["8437012345678", "8437012345679"]
        assert len(await store.list_entries(scope)) == 2

    async def test_commit_rechecks_tampered_rows(self, importer, store, scope):
        preview = await importer.preview("8437012345678\n")
        preview.rows[0].code = "12"  # still flagged valid by the client

        result = await importer.commit(preview)

        assert result.inserted == []
        assert await store.list_entries(scope) == []
