# gtin_pool/services/batch_parser.py
"""
Delimited-text parser for GTIN pool imports.

Two layouts, detected from the first non-blank line:
- gtin_columns:    gtin_code,gtin_type,notes (header optional, positional when absent)
- upc_ean_columns: UPC,EAN,... (other columns such as SKU/FNSKU ignored; EAN wins)
"""
from __future__ import annotations
import csv
import io
import re
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

from gtin_pool.errors import ValidationError
from gtin_pool.services.codes import digits_only, validate_code

LAYOUT_GTIN = "gtin_columns"
LAYOUT_UPC_EAN = "upc_ean_columns"

_HDR_CODE = ["gtin_code"]
_HDR_TYPE = ["gtin_type"]
_HDR_NOTES = ["notes"]
_HDR_EAN = ["ean"]
_HDR_UPC = ["upc"]

_NUMERIC_CELL = re.compile(r"^\d[\d\s-]*$")


class RawRecord(NamedTuple):
    row_number: int
    code: str
    declared_type: Optional[str]
    notes: Optional[str]


class ParsedBatch(NamedTuple):
    layout: str
    has_header: bool
    records: List[RawRecord]


def decode_payload(b: bytes) -> str:
    """Imports are UTF-8 only (a leading BOM is tolerated)."""
    try:
        return b.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError("Import file is not valid UTF-8 text", position=e.start)


def _clean_field(v: str) -> str:
    s = (v or "").strip()
    if len(s) >= 2 and s[0] == '"' and s[-1] == '"':
        s = s[1:-1].strip()
    return s


def _norm_hdr_name(h: str) -> str:
    s = _clean_field(h).strip("'")
    s = s.strip("[]").lower()
    s = re.sub(r"\s+", "", s)
    return s


def _build_index(headers: List[str]) -> Dict[str, int]:
    idx: Dict[str, int] = {}
    for i, h in enumerate(headers):
        idx.setdefault(_norm_hdr_name(h), i)
    return idx


def _get_val(row: List[str], idx: Dict[str, int], candidates: List[str]) -> str:
    for c in candidates:
        j = idx.get(c)
        if j is not None and j < len(row):
            v = _clean_field(row[j])
            if v:
                return v
    return ""


def _cell(row: List[str], i: int) -> str:
    return _clean_field(row[i]) if 0 <= i < len(row) else ""


def detect_layout(first_row: List[str]) -> tuple[str, bool]:
    """Return (layout, has_header) for the first non-blank row."""
    # a row carrying a code (even a malformed one) is data, whatever its labels say
    if any(validate_code(c).valid or _NUMERIC_CELL.match(_clean_field(c)) for c in first_row):
        return LAYOUT_GTIN, False
    names = {_norm_hdr_name(h) for h in first_row}
    # gtin_code wins even if the header also mentions UPC/EAN
    if "gtin_code" in names:
        return LAYOUT_GTIN, True
    if "upc" in names or "ean" in names:
        return LAYOUT_UPC_EAN, True
    return LAYOUT_GTIN, False


def _is_blank(row: List[str]) -> bool:
    return not row or all(not _clean_field(x) for x in row)


def _gtin_record(row: List[str], line_no: int, idx: Optional[Dict[str, int]]) -> RawRecord:
    if idx is None:
        code, declared, notes = _cell(row, 0), _cell(row, 1), _cell(row, 2)
    else:
        code = _get_val(row, idx, _HDR_CODE)
        declared = _get_val(row, idx, _HDR_TYPE)
        notes = _get_val(row, idx, _HDR_NOTES)
    return RawRecord(line_no, code, declared or None, notes or None)


def _upc_ean_record(row: List[str], line_no: int, idx: Dict[str, int]) -> RawRecord:
    ean = _get_val(row, idx, _HDR_EAN)
    upc = _get_val(row, idx, _HDR_UPC)
    if digits_only(ean):
        return RawRecord(line_no, ean, "EAN", None)
    if digits_only(upc):
        return RawRecord(line_no, upc, "UPC", None)
    return RawRecord(line_no, ean or upc, None, None)


def _numbered_rows(reader) -> Iterator[Tuple[int, List[str]]]:
    """Yield (first physical line of the record, row); quoted fields may span lines."""
    while True:
        start = reader.line_num + 1
        try:
            row = next(reader)
        except StopIteration:
            return
        yield start, row


def parse_batch(text: str) -> ParsedBatch:
    """
    Parse a comma-delimited payload into raw records.

    Row numbers are the 1-based physical line a record starts on, so the
    first data line after a header is row 2. Blank lines are skipped but
    counted.
    """
    reader = csv.reader(io.StringIO(text or "", newline=""), delimiter=",", skipinitialspace=True)
    layout: Optional[str] = None
    idx: Optional[Dict[str, int]] = None
    records: List[RawRecord] = []
    has_header = False

    for line_no, row in _numbered_rows(reader):
        if _is_blank(row):
            continue
        if layout is None:
            layout, has_header = detect_layout(row)
            if has_header:
                idx = _build_index(row)
                continue
        if layout == LAYOUT_UPC_EAN:
            records.append(_upc_ean_record(row, line_no, idx or {}))
        else:
            records.append(_gtin_record(row, line_no, idx))

    return ParsedBatch(layout or LAYOUT_GTIN, has_header, records)
