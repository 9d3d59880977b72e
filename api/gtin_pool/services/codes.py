# gtin_pool/services/codes.py
"""
GTIN code validation and type label normalization.

Handles:
- Code validation by digit count (EAN-13 / UPC-12)
- GS1 check digit (informational only)
- Free-text type labels from vendor spreadsheets -> GtinType
"""
from __future__ import annotations
import re
from typing import Any, NamedTuple, Optional

from gtin_pool.db_models import GtinType

_NON_DIGITS = re.compile(r"\D")

# closed synonym table; keys are already uppercased and trimmed
TYPE_SYNONYMS = {
    "EAN": GtinType.EAN,
    "EAN13": GtinType.EAN,
    "EAN-13": GtinType.EAN,
    "EAN_13": GtinType.EAN,
    "EAN 13": GtinType.EAN,
    "GTIN13": GtinType.EAN,
    "GTIN-13": GtinType.EAN,
    "GTIN_13": GtinType.EAN,
    "JAN": GtinType.EAN,
    "UPC": GtinType.UPC,
    "UPCA": GtinType.UPC,
    "UPC-A": GtinType.UPC,
    "UPC_A": GtinType.UPC,
    "UPC A": GtinType.UPC,
    "UPC12": GtinType.UPC,
    "UPC-12": GtinType.UPC,
    "UPC_12": GtinType.UPC,
    "GTIN12": GtinType.UPC,
    "GTIN-12": GtinType.UPC,
    "GTIN_12": GtinType.UPC,
    "GTIN_EXEMPT": GtinType.GTIN_EXEMPT,
    "GTIN-EXEMPT": GtinType.GTIN_EXEMPT,
    "GTIN EXEMPT": GtinType.GTIN_EXEMPT,
    "EXEMPT": GtinType.GTIN_EXEMPT,
    "EXEMPTION": GtinType.GTIN_EXEMPT,
}


class CodeCheck(NamedTuple):
    valid: bool
    gtin_type: Optional[GtinType]


def digits_only(raw: Any) -> str:
    """Strip every non-digit character; None and non-strings never raise."""
    if raw is None:
        return ""
    try:
        return _NON_DIGITS.sub("", str(raw))
    except Exception:
        return ""


def validate_code(raw: Any) -> CodeCheck:
    """
    Valid iff the digit-only length is 13 (EAN) or 12 (UPC).

    Pure and total: garbage input yields CodeCheck(False, None).
    """
    digits = digits_only(raw)
    if len(digits) == 13:
        return CodeCheck(True, GtinType.EAN)
    if len(digits) == 12:
        return CodeCheck(True, GtinType.UPC)
    return CodeCheck(False, None)


def detect_type(raw: Any) -> Optional[GtinType]:
    return validate_code(raw).gtin_type


def has_valid_check_digit(raw: Any) -> bool:
    """GS1 mod-10 check digit for 12/13 digit codes."""
    code = digits_only(raw)
    if len(code) not in (12, 13):
        return False
    body, check = code[:-1], int(code[-1])
    # weights alternate 3,1,... starting from the digit next to the check digit
    total = sum(int(d) * (3 if i % 2 == 0 else 1) for i, d in enumerate(reversed(body)))
    return (10 - (total % 10)) % 10 == check


def normalize_type(label: Any) -> Optional[GtinType]:
    """Map a free-text type label onto GtinType; unknown or empty -> None."""
    if label is None:
        return None
    if isinstance(label, GtinType):
        return label
    key = str(label).strip().upper()
    if not key:
        return None
    return TYPE_SYNONYMS.get(key)


def resolve_type(label: Any, raw_code: Any) -> GtinType:
    """Declared label first, then the type detected from the code, then EAN."""
    return normalize_type(label) or detect_type(raw_code) or GtinType.EAN
