"""
cdcscope/towers/normalizer.py
Canonical keys for matching decoded cells against a tower table.

Three keys are produced for a cell:
  • composite: "<area>-<cell>" exactly as location_parser decoded them
  • full id  : lower-case, every non-hex character stripped
  • short id : MCC+MNC (6 digits) + the last 7 hex chars of the tail,
                for tables that store the 28-bit ECI instead of the full id

Tower tables often carry only an ECGI column; derive_tac_from_ecgi() fills
in an area code from it. Both derivations are heuristics matched to the
formats seen in carrier exports, not 3GPP-exact decodes.
"""

import re
from dataclasses import dataclass
from typing import Optional

from cdcscope.models.record import CellIdentifier

MCC_MNC_LENGTH  = 6
SHORT_ID_LENGTH = 7       # 28-bit ECI
LONG_TAIL_MIN   = 11

_NON_HEX        = re.compile(r'[^0-9a-f]')
_NON_HEX_OR_SEP = re.compile(r'[^0-9a-fA-F\-:]')
_MCC_MNC_PREFIX = re.compile(r'^\d{6}')
_BARE_ECGI      = re.compile(r'^\d{6}[0-9a-fA-F]{7,}$')
_SEPARATORS     = re.compile(r'[-:]')


@dataclass(frozen=True)
class LookupKeys:
    composite: Optional[str]
    full_id:   Optional[str]
    short_id:  Optional[str]


def normalize_full_cell_id(value) -> Optional[str]:
    if value is None:
        return None
    normalized = _NON_HEX.sub('', str(value).strip().lower())
    return normalized or None


def normalize_short_cell_id(value) -> Optional[str]:
    normalized = normalize_full_cell_id(value)
    if not normalized or not _MCC_MNC_PREFIX.match(normalized):
        return None
    mcc_mnc, rest = normalized[:MCC_MNC_LENGTH], normalized[MCC_MNC_LENGTH:]
    if len(rest) == SHORT_ID_LENGTH:
        return normalized
    if len(rest) >= LONG_TAIL_MIN:
        return mcc_mnc + rest[-SHORT_ID_LENGTH:]
    return None


def composite_key(lac, cell_id) -> Optional[str]:
    if lac is None or cell_id is None or lac == '' or cell_id == '':
        return None
    return f"{lac}-{cell_id}"


def derive_tac_from_ecgi(ecgi) -> Optional[str]:
    """
    Area code (as a decimal string) derived from an ECGI.
      bare "311480550414df40c"  → hex chars 6..10 ("5504") → "21764"
      "311480-550414df40c"      → second segment as hex, // 256
    """
    if ecgi is None:
        return None
    cleaned = _NON_HEX_OR_SEP.sub('', str(ecgi).strip())
    if not cleaned:
        return None
    if _BARE_ECGI.match(cleaned):
        return str(int(cleaned[6:10], 16))

    parts    = [p for p in _SEPARATORS.split(cleaned) if p]
    hex_part = parts[1] if len(parts) > 1 else (parts[0] if parts else None)
    if not hex_part:
        return None
    try:
        return str(int(hex_part, 16) // 256)
    except ValueError:
        return None


def lookup_keys(cell: Optional[CellIdentifier]) -> LookupKeys:
    if cell is None:
        return LookupKeys(None, None, None)
    return LookupKeys(
        composite = composite_key(cell.lac, cell.cell_id),
        full_id   = normalize_full_cell_id(cell.full_cell_id),
        short_id  = normalize_short_cell_id(cell.full_cell_id),
    )
