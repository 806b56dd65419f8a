"""
cdcscope/parsers/location_parser.py
Extracts location[n] sub-blocks and decodes 3GPP cell identifiers.

CELL-ID HEURISTIC (vendor inconsistency, not a protocol-correct decode):
  full id = MCC(3) + MNC(3) + tail, only split when len(full id) >= 15.
  The tail is read as HEX when it contains a-f or is longer than
  DECIMAL_TAIL_MAX (8) characters; area code = first 4 chars, cell = rest,
  both base-16 ints. Otherwise it is read as DECIMAL TEXT: same split, both
  kept as digit strings. Note a >= 15 char id always has a tail of 9+
  characters, so full ids always take the hex branch; the decimal branch
  only applies when a tail is split on its own.
"""

import logging
import re
from typing import List, Optional, Tuple, Union

from cdcscope.models.record import CellIdentifier, Location
from cdcscope.parsers.fields import extract_field

logger = logging.getLogger(__name__)

MIN_CELL_ID_LENGTH  = 15
MCC_LENGTH          = 3
MNC_LENGTH          = 3
AREA_CODE_LENGTH    = 4
DECIMAL_TAIL_MAX    = 8     # longer tails are always hex

FALLBACK_LOCATION_TYPE = 'P-A-N-I-Header (Fallback)'

CELL_ID_PATTERN = re.compile(r'[a-z-]*cell-id-3gpp=([0-9a-f]+)', re.IGNORECASE)

# Section keywords that end a location[n] sub-block.
_SECTION_END = (
    'subjectMedia', 'associateMedia', 'calling', 'called', 'input',
    'originationCause', 'signalingMsg', 'answering', 'cause', 'contactAddresses',
)
_LOCATION_BLOCK = re.compile(
    r'location\[\d+\][\s\S]*?'
    r'(?=\n\s*location\[\d+\]|\n\s*(?:' + '|'.join(_SECTION_END) + r')|\Z)',
    re.IGNORECASE,
)
_LOCATION_TYPE = re.compile(r'locationType\s*=\s*(.+)', re.IGNORECASE)
_LOCATION_DATA = re.compile(r'locationData\s*=\s*(.+)', re.IGNORECASE)
_HEX_LETTER    = re.compile(r'[a-fA-F]')

CellPart = Optional[Union[int, str]]


def split_cell_tail(tail: str) -> Tuple[CellPart, CellPart, Optional[str], Optional[str]]:
    """
    Split the area/cell tail of a cell id.
    Returns (lac, cell_id, lac_hex, cid_hex); the hex fields are None on the
    decimal branch.
    """
    area, cell = tail[:AREA_CODE_LENGTH], tail[AREA_CODE_LENGTH:]
    if _HEX_LETTER.search(tail) or len(tail) > DECIMAL_TAIL_MAX:
        return (
            int(area, 16) if area else None,
            int(cell, 16) if cell else None,
            area,
            cell,
        )
    return area, cell, None, None


def parse_cell_id(full_cell_id: str) -> CellIdentifier:
    result = CellIdentifier(full_cell_id=full_cell_id)
    if len(full_cell_id) < MIN_CELL_ID_LENGTH:
        return result

    result.mcc = full_cell_id[:MCC_LENGTH]
    result.mnc = full_cell_id[MCC_LENGTH:MCC_LENGTH + MNC_LENGTH]
    tail = full_cell_id[MCC_LENGTH + MNC_LENGTH:]
    try:
        result.lac, result.cell_id, result.lac_hex, result.cid_hex = split_cell_tail(tail)
    except ValueError:
        logger.debug(f"Cell id tail not decodable: {tail!r}")
    return result


def find_cell_id(text: str) -> Optional[str]:
    match = CELL_ID_PATTERN.search(text or '')
    return match.group(1) if match else None


def parse_locations(block: str) -> List[Location]:
    """
    All accepted location[n] sub-blocks (both locationType and locationData
    present). With none accepted, a single fallback location from any
    *cell-id-3gpp= in the block, stamped with the record timestamp.
    """
    locations: List[Location] = []

    for match in _LOCATION_BLOCK.finditer(block):
        chunk     = match.group(0)
        loc_type  = _LOCATION_TYPE.search(chunk)
        loc_data  = _LOCATION_DATA.search(chunk)
        if not loc_type or not loc_data:
            continue
        raw_data = loc_data.group(1).strip()
        cell     = find_cell_id(raw_data)
        locations.append(Location(
            type     = loc_type.group(1).strip(),
            raw_data = raw_data,
            parsed   = parse_cell_id(cell) if cell else None,
        ))

    if not locations:
        fallback = CELL_ID_PATTERN.search(block)
        if fallback:
            locations.append(Location(
                type      = FALLBACK_LOCATION_TYPE,
                raw_data  = fallback.group(0),
                parsed    = parse_cell_id(fallback.group(1)),
                timestamp = extract_field(block, 'timestamp'),
            ))

    return locations
