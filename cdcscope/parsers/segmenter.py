"""
cdcscope/parsers/segmenter.py
Splits a raw CDC dump into record blocks, and parses CDC timestamps.

A record starts at a header line: a line whose stripped text begins with a
letter and contains "Version <digit>" (e.g. "T1.678 Version 4").
The split is a lossless partition: joining every block's text with "\\n"
gives back the input byte for byte, CRLF line endings included.
"""

import logging
import re
from datetime import datetime, timezone
from typing import List, Optional

from cdcscope.models.record import RawBlock

logger = logging.getLogger(__name__)

HEADER_LINE = re.compile(r'^[A-Za-z].*Version\s*\d')
CDC_TIMESTAMP = re.compile(r'(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})\.?(\d*)Z?')


def is_header_line(line: str) -> bool:
    return bool(HEADER_LINE.match(line.strip()))


def split_into_blocks(text: str) -> List[RawBlock]:
    """
    Partition the dump into RawBlocks in dump order.
    Lines before the first header form their own leading block.
    """
    if not text:
        return []

    blocks:  List[RawBlock] = []
    current: List[str]      = []
    start_line = 1

    for line_no, line in enumerate(text.split('\n'), start=1):
        if is_header_line(line) and current:
            blocks.append(RawBlock(len(blocks), start_line, '\n'.join(current)))
            current    = []
            start_line = line_no
        current.append(line)

    if current:
        blocks.append(RawBlock(len(blocks), start_line, '\n'.join(current)))

    logger.debug(f"Segmented dump into {len(blocks)} blocks")
    return blocks


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a CDC timestamp (YYYYMMDDhhmmss[.fff][Z]) into an aware UTC datetime.
    The fraction is a decimal fraction of a second. Returns None when absent
    or out of range.
    """
    if not value:
        return None
    match = CDC_TIMESTAMP.search(value)
    if not match:
        return None
    y, mo, d, h, mi, s, frac = match.groups()
    micros = int(round(float(f"0.{frac}") * 1_000_000)) if frac else 0
    try:
        return datetime(
            int(y), int(mo), int(d), int(h), int(mi), int(s),
            min(micros, 999_999), tzinfo=timezone.utc,
        )
    except ValueError:
        return None


def timestamp_sort_key(value: Optional[str]) -> float:
    """Epoch milliseconds, or 0 for anything unparseable."""
    parsed = parse_timestamp(value)
    return parsed.timestamp() * 1000 if parsed else 0
