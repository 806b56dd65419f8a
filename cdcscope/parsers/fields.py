"""
cdcscope/parsers/fields.py
Generic key=value scanners shared by every record parser.
Values pass through the hex sniffer; a missing field is None, never an error.
"""

import re
from typing import Optional

from cdcscope.parsers.hex_sniffer import decode_possible_hex

_PHONE      = re.compile(r'\+(\d+)')
_QUOTED     = re.compile(r'"([^"]+)"')


def extract_field(block: str, name: str) -> Optional[str]:
    """First `name = value` in the block (case-insensitive), value to end of line."""
    match = re.search(rf'{re.escape(name)}\s*=\s*(.+?)(?:\n|$)', block, re.IGNORECASE)
    if not match:
        return None
    return decode_possible_hex(match.group(1).strip())


def extract_nested_field(block: str, parent: str, child: str) -> Optional[str]:
    """
    `child = value` found anywhere after the first `parent` in the block.
    Pulls e.g. callId → main = ... apart from a top-level callId = ...
    """
    pattern = rf'{re.escape(parent)}[\s\S]*?{re.escape(child)}\s*=\s*(.+?)(?:\n|$)'
    match = re.search(pattern, block, re.IGNORECASE)
    if not match:
        return None
    return decode_possible_hex(match.group(1).strip())


def extract_phone_number(value: Optional[str]) -> Optional[str]:
    """Leading +digits of a URI or header value, e.g. sip:+1631...@host → +1631..."""
    if not value:
        return None
    match = _PHONE.search(value)
    return f"+{match.group(1)}" if match else None


def extract_display_name(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    match = _QUOTED.search(value)
    return match.group(1) if match else None
