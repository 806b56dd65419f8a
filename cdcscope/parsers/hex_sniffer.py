"""
cdcscope/parsers/hex_sniffer.py
Detects and decodes hex-encoded ASCII field values.

Some vendors hex-encode individual values (and whole SIP payloads) in the
dump. HexSniffer.decode() returns the decoded text only when the value is
plausibly hex AND the decoded bytes are mostly printable; otherwise the
original text is returned untouched.

NOTE ON THRESHOLD:
  PRINTABLE_RATIO = 0.70 is a heuristic, not a protocol rule. Short values
  that happen to be valid hex (e.g. "4142") will decode ("AB"); callers
  accept that trade-off.
"""

import re

PRINTABLE_RATIO = 0.70
MIN_HEX_LENGTH  = 2

_HEX_DIGITS = re.compile(r'^[0-9a-fA-F]+$')
_WHITESPACE = re.compile(r'\s+')


class HexSniffer:
    """Reversible hex detection for CDC field values."""

    printable_ratio = PRINTABLE_RATIO

    @staticmethod
    def is_likely_hex(value: str) -> bool:
        if not value or len(value) < MIN_HEX_LENGTH:
            return False
        if len(value) % 2 != 0:
            return False
        return bool(_HEX_DIGITS.match(value))

    @staticmethod
    def encode(text: str) -> str:
        return text.encode('utf-8').hex().upper()

    @classmethod
    def is_mostly_printable(cls, text: str) -> bool:
        if not text:
            return False
        printable = sum(
            1 for c in text
            if 32 <= ord(c) <= 126 or c in '\n\r\t'
        )
        return printable / len(text) >= cls.printable_ratio

    @classmethod
    def decode(cls, text: str) -> str:
        """
        Decode `text` if it is hex (whitespace and a 0x prefix ignored) and
        the result is mostly printable; else return `text` unchanged.
        """
        if not text:
            return text
        compact = _WHITESPACE.sub('', text)
        if compact[:2].lower() == '0x':
            compact = compact[2:]
        if not cls.is_likely_hex(compact):
            return text
        try:
            decoded = bytes.fromhex(compact).decode('utf-8', errors='replace')
        except ValueError:
            return text
        return decoded if cls.is_mostly_printable(decoded) else text


def decode_possible_hex(text: str) -> str:
    return HexSniffer.decode(text)
