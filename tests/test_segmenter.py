"""
tests/test_segmenter.py
Record segmentation and CDC timestamp parsing.
Synthetic dumps only, no real intercept data.
"""

from datetime import datetime, timezone

from cdcscope.parsers.segmenter import (
    is_header_line, parse_timestamp, split_into_blocks, timestamp_sort_key,
)


# ── FIXTURE: Synthetic dump ───────────────────────────────────

SAMPLE_DUMP = """T1.678 Version 4
termAttempt
  caseId = CASE-2025-001
  timestamp = 20250604035420.132Z
T1.678 Version 4
directSignalReporting
  timestamp = 20250604035421.004Z
IMS-3GPP Version 12
ccOpen
  timestamp = 20250604035422.000Z
"""


class TestHeaderLine:

    def test_vendor_header_detected(self):
        assert is_header_line("T1.678 Version 4")
        assert is_header_line("  IMS-3GPP Version 12  ")

    def test_must_start_with_letter(self):
        assert not is_header_line("1.678 Version 4")
        assert not is_header_line("-- Version 4")

    def test_version_needs_digit(self):
        assert not is_header_line("T1.678 Version four")
        assert not is_header_line("termAttempt")


class TestSplitIntoBlocks:

    def test_one_block_per_header(self):
        blocks = split_into_blocks(SAMPLE_DUMP)
        assert len(blocks) == 3
        assert blocks[0].text.startswith("T1.678 Version 4\ntermAttempt")
        assert blocks[2].text.startswith("IMS-3GPP Version 12")

    def test_lossless_partition(self):
        blocks = split_into_blocks(SAMPLE_DUMP)
        assert "\n".join(b.text for b in blocks) == SAMPLE_DUMP

    def test_lossless_with_crlf(self):
        text = SAMPLE_DUMP.replace("\n", "\r\n")
        blocks = split_into_blocks(text)
        assert len(blocks) == 3
        assert "\n".join(b.text for b in blocks) == text

    def test_preamble_is_its_own_block(self):
        text = "exported by LI gateway\n\n" + SAMPLE_DUMP
        blocks = split_into_blocks(text)
        assert len(blocks) == 4
        assert blocks[0].text == "exported by LI gateway\n"
        assert "\n".join(b.text for b in blocks) == text

    def test_index_and_line_numbers(self):
        blocks = split_into_blocks(SAMPLE_DUMP)
        assert [b.index for b in blocks] == [0, 1, 2]
        assert [b.line_number for b in blocks] == [1, 5, 8]

    def test_empty_input_no_blocks(self):
        assert split_into_blocks("") == []

    def test_no_header_single_block(self):
        blocks = split_into_blocks("just some text\nno records here")
        assert len(blocks) == 1


class TestParseTimestamp:

    def test_fraction_is_decimal_seconds(self):
        ts = parse_timestamp("20250604035420.132Z")
        assert ts == datetime(2025, 6, 4, 3, 54, 20, 132000, tzinfo=timezone.utc)

    def test_short_fraction(self):
        ts = parse_timestamp("20250604035420.5Z")
        assert ts.microsecond == 500000

    def test_no_fraction_no_zone(self):
        ts = parse_timestamp("20250604035420")
        assert ts == datetime(2025, 6, 4, 3, 54, 20, tzinfo=timezone.utc)

    def test_unparseable_is_none(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None
        assert parse_timestamp("yesterday") is None

    def test_out_of_range_is_none(self):
        assert parse_timestamp("20251399035420Z") is None

    def test_sort_key_unparseable_is_zero(self):
        assert timestamp_sort_key(None) == 0
        assert timestamp_sort_key("garbage") == 0
        assert timestamp_sort_key("20250604035420.132Z") > 0

    def test_sort_key_orders_by_instant(self):
        assert timestamp_sort_key("20250604035420.132Z") < timestamp_sort_key("20250604035420.200Z")
