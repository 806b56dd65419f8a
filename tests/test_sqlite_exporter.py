"""
tests/test_sqlite_exporter.py
SQLite persistence: schema, idempotent re-export, JSON columns.
"""

import json
import sqlite3

import pytest

from cdcscope.aggregators.call_aggregator import FALLBACK_BUCKET
from cdcscope.analyzer import CDCAnalyzer
from cdcscope.exporters.sqlite_exporter import (
    SCHEMA_VERSION, dump_sha256, export, raw_block_sha256,
)


DUMP = """T1.678 Version 4
termAttempt
  caseId = CASE-2025-001
  timestamp = 20250604035420.132Z
  callId
    main = 003A7781C2F
  calling
    uri[0] = sip:+16315550101@ims.example.net
  called
    uri[0] = tel:+16315550199
  sdp =
    v=0
    m=audio 49152 RTP/AVP 96
    a=rtpmap:96 AMR-WB/16000
  location[0]
    locationType = 3GPP-E-UTRAN-FDD
    locationData = utran-cell-id-3gpp=311480550414df40c
T1.678 Version 4
answer
  timestamp = 20250604035425.000Z
  callId
    main = 003A7781C2F
  answering
    uri[0] = tel:+16315550199
T1.678 Version 4
smsMessage
  caseId = CASE-2025-001
  timestamp = 20250604040000.000Z
  callId
    main = 0044B912A7C
  originator = +16315550199
  recipient = +16315550101
  userInput = running late
"""


@pytest.fixture
def result():
    return CDCAnalyzer().parse(DUMP)


def _count(db_path, table):
    conn = sqlite3.connect(str(db_path))
    n = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    conn.close()
    return n


class TestSQLiteExport:

    def test_export_creates_db(self, result, tmp_path):
        db_path = export(tmp_path / "cdcscope.db", result)
        assert db_path.exists()

    def test_schema_tables(self, result, tmp_path):
        db_path = export(tmp_path / "cdcscope.db", result)
        conn    = sqlite3.connect(str(db_path))
        tables  = {r[0] for r in conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        )}
        conn.close()
        assert {"cdc_meta", "calls", "messages", "locations"} <= tables

    def test_row_counts(self, result, tmp_path):
        db_path = export(tmp_path / "cdcscope.db", result)
        assert _count(db_path, "calls") == 2
        assert _count(db_path, "messages") == 3
        assert _count(db_path, "locations") == 1

    def test_reexport_is_idempotent(self, result, tmp_path):
        db_path = tmp_path / "cdcscope.db"
        export(db_path, result)
        export(db_path, result)
        assert _count(db_path, "calls") == 2
        assert _count(db_path, "messages") == 3
        assert _count(db_path, "locations") == 1
        assert _count(db_path, "cdc_meta") == 2

    def test_json_columns(self, result, tmp_path):
        db_path = export(tmp_path / "cdcscope.db", result)
        conn    = sqlite3.connect(str(db_path))
        codecs, sms = conn.execute(
            "SELECT codecs, sms_data FROM calls WHERE call_id = ?", ("003A7781C2F",)
        ).fetchone()
        sms_row = conn.execute(
            "SELECT call_type, sms_data FROM calls WHERE call_id = ?", ("0044B912A7C",)
        ).fetchone()
        conn.close()
        assert json.loads(codecs) == [{"payload_type": "96", "name": "AMR-WB"}]
        assert json.loads(sms) == []
        assert sms_row[0] == "SMS/MMS"
        assert json.loads(sms_row[1])[0]["content"] == "running late"

    def test_call_fields(self, result, tmp_path):
        db_path = export(tmp_path / "cdcscope.db", result)
        conn    = sqlite3.connect(str(db_path))
        conn.row_factory = sqlite3.Row
        row = conn.execute("SELECT * FROM calls WHERE call_id = ?", ("003A7781C2F",)).fetchone()
        conn.close()
        assert row["call_status"] == "Answered"
        assert row["call_direction"] == "Incoming"
        assert row["calling_number"] == "+16315550101"
        assert row["start_ms"] > 0
        assert row["message_count"] == 2

    def test_raw_text_kept_verbatim(self, result, tmp_path):
        db_path = export(tmp_path / "cdcscope.db", result)
        conn    = sqlite3.connect(str(db_path))
        rows    = conn.execute("SELECT raw_text, raw_sha256 FROM messages").fetchall()
        conn.close()
        originals = {m.raw_block.text for m in result.messages}
        for text, digest in rows:
            assert text in originals
            assert digest == raw_block_sha256(text)

    def test_location_decoded_columns(self, result, tmp_path):
        db_path = export(tmp_path / "cdcscope.db", result)
        conn    = sqlite3.connect(str(db_path))
        mcc, mnc, lac, cell = conn.execute(
            "SELECT mcc, mnc, lac, cell_id FROM locations"
        ).fetchone()
        conn.close()
        assert (mcc, mnc) == ("311", "480")
        assert lac == str(int("5504", 16))
        assert cell == str(int("14df40c", 16))

    def test_meta_row(self, result, tmp_path):
        db_path = export(tmp_path / "cdcscope.db", result, run_label="case-0042")
        conn    = sqlite3.connect(str(db_path))
        label, version, msgs, calls = conn.execute(
            "SELECT run_label, schema_version, message_count, call_count FROM cdc_meta"
        ).fetchone()
        conn.close()
        assert label == "case-0042"
        assert version == SCHEMA_VERSION
        assert (msgs, calls) == (3, 2)


SAME_CELL_TWICE = """T1.678 Version 4
termAttempt
  timestamp = 20250604035420.132Z
  callId
    main = 003A7781C2F
  calling
    uri[0] = sip:+16315550101@ims.example.net
  location[0]
    locationType = 3GPP-E-UTRAN-FDD
    locationData = utran-cell-id-3gpp=311480550414df40c
T1.678 Version 4
answer
  timestamp = 20250604035425.000Z
  callId
    main = 003A7781C2F
  answering
    uri[0] = tel:+16315550199
  location[0]
    locationType = 3GPP-E-UTRAN-FDD
    locationData = utran-cell-id-3gpp=311480550414df40c
"""

UNKEYED_SMS = """T1.678 Version 4
smsMessage
  caseId = CASE-{case}
  timestamp = 20250604040000.000Z
  originator = +16315550199
  recipient = +16315550101
  userInput = case {case}
"""


class TestLocationRows:

    def test_repeated_location_from_two_records_is_kept(self, tmp_path):
        result  = CDCAnalyzer().parse(SAME_CELL_TWICE)
        call    = result.calls["003A7781C2F"]
        assert len(call.locations) == 2

        db_path = export(tmp_path / "cdcscope.db", result)
        conn    = sqlite3.connect(str(db_path))
        rows    = conn.execute(
            "SELECT ordinal, full_cell_id FROM locations WHERE call_id = ? ORDER BY ordinal",
            ("003A7781C2F",),
        ).fetchall()
        conn.close()
        assert rows == [(0, "311480550414df40c"), (1, "311480550414df40c")]

    def test_reexport_keeps_location_count(self, tmp_path):
        result  = CDCAnalyzer().parse(SAME_CELL_TWICE)
        db_path = tmp_path / "cdcscope.db"
        export(db_path, result)
        export(db_path, result)
        assert _count(db_path, "locations") == 2


class TestDumpScoping:

    def test_dump_hash_matches_dump_text(self, result):
        assert dump_sha256(result) == raw_block_sha256(DUMP)

    def test_two_dumps_sharing_a_bucket_stay_separate(self, tmp_path):
        db_path  = tmp_path / "cdcscope.db"
        result_a = CDCAnalyzer().parse(UNKEYED_SMS.format(case="A"))
        result_b = CDCAnalyzer().parse(UNKEYED_SMS.format(case="B"))
        assert set(result_a.calls) == set(result_b.calls) == {FALLBACK_BUCKET}
        export(db_path, result_a)
        export(db_path, result_b)

        conn = sqlite3.connect(str(db_path))
        rows = conn.execute(
            "SELECT dump_sha256, message_count, sms_data FROM calls WHERE call_id = ?",
            (FALLBACK_BUCKET,),
        ).fetchall()
        contents = set()
        for dump_hash, message_count, sms_data in rows:
            stored = conn.execute(
                "SELECT COUNT(*) FROM messages WHERE dump_sha256 = ? AND call_id = ?",
                (dump_hash, FALLBACK_BUCKET),
            ).fetchone()[0]
            assert stored == message_count == 1
            contents.update(entry["content"] for entry in json.loads(sms_data))
        conn.close()
        assert len(rows) == 2
        assert contents == {"case A", "case B"}
