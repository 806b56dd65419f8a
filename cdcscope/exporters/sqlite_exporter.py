"""
cdcscope/exporters/sqlite_exporter.py
Persists an analysis run to SQLite for case review and the API.

SCHEMA DESIGN NOTES:
- every call, message and location row is scoped by dump_sha256, the
  SHA-256 of the full dump text, so two dumps that share a correlation key
  (e.g. Global-Events) never overwrite each other
- re-exporting the same dump replaces that dump's rows in one transaction;
  run_id points at the cdc_meta row of the latest export
- messages keep the raw record text verbatim for audit, one row per block
- locations are one row per entry of CallRecord.locations, keyed by ordinal,
  so identical locations reported by different records are all kept
- timestamp_ms columns are Unix epoch milliseconds (0 when unparseable)
"""

import hashlib
import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List

from cdcscope.models.record import AnalysisResult, CallRecord
from cdcscope.parsers.segmenter import timestamp_sort_key
from cdcscope.report import to_plain

logger = logging.getLogger(__name__)

SCHEMA_VERSION = '1.1'


def export(
    db_path:   Path,
    result:    AnalysisResult,
    run_label: str = '',
) -> Path:
    """
    Write one analysis to the SQLite database.
    Safe to call multiple times: an earlier export of the same dump is
    replaced, other dumps are left untouched. Returns db_path.
    """
    calls     = list(result.calls.values())
    dump_hash = dump_sha256(result)

    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA journal_mode=WAL")   # Safe concurrent reads

    try:
        _create_schema(conn)
        run_id = _write_meta(conn, result, run_label, dump_hash)
        _clear_dump(conn, dump_hash)
        _write_calls(conn, calls, dump_hash, run_id)
        _write_messages(conn, calls, dump_hash)
        _write_locations(conn, calls, dump_hash)
        conn.commit()
        logger.info(
            f"SQLite export complete → {db_path}\n"
            f"  Run: {run_id} | Dump: {dump_hash[:12]} | "
            f"Messages: {len(result.messages)} | Calls: {len(calls)}"
        )
    except Exception as e:
        conn.rollback()
        logger.error(f"SQLite export failed: {e}")
        raise
    finally:
        conn.close()

    return db_path


def raw_block_sha256(text: str) -> str:
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def dump_sha256(result: AnalysisResult) -> str:
    """SHA-256 of the dump text, rebuilt from the blocks (segmentation is lossless)."""
    return raw_block_sha256('\n'.join(m.raw_block.text for m in result.messages))


# ── SCHEMA ───────────────────────────────────────────────────

def _create_schema(conn: sqlite3.Connection) -> None:
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS cdc_meta (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            run_at          TEXT    NOT NULL,
            run_label       TEXT,
            schema_version  TEXT    NOT NULL,
            dump_sha256     TEXT    NOT NULL,
            message_count   INTEGER DEFAULT 0,
            call_count      INTEGER DEFAULT 0,
            notes           TEXT
        );

        CREATE TABLE IF NOT EXISTS calls (
            dump_sha256         TEXT    NOT NULL,
            call_id             TEXT    NOT NULL,
            run_id              INTEGER NOT NULL,
            case_id             TEXT,
            call_type           TEXT,
            call_direction      TEXT,
            call_status         TEXT,
            calling_number      TEXT,
            called_number       TEXT,
            caller_name         TEXT,
            start_time          TEXT,
            start_ms            INTEGER DEFAULT 0,
            answer_time         TEXT,
            end_time            TEXT,
            duration_sec        INTEGER,
            release_reason      TEXT,
            verification_status TEXT,
            device_info         TEXT,    -- JSON object
            codecs              TEXT,    -- JSON array
            sms_data            TEXT,    -- JSON array
            message_count       INTEGER DEFAULT 0,
            PRIMARY KEY (dump_sha256, call_id)
        );

        CREATE TABLE IF NOT EXISTS messages (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            dump_sha256     TEXT    NOT NULL,
            call_id         TEXT    NOT NULL,
            block_index     INTEGER NOT NULL,
            line_number     INTEGER,
            record_type     TEXT,
            timestamp       TEXT,
            timestamp_ms    INTEGER DEFAULT 0,
            case_id         TEXT,
            raw_sha256      TEXT    NOT NULL,
            raw_text        TEXT,
            UNIQUE(dump_sha256, block_index)
        );

        CREATE TABLE IF NOT EXISTS locations (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            dump_sha256     TEXT    NOT NULL,
            call_id         TEXT    NOT NULL,
            ordinal         INTEGER NOT NULL,
            location_type   TEXT,
            raw_data        TEXT,
            full_cell_id    TEXT,
            mcc             TEXT,
            mnc             TEXT,
            lac             TEXT,
            cell_id         TEXT,
            timestamp       TEXT,
            UNIQUE(dump_sha256, call_id, ordinal)
        );

        CREATE INDEX IF NOT EXISTS idx_call_id      ON calls(call_id, run_id);
        CREATE INDEX IF NOT EXISTS idx_call_start   ON calls(start_ms);
        CREATE INDEX IF NOT EXISTS idx_call_type    ON calls(call_type);
        CREATE INDEX IF NOT EXISTS idx_msg_call     ON messages(dump_sha256, call_id, timestamp_ms);
        CREATE INDEX IF NOT EXISTS idx_loc_call     ON locations(dump_sha256, call_id);
        CREATE INDEX IF NOT EXISTS idx_loc_cell     ON locations(full_cell_id);
    """)


# ── WRITERS ──────────────────────────────────────────────────

def _write_meta(
    conn:      sqlite3.Connection,
    result:    AnalysisResult,
    run_label: str,
    dump_hash: str,
) -> int:
    cursor = conn.execute("""
        INSERT INTO cdc_meta
        (run_at, run_label, schema_version, dump_sha256, message_count, call_count)
        VALUES (?,?,?,?,?,?)
    """, (
        datetime.now().isoformat(),
        run_label or 'cdcscope-run',
        SCHEMA_VERSION,
        dump_hash,
        len(result.messages),
        len(result.calls),
    ))
    return cursor.lastrowid


def _clear_dump(conn: sqlite3.Connection, dump_hash: str) -> None:
    for table in ('calls', 'messages', 'locations'):
        conn.execute(f"DELETE FROM {table} WHERE dump_sha256 = ?", (dump_hash,))


def _write_calls(
    conn:      sqlite3.Connection,
    calls:     List[CallRecord],
    dump_hash: str,
    run_id:    int,
) -> None:
    if not calls:
        return
    rows = [
        (
            dump_hash, c.call_id, run_id, c.case_id, c.call_type,
            c.call_direction, c.call_status,
            c.calling_party.phone_number, c.called_party.phone_number,
            c.caller_name, c.start_time, int(timestamp_sort_key(c.start_time)),
            c.answer_time, c.end_time, c.duration, c.release_reason,
            c.verification_status,
            json.dumps(to_plain(c.device_info)),
            json.dumps(to_plain(c.codecs)),
            json.dumps(to_plain(c.sms_data)),
            len(c.messages),
        )
        for c in calls
    ]
    conn.executemany("""
        INSERT INTO calls
        (dump_sha256, call_id, run_id, case_id, call_type, call_direction,
         call_status, calling_number, called_number, caller_name, start_time,
         start_ms, answer_time, end_time, duration_sec, release_reason,
         verification_status, device_info, codecs, sms_data, message_count)
        VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
    """, rows)
    logger.debug(f"Wrote {len(rows)} call rows")


def _write_messages(
    conn:      sqlite3.Connection,
    calls:     List[CallRecord],
    dump_hash: str,
) -> None:
    rows = [
        (
            dump_hash, c.call_id, m.raw_block.index, m.raw_block.line_number,
            m.type, m.timestamp, int(timestamp_sort_key(m.timestamp)),
            m.case_id, raw_block_sha256(m.raw_block.text), m.raw_block.text,
        )
        for c in calls
        for m in c.messages
    ]
    if not rows:
        return
    conn.executemany("""
        INSERT INTO messages
        (dump_sha256, call_id, block_index, line_number, record_type,
         timestamp, timestamp_ms, case_id, raw_sha256, raw_text)
        VALUES (?,?,?,?,?,?,?,?,?,?)
    """, rows)
    logger.debug(f"Wrote {len(rows)} message rows")


def _write_locations(
    conn:      sqlite3.Connection,
    calls:     List[CallRecord],
    dump_hash: str,
) -> None:
    rows = []
    for c in calls:
        for ordinal, loc in enumerate(c.locations):
            cell = loc.parsed
            rows.append((
                dump_hash, c.call_id, ordinal, loc.type, loc.raw_data,
                cell.full_cell_id if cell else None,
                cell.mcc if cell else None,
                cell.mnc if cell else None,
                str(cell.lac) if cell and cell.lac is not None else None,
                str(cell.cell_id) if cell and cell.cell_id is not None else None,
                loc.timestamp,
            ))
    if not rows:
        return
    conn.executemany("""
        INSERT INTO locations
        (dump_sha256, call_id, ordinal, location_type, raw_data, full_cell_id,
         mcc, mnc, lac, cell_id, timestamp)
        VALUES (?,?,?,?,?,?,?,?,?,?,?)
    """, rows)
    logger.debug(f"Wrote {len(rows)} location rows")
