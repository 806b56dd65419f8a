"""
cdcscope/api.py
─────────────────────────────────────────────────────────────────────────────
CDC Scope: Dual-mode API layer

TWO USAGE MODES:
  1. Importable module:
         from cdcscope.api import CDCScopeAPI
         api = CDCScopeAPI(db_path=Path("cdcscope.db"))
         summary = api.run_analysis(Path("case-0042.txt"), tower_csv=Path("towers.csv"))
         calls   = api.get_calls(call_type="Voice Call")

  2. FastAPI HTTP server:
         python -m cdcscope.api                   # default: port 8765
         python -m cdcscope.api --port 9000
         uvicorn cdcscope.api:app --port 8765

ENDPOINTS:
  POST /analyze                    parse dump text (+ optional tower CSV), return analysis and tower matches (no DB write)
  POST /scan                       parse a dump file → export to DB → return summary
  GET  /calls                      calls from the DB, ordered by start time (?dump_sha256= to scope)
  GET  /calls/{call_id}            single call with its locations (latest dump unless ?dump_sha256=)
  GET  /calls/{call_id}/messages   raw records of one call, in timestamp order
  GET  /meta                       last run metadata
  GET  /health                     server status

CORS: localhost-only (127.0.0.1 / ::1). Not exposed to network by default.

SECURITY NOTES:
  - No authentication (localhost-only, single examiner workstation assumed)
  - SQL queries use parameterized statements only
  - Scan validates dump/tower paths are existing files before parsing
  - Intercept content is never logged
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from cdcscope.aggregators.call_aggregator import FALLBACK_BUCKET
from cdcscope.analyzer import CDCAnalyzer
from cdcscope.exporters.sqlite_exporter import dump_sha256, export
from cdcscope.report_export import analysis_to_dict

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

_JSON_FIELDS = ("device_info", "codecs", "sms_data")


# ═══════════════════════════════════════════════════════════════════════════
# IMPORTABLE CLASS
# ═══════════════════════════════════════════════════════════════════════════

class CDCScopeAPI:
    """
    Pure-Python API wrapper around the analyzer and cdcscope.db.
    No HTTP layer required: import and call directly.

    One analyzer session is shared by every call on this object; a lock
    serializes tower loads against in-flight parses.
    """

    def __init__(
        self,
        db_path:         Path = Path("cdcscope.db"),
        fallback_bucket: str  = FALLBACK_BUCKET,
        fold_order:      str  = "dump",
    ):
        self.db_path  = Path(db_path)
        self.analyzer = CDCAnalyzer(fallback_bucket=fallback_bucket, fold_order=fold_order)
        self._lock    = threading.Lock()

    # ── INTERNAL ──────────────────────────────────────────────────────────

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _db_exists(self) -> bool:
        return self.db_path.exists()

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
        d = {k: row[k] for k in row.keys()}
        for field in _JSON_FIELDS:
            if field in d and d[field] is not None:
                try:
                    d[field] = json.loads(d[field])
                except (json.JSONDecodeError, TypeError):
                    pass  # leave as stored
        return d

    @staticmethod
    def _require_file(path: Optional[Path], label: str) -> Path:
        if path is None:
            raise ValueError(f"{label} is required")
        resolved = Path(path).resolve()
        if not resolved.exists():
            raise ValueError(f"{label} does not exist: {resolved}")
        if not resolved.is_file():
            raise ValueError(f"{label} is not a file: {resolved}")
        return resolved

    # ── ANALYSIS ──────────────────────────────────────────────────────────

    def _load_run_towers(self, csv_text: Optional[str]) -> int:
        """Replace the session's tower table with this run's CSV (or nothing)."""
        self.analyzer.towers.clear()
        if not csv_text:
            return 0
        return self.analyzer.load_towers(csv_text)

    def run_analysis(
        self,
        dump_path: Path,
        tower_csv: Optional[Path] = None,
        run_label: str = "",
    ) -> Dict[str, Any]:
        """
        Parse a dump file, match towers, export to the DB.
        Towers apply to this run only. Returns a summary dict with counts.
        Raises ValueError on bad paths.
        """
        dump_path = self._require_file(dump_path, "dump_path")
        if tower_csv is not None:
            tower_csv = self._require_file(tower_csv, "tower_csv")

        logger.info(f"Analysis started | dump={dump_path.name} | db={self.db_path}")
        text = dump_path.read_text(encoding="utf-8", errors="replace")
        csv_text = tower_csv.read_text(encoding="utf-8", errors="replace") if tower_csv else None

        with self._lock:
            towers_loaded = self._load_run_towers(csv_text)
            result = self.analyzer.parse(text)
            located = sum(
                1
                for call in result.calls.values()
                for match in self.analyzer.match_towers(call)
                if match.tower is not None
            )

        export(
            db_path   = self.db_path,
            result    = result,
            run_label = run_label or dump_path.name,
        )

        summary = {
            "status":            "ok",
            "messages_parsed":   len(result.messages),
            "unclassified":      sum(1 for m in result.messages if m.type is None),
            "calls":             len(result.calls),
            "sms_calls":         sum(1 for c in result.calls.values() if c.call_type == "SMS/MMS"),
            "towers_loaded":     towers_loaded,
            "locations_matched": located,
            "dump_sha256":       dump_sha256(result),
            "db_path":           str(self.db_path),
        }
        logger.info(f"Analysis complete: {summary}")
        return summary

    def analyze_text(self, text: str, tower_csv_text: Optional[str] = None) -> Dict[str, Any]:
        """
        Parse dump text without touching the DB. Returns the serialized
        analysis plus per-call tower matches against tower_csv_text.
        """
        with self._lock:
            self._load_run_towers(tower_csv_text)
            result = self.analyzer.parse(text)
            matches = {key: self.analyzer.match_towers(call) for key, call in result.calls.items()}
        return analysis_to_dict(result, tower_matches=matches)

    # ── QUERY: CALLS ──────────────────────────────────────────────────────

    def get_calls(
        self,
        call_type: Optional[str] = None,
        dump_sha256: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Return calls ordered by start time (unparseable starts first).
        A call id seen in several dumps yields one row per dump.

        Args:
            call_type:   filter, "Voice Call" or "SMS/MMS"
            dump_sha256: filter to one exported dump
            limit:       max rows returned (default 100, max enforced: 500)
            offset:      pagination offset
        """
        if not self._db_exists():
            return []

        limit = min(int(limit), 500)
        offset = max(int(offset), 0)

        sql = "SELECT * FROM calls"
        clauses: list = []
        params: list = []
        if call_type:
            clauses.append("call_type = ?")
            params.append(call_type)
        if dump_sha256:
            clauses.append("dump_sha256 = ?")
            params.append(dump_sha256)
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY start_ms ASC, call_id ASC, run_id ASC LIMIT ? OFFSET ?"
        params += [limit, offset]

        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_dict(r) for r in rows]

    @staticmethod
    def _resolve_call_row(
        conn: sqlite3.Connection,
        call_id: str,
        dump_sha256: Optional[str],
    ) -> Optional[sqlite3.Row]:
        """The call row for one dump, or the most recently exported one."""
        if dump_sha256:
            return conn.execute(
                "SELECT * FROM calls WHERE call_id = ? AND dump_sha256 = ?",
                (call_id, dump_sha256),
            ).fetchone()
        return conn.execute(
            "SELECT * FROM calls WHERE call_id = ? ORDER BY run_id DESC LIMIT 1",
            (call_id,),
        ).fetchone()

    def get_call(self, call_id: str, dump_sha256: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Single call plus its locations in call order. None if not found."""
        if not self._db_exists():
            return None
        with self._connect() as conn:
            row = self._resolve_call_row(conn, call_id, dump_sha256)
            if not row:
                return None
            locations = conn.execute(
                "SELECT * FROM locations WHERE dump_sha256 = ? AND call_id = ? ORDER BY ordinal",
                (row["dump_sha256"], call_id),
            ).fetchall()
        data = self._row_to_dict(row)
        data["locations"] = [dict(loc) for loc in locations]
        return data

    # ── QUERY: MESSAGES ───────────────────────────────────────────────────

    def get_messages(
        self,
        call_id: str,
        dump_sha256: Optional[str] = None,
        limit: int = 200,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Raw records of one call, timestamp ascending (max enforced: 1000)."""
        if not self._db_exists():
            return []

        limit = min(int(limit), 1000)
        offset = max(int(offset), 0)

        with self._connect() as conn:
            row = self._resolve_call_row(conn, call_id, dump_sha256)
            if not row:
                return []
            rows = conn.execute(
                "SELECT * FROM messages WHERE dump_sha256 = ? AND call_id = ? "
                "ORDER BY timestamp_ms ASC, block_index ASC LIMIT ? OFFSET ?",
                (row["dump_sha256"], call_id, limit, offset),
            ).fetchall()
        return [dict(r) for r in rows]

    # ── QUERY: META ───────────────────────────────────────────────────────

    def get_meta(self) -> Optional[Dict[str, Any]]:
        """Return the most recent run metadata row."""
        if not self._db_exists():
            return None
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM cdc_meta ORDER BY id DESC LIMIT 1"
            ).fetchone()
        return dict(row) if row else None


# ═══════════════════════════════════════════════════════════════════════════
# FASTAPI HTTP APP
# ═══════════════════════════════════════════════════════════════════════════

class AnalyzeRequest(BaseModel):
    text:       str
    towers_csv: Optional[str] = None


class ScanRequest(BaseModel):
    dump_path: Optional[str] = None  # uses config if empty
    tower_csv: Optional[str] = None
    run_label: str = ""


def _build_app(db_path: Path = Path("cdcscope.db"), fold_order: str = "dump") -> FastAPI:
    """Build and return the FastAPI application instance."""
    _api = CDCScopeAPI(db_path=db_path, fold_order=fold_order)

    _app = FastAPI(
        title       = "CDC Scope API",
        description = "Lawful-intercept CDC dump parser and call correlator (local only)",
        version     = API_VERSION,
        docs_url    = "/docs",
        redoc_url   = None,
    )

    _app.add_middleware(
        CORSMiddleware,
        allow_origins     = [
            "http://localhost",
            "http://localhost:8765",
            "http://127.0.0.1",
            "http://127.0.0.1:8765",
            "null",   # file:// origin
        ],
        allow_methods     = ["GET", "POST", "OPTIONS"],
        allow_headers     = ["Content-Type"],
        allow_credentials = False,
    )

    # ── ENDPOINTS ───────────────────────────────────────────────────────

    @_app.post("/analyze", summary="Parse dump text")
    def analyze(req: AnalyzeRequest):
        """Parse and correlate the posted dump text. Nothing is written to the DB."""
        try:
            return _api.analyze_text(req.text, tower_csv_text=req.towers_csv)
        except Exception as exc:
            logger.error(f"Analyze endpoint error: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Analysis failed: {exc}")

    @_app.post("/scan", summary="Parse a dump file and export to the DB")
    def scan(req: ScanRequest):
        dump_path = req.dump_path
        tower_csv = req.tower_csv
        if not dump_path:
            from cdcscope.config import load_config
            cfg = load_config(Path.cwd())
            dump_path = cfg.get("dump_path")
            tower_csv = tower_csv or cfg.get("tower_csv")
            if not dump_path:
                raise HTTPException(status_code=400, detail="dump_path required in request or config.")
        try:
            result = _api.run_analysis(
                dump_path = Path(dump_path),
                tower_csv = Path(tower_csv) if tower_csv else None,
                run_label = req.run_label,
            )
            return JSONResponse(content=result, status_code=200)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except Exception as exc:
            logger.error(f"Scan endpoint error: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Scan failed: {exc}")

    @_app.get("/calls", summary="List calls")
    def get_calls(
        call_type:   Optional[str] = Query(None, description="Filter: Voice Call, SMS/MMS"),
        dump_sha256: Optional[str] = Query(None, description="Filter: one exported dump"),
        limit:       int           = Query(100,  ge=1, le=500),
        offset:      int           = Query(0,    ge=0),
    ):
        try:
            data = _api.get_calls(call_type=call_type, dump_sha256=dump_sha256, limit=limit, offset=offset)
            return {"count": len(data), "calls": data}
        except Exception as exc:
            raise HTTPException(status_code=500, detail=str(exc))

    @_app.get("/calls/{call_id}", summary="Get single call")
    def get_call(call_id: str, dump_sha256: Optional[str] = Query(None)):
        try:
            data = _api.get_call(call_id, dump_sha256=dump_sha256)
        except Exception as exc:
            raise HTTPException(status_code=500, detail=str(exc))
        if data is None:
            raise HTTPException(status_code=404, detail=f"Call not found: {call_id}")
        return data

    @_app.get("/calls/{call_id}/messages", summary="Raw records of one call")
    def get_messages(
        call_id:     str,
        dump_sha256: Optional[str] = Query(None),
        limit:       int = Query(200, ge=1, le=1000),
        offset:      int = Query(0,   ge=0),
    ):
        try:
            data = _api.get_messages(call_id, dump_sha256=dump_sha256, limit=limit, offset=offset)
            return {"count": len(data), "messages": data}
        except Exception as exc:
            raise HTTPException(status_code=500, detail=str(exc))

    @_app.get("/meta", summary="Last run metadata")
    def get_meta():
        try:
            data = _api.get_meta()
        except Exception as exc:
            raise HTTPException(status_code=500, detail=str(exc))
        if data is None:
            raise HTTPException(status_code=404, detail="No run metadata found. Run a scan first.")
        return data

    @_app.get("/health", summary="Health check")
    def health():
        return {
            "status":    "ok",
            "db_exists": _api.db_path.exists(),
            "db_path":   str(_api.db_path),
            "version":   API_VERSION,
        }

    return _app


# Module-level app instance, used by uvicorn cdcscope.api:app
app = _build_app()


# ═══════════════════════════════════════════════════════════════════════════
# CLI ENTRYPOINT: python -m cdcscope.api
# ═══════════════════════════════════════════════════════════════════════════

def serve(host: str = "127.0.0.1", port: int = 8765, db_path: Path = Path("cdcscope.db"),
          fold_order: str = "dump") -> None:
    import uvicorn

    server_app = _build_app(db_path=Path(db_path), fold_order=fold_order)
    print(f"""
+--------------------------------------------------+
|   CDC Scope API Server v{API_VERSION}                    |
+--------------------------------------------------+
|  Local:    http://{host}:{port}
|  DB:       {db_path}
|  Docs:     http://{host}:{port}/docs
|  Health:   http://{host}:{port}/health
+--------------------------------------------------+
""")
    uvicorn.run(server_app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(
        prog        = "cdcscope.api",
        description = "CDC Scope API Server (localhost)",
    )
    parser.add_argument("--port", type=int, default=8765,
                        help="Port to bind (default: 8765)")
    parser.add_argument("--db",   type=str, default="cdcscope.db",
                        help="Path to cdcscope.db (default: cdcscope.db)")
    parser.add_argument("--host", type=str, default="127.0.0.1",
                        help="Host to bind. DO NOT change to 0.0.0.0 on shared networks")
    args = parser.parse_args()

    serve(host=args.host, port=args.port, db_path=Path(args.db))
