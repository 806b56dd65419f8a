"""
cdcscope/report_export.py
Evidence export format.

Output: JSON (primary) or the same structure as a dict.
Every export includes: metadata (generated_at, scan parameters), the call
report, the full serialized analysis, the export format version, and a
data integrity hash (SHA-256 over the canonical JSON of everything else).
"""

import hashlib
import json
from typing import Any, Dict, List, Optional

from cdcscope.analyzer import TowerMatch
from cdcscope.models.record import AnalysisResult
from cdcscope.report import build_report, report_to_dict, to_plain


EXPORT_FORMAT_VERSION = "1.0"


def analysis_to_dict(
    result: AnalysisResult,
    tower_matches: Optional[Dict[str, List[TowerMatch]]] = None,
) -> Dict[str, Any]:
    """
    Serialized analysis. With tower_matches ({call_id: matches}), each call
    key also gets its location → tower rows under "tower_matches".
    """
    data = {
        "generated_at": result.generated_at.isoformat() if result.generated_at else None,
        "messages": to_plain(result.messages),
        "calls": {key: to_plain(call) for key, call in result.calls.items()},
    }
    if tower_matches is not None:
        data["tower_matches"] = {key: to_plain(rows) for key, rows in tower_matches.items()}
    return data


def _build_export_payload(
    result: AnalysisResult,
    scan_parameters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build export payload (no hash yet). Used for both JSON and dict output."""
    report = build_report(result)
    return {
        "export_format_version": EXPORT_FORMAT_VERSION,
        "report_metadata": {
            "generated_at": report.generated_at,
            "scan_parameters": dict(scan_parameters) if scan_parameters else {},
        },
        "report": report_to_dict(report),
        "analysis": analysis_to_dict(result),
    }


def content_hash_sha256(payload: Dict[str, Any]) -> str:
    """SHA-256 of canonical JSON serialization of payload (no hash field)."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def export_to_dict(
    result: AnalysisResult,
    scan_parameters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    payload = _build_export_payload(result, scan_parameters)
    return {**payload, "content_hash_sha256": content_hash_sha256(payload)}


def export_to_json(
    result: AnalysisResult,
    scan_parameters: Optional[Dict[str, Any]] = None,
    indent: Optional[int] = 2,
) -> str:
    """
    Export an analysis to a JSON string (primary format).
    Re-hashing the parsed JSON minus content_hash_sha256 reproduces the hash.
    """
    return json.dumps(export_to_dict(result, scan_parameters), indent=indent, sort_keys=False)
