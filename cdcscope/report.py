"""
cdcscope/report.py
Structured per-call summaries for case review and export.

Input: AnalysisResult (analyzer). Output: plain dataclasses, no rendering.
Summaries carry identifiers, times and counts only; message bodies and SMS
content stay in the analysis itself.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from cdcscope.models.record import AnalysisResult, CallRecord, SipHeaders
from cdcscope.parsers.segmenter import timestamp_sort_key
from cdcscope.parsers.sip_parser import headers_to_dict
from cdcscope.reference import (
    describe_attestation, describe_sip_status, display_name, get_carrier,
)


# ── REPORT SCHEMA ──────────────────────────────────────────────

@dataclass
class CallSummary:
    call_id: str
    case_id: Optional[str]
    call_type: str
    call_direction: Optional[str]
    call_status: Optional[str]
    duration: Optional[int]
    duration_fmt: str
    calling_number: Optional[str]
    called_number: Optional[str]
    caller_name: Optional[str]
    verification_status: Optional[str]
    attestation: Optional[str]
    carrier: str
    start_time: Optional[str]
    answer_time: Optional[str]
    end_time: Optional[str]
    message_count: int = 0
    sip_message_count: int = 0
    sms_count: int = 0
    location_count: int = 0
    sip_statuses: List[str] = field(default_factory=list)
    record_types: List[str] = field(default_factory=list)


@dataclass
class Report:
    total_messages: int
    total_calls: int
    voice_calls: int
    sms_calls: int
    unclassified_messages: int
    calls: List[CallSummary]
    generated_at: str


def fmt_duration(seconds: Optional[int]) -> str:
    if seconds is None:
        return "N/A"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    return f"{minutes}m {secs:02d}s"


def build_call_summary(call: CallRecord) -> CallSummary:
    # Carrier from the first location that decoded an MCC/MNC
    carrier = get_carrier(None, None)
    for loc in call.locations:
        if loc.parsed and loc.parsed.mcc and loc.parsed.mnc:
            carrier = get_carrier(loc.parsed.mcc, loc.parsed.mnc)
            break

    sip_statuses = [
        f"{sip.parsed.status_code} {describe_sip_status(sip.parsed.status_code)}"
        for sip in call.sip_messages
        if sip.parsed.is_response and sip.parsed.status_code is not None
    ]

    return CallSummary(
        call_id=call.call_id,
        case_id=call.case_id,
        call_type=call.call_type,
        call_direction=call.call_direction,
        call_status=call.call_status,
        duration=call.duration,
        duration_fmt=fmt_duration(call.duration),
        calling_number=call.calling_party.phone_number,
        called_number=call.called_party.phone_number,
        caller_name=call.caller_name,
        verification_status=call.verification_status,
        attestation=describe_attestation(call.verification_status),
        carrier=carrier,
        start_time=call.start_time,
        answer_time=call.answer_time,
        end_time=call.end_time,
        message_count=len(call.messages),
        sip_message_count=len(call.sip_messages),
        sms_count=len(call.sms_data),
        location_count=len(call.locations),
        sip_statuses=sip_statuses,
        record_types=[display_name(m.type) for m in call.messages],
    )


def build_report(result: AnalysisResult) -> Report:
    """Summaries ordered by call start (calls without a start first)."""
    calls = sorted(
        result.calls.values(),
        key=lambda c: timestamp_sort_key(c.start_time or (c.messages[0].timestamp if c.messages else None)),
    )
    generated = result.generated_at or datetime.now(timezone.utc)
    return Report(
        total_messages=len(result.messages),
        total_calls=len(result.calls),
        voice_calls=sum(1 for c in calls if c.call_type == 'Voice Call'),
        sms_calls=sum(1 for c in calls if c.call_type == 'SMS/MMS'),
        unclassified_messages=sum(1 for m in result.messages if m.type is None),
        calls=[build_call_summary(c) for c in calls],
        generated_at=generated.strftime("%Y-%m-%dT%H:%M:%SZ"),
    )


def to_plain(obj: Any) -> Any:
    """Dataclasses to dicts; SIP headers as name -> value-or-list."""
    if isinstance(obj, SipHeaders):
        return headers_to_dict(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if is_dataclass(obj):
        return {f.name: to_plain(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {k: to_plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_plain(x) for x in obj]
    return obj


def report_to_dict(report: Report) -> Dict:
    """Convert Report to a JSON-serializable dict."""
    return to_plain(report)
