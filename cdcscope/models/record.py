"""
cdcscope/models/record.py
Shared dataclass schema. Parsers, the call aggregator, exporters and the API
all use these types. Do not add logic here. data only.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Union


@dataclass(frozen=True)
class RawBlock:
    """One record's verbatim text and its position in the dump."""
    index:       int
    line_number: int            # 1-based line of the block's first line
    text:        str


@dataclass
class SipHeaders:
    """
    Header name → one or more values, in first-seen order.
    Names keep the casing of their first occurrence; lookups in
    sip_parser ignore case. A single value is still a one-item list.
    """
    values: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class SipContent:
    is_request:  bool           = False
    is_response: bool           = False
    method:      Optional[str]  = None
    status_code: Optional[int]  = None
    status_text: Optional[str]  = None
    headers:     SipHeaders     = field(default_factory=SipHeaders)


@dataclass
class SipMessage:
    content:   str
    parsed:    SipContent
    timestamp: Optional[str] = None     # set when folded into a call


@dataclass
class CellIdentifier:
    """
    Composite cell id split into MCC/MNC/area/cell.
    lac/cell_id are ints on the hex branch and digit strings on the
    decimal branch, see location_parser.split_cell_tail.
    """
    full_cell_id: str
    mcc:          Optional[str]               = None
    mnc:          Optional[str]               = None
    lac:          Optional[Union[int, str]]   = None
    cell_id:      Optional[Union[int, str]]   = None
    lac_hex:      Optional[str]               = None
    cid_hex:      Optional[str]               = None


@dataclass
class Location:
    type:      str
    raw_data:  str
    parsed:    Optional[CellIdentifier] = None   # None when no cell id found
    timestamp: Optional[str]            = None


@dataclass
class Codec:
    payload_type: str
    name:         str


@dataclass
class Party:
    uri:          Optional[str] = None
    phone_number: Optional[str] = None
    caller_name:  Optional[str] = None
    headers:      List[str]     = field(default_factory=list)


# ── TYPED PAYLOADS ───────────────────────────────────────────

@dataclass
class EmptyPayload:
    """Payload of an unclassified block."""


@dataclass
class AttemptPayload:
    calling:   Party            = field(default_factory=Party)
    called:    Party            = field(default_factory=Party)
    sdp:       Optional[str]    = None
    codecs:    List[Codec]      = field(default_factory=list)
    locations: List[Location]   = field(default_factory=list)


@dataclass
class AnswerPayload:
    answering: Party            = field(default_factory=Party)
    locations: List[Location]   = field(default_factory=list)


@dataclass
class ReleasePayload:
    cause:     Optional[str]    = None
    locations: List[Location]   = field(default_factory=list)


@dataclass
class CallControlPayload:
    sdp:    Optional[str] = None
    codecs: List[Codec]   = field(default_factory=list)


@dataclass
class SignalingPayload:
    correlation_id: Optional[str]    = None
    sip_messages:   List[SipMessage] = field(default_factory=list)


@dataclass
class SmsPayload:
    sender:    Optional[str] = None     # originator
    recipient: Optional[str] = None
    content:   Optional[str] = None
    direction: str           = 'Received'   # Sent / Received


TypedPayload = Union[
    EmptyPayload, AttemptPayload, AnswerPayload, ReleasePayload,
    CallControlPayload, SignalingPayload, SmsPayload,
]


@dataclass(frozen=True)
class ParsedMessage:
    """One classified record. type is None when no rule matched."""
    type:      Optional[str]
    timestamp: Optional[str]
    case_id:   Optional[str]
    call_id:   Optional[str]
    data:      TypedPayload
    raw_block: RawBlock


# ── CALL AGGREGATE ───────────────────────────────────────────

@dataclass
class DeviceInfo:
    user_agent:   Optional[str] = None
    manufacturer: Optional[str] = None
    model:        Optional[str] = None
    os_version:   Optional[str] = None


@dataclass
class SmsEntry:
    timestamp: Optional[str]
    direction: str              # Sent / Received / SMS (derived from SIP)
    sender:    Optional[str]
    recipient: Optional[str]
    content:   Optional[str]


@dataclass
class CallRecord:
    """Everything the dump says about one correlation key."""
    call_id:             str
    case_id:             Optional[str]       = None
    messages:            List[ParsedMessage] = field(default_factory=list)
    calling_party:       Party               = field(default_factory=Party)
    called_party:        Party               = field(default_factory=Party)
    answering_party:     Party               = field(default_factory=Party)
    caller_name:         Optional[str]       = None
    start_time:          Optional[str]       = None
    answer_time:         Optional[str]       = None
    end_time:            Optional[str]       = None
    duration:            Optional[int]       = None     # seconds
    call_type:           str                 = 'Voice Call'   # Voice Call / SMS/MMS
    call_direction:      Optional[str]       = None     # Incoming / Outgoing
    call_status:         Optional[str]       = None     # Answered / Ended / Initiated
    release_reason:      Optional[str]       = None
    verification_status: Optional[str]       = None
    device_info:         DeviceInfo          = field(default_factory=DeviceInfo)
    locations:           List[Location]      = field(default_factory=list)
    codecs:              List[Codec]         = field(default_factory=list)
    sip_messages:        List[SipMessage]    = field(default_factory=list)
    sms_data:            List[SmsEntry]      = field(default_factory=list)


@dataclass
class AnalysisResult:
    messages:     List[ParsedMessage]
    calls:        Dict[str, CallRecord]
    generated_at: Optional[datetime] = None
