"""
cdcscope/aggregators/call_aggregator.py
Call-level correlation and aggregation.

Groups ParsedMessages by correlation key (callId, else the fallback bucket)
into CallRecords, folds each record's payload into the call, then finalizes
duration, message order and status in one pass.

NOTE ON FOLD ORDER:
  fold_order='dump' (default) folds messages in dump order, so a record that
  arrives later in the dump but carries an earlier timestamp can still
  overwrite scalar fields (caller name, times). This is the historical
  behavior. fold_order='timestamp' folds each call's messages in stable
  timestamp order instead. Only folding changes; the final messages list
  is sorted by timestamp either way.

NOTE ON DURATION:
  duration = round((end - answer) seconds), half rounded up. Left as None
  when either time is unparseable or end precedes answer, never negative.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Dict, Iterable, List, Optional

from cdcscope.models.record import (
    AnswerPayload, AttemptPayload, CallControlPayload, CallRecord, Location,
    ParsedMessage, ReleasePayload, SignalingPayload, SipMessage, SmsEntry,
    SmsPayload,
)
from cdcscope.parsers import classifier
from cdcscope.parsers.fields import extract_display_name
from cdcscope.parsers.location_parser import find_cell_id, parse_cell_id
from cdcscope.parsers.segmenter import parse_timestamp, timestamp_sort_key
from cdcscope.parsers.sip_parser import (
    build_sms_entry_from_sip, get_header, is_sms_sip_message,
)
from cdcscope.towers.normalizer import normalize_full_cell_id

logger = logging.getLogger(__name__)

FALLBACK_BUCKET = 'Global-Events'
FOLD_ORDERS     = ('dump', 'timestamp')

CALL_TYPE_VOICE = 'Voice Call'
CALL_TYPE_SMS   = 'SMS/MMS'

STATUS_ANSWERED  = 'Answered'
STATUS_ENDED     = 'Ended'
STATUS_INITIATED = 'Initiated'

PANI_LOCATION_TYPE = 'P-A-N-I-Header'

# MANUFACTURER---MODEL---OSVERSION, e.g. APPLE---iPhone15---17.5.1
_VENDOR_USER_AGENT = re.compile(r'([A-Za-z]+)---([^-]+)---(.+)')
_VERSTAT           = re.compile(r'verstat=([^;>\s]+)', re.IGNORECASE)


# ── AGGREGATION ENGINE ───────────────────────────────────────

def build_call_records(
    messages:        Iterable[ParsedMessage],
    fallback_bucket: str = FALLBACK_BUCKET,
    fold_order:      str = 'dump',
) -> Dict[str, CallRecord]:
    """
    Correlate messages into calls. Returns {correlation key: CallRecord}
    in order of first appearance.
    """
    if fold_order not in FOLD_ORDERS:
        raise ValueError(f"fold_order must be one of {FOLD_ORDERS}, got {fold_order!r}")

    calls:   Dict[str, CallRecord]          = {}
    pending: Dict[str, List[ParsedMessage]] = {}

    # ── STEP 1: assign each message to exactly one call ──────
    for message in messages:
        key = message.call_id or fallback_bucket
        if key not in calls:
            calls[key]   = CallRecord(call_id=key)
            pending[key] = []
        calls[key].messages.append(message)
        pending[key].append(message)

    # ── STEP 2: fold payloads into call state ────────────────
    for key, call in calls.items():
        ordered = pending[key]
        if fold_order == 'timestamp':
            ordered = sorted(ordered, key=lambda m: timestamp_sort_key(m.timestamp))
        for message in ordered:
            try:
                fold_message(call, message)
            except Exception as e:
                logger.warning(
                    f"Fold failed for block {message.raw_block.index} "
                    f"({message.type}) into call {key}: {e}"
                )

    # ── STEP 3: finalize ─────────────────────────────────────
    for call in calls.values():
        finalize_call(call)

    logger.info(f"Correlated {sum(len(c.messages) for c in calls.values())} messages into {len(calls)} calls")
    return calls


def fold_message(call: CallRecord, message: ParsedMessage) -> None:
    """Apply one message's payload to the call's accumulated state."""
    if message.case_id:
        call.case_id = message.case_id

    data = message.data
    if message.type in classifier.ATTEMPT_TYPES and isinstance(data, AttemptPayload):
        _fold_attempt(call, message, data)
    elif message.type in classifier.SIGNALING_TYPES and isinstance(data, SignalingPayload):
        for sip in data.sip_messages:
            _fold_sip(call, message, sip)
    elif message.type in classifier.CALL_CONTROL_TYPES and isinstance(data, CallControlPayload):
        if data.codecs and not call.codecs:
            call.codecs = list(data.codecs)
    elif message.type == classifier.ANSWER and isinstance(data, AnswerPayload):
        call.answer_time     = message.timestamp
        call.call_status     = STATUS_ANSWERED
        call.answering_party = data.answering
        call.locations.extend(data.locations)
    elif message.type == classifier.RELEASE and isinstance(data, ReleasePayload):
        call.end_time       = message.timestamp
        call.release_reason = data.cause
        call.locations.extend(data.locations)
    elif message.type in classifier.SMS_TYPES and isinstance(data, SmsPayload):
        call.call_type = CALL_TYPE_SMS
        call.sms_data.append(SmsEntry(
            timestamp = message.timestamp,
            direction = data.direction,
            sender    = data.sender,
            recipient = data.recipient,
            content   = data.content,
        ))


def finalize_call(call: CallRecord) -> None:
    call.duration = compute_duration(call.answer_time, call.end_time)
    call.messages.sort(key=lambda m: timestamp_sort_key(m.timestamp))
    if not call.call_status:
        if call.end_time:
            call.call_status = STATUS_ENDED
        elif call.start_time:
            call.call_status = STATUS_INITIATED


def compute_duration(answer_time: Optional[str], end_time: Optional[str]) -> Optional[int]:
    start = parse_timestamp(answer_time)
    end   = parse_timestamp(end_time)
    if start is None or end is None:
        return None
    seconds = (end - start).total_seconds()
    if seconds < 0:
        logger.debug(f"End {end_time} precedes answer {answer_time}; duration left unset")
        return None
    return int(math.floor(seconds + 0.5))


# ── FOLD HELPERS ─────────────────────────────────────────────

def _fold_attempt(call: CallRecord, message: ParsedMessage, data: AttemptPayload) -> None:
    call.call_direction = 'Incoming' if message.type == classifier.TERM_ATTEMPT else 'Outgoing'
    call.start_time     = message.timestamp
    call.calling_party  = data.calling
    call.called_party   = data.called
    if message.type == classifier.TERM_ATTEMPT and data.calling.caller_name:
        call.caller_name = data.calling.caller_name
    if data.codecs:
        call.codecs = list(data.codecs)
    call.locations.extend(data.locations)


def _fold_sip(call: CallRecord, message: ParsedMessage, sip: SipMessage) -> None:
    call.sip_messages.append(SipMessage(
        content   = sip.content,
        parsed    = sip.parsed,
        timestamp = message.timestamp,
    ))
    headers = sip.parsed.headers

    if is_sms_sip_message(sip, message.raw_block.text):
        call.call_type = CALL_TYPE_SMS
        call.sms_data.append(build_sms_entry_from_sip(sip, message.raw_block.text, message.timestamp))

    pai = get_header(headers, 'P-Asserted-Identity')
    if pai and not call.caller_name:
        call.caller_name = extract_display_name(pai)

    user_agent = get_header(headers, 'User-Agent')
    if user_agent:
        call.device_info.user_agent = user_agent
        vendor = _VENDOR_USER_AGENT.search(user_agent)
        if vendor:
            call.device_info.manufacturer = vendor.group(1).capitalize()
            call.device_info.model        = vendor.group(2)
            call.device_info.os_version   = vendor.group(3).strip()

    pani = get_header(headers, 'P-Access-Network-Info')
    cell = find_cell_id(pani) if pani else None
    if cell and not _has_location(call, cell):
        call.locations.append(Location(
            type      = PANI_LOCATION_TYPE,
            raw_data  = pani,
            parsed    = parse_cell_id(cell),
            timestamp = message.timestamp,
        ))

    for name, values in headers.values.items():
        if 'reputation' in name.lower():
            verstat = _VERSTAT.search(values[0])
            if verstat:
                call.verification_status = verstat.group(1)


def _has_location(call: CallRecord, cell_id: str) -> bool:
    wanted = normalize_full_cell_id(cell_id)
    return any(
        loc.parsed is not None and normalize_full_cell_id(loc.parsed.full_cell_id) == wanted
        for loc in call.locations
    )
