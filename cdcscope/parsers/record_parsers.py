"""
cdcscope/parsers/record_parsers.py
One payload parser per record type. Each takes a raw block's text and
returns its typed payload; a missing section leaves that field at its
default; parsers never raise on odd input.
"""

import re
from typing import List, Optional

from cdcscope.models.record import (
    AnswerPayload, AttemptPayload, CallControlPayload, Codec, Party,
    ReleasePayload, SignalingPayload, SmsPayload,
)
from cdcscope.parsers.fields import (
    extract_display_name, extract_field, extract_phone_number,
)
from cdcscope.parsers.hex_sniffer import decode_possible_hex
from cdcscope.parsers.location_parser import parse_locations
from cdcscope.parsers.sip_parser import build_sip_message

_CALLING_SECTION   = re.compile(r'calling\s*\n([\s\S]*?)(?=called|\Z)', re.IGNORECASE)
_CALLED_SECTION    = re.compile(r'called\s*\n([\s\S]*?)(?=associateMedia|location|\Z)', re.IGNORECASE)
_ANSWERING_SECTION = re.compile(r'answering\s*\n([\s\S]*?)(?=location|\Z)', re.IGNORECASE)
_CAUSE_SECTION     = re.compile(r'cause\s*\n([\s\S]*?)(?=contactAddresses|location|\Z)', re.IGNORECASE)

_FIRST_URI        = re.compile(r'uri\[0\]\s*=\s*(.+)', re.IGNORECASE)
_SIP_HEADER       = re.compile(r'sipHeader\[\d+\]\s*=\s*(.+)', re.IGNORECASE)
_SIGNALING_TYPE   = re.compile(r'signalingType\s*=\s*(.+)', re.IGNORECASE)

_ATTEMPT_SDP      = re.compile(r'sdp\s*=\s*([\s\S]*?)(?=\n\s*\n|\n[a-zA-Z]|\Z)')
_CC_SDP           = re.compile(r'sdp\s*=\s*([\s\S]*?)(?=\n\s*(?:associateMedia|deliveryIdentifier)|\Z)')
_SIGNALING_MSG    = re.compile(r'(?:sigMsg|signalingMsg(?:\[\d+\])?)\s*=\s*([\s\S]*?)(?=\[bin\]|\Z)', re.IGNORECASE)
_RTPMAP           = re.compile(r'a=rtpmap:(\d+)\s+([^\s/]+)')


def parse_codecs_from_sdp(sdp: str) -> List[Codec]:
    """Every a=rtpmap:<pt> <name>/... line, in SDP order."""
    return [Codec(payload_type=m.group(1), name=m.group(2)) for m in _RTPMAP.finditer(sdp or '')]


def _party_from_section(section: Optional[str]) -> Party:
    party = Party()
    if section is None:
        return party
    uri = _FIRST_URI.search(section)
    if uri:
        party.uri          = uri.group(1).strip()
        party.phone_number = extract_phone_number(party.uri)
    return party


def parse_attempt(block: str) -> AttemptPayload:
    data = AttemptPayload()

    calling = _CALLING_SECTION.search(block)
    if calling:
        data.calling = _party_from_section(calling.group(1))
        for match in _SIP_HEADER.finditer(calling.group(1)):
            header = match.group(1).strip()
            data.calling.headers.append(header)
            name = extract_display_name(header)
            if name:
                data.calling.caller_name = name

    called = _CALLED_SECTION.search(block)
    if called:
        data.called = _party_from_section(called.group(1))

    sdp = _ATTEMPT_SDP.search(block)
    if sdp:
        data.sdp    = sdp.group(1).strip()
        data.codecs = parse_codecs_from_sdp(data.sdp)

    data.locations = parse_locations(block)
    return data


def parse_answer(block: str) -> AnswerPayload:
    answering = _ANSWERING_SECTION.search(block)
    return AnswerPayload(
        answering = _party_from_section(answering.group(1) if answering else None),
        locations = parse_locations(block),
    )


def parse_release(block: str) -> ReleasePayload:
    data  = ReleasePayload()
    cause = _CAUSE_SECTION.search(block)
    if cause:
        sig_type = _SIGNALING_TYPE.search(cause.group(1))
        if sig_type:
            data.cause = sig_type.group(1).strip()
    data.locations = parse_locations(block)
    return data


def parse_call_control(block: str) -> CallControlPayload:
    data = CallControlPayload()
    sdp  = _CC_SDP.search(block)
    if sdp:
        data.sdp    = sdp.group(1).strip()
        data.codecs = parse_codecs_from_sdp(data.sdp)
    return data


def parse_signaling(block: str) -> SignalingPayload:
    data = SignalingPayload(correlation_id=extract_field(block, 'correlationID'))
    payload = _SIGNALING_MSG.search(block)
    if payload:
        content = decode_possible_hex(payload.group(1).strip())
        data.sip_messages.append(build_sip_message(content))
    return data


def parse_sms(block: str) -> SmsPayload:
    return SmsPayload(
        sender    = extract_field(block, 'originator'),
        recipient = extract_field(block, 'recipient'),
        content   = extract_field(block, 'userInput') or extract_field(block, 'smsMessage'),
        direction = 'Sent' if 'originating' in block else 'Received',
    )
