"""
cdcscope/parsers/sip_parser.py
Parses SIP request/response text carried inside signaling records.

SIP is only read as text here; nothing is ever sent. Header names are
case-insensitive: repeats of a name (in any casing) accumulate, in order,
under the casing seen first.

SMS-OVER-IMS DETECTION:
  A SIP message is treated as SMS-bearing if any of these hold:
    • method is MESSAGE
    • Content-Type is a 3GPP SMS type (application/vnd.3gpp.sms)
    • Accept-Contact carries the smsip feature tag
    • the enclosing raw record mentions "GSM SMS" or "SMS-DELIVER"
  The derived entry carries a short label, not the decoded SMS TPDU.
"""

import logging
import re
from typing import Dict, List, Optional, Union

from cdcscope.models.record import SipContent, SipHeaders, SipMessage, SmsEntry
from cdcscope.parsers.fields import extract_phone_number

logger = logging.getLogger(__name__)

SIP_VERSION    = 'SIP/2.0'
_STATUS_LINE   = re.compile(r'^SIP/2\.0\s+(\d{3})\s+(.+)')
_REQUEST_LINE  = re.compile(r'^(\w+)\s+')
_HEADER_LINE   = re.compile(r'^([^:]+):\s*(.+)')

_SMS_CONTENT_TYPE = re.compile(r'3gpp\.sms', re.IGNORECASE)
_SMSIP_TAG        = re.compile(r'smsip', re.IGNORECASE)
_GSM_SMS_MARKERS  = (
    re.compile(r'gsm\s+sms', re.IGNORECASE),
    re.compile(r'sms-deliver', re.IGNORECASE),
)
_SMS_DELIVER_FROM = re.compile(r'GSM\s+SMS-DELIVER[^\n]*:\s*([0-9+]+)', re.IGNORECASE)

SMS_LABEL_DEFAULT = 'SIP MESSAGE (SMS)'


# ── HEADERS ──────────────────────────────────────────────────

def add_header(headers: SipHeaders, name: str, value: str) -> None:
    key = _find_key(headers, name)
    if key is None:
        headers.values[name] = [value]
    else:
        headers.values[key].append(value)


def get_header(headers: SipHeaders, name: str) -> Optional[str]:
    """First value of header `name`, ignoring case."""
    values = get_header_values(headers, name)
    return values[0] if values else None


def get_header_values(headers: SipHeaders, name: str) -> List[str]:
    key = _find_key(headers, name)
    return list(headers.values[key]) if key is not None else []


def headers_to_dict(headers: SipHeaders) -> Dict[str, Union[str, List[str]]]:
    """Serialized shape: a single value as a string, repeats as a list."""
    return {
        name: values[0] if len(values) == 1 else list(values)
        for name, values in headers.values.items()
    }


def _find_key(headers: SipHeaders, name: str) -> Optional[str]:
    wanted = name.lower()
    for key in headers.values:
        if key.lower() == wanted:
            return key
    return None


# ── CONTENT ──────────────────────────────────────────────────

def parse_sip_content(text: str) -> SipContent:
    """Parse a SIP start line plus `Name: value` header lines."""
    parsed = SipContent()
    lines  = (text or '').replace('\r\n', '\n').split('\n')

    first_idx = next((i for i, line in enumerate(lines) if line.strip()), None)
    if first_idx is None:
        return parsed

    first_line = lines[first_idx].strip()
    if first_line.startswith(SIP_VERSION):
        parsed.is_response = True
        status = _STATUS_LINE.match(first_line)
        if status:
            parsed.status_code = int(status.group(1))
            parsed.status_text = status.group(2).strip()
    else:
        parsed.is_request = True
        request = _REQUEST_LINE.match(first_line)
        if request:
            parsed.method = request.group(1)

    for line in lines[first_idx + 1:]:
        header = _HEADER_LINE.match(line.strip())
        if header:
            add_header(parsed.headers, header.group(1).strip(), header.group(2).strip())

    return parsed


def build_sip_message(text: str) -> SipMessage:
    return SipMessage(content=text, parsed=parse_sip_content(text))


# ── SMS OVER SIP ─────────────────────────────────────────────

def is_sms_sip_message(sip: SipMessage, raw_block: str = '') -> bool:
    parsed = sip.parsed
    if (parsed.method or '').upper() == 'MESSAGE':
        return True
    content_type = get_header(parsed.headers, 'Content-Type')
    if content_type and _SMS_CONTENT_TYPE.search(content_type):
        return True
    accept_contact = get_header(parsed.headers, 'Accept-Contact')
    if accept_contact and _SMSIP_TAG.search(accept_contact):
        return True
    return any(marker.search(raw_block or '') for marker in _GSM_SMS_MARKERS)


def build_sms_entry_from_sip(
    sip:       SipMessage,
    raw_block: str,
    timestamp: Optional[str],
) -> SmsEntry:
    headers = sip.parsed.headers
    sender = (
        extract_phone_number(get_header(headers, 'From'))
        or extract_phone_number(get_header(headers, 'P-Asserted-Identity'))
    )
    recipient = (
        extract_phone_number(get_header(headers, 'To'))
        or extract_phone_number(get_header(headers, 'P-Called-Party-ID'))
    )
    deliver = _SMS_DELIVER_FROM.search(raw_block or '')
    content = f"GSM SMS-DELIVER from {deliver.group(1)}" if deliver else SMS_LABEL_DEFAULT
    return SmsEntry(
        timestamp = timestamp,
        direction = 'SMS',
        sender    = sender or 'Unknown',
        recipient = recipient or 'Unknown',
        content   = content,
    )
