"""
cdcscope/reference.py
Static lookup tables: carriers by MCC/MNC, SIP status text, STIR/SHAKEN
attestation levels, and display metadata for each record type.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Union

from cdcscope.parsers import classifier

UNKNOWN_CARRIER = 'Unknown Carrier'

CARRIERS: Dict[str, Dict[str, str]] = {
    '310': {
        '012': 'Verizon Wireless',
        '020': 'T-Mobile',
        '120': 'Sprint',
        '260': 'T-Mobile',
        '410': 'AT&T',
        '880': 'T-Mobile',
    },
    '311': {
        '180': 'Verizon Wireless',
        '480': 'Verizon Wireless',
        '490': 'T-Mobile',
        '660': 'Metro by T-Mobile',
    },
}

SIP_CODES: Dict[int, str] = {
    100: 'Trying - Searching for the user',
    180: 'Ringing - The destination is alerting',
    183: 'Session Progress - Early media / customized ringback',
    200: 'OK - Request successful',
    202: 'Accepted - Typically used for Refer',
    400: 'Bad Request',
    401: 'Unauthorized - Authentication required',
    403: 'Forbidden - Server understood but refuses',
    404: 'Not Found - User does not exist',
    480: 'Temporarily Unavailable',
    486: 'Busy Here - User is on another call',
    487: 'Request Terminated - Caller canceled',
    500: 'Server Internal Error',
    603: 'Decline - User declined the call',
}

# STIR/SHAKEN
ATTESTATION: Dict[str, str] = {
    'A': 'Full Attestation - Carrier verified caller identity and number',
    'B': 'Partial Attestation - Carrier verified caller but not the number source',
    'C': 'Gateway Attestation - Call entered the network without verification',
}


@dataclass(frozen=True)
class RecordTypeInfo:
    display_name: str
    standard:     str
    description:  str


_T1_678 = 'ANSI T1.678 / LAES'

RECORD_TYPE_INFO: Dict[str, RecordTypeInfo] = {
    classifier.TERM_ATTEMPT: RecordTypeInfo(
        'Terminating Attempt', _T1_678,
        'Incoming call attempt to the target device with calling/called URIs and optional SDP.',
    ),
    classifier.ORIG_ATTEMPT: RecordTypeInfo(
        'Originating Attempt', _T1_678,
        'Outgoing call attempt from the target device with calling/called URIs and headers.',
    ),
    classifier.ANSWER: RecordTypeInfo(
        'Answer Notification', _T1_678,
        'The call was answered; often carries target location references.',
    ),
    classifier.RELEASE: RecordTypeInfo(
        'Release Notification', _T1_678,
        'Call teardown with signaling cause and final locations.',
    ),
    classifier.DIRECT_SIGNAL: RecordTypeInfo(
        'Direct Signal Reporting', _T1_678,
        'Captured SIP/SDP bodies and headers, including PANI-encoded cell info.',
    ),
    classifier.SUBJECT_SIGNAL: RecordTypeInfo(
        'Subject Signal', _T1_678,
        'SIP signaling reported for the intercept subject.',
    ),
    classifier.CC_OPEN: RecordTypeInfo(
        'Media Channel Open', _T1_678,
        'The carrier opened a content (media) channel for the call.',
    ),
    classifier.CC_CLOSE: RecordTypeInfo(
        'Media Channel Close', _T1_678,
        'The carrier closed the content channel at call end.',
    ),
    classifier.SMS_MESSAGE: RecordTypeInfo(
        'SMS Message', _T1_678,
        'SMS metadata (originator, recipient, userInput).',
    ),
    classifier.MMS_MESSAGE: RecordTypeInfo(
        'MMS Message', _T1_678,
        'MMS metadata (originator, recipient, userInput).',
    ),
}


def get_carrier(mcc: Optional[str], mnc: Optional[str]) -> str:
    if not mcc or not mnc:
        return UNKNOWN_CARRIER
    by_mnc = CARRIERS.get(mcc, {})
    carrier = by_mnc.get(mnc) or by_mnc.get(mnc.zfill(3))
    return carrier or f'Unknown ({mcc}-{mnc})'


def describe_sip_status(code: Union[int, str, None]) -> str:
    try:
        return SIP_CODES.get(int(code), f'Status Code {code}')
    except (TypeError, ValueError):
        return f'Status Code {code}'


def describe_attestation(level: Optional[str]) -> Optional[str]:
    """Attestation text for a verstat/attest value, e.g. 'A' or 'TN-Validation-Passed-A'."""
    if not level:
        return None
    key = level.strip().upper()
    if key in ATTESTATION:
        return ATTESTATION[key]
    if key[-1:] in ATTESTATION and key[-2:-1] in ('-', '_'):
        return ATTESTATION[key[-1]]
    return None


def display_name(record_type: Optional[str]) -> str:
    info = RECORD_TYPE_INFO.get(record_type or '')
    return info.display_name if info else 'Unclassified'
