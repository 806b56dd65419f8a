"""
cdcscope/parsers/cdc_parser.py
Turns a raw CDC dump into ParsedMessages: segment → classify → extract.

Each block is parsed independently (no shared state), so this is the
map step ahead of call correlation. Nothing here raises on malformed
input; a parser failure leaves an empty payload of the block's type.
"""

import logging
from typing import Callable, Dict, List, Optional

from cdcscope.models.record import (
    AnswerPayload, AttemptPayload, CallControlPayload, EmptyPayload,
    ParsedMessage, RawBlock, ReleasePayload, SignalingPayload, SmsPayload,
    TypedPayload,
)
from cdcscope.parsers import classifier
from cdcscope.parsers.fields import extract_field, extract_nested_field
from cdcscope.parsers.record_parsers import (
    parse_answer, parse_attempt, parse_call_control, parse_release,
    parse_signaling, parse_sms,
)
from cdcscope.parsers.segmenter import split_into_blocks
from cdcscope.parsers.sip_parser import get_header

logger = logging.getLogger(__name__)

PAYLOAD_PARSERS: Dict[str, Callable[[str], TypedPayload]] = {
    classifier.TERM_ATTEMPT:   parse_attempt,
    classifier.ORIG_ATTEMPT:   parse_attempt,
    classifier.ANSWER:         parse_answer,
    classifier.RELEASE:        parse_release,
    classifier.DIRECT_SIGNAL:  parse_signaling,
    classifier.SUBJECT_SIGNAL: parse_signaling,
    classifier.CC_OPEN:        parse_call_control,
    classifier.CC_CLOSE:       parse_call_control,
    classifier.SMS_MESSAGE:    parse_sms,
    classifier.MMS_MESSAGE:    parse_sms,
}

EMPTY_PAYLOADS: Dict[str, Callable[[], TypedPayload]] = {
    classifier.TERM_ATTEMPT:   AttemptPayload,
    classifier.ORIG_ATTEMPT:   AttemptPayload,
    classifier.ANSWER:         AnswerPayload,
    classifier.RELEASE:        ReleasePayload,
    classifier.DIRECT_SIGNAL:  SignalingPayload,
    classifier.SUBJECT_SIGNAL: SignalingPayload,
    classifier.CC_OPEN:        CallControlPayload,
    classifier.CC_CLOSE:       CallControlPayload,
    classifier.SMS_MESSAGE:    SmsPayload,
    classifier.MMS_MESSAGE:    SmsPayload,
}


def extract_call_id(block: str) -> Optional[str]:
    return (
        extract_nested_field(block, 'callId', 'main')
        or extract_nested_field(block, 'contentIdentifier', 'main')
        or extract_field(block, 'callId')
    )


def parse_block(raw: RawBlock) -> ParsedMessage:
    block       = raw.text
    record_type = classifier.classify(block)
    call_id     = extract_call_id(block)
    data: TypedPayload = EmptyPayload()

    if record_type is not None:
        try:
            data = PAYLOAD_PARSERS[record_type](block)
        except Exception as e:
            logger.debug(f"Block {raw.index} ({record_type}) payload parse failed: {e}")
            data = EMPTY_PAYLOADS[record_type]()

    # Signaling without an outer callId correlates on the embedded SIP Call-ID.
    if call_id is None and isinstance(data, SignalingPayload) and data.sip_messages:
        call_id = get_header(data.sip_messages[0].parsed.headers, 'Call-ID')

    return ParsedMessage(
        type      = record_type,
        timestamp = extract_field(block, 'timestamp'),
        case_id   = extract_field(block, 'caseId'),
        call_id   = call_id,
        data      = data,
        raw_block = raw,
    )


def parse_dump(text: str) -> List[ParsedMessage]:
    """Parse every block of `text` in dump order."""
    messages = [parse_block(raw) for raw in split_into_blocks(text or '')]
    unclassified = sum(1 for m in messages if m.type is None)
    logger.info(f"Parsed {len(messages)} CDC records ({unclassified} unclassified)")
    return messages
