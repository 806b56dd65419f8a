"""
cdcscope/parsers/classifier.py
Assigns a record type to a raw block.

Record types overlap heavily in vendor dumps (a bare "release" or "answer"
shows up inside unrelated payloads), so classification is first-match-wins
over CLASSIFICATION_RULES. The order of that list IS the behavior:
reordering it silently reclassifies overlapping inputs. Tests pin it.

IMS vendor markers (ims_3GPP_VoIP_*) are matched case-insensitively, since
vendors disagree on "3gpp" vs "3GPP". Generic keywords are case-sensitive.
"""

from typing import Callable, List, Optional, Tuple

# ── RECORD TYPES ─────────────────────────────────────────────
TERM_ATTEMPT      = 'termAttempt'
ORIG_ATTEMPT      = 'origAttempt'
ANSWER            = 'answer'
RELEASE           = 'release'
DIRECT_SIGNAL     = 'directSignalReporting'
SUBJECT_SIGNAL    = 'subjectSignal'
CC_OPEN           = 'ccOpen'
CC_CLOSE          = 'ccClose'
SMS_MESSAGE       = 'smsMessage'
MMS_MESSAGE       = 'mmsMessage'

ATTEMPT_TYPES      = (TERM_ATTEMPT, ORIG_ATTEMPT)
SIGNALING_TYPES    = (DIRECT_SIGNAL, SUBJECT_SIGNAL)
CALL_CONTROL_TYPES = (CC_OPEN, CC_CLOSE)
SMS_TYPES          = (SMS_MESSAGE, MMS_MESSAGE)

IMS_ORIGINATION = 'ims_3gpp_voip_origination'


def _has(keyword: str) -> Callable[[str], bool]:
    return lambda block: keyword in block


def _has_ims(event: str) -> Callable[[str], bool]:
    marker = f'ims_3gpp_voip_{event}'.lower()
    return lambda block: marker in block.lower()


def _ims_or(event: str, *keywords: str) -> Callable[[str], bool]:
    """IMS marker for `event`, or every generic keyword present."""
    ims = _has_ims(event)
    return lambda block: ims(block) or all(k in block for k in keywords)


def _attempt(keyword: str) -> Callable[[str], bool]:
    return lambda block: keyword in block and IMS_ORIGINATION not in block.lower()


# (predicate, record type), evaluated top-down, first match wins.
CLASSIFICATION_RULES: List[Tuple[Callable[[str], bool], str]] = [
    (_attempt('termAttempt'),                              TERM_ATTEMPT),
    (_attempt('origAttempt'),                              ORIG_ATTEMPT),
    (_has_ims('origination'),                              ORIG_ATTEMPT),
    (_ims_or('answer', 'answer', 'answering'),             ANSWER),
    (_ims_or('release', 'release', 'cause'),               RELEASE),
    (_ims_or('directSignalReporting', 'directSignalReporting'), DIRECT_SIGNAL),
    (_ims_or('subjectSignal', 'subjectSignal'),            SUBJECT_SIGNAL),
    (_ims_or('ccOpen', 'ccOpen'),                          CC_OPEN),
    (_ims_or('ccClose', 'ccClose'),                        CC_CLOSE),
    (_has('smsMessage'),                                   SMS_MESSAGE),
    (_has('mmsMessage'),                                   MMS_MESSAGE),
]

CLASSIFICATION_ORDER: Tuple[str, ...] = tuple(t for _, t in CLASSIFICATION_RULES)


def classify(block: str) -> Optional[str]:
    """Return the record type of `block`, or None when no rule matches."""
    for predicate, record_type in CLASSIFICATION_RULES:
        if predicate(block):
            return record_type
    return None
