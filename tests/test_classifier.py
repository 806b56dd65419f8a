"""
tests/test_classifier.py
Record type classification. Rule order is part of the contract:
these tests pin which type wins when keywords overlap.
"""

import pytest

from cdcscope.parsers import classifier
from cdcscope.parsers.classifier import CLASSIFICATION_ORDER, classify


class TestClassificationOrder:

    def test_order_is_pinned(self):
        assert CLASSIFICATION_ORDER == (
            'termAttempt',
            'origAttempt',
            'origAttempt',
            'answer',
            'release',
            'directSignalReporting',
            'subjectSignal',
            'ccOpen',
            'ccClose',
            'smsMessage',
            'mmsMessage',
        )


class TestClassify:

    @pytest.mark.parametrize("block,expected", [
        ("T1.678 Version 4\ntermAttempt\n", classifier.TERM_ATTEMPT),
        ("T1.678 Version 4\norigAttempt\n", classifier.ORIG_ATTEMPT),
        ("IMS Version 1\nims_3GPP_VoIP_Origination\n", classifier.ORIG_ATTEMPT),
        ("T1.678 Version 4\nanswer\n  answering\n", classifier.ANSWER),
        ("IMS Version 1\nims_3gpp_voip_answer\n", classifier.ANSWER),
        ("T1.678 Version 4\nrelease\n  cause\n", classifier.RELEASE),
        ("IMS Version 1\nIMS_3GPP_VOIP_RELEASE\n", classifier.RELEASE),
        ("T1.678 Version 4\ndirectSignalReporting\n", classifier.DIRECT_SIGNAL),
        ("T1.678 Version 4\nsubjectSignal\n", classifier.SUBJECT_SIGNAL),
        ("T1.678 Version 4\nccOpen\n", classifier.CC_OPEN),
        ("IMS Version 1\nims_3gpp_voip_ccclose\n", classifier.CC_CLOSE),
        ("T1.678 Version 4\nsmsMessage\n", classifier.SMS_MESSAGE),
        ("T1.678 Version 4\nmmsMessage\n", classifier.MMS_MESSAGE),
    ])
    def test_each_type(self, block, expected):
        assert classify(block) == expected

    def test_unclassified_is_none(self):
        assert classify("T1.678 Version 4\nkeepAlive\n") is None
        assert classify("") is None

    def test_attempt_beats_release_keywords(self):
        block = "termAttempt\n  release\n  cause\n"
        assert classify(block) == classifier.TERM_ATTEMPT

    def test_ims_origination_excludes_term_attempt(self):
        # termAttempt keyword inside an IMS origination record
        block = "ims_3gpp_voip_origination\n  priorEvent = termAttempt\n"
        assert classify(block) == classifier.ORIG_ATTEMPT

    def test_answer_needs_answering_section(self):
        # a bare "answer" inside a signaling payload is not an answer record
        block = "directSignalReporting\n  note = answer\n"
        assert classify(block) == classifier.DIRECT_SIGNAL

    def test_release_needs_cause(self):
        block = "ccClose\n  release\n"
        assert classify(block) == classifier.CC_CLOSE

    def test_answer_beats_release(self):
        block = "answer\n  answering\n  release\n  cause\n"
        assert classify(block) == classifier.ANSWER

    def test_generic_keywords_case_sensitive(self):
        assert classify("TERMATTEMPT\n") is None

    def test_signal_beats_sms(self):
        block = "directSignalReporting\n  smsMessage\n"
        assert classify(block) == classifier.DIRECT_SIGNAL
