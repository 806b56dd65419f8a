"""
cdcscope/analyzer.py
Analyzer session: owns the tower table and the most recent result.

One CDCAnalyzer per case/session. Nothing here is module-global, so two
analyzers never see each other's towers or calls. reset() drops the last
result; towers.clear() drops the tower table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from cdcscope.aggregators.call_aggregator import (
    FALLBACK_BUCKET, FOLD_ORDERS, build_call_records,
)
from cdcscope.models.record import AnalysisResult, CallRecord, Location
from cdcscope.parsers.cdc_parser import parse_dump
from cdcscope.towers.tower_table import Tower, TowerTable

logger = logging.getLogger(__name__)


@dataclass
class TowerMatch:
    location: Location
    tower:    Optional[Tower]


class CDCAnalyzer:
    """Parse CDC dumps into calls; match call locations against towers."""

    def __init__(
        self,
        towers:          Optional[TowerTable] = None,
        fallback_bucket: str = FALLBACK_BUCKET,
        fold_order:      str = 'dump',
    ):
        if fold_order not in FOLD_ORDERS:
            raise ValueError(f"fold_order must be one of {FOLD_ORDERS}, got {fold_order!r}")
        self.towers          = towers if towers is not None else TowerTable()
        self.fallback_bucket = fallback_bucket
        self.fold_order      = fold_order
        self.result: Optional[AnalysisResult] = None

    def load_towers(self, csv_text: str) -> int:
        """Add tower rows from CSV text. Returns rows loaded."""
        return self.towers.load_csv(csv_text)

    def parse(self, text: str) -> AnalysisResult:
        """Segment, parse and correlate one full dump. Never raises on bad input."""
        messages = parse_dump(text)
        calls    = build_call_records(
            messages,
            fallback_bucket = self.fallback_bucket,
            fold_order      = self.fold_order,
        )
        self.result = AnalysisResult(
            messages     = messages,
            calls        = calls,
            generated_at = datetime.now(timezone.utc),
        )
        return self.result

    def reset(self) -> None:
        self.result = None

    def match_towers(self, call: CallRecord) -> List[TowerMatch]:
        """One row per call location, with the matched tower or None."""
        matches = [
            TowerMatch(location=loc, tower=self.towers.locate(loc.parsed))
            for loc in call.locations
        ]
        found = sum(1 for m in matches if m.tower is not None)
        logger.debug(f"Call {call.call_id}: {found}/{len(matches)} locations matched a tower")
        return matches
