"""
tests/test_analyzer.py
Analyzer session: parse lifecycle, isolation, and tower matching.
"""

import pytest

from cdcscope.analyzer import CDCAnalyzer
from cdcscope.towers.tower_table import TowerTable


PANI_DUMP = """T1.678 Version 4
directSignalReporting
  caseId = CASE-2025-001
  timestamp = 20250604035421.004Z
  callId
    main = 003A7781C2F
  sigMsg =
    INVITE sip:+16315550199@ims.example.net SIP/2.0
    Call-ID: a84b4c76e66710@pc33.example.net
    P-Access-Network-Info: 3GPP-E-UTRAN-FDD; utran-cell-id-3gpp=311480550414df40c
  [bin]
T1.678 Version 4
answer
  timestamp = 20250604035425.000Z
  callId
    main = 003A7781C2F
  answering
    uri[0] = tel:+16315550199
  location[0]
    locationType = 3GPP-E-UTRAN-FDD
    locationData = utran-cell-id-3gpp=310410999999999
"""

TOWER_CSV = """ecgi,cell id,latitude,longitude,address
311480-550414df40c,64,40.7891,-73.1350,1 Main St Hauppauge NY
"""


class TestAnalyzer:

    def test_parse_sets_result(self):
        analyzer = CDCAnalyzer()
        result = analyzer.parse(PANI_DUMP)
        assert analyzer.result is result
        assert len(result.messages) == 2
        assert list(result.calls) == ["003A7781C2F"]
        assert result.generated_at is not None

    def test_reset(self):
        analyzer = CDCAnalyzer()
        analyzer.parse(PANI_DUMP)
        analyzer.reset()
        assert analyzer.result is None

    def test_sessions_isolated(self):
        a, b = CDCAnalyzer(), CDCAnalyzer()
        a.load_towers(TOWER_CSV)
        assert len(a.towers) == 1
        assert len(b.towers) == 0

    def test_shared_tower_table(self):
        towers = TowerTable()
        CDCAnalyzer(towers=towers).load_towers(TOWER_CSV)
        assert len(CDCAnalyzer(towers=towers).towers) == 1

    def test_empty_input(self):
        result = CDCAnalyzer().parse("")
        assert result.messages == []
        assert result.calls == {}

    def test_bad_fold_order(self):
        with pytest.raises(ValueError):
            CDCAnalyzer(fold_order="random")


class TestTowerMatching:

    def test_dash_ecgi_table_matches_pani_location(self):
        analyzer = CDCAnalyzer()
        assert analyzer.load_towers(TOWER_CSV) == 1
        call = analyzer.parse(PANI_DUMP).calls["003A7781C2F"]
        matches = analyzer.match_towers(call)

        # PANI location from the INVITE, then the answer record's location
        assert len(matches) == 2
        by_cell = {m.location.parsed.full_cell_id: m.tower for m in matches}
        assert by_cell["311480550414df40c"].address == "1 Main St Hauppauge NY"
        assert by_cell["310410999999999"] is None

    def test_no_towers_loaded(self):
        analyzer = CDCAnalyzer()
        call = analyzer.parse(PANI_DUMP).calls["003A7781C2F"]
        assert all(m.tower is None for m in analyzer.match_towers(call))
