"""
tests/test_towers.py
Cell-id normalization keys, ECGI → area-code derivation, and the tower table.
"""

from cdcscope.parsers.location_parser import parse_cell_id
from cdcscope.towers.normalizer import (
    composite_key, derive_tac_from_ecgi, lookup_keys,
    normalize_full_cell_id, normalize_short_cell_id,
)
from cdcscope.towers.tower_table import NO_ADDRESS, Tower, TowerTable, load_tower_csv


# ── FIXTURES: Synthetic tower exports ─────────────────────────

ECGI_DASH_CSV = """ECGI,Cell ID,Latitude,Longitude,Address
311480-550414df40c,64,40.7891,-73.1350,1 Main St Hauppauge NY
311480-55041500001,65,40.7900,-73.1400,
"""

ECGI_BARE_CSV = """ecgi;cell id;latitude;longitude;market
311480550414df40c;{cid};40.7891;-73.1350;Long Island
"""

LAC_CGI_CSV = """LAC|CI|CGI|Site ID|Address
21764|12|21885964|NY0042|2 Oak Ave
"""

NO_CELL_COLUMN_CSV = """lac,latitude,longitude
21764,40.1,-73.1
"""


class TestNormalizer:

    def test_full_id_lowercase_hex_only(self):
        assert normalize_full_cell_id("311480-5504:14DF40C") == "311480550414df40c"
        assert normalize_full_cell_id("--") is None
        assert normalize_full_cell_id(None) is None

    def test_short_id_exact_seven(self):
        assert normalize_short_cell_id("3114801234567") == "3114801234567"

    def test_short_id_long_tail_truncated(self):
        assert normalize_short_cell_id("311480550414df40c") == "31148014df40c"

    def test_short_id_invalid(self):
        assert normalize_short_cell_id("31148012345678") is None      # 8 remaining
        assert normalize_short_cell_id("abc480550414df40c") is None   # non-numeric prefix

    def test_composite_key(self):
        assert composite_key(21764, 21885964) == "21764-21885964"
        assert composite_key("1234", "5670") == "1234-5670"
        assert composite_key(None, 5) is None
        assert composite_key(0, 5) == "0-5"

    def test_dash_and_dot_forms_share_full_id(self):
        forms = {"311480-550414DF40C", "311480.550414df40c", "311480550414df40c"}
        assert {normalize_full_cell_id(f) for f in forms} == {"311480550414df40c"}

    def test_derive_tac_bare(self):
        assert derive_tac_from_ecgi("311480550414df40c") == str(int("5504", 16))

    def test_derive_tac_dash_segment(self):
        assert derive_tac_from_ecgi("311480-550414df40c") == str(int("550414df40c", 16) // 256)

    def test_derive_tac_single_segment(self):
        assert derive_tac_from_ecgi("1a2b00") == str(int("1a2b00", 16) // 256)

    def test_derive_tac_empty(self):
        assert derive_tac_from_ecgi("") is None
        assert derive_tac_from_ecgi(None) is None

    def test_lookup_keys_from_cell(self):
        keys = lookup_keys(parse_cell_id("311480550414df40c"))
        assert keys.composite == f"{int('5504', 16)}-{int('14df40c', 16)}"
        assert keys.full_id == "311480550414df40c"
        assert keys.short_id == "31148014df40c"

    def test_lookup_keys_none(self):
        keys = lookup_keys(None)
        assert keys.composite is None and keys.full_id is None and keys.short_id is None


class TestTowerTable:

    def test_lookup_precedence(self):
        table = TowerTable()
        by_composite = Tower(address="composite")
        by_full      = Tower(address="full")
        table.add(by_composite, "1-2")
        table.add(by_full, "9-9", full_id_key="311480550414df40c")
        assert table.lookup("1-2", "311480550414df40c") is by_composite
        assert table.lookup("missing", "311480550414df40c") is by_full
        assert table.lookup("missing") is None

    def test_short_id_last(self):
        table = TowerTable()
        tower = Tower()
        table.add(tower, "1-2", short_id_key="31148014df40c")
        assert table.lookup(None, "nope", "31148014df40c") is tower

    def test_clear(self):
        table = TowerTable()
        table.add(Tower(), "1-2", "abc", "def")
        table.clear()
        assert len(table) == 0
        assert table.lookup("1-2", "abc", "def") is None


class TestLoadCsv:

    def test_ecgi_only_derives_area_code(self):
        table = TowerTable()
        assert table.load_csv(ECGI_DASH_CSV) == 2
        derived = derive_tac_from_ecgi("311480-550414df40c")
        assert f"{derived}-64" in table.by_composite

    def test_dash_ecgi_matches_bare_pani_cell_by_full_id(self):
        table = load_tower_csv(ECGI_DASH_CSV)
        keys  = lookup_keys(parse_cell_id("311480550414df40c"))
        # the dash form derives a different area code, so only the full id lines up
        assert keys.composite not in table.by_composite
        assert keys.full_id in table.by_full_id
        tower = table.locate(parse_cell_id("311480550414df40c"))
        assert tower is table.by_full_id[keys.full_id]
        assert tower.address == "1 Main St Hauppauge NY"
        assert tower.lat == 40.7891

    def test_missing_address_default(self):
        table = load_tower_csv(ECGI_DASH_CSV)
        tower = table.lookup(None, "31148055041500001")
        assert tower.address == NO_ADDRESS

    def test_bare_ecgi_composite_match(self):
        csv_text = ECGI_BARE_CSV.format(cid=int("14df40c", 16))
        table = load_tower_csv(csv_text)
        cell = parse_cell_id("311480550414df40c")
        assert lookup_keys(cell).composite in table.by_composite
        assert table.locate(cell).market == "Long Island"

    def test_cgi_replaces_small_cell_id(self):
        table = load_tower_csv(LAC_CGI_CSV)
        tower = table.lookup("21764-21885964")
        assert tower is not None
        assert tower.site_id == "NY0042"
        assert table.lookup("21764-12") is None

    def test_missing_columns_loads_nothing(self):
        table = TowerTable()
        assert table.load_csv(NO_CELL_COLUMN_CSV) == 0
        assert len(table) == 0

    def test_header_only(self):
        assert TowerTable().load_csv("ecgi,cell id") == 0
        assert TowerTable().load_csv("") == 0
