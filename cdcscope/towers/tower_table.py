"""
cdcscope/towers/tower_table.py
In-memory tower table: the lookup collaborator the analyzer consults.

Loaded from carrier CSV exports whose headers vary by vendor; columns are
found by name heuristics. Rows are indexed three ways (composite area-cell,
normalized full id, short id) so a decoded cell can match whichever textual
form the export used. The table is read-only while a parse runs; callers
serialize loads against in-flight analyses.
"""

import csv
import io
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from cdcscope.models.record import CellIdentifier
from cdcscope.towers.normalizer import (
    derive_tac_from_ecgi, lookup_keys, normalize_full_cell_id,
    normalize_short_cell_id,
)

logger = logging.getLogger(__name__)

CGI_MIN_VALUE  = 1_000_000
CID_MAX_VALUE  = 1000
NO_ADDRESS     = 'No address provided'

_CID_HEADERS = ('cell id', 'cellid', 'cell_id', 'eci', 'ci')


@dataclass
class Tower:
    address: str                   = NO_ADDRESS
    lat:     Optional[float]       = None
    lon:     Optional[float]       = None
    market:  Optional[str]         = None
    site_id: Optional[str]         = None


class TowerTable:
    """Tower rows keyed by composite, full-id and short-id keys."""

    def __init__(self):
        self.by_composite: Dict[str, Tower] = {}
        self.by_full_id:   Dict[str, Tower] = {}
        self.by_short_id:  Dict[str, Tower] = {}

    def __len__(self) -> int:
        return len(self.by_composite)

    def clear(self) -> None:
        self.by_composite.clear()
        self.by_full_id.clear()
        self.by_short_id.clear()

    def add(
        self,
        tower:         Tower,
        composite_key: str,
        full_id_key:   Optional[str] = None,
        short_id_key:  Optional[str] = None,
    ) -> None:
        self.by_composite[composite_key] = tower
        if full_id_key:
            self.by_full_id[full_id_key] = tower
        if short_id_key:
            self.by_short_id[short_id_key] = tower

    def lookup(
        self,
        composite_key: Optional[str],
        full_id_key:   Optional[str] = None,
        short_id_key:  Optional[str] = None,
    ) -> Optional[Tower]:
        """Composite key first, then full id, then short id."""
        tower = self.by_composite.get(composite_key) if composite_key else None
        if tower is None and full_id_key:
            tower = self.by_full_id.get(full_id_key)
        if tower is None and short_id_key:
            tower = self.by_short_id.get(short_id_key)
        return tower

    def locate(self, cell: Optional[CellIdentifier]) -> Optional[Tower]:
        keys = lookup_keys(cell)
        return self.lookup(keys.composite, keys.full_id, keys.short_id)

    # ── CSV LOADING ──────────────────────────────────────────

    def load_csv(self, text: str) -> int:
        """
        Load rows from a tower CSV. Returns the number of rows loaded;
        0 when the area-code/ECGI or cell-id columns cannot be found.
        """
        lines = (text or '').replace('\r\n', '\n').split('\n')
        if len(lines) < 2:
            return 0

        delimiter = '|' if '|' in lines[0] else ';' if ';' in lines[0] else ','
        rows = list(csv.reader(io.StringIO('\n'.join(lines)), delimiter=delimiter))
        headers = [h.strip().lower() for h in rows[0]]
        cols = _detect_columns(headers)
        logger.debug(f"Tower CSV delimiter={delimiter!r} columns={cols}")

        if (cols['lac'] is None and cols['ecgi'] is None) or cols['cid'] is None:
            logger.error(f"Tower CSV missing area-code/ECGI or cell-id columns: {headers}")
            return 0

        loaded = 0
        for row in rows[1:]:
            if len(row) < 2 or not any(cell.strip() for cell in row):
                continue
            if self._load_row([cell.strip() for cell in row], cols):
                loaded += 1

        logger.info(f"Loaded {loaded} tower rows ({len(self)} unique towers)")
        return loaded

    def _load_row(self, row: List[str], cols: Dict[str, Optional[int]]) -> bool:
        lac  = _cell(row, cols['lac'])
        cid  = _cell(row, cols['cid'])
        cgi  = _cell(row, cols['cgi'])
        ecgi = _cell(row, cols['ecgi'])

        if not lac and ecgi:
            lac = derive_tac_from_ecgi(ecgi)
        if not lac or not cid:
            return False

        if cgi and cgi.isdigit() and cid.isdigit():
            if int(cgi) > CGI_MIN_VALUE and int(cid) < CID_MAX_VALUE:
                cid = cgi

        tower = Tower(
            address = _cell(row, cols['address']) or NO_ADDRESS,
            lat     = _float(_cell(row, cols['lat'])),
            lon     = _float(_cell(row, cols['lon'])),
            market  = _cell(row, cols['market']),
            site_id = _cell(row, cols['site_id']),
        )
        self.add(
            tower,
            f"{lac}-{cid}",
            normalize_full_cell_id(ecgi),
            normalize_short_cell_id(ecgi),
        )
        return True


def load_tower_csv(text: str) -> TowerTable:
    table = TowerTable()
    table.load_csv(text)
    return table


# ── HELPERS ──────────────────────────────────────────────────

def _find(headers: List[str], predicate) -> Optional[int]:
    return next((i for i, h in enumerate(headers) if predicate(h)), None)


def _detect_columns(headers: List[str]) -> Dict[str, Optional[int]]:
    cid = None
    for target in _CID_HEADERS:
        cid = _find(headers, lambda h, t=target: h == t or 'cell identifier' in h)
        if cid is not None:
            break
    return {
        'lac':     _find(headers, lambda h: h in ('lac', 'tac', 'tracking area code') or 'location area' in h),
        'cid':     cid,
        'cgi':     _find(headers, lambda h: h == 'cgi' or 'cell global id' in h),
        'ecgi':    _find(headers, lambda h: any(k in h for k in ('ecgi', 'full cell id', 'cell global id'))),
        'lat':     _find(headers, lambda h: h in ('lat', 'y', 'site_latitude', 'sector_latitude') or 'latitude' in h),
        'lon':     _find(headers, lambda h: h in ('lon', 'x', 'site_longitude', 'sector_longitude') or 'longitude' in h),
        'address': _find(headers, lambda h: h in ('address', 'site_address') or 'street' in h or 'location' in h),
        'market':  _find(headers, lambda h: h in ('market', 'market_name')),
        'site_id': _find(headers, lambda h: h in ('site', 'site id', 'site_id', 'enodeb_id')),
    }


def _cell(row: List[str], idx: Optional[int]) -> Optional[str]:
    if idx is None or idx >= len(row):
        return None
    return row[idx] or None


def _float(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value else None
    except ValueError:
        return None
