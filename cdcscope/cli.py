"""
cdcscope/cli.py
Command-line interface for CDC Scope.

USAGE:
  python -m cdcscope.cli --input case-0042.txt
  python -m cdcscope.cli --input case-0042.txt --towers towers.csv --output case.db
  python -m cdcscope.cli --input case-0042.txt --json case-0042.json --fold-order timestamp

Defaults for every option come from cdcscope_config.json when present.
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from cdcscope.analyzer import CDCAnalyzer
from cdcscope.config import load_config
from cdcscope.exporters.sqlite_exporter import export
from cdcscope.report import build_report
from cdcscope.report_export import export_to_json

logger = logging.getLogger(__name__)

# ANSI colors
GREEN  = '\033[92m'
YELLOW = '\033[93m'
RED    = '\033[91m'
CYAN   = '\033[96m'
RESET  = '\033[0m'
BOLD   = '\033[1m'


def build_parser(config=None) -> argparse.ArgumentParser:
    config = config or load_config()
    parser = argparse.ArgumentParser(
        prog        = 'cdcscope',
        description = 'CDC Scope: lawful-intercept CDC dump parser and call correlator',
        formatter_class = argparse.RawDescriptionHelpFormatter,
        epilog = """
NOTE:
  Cell-id decoding and tower matching are heuristics over vendor-specific
  formats. Verify any location against the carrier's records.
        """
    )
    parser.add_argument(
        '--input', '-i',
        default = Path(config['dump_path']) if config.get('dump_path') else None,
        type    = Path,
        help    = 'CDC dump text file',
    )
    parser.add_argument(
        '--towers', '-t',
        default = Path(config['tower_csv']) if config.get('tower_csv') else None,
        type    = Path,
        help    = 'Tower table CSV (ECGI / LAC / cell id columns)',
    )
    parser.add_argument(
        '--output', '-o',
        default = Path(config.get('db_path') or 'cdcscope.db'),
        type    = Path,
        help    = 'Output SQLite database path (default: cdcscope.db)',
    )
    parser.add_argument(
        '--json',
        default = Path(config['json_output']) if config.get('json_output') else None,
        type    = Path,
        help    = 'Also write the hashed JSON export to this path',
    )
    parser.add_argument(
        '--fold-order',
        default = config.get('fold_order') or 'dump',
        choices = ['dump', 'timestamp'],
        help    = 'Order messages are folded into calls (default: dump)',
    )
    parser.add_argument(
        '--run-label',
        default = '',
        help    = 'Label for this run (stored in cdc_meta table)',
    )
    parser.add_argument(
        '--verbose', '-v',
        action  = 'store_true',
        help    = 'Enable debug logging',
    )
    return parser


def main(argv=None):
    config = load_config()
    args   = build_parser(config).parse_args(argv)

    # ── LOGGING SETUP ────────────────────────────────────────
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level   = log_level,
        format  = '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt = '%H:%M:%S',
    )

    # ── VALIDATE INPUT ───────────────────────────────────────
    if args.input is None or not args.input.is_file():
        _print(f"{RED}Error: Dump file not found: {args.input}{RESET}")
        sys.exit(1)
    if args.towers is not None and not args.towers.is_file():
        _print(f"{RED}Error: Tower CSV not found: {args.towers}{RESET}")
        sys.exit(1)

    _banner()
    _print(f"Dump file        : {CYAN}{args.input}{RESET}")
    _print(f"Tower table      : {CYAN}{args.towers or 'none'}{RESET}")
    _print(f"Output database  : {CYAN}{args.output}{RESET}")
    _print(f"Fold order       : {CYAN}{args.fold_order}{RESET}")
    _print("")

    analyzer = CDCAnalyzer(
        fallback_bucket = config.get('fallback_bucket') or 'Global-Events',
        fold_order      = args.fold_order,
    )

    # ── TOWERS ───────────────────────────────────────────────
    if args.towers is not None:
        _step("Loading tower table...")
        t0     = time.time()
        loaded = analyzer.load_towers(args.towers.read_text(encoding='utf-8', errors='replace'))
        if loaded:
            _ok(f"{loaded} towers loaded in {_elapsed(t0)}")
        else:
            _print(f"  {YELLOW}⚠ No towers loaded. Check the CSV has ECGI/LAC and cell id columns.{RESET}")

    # ── PARSE ────────────────────────────────────────────────
    _step("Parsing and correlating dump...")
    t0     = time.time()
    result = analyzer.parse(args.input.read_text(encoding='utf-8', errors='replace'))
    _ok(f"{len(result.messages)} records → {len(result.calls)} calls in {_elapsed(t0)}")

    # ── EXPORT ───────────────────────────────────────────────
    _step("Writing SQLite database...")
    t0 = time.time()
    export(
        db_path   = args.output,
        result    = result,
        run_label = args.run_label or args.input.name,
    )
    _ok(f"Database written in {_elapsed(t0)}")

    if args.json is not None:
        _step("Writing JSON export...")
        scan_parameters = {
            'input':      args.input.name,
            'towers':     args.towers.name if args.towers else None,
            'fold_order': args.fold_order,
        }
        args.json.write_text(export_to_json(result, scan_parameters), encoding='utf-8')
        _ok(f"JSON export → {args.json}")

    # ── SUMMARY ──────────────────────────────────────────────
    report = build_report(result)
    _print(f"\n{BOLD}{GREEN}✓ Complete{RESET}")
    _print(f"  Records      : {report.total_messages:,} ({report.unclassified_messages:,} unclassified)")
    _print(f"  Calls        : {report.total_calls:,} ({report.voice_calls} voice, {report.sms_calls} SMS/MMS)")
    _print(f"  Database     : {args.output.resolve()}")

    for summary in report.calls:
        _print(
            f"\n  {BOLD}{summary.call_id}{RESET}  {summary.call_type}"
            f"  {summary.call_direction or '-'}  {summary.call_status or '-'}"
        )
        _print(f"    {summary.calling_number or 'Unknown'} → {summary.called_number or 'Unknown'}"
               f"  ({summary.caller_name or 'no caller name'})")
        _print(f"    Start {summary.start_time or 'N/A'}  Duration {summary.duration_fmt}"
               f"  Carrier {summary.carrier}")
        _print(f"    Records {' → '.join(summary.record_types)}")
        matched = [m for m in analyzer.match_towers(result.calls[summary.call_id]) if m.tower]
        for match in matched:
            _print(f"    📍 {match.location.parsed.full_cell_id} → {match.tower.address}")

    _print("")


# ── PRINT HELPERS ────────────────────────────────────────────

def _banner():
    _print(f"""
{BOLD}{CYAN}
  CDC SCOPE
  Call Data Channel parser | Call correlation | Cell-id decoding
{RESET}""")

def _step(msg):  _print(f"  {CYAN}→{RESET} {msg}")
def _ok(msg):    _print(f"  {GREEN}✓{RESET} {msg}")
def _print(msg): print(msg)

def _elapsed(t0: float) -> str:
    s = time.time() - t0
    return f"{s:.1f}s" if s < 60 else f"{int(s//60)}m {int(s%60)}s"


if __name__ == '__main__':
    main()
