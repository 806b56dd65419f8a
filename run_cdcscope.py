#!/usr/bin/env python3
"""
run_cdcscope.py: Config-driven CDC Scope pipeline
Uses cdcscope_config.json. Run from project root.

  python run_cdcscope.py           # analyze dump_path from config → db_path
  python run_cdcscope.py --api     # start API server on api_host:api_port
"""

import argparse
import sys
from pathlib import Path


def main():
    parser = argparse.ArgumentParser(description="CDC Scope: automated pipeline")
    parser.add_argument("--api", action="store_true", help="Start API server")
    args = parser.parse_args()

    root = Path(__file__).parent
    sys.path.insert(0, str(root))

    from cdcscope.config import load_config

    config = load_config(root)
    db_path = Path(config.get("db_path") or "cdcscope.db")
    if not db_path.is_absolute():
        db_path = root / db_path

    if args.api:
        from cdcscope.api import serve
        serve(
            host       = config.get("api_host") or "127.0.0.1",
            port       = int(config.get("api_port") or 8765),
            db_path    = db_path,
            fold_order = config.get("fold_order") or "dump",
        )
        return

    dump_path = config.get("dump_path")
    if not dump_path or not Path(dump_path).is_file():
        print("No dump file. Set dump_path in cdcscope_config.json", file=sys.stderr)
        sys.exit(1)

    from cdcscope.api import CDCScopeAPI
    api = CDCScopeAPI(
        db_path         = db_path,
        fallback_bucket = config.get("fallback_bucket") or "Global-Events",
        fold_order      = config.get("fold_order") or "dump",
    )
    tower_csv = config.get("tower_csv")
    print(f"Analyzing {dump_path}...")
    summary = api.run_analysis(Path(dump_path), tower_csv=Path(tower_csv) if tower_csv else None)
    print(f"Done: {summary['messages_parsed']} records, {summary['calls']} calls, "
          f"{summary['locations_matched']} locations matched")


if __name__ == "__main__":
    main()
