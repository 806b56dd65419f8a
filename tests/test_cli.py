"""
tests/test_cli.py
End-to-end CLI runs against a temporary working directory.
"""

import json
import sqlite3

import pytest

from cdcscope.cli import build_parser, main
from cdcscope.config import CONFIG_FILENAME


DUMP = """T1.678 Version 4
termAttempt
  timestamp = 20250604035420.132Z
  callId
    main = 003A7781C2F
  calling
    uri[0] = sip:+16315550101@ims.example.net
  called
    uri[0] = tel:+16315550199
  location[0]
    locationType = 3GPP-E-UTRAN-FDD
    locationData = utran-cell-id-3gpp=311480550414df40c
T1.678 Version 4
release
  timestamp = 20250604035610.400Z
  callId
    main = 003A7781C2F
  cause
    signalingType = 16 Normal Clearing
"""

TOWERS = """TAC,Cell ID,Address
21764,21885964,1 Tower Rd
"""


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "case.txt").write_text(DUMP)
    (tmp_path / "towers.csv").write_text(TOWERS)
    return tmp_path


class TestParser:

    def test_defaults(self, workdir):
        args = build_parser().parse_args([])
        assert args.input is None
        assert args.output.name == "cdcscope.db"
        assert args.fold_order == "dump"

    def test_config_supplies_defaults(self, workdir):
        (workdir / CONFIG_FILENAME).write_text(json.dumps({
            "dump_path": "case.txt", "fold_order": "timestamp",
        }))
        args = build_parser().parse_args([])
        assert args.input.name == "case.txt"
        assert args.fold_order == "timestamp"

    def test_rejects_unknown_fold_order(self, workdir):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--fold-order", "random"])


class TestMain:

    def test_missing_input_exits(self, workdir):
        with pytest.raises(SystemExit) as exc:
            main(["--input", "missing.txt"])
        assert exc.value.code == 1

    def test_missing_towers_exits(self, workdir):
        with pytest.raises(SystemExit) as exc:
            main(["--input", "case.txt", "--towers", "missing.csv"])
        assert exc.value.code == 1
        assert not (workdir / "cdcscope.db").exists()

    def test_run_writes_db_and_json(self, workdir, capsys):
        main([
            "--input", "case.txt", "--towers", "towers.csv",
            "--output", "case.db", "--json", "case.json",
        ])
        out = capsys.readouterr().out
        assert "003A7781C2F" in out
        assert "1 Tower Rd" in out
        assert "Terminating Attempt → Release Notification" in out

        conn = sqlite3.connect(str(workdir / "case.db"))
        status, label = conn.execute(
            "SELECT c.call_status, m.run_label FROM calls c, cdc_meta m"
        ).fetchone()
        conn.close()
        assert status == "Ended"
        assert label == "case.txt"

        exported = json.loads((workdir / "case.json").read_text())
        params = exported["report_metadata"]["scan_parameters"]
        assert params == {"input": "case.txt", "towers": "towers.csv", "fold_order": "dump"}
        assert exported["report"]["total_calls"] == 1
