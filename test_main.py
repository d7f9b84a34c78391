"""
test_main.py - CLI tests

Checks for:
- --trip-file evaluation with text and JSON output
- --strict exit codes
- operational errors exit 1

Usage: pytest test_main.py
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from logging_config import setup_logging
from main import _trip_id_from_file, main

SAMPLE_TRIP = Path(__file__).parent / "test_data" / "trip_compliant.json"


@pytest.fixture(autouse=True)
def _restore_logging():
    # main() rebinds the root handler to the per-test stderr capture
    yield
    setup_logging()


def _write_trip(tmp_path: Path, payload) -> str:
    path = tmp_path / "trip.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_sample_trip_file_is_green(capsys):
    main(["--trip-file", str(SAMPLE_TRIP)])
    out = capsys.readouterr().out
    assert "READY - GREEN" in out


def test_json_output(tmp_path: Path, compliant_payload, capsys):
    main(["--trip-file", _write_trip(tmp_path, compliant_payload), "--json", "--no-evidence"])
    body = json.loads(capsys.readouterr().out)
    assert body["rating"] == "GREEN"
    assert body["trip"]["tripId"] == 23
    assert all("evidence" not in check for check in body["checks"])


def test_strict_green_exits_zero(tmp_path: Path, compliant_payload):
    with pytest.raises(SystemExit) as excinfo:
        main(["--trip-file", _write_trip(tmp_path, compliant_payload), "--strict"])
    assert excinfo.value.code == 0


def test_strict_red_exits_two(tmp_path: Path, compliant_payload, capsys):
    compliant_payload["trip"]["countryCode"] = "UG"
    with pytest.raises(SystemExit) as excinfo:
        main(["--trip-file", _write_trip(tmp_path, compliant_payload), "--strict"])
    assert excinfo.value.code == 2
    assert "NOT READY - RED" in capsys.readouterr().out


def test_strict_yellow_exits_three(tmp_path: Path, compliant_payload):
    compliant_payload["trip"]["status"] = "PACKING"
    with pytest.raises(SystemExit) as excinfo:
        main(["--trip-file", _write_trip(tmp_path, compliant_payload), "--strict"])
    assert excinfo.value.code == 3


def test_red_without_strict_returns_normally(tmp_path: Path, compliant_payload):
    compliant_payload["trip"]["countryCode"] = "UG"
    main(["--trip-file", _write_trip(tmp_path, compliant_payload)])


def test_missing_trip_file_exits_one(tmp_path: Path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--trip-file", str(tmp_path / "absent.json")])
    assert excinfo.value.code == 1
    assert "Trip file not found" in capsys.readouterr().out


def test_mismatched_trip_id_exits_one(tmp_path: Path, compliant_payload, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--trip-file", _write_trip(tmp_path, compliant_payload), "--trip-id", "99"])
    assert excinfo.value.code == 1
    assert "Trip 99 not found" in capsys.readouterr().out


def test_invalid_shelf_life_exits_one(tmp_path: Path, compliant_payload):
    with pytest.raises(SystemExit) as excinfo:
        main(["--trip-file", _write_trip(tmp_path, compliant_payload), "--shelf-life-days", "0"])
    assert excinfo.value.code == 1


def test_requires_trip_id_or_file():
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 2


def test_trip_id_from_file_rejects_missing_id(tmp_path: Path):
    with pytest.raises(ValueError, match="tripId"):
        _trip_id_from_file(_write_trip(tmp_path, {"trip": {"name": "x"}, "items": []}))
