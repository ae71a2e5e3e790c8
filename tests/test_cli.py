"""Tests for the intake-funnel command line."""

from __future__ import annotations

import json

import pytest
from conftest import FIXED_NOW, make_session, make_visit

from intake_funnel.__main__ import main

_ROSTER = """\
staff:
  - id: adm
    name: Head Nurse
    role: admin
  - id: c1
    name: Dr. Carla
    specialization: Cardiology
    max_load: 3
"""


@pytest.fixture
def roster(tmp_path):
    path = tmp_path / "staff.yaml"
    path.write_text(_ROSTER)
    return path


@pytest.fixture
def snapshot(tmp_path):
    pages = [make_visit("cardiology", page_type="department", spent_ms=120_000, scroll_depth=60)]
    session = make_session(topics={"cardiology": 1}, pages=pages)
    path = tmp_path / "session.json"
    path.write_text(session.model_dump_json(by_alias=True))
    return path


class TestRouteCommand:
    def test_specialization(self, roster, capsys):
        main(["route", "--roster", str(roster), "--specialization", "Cardiology"])
        out = json.loads(capsys.readouterr().out)
        assert out["specialization"] == "Cardiology"
        assert out["executive"]["id"] == "c1"
        assert out["reason"] == "matched"
        assert "password_hash" not in out["executive"]

    def test_default_chain(self, roster, capsys):
        main(["route", "--roster", str(roster)])
        out = json.loads(capsys.readouterr().out)
        assert out["specialization"] is None
        assert out["executive"]["id"] == "adm"

    def test_not_found_exits_2(self, roster, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["route", "--roster", str(roster), "--specialization", "Dermatology"])
        assert exc.value.code == 2
        assert json.loads(capsys.readouterr().out)["reason"] == "no_candidate"

    def test_missing_roster(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["route", "--roster", str(tmp_path / "absent.yaml")])
        assert exc.value.code == 1
        assert "Error" in capsys.readouterr().err


class TestScoreCommand:
    def test_json_output(self, snapshot, capsys):
        main(["score", str(snapshot), "--now", str(FIXED_NOW + 120_000), "--json"])
        out = json.loads(capsys.readouterr().out)
        assert out["sessionId"] == "1700000000000-abcdefghijklmnop"
        assert out["topDepartments"] == ["Cardiology"]
        assert set(out["breakdown"]) >= {"topicBreadth", "base", "multiplier", "score"}
        assert out["engagementLevel"] in {"none", "low", "medium", "high"}

    def test_table_output(self, snapshot, capsys):
        main(["score", str(snapshot), "--now", str(FIXED_NOW)])
        out = capsys.readouterr().out
        assert "Session:   1700000000000-abcdefghijklmnop" in out
        assert "Topics:    Cardiology" in out
        assert "Score: " in out

    def test_invalid_snapshot(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(SystemExit) as exc:
            main(["score", str(path)])
        assert exc.value.code == 1
        assert "invalid session snapshot" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 1
    assert "intake-funnel" in capsys.readouterr().out
