"""Tests for the storyline replay tool."""
from __future__ import annotations

from living_story.store import SqliteConsequenceStore
from living_story.tools.simulate_ledger import main, run_simulation


def test_default_storyline(telemetry):
    lines = run_simulation(telemetry=telemetry)

    assert lines[0].startswith("Chapter 3: recorded CH03-")
    assert lines[0].endswith("(severity 3/5), debt 3.0")
    assert lines[1].endswith("(severity 1/5), debt 4.0")
    assert lines[2].endswith("(severity 2/5), debt 6.0")
    assert lines[3].startswith("0xAlice stakes 50 on CH03-")
    assert lines[3].endswith("resolving in Ch14 (x8)")
    assert lines[4].endswith("resolving in Ch18 (x1.5)")

    assert "NARRATIVE CONSEQUENCE LEDGER - CHAPTER 15" in lines
    assert "Narrative Debt Score: 7.5 / 25 threshold" in lines
    assert "Status: Stable" in lines
    assert "Highest debt bearer: House VALDRIS (score: 3.4)" in lines

    assert any(line.endswith(": 1 won, 0 lost, payout 400") for line in lines)
    assert lines[-1] == "Summary: 2 active, severity low, debt 4.5"


def test_simulation_persists_to_sqlite(tmp_path, telemetry):
    store = SqliteConsequenceStore(tmp_path / "ledger.db")
    run_simulation(store=store, telemetry=telemetry, story_id="saga")
    assert store.status_counts("saga") == {"resolved": 1, "pending": 2}


def test_main_prints_replay(tmp_path, capsys):
    code = main(
        [
            "--db",
            str(tmp_path / "ledger.db"),
            "--telemetry-db",
            str(tmp_path / "telemetry.db"),
            "--chapter",
            "16",
        ]
    )
    out = capsys.readouterr().out
    assert code == 0
    assert "NARRATIVE CONSEQUENCE LEDGER - CHAPTER 16" in out
    assert "Summary:" in out


def test_main_rejects_early_chapter(capsys):
    assert main(["--chapter", "9"]) == 1
    assert "must come after the last recorded chapter" in capsys.readouterr().out
