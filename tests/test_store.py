"""Tests for ledger persistence adapters."""
from __future__ import annotations

import json
import sqlite3

from living_story.ledger import ConsequenceLedger
from living_story.market import ConsequenceBetMarket
from living_story.models import BetStatus, ConsequenceStatus, House
from living_story.recorder import ConsequenceRecorder
from living_story.store import InMemoryConsequenceStore, SqliteConsequenceStore


def test_sqlite_store_creates_schema(tmp_path):
    db_path = tmp_path / "ledger.db"
    SqliteConsequenceStore(db_path)

    with sqlite3.connect(db_path) as conn:
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
    assert "consequences" in tables


def test_sqlite_round_trip_preserves_bets_and_links(tmp_path, settings, severity_classifier):
    store = SqliteConsequenceStore(tmp_path / "ledger.db")
    recorder = ConsequenceRecorder(settings, severity_classifier)
    ledger = ConsequenceLedger("saga", store=store, recorder=recorder)
    market = ConsequenceBetMarket(ledger, settings)

    parent = ledger.record_from_choice(3, "choice-a", "severity-4", [House.VALDRIS, House.NULL])
    child = ledger.record_from_choice(5, "choice-b", "severity-2", [House.STRAND])
    ledger.link(parent.id, child.id)
    market.place_bet(parent.id, "0xAlice", 14, 50)
    ledger.resolve(parent.id, 15, "Joint stewardship restored.")
    market.settle_bets(parent.id, 15)

    reloaded = ConsequenceLedger("saga", store=SqliteConsequenceStore(store.db_path), recorder=recorder)
    restored = reloaded.get(parent.id)
    assert restored.status == ConsequenceStatus.RESOLVED
    assert restored.houses_affected == [House.VALDRIS, House.NULL]
    assert restored.child_ids == [child.id]
    assert reloaded.get(child.id).parent_id == parent.id
    assert len(restored.bets) == 1
    assert restored.bets[0].status == BetStatus.WON
    assert restored.bets[0].payout == 400
    assert store.status_counts("saga") == {"resolved": 1, "pending": 1}


def test_stores_are_scoped_by_story(tmp_path, settings, severity_classifier):
    store = SqliteConsequenceStore(tmp_path / "ledger.db")
    recorder = ConsequenceRecorder(settings, severity_classifier)
    ConsequenceLedger("one", store=store, recorder=recorder).record_from_choice(
        2, "choice-a", "severity-1", [House.STRAND]
    )
    assert store.load("two") == []
    assert len(store.load("one")) == 1


def test_memory_store_returns_copies(settings, severity_classifier):
    store = InMemoryConsequenceStore()
    recorder = ConsequenceRecorder(settings, severity_classifier)
    ledger = ConsequenceLedger("copy", store=store, recorder=recorder)
    consequence = ledger.record_from_choice(2, "choice-a", "severity-1", [House.STRAND])

    loaded = store.load("copy")[0]
    loaded.description = "tampered"
    assert ledger.get(consequence.id).description != "tampered"
    assert store.load("copy")[0].description == consequence.description


def test_sqlite_updated_at_column_matches_payload(tmp_path, settings, severity_classifier):
    store = SqliteConsequenceStore(tmp_path / "ledger.db")
    recorder = ConsequenceRecorder(settings, severity_classifier)
    ledger = ConsequenceLedger("stamps", store=store, recorder=recorder)
    consequence = ledger.record_from_choice(2, "choice-a", "severity-3", [House.STRAND])
    ledger.resolve(consequence.id, 9, "closed")

    with sqlite3.connect(store.db_path) as conn:
        column, payload = conn.execute(
            "SELECT updated_at, payload FROM consequences WHERE id = ?", (consequence.id,)
        ).fetchone()
    assert column == json.loads(payload)["updated_at"]
    assert column == ledger.get(consequence.id).updated_at.isoformat()
