import pytest

from conftest import make_trade
from journal_analytics.models import JournalEntry
from journal_analytics.reconstruct.enrich import (
    enrich_trade,
    enrich_trades,
    resolve_amount,
    resolve_choice,
    resolve_text,
)


def test_missing_metadata_falls_back_to_defaults():
    trade = enrich_trade(make_trade(10.0), None)
    assert trade.strategy == "Not Selected"
    assert trade.mistake == "Not Specified"
    assert trade.feelings == "Not Selected"
    assert trade.notes == ""
    assert trade.stop_loss == 0.0
    assert trade.target_price == 0.0


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("  Breakout ", "Breakout"),
        (["  ORB", "Scalp"], "ORB"),
        (["", "  ", "Scalp"], "Scalp"),
        ([], "Not Selected"),
        ("   ", "Not Selected"),
        (None, "Not Selected"),
        (42, "Not Selected"),
        ({"name": "x"}, "Not Selected"),
        ([None, 3], "Not Selected"),
    ],
)
def test_resolve_choice(value, expected):
    assert resolve_choice(value, "Not Selected") == expected


def test_resolve_text_only_accepts_strings():
    assert resolve_text("  fomo ", "Not Specified") == "fomo"
    assert resolve_text(["fomo"], "Not Specified") == "Not Specified"
    assert resolve_text("", "Not Specified") == "Not Specified"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("105.5", 105.5), (99, 99.0), ("", 0.0), (None, 0.0), ("n/a", 0.0), (float("nan"), 0.0), (True, 0.0)],
)
def test_resolve_amount(value, expected):
    assert resolve_amount(value) == expected


def test_enrich_trade_uses_every_field():
    entry = JournalEntry(
        strategy=["Reversal"],
        mistake="late_entry",
        feelings=["nervous", "fear"],
        stop_loss="98.5",
        target_price=110,
        notes=" waited for retest ",
    )
    original = make_trade(25.0)
    trade = enrich_trade(original, entry)

    assert trade.strategy == "Reversal"
    assert trade.mistake == "late_entry"
    assert trade.feelings == "nervous"
    assert trade.stop_loss == 98.5
    assert trade.target_price == 110.0
    assert trade.notes == "waited for retest"
    assert trade.pnl == original.pnl
    assert original.strategy == "Breakout"


def test_from_mapping_reads_legacy_keys():
    entry = JournalEntry.from_mapping(
        {"startegy": ["Momentum"], "description": "note", "emotion": "calm", "orders": []}
    )
    assert entry.strategy == ["Momentum"]
    assert entry.notes == "note"
    assert entry.feelings == "calm"


def test_enrich_trades_looks_up_journal_key():
    keyed = make_trade(1.0)
    keyed.journal_key = "doc/TRADE_001"
    unkeyed = make_trade(2.0)
    journal = {"doc/TRADE_001": JournalEntry(strategy="Gap fill")}

    enriched = enrich_trades([keyed, unkeyed], journal)

    assert [trade.strategy for trade in enriched] == ["Gap fill", "Not Selected"]
