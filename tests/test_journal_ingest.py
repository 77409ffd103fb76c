"""Tests for journal document flattening and the ingest pipeline."""

import json
from datetime import datetime, timezone

from journal_analytics.ingest.journal import flatten_journal, is_journal_payload
from journal_analytics.pipeline import trades_from_path, trades_from_payload

NOW = datetime(2024, 1, 4, 0, 0, tzinfo=timezone.utc)


def _order(order_id, side, quantity, price, clock):
    return {
        "id": order_id,
        "order_timestamp": f"2024-01-03 {clock}",
        "tradingsymbol": "INFY",
        "quantity": quantity,
        "average_price": price,
        "transaction_type": side,
        "status": "COMPLETE",
    }


DOCUMENT = {
    "id": "2024-01-03",
    "trades": {
        "date": "2024-01-03",
        "TRADE_001": {
            "orders": [
                _order("o1", "BUY", 10, 100, "09:20:00"),
                _order("o2", "SELL", 10, 110, "09:50:00"),
            ],
            "startegy": ["Breakout"],
            "mistake": "no_mistake",
            "feelings": ["calm"],
            "stopLoss": "95",
            "description": "clean breakout",
        },
        "TRADE_002": {
            "orders": [
                _order("o3", "SELL", 5, 200, "12:00:00"),
                _order("o4", "BUY", 5, 210, "12:30:00"),
                "not an order",
            ],
            "strategy": "Reversal",
        },
    },
}


def test_flatten_journal_keys_orders_to_groups():
    result = flatten_journal([DOCUMENT])

    assert [order.order_id for order in result.orders] == ["o1", "o2", "o3", "o4"]
    assert result.orders[0].journal_key == "2024-01-03/TRADE_001"
    assert result.orders[3].journal_key == "2024-01-03/TRADE_002"
    assert set(result.journal) == {"2024-01-03/TRADE_001", "2024-01-03/TRADE_002"}
    assert result.journal["2024-01-03/TRADE_001"].strategy == ["Breakout"]
    assert result.skipped == 1


def test_is_journal_payload():
    assert is_journal_payload([DOCUMENT])
    assert is_journal_payload({"documents": [DOCUMENT]})
    assert not is_journal_payload([_order("o1", "BUY", 1, 1, "09:20:00")])
    assert not is_journal_payload([])


def test_pipeline_enriches_trades_from_journal():
    result = trades_from_payload([DOCUMENT], now=NOW)

    first, second = result.trades
    assert first.strategy == "Breakout"
    assert first.mistake == "no_mistake"
    assert first.feelings == "calm"
    assert first.stop_loss == 95.0
    assert first.notes == "clean breakout"
    assert first.pnl == 100

    assert second.side == "SHORT"
    assert second.pnl == -50
    assert second.strategy == "Reversal"
    assert second.mistake == "Not Specified"
    assert result.skipped == 1


def test_pipeline_reads_plain_order_exports(tmp_path):
    path = tmp_path / "orders.json"
    path.write_text(
        json.dumps([_order("o1", "BUY", 10, 100, "09:20:00"), _order("o2", "SELL", 4, 90, "09:25:00")]),
        encoding="utf-8",
    )
    result = trades_from_path(path, now=NOW)

    closed, still_open = result.trades
    assert closed.pnl == -40
    assert closed.strategy == "Not Selected"
    assert still_open.is_open
    assert still_open.quantity == 6


def test_pipeline_reads_wrapped_journal_file(tmp_path):
    path = tmp_path / "journal.json"
    path.write_text(json.dumps({"documents": [DOCUMENT]}), encoding="utf-8")
    result = trades_from_path(path, now=NOW)

    assert [trade.strategy for trade in result.trades] == ["Breakout", "Reversal"]
    assert result.skipped == 1


def test_pipeline_reads_csv_exports(tmp_path):
    path = tmp_path / "orders.csv"
    path.write_text(
        "order_id,exchange_update_timestamp,tradingsymbol,filled_quantity,average_price,transaction_type,status\n"
        "Z1,2024-01-03 09:20:00,INFY,10,100,BUY,COMPLETE\n"
        "Z2,2024-01-03 09:40:00,INFY,10,105,SELL,COMPLETE\n"
        "Z3,1e25,INFY,10,105,SELL,COMPLETE\n",
        encoding="utf-8",
    )
    result = trades_from_path(path, broker="zerodha", now=NOW)

    (trade,) = result.trades
    assert trade.pnl == 50
    assert trade.entry_time == datetime(2024, 1, 3, 3, 50, tzinfo=timezone.utc)
    assert result.skipped == 1


def test_pipeline_skips_non_object_records():
    rows = [_order("o1", "BUY", 10, 100, "09:20:00"), "garbage", 7, _order("o2", "SELL", 10, 101, "09:30:00")]
    result = trades_from_payload(rows, now=NOW)

    assert len(result.trades) == 1
    assert result.skipped == 2
