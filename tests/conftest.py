from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from journal_analytics.models import LONG, SHORT, Order, Trade

T0 = datetime(2024, 1, 3, 4, 0, tzinfo=timezone.utc)


def make_order(
    side: str,
    quantity: float,
    price: float,
    minutes: float = 0,
    *,
    symbol: str = "X",
    order_id: str | None = None,
    status: str = "COMPLETE",
    journal_key: str | None = None,
) -> Order:
    timestamp = T0 + timedelta(minutes=minutes)
    return Order(
        order_id=order_id or f"{symbol}-{side}-{minutes}",
        symbol=symbol,
        side=side,
        quantity=quantity,
        average_price=price,
        timestamp=timestamp,
        status=status,
        journal_key=journal_key,
    )


def make_trade(
    pnl: float,
    *,
    entry_time: datetime = T0,
    strategy: str = "Breakout",
    mistake: str = "Not Specified",
    feelings: str = "Not Selected",
    side: str = LONG,
    quantity: float = 1,
    entry_price: float = 100.0,
    return_pct: float = 0.0,
    duration: float = 10.0,
    open_trade: bool = False,
) -> Trade:
    return Trade(
        trade_id=f"t-{pnl}-{entry_time.isoformat()}",
        symbol="X",
        side=side,
        quantity=quantity,
        entry_price=entry_price,
        exit_price=0.0 if open_trade else entry_price,
        pnl=pnl,
        return_pct=return_pct,
        entry_time=entry_time,
        exit_time=None if open_trade else entry_time + timedelta(minutes=duration),
        duration_minutes=duration,
        strategy=strategy,
        mistake=mistake,
        feelings=feelings,
    )


@pytest.fixture
def now() -> datetime:
    return T0 + timedelta(days=1)


__all__ = ["T0", "LONG", "SHORT", "make_order", "make_trade"]
