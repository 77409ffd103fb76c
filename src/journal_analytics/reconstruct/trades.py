from __future__ import annotations

import itertools
import logging
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Iterator, Mapping

from journal_analytics.models import (
    FLAG_OPEN_POSITION,
    LONG,
    SHORT,
    SIDE_BUY,
    SIDE_SELL,
    JournalEntry,
    Order,
    Trade,
)
from journal_analytics.reconstruct.enrich import enrich_trades

logger = logging.getLogger(__name__)

EPSILON = 1e-9


class MatchingPolicy(str, Enum):
    """How opposing fills are paired into trades.

    WEIGHTED_AVERAGE tracks one running position per symbol and prices every
    exit against the position's average entry. STRICT_FIFO pairs individual
    BUY and SELL orders oldest-first, one trade per pair.
    """

    WEIGHTED_AVERAGE = "weighted_average"
    STRICT_FIFO = "strict_fifo"

    @classmethod
    def parse(cls, value: "MatchingPolicy | str") -> "MatchingPolicy":
        if isinstance(value, MatchingPolicy):
            return value
        text = str(value).strip().lower().replace("-", "_")
        if text in {"weighted_average", "weighted", "average", "position"}:
            return cls.WEIGHTED_AVERAGE
        if text in {"strict_fifo", "fifo"}:
            return cls.STRICT_FIFO
        raise ValueError(f"Unknown matching policy: {value}")


@dataclass
class PositionState:
    symbol: str
    open_quantity: float = 0.0
    avg_entry_price: float = 0.0
    is_short: bool = False
    entry_orders: list[Order] = field(default_factory=list)

    @property
    def is_flat(self) -> bool:
        return abs(self.open_quantity) < EPSILON


@dataclass
class _Run:
    now: datetime
    sequence: Iterator[int]
    trades: list[Trade] = field(default_factory=list)


def reconstruct_trades(
    orders: Iterable[Order],
    *,
    policy: MatchingPolicy | str = MatchingPolicy.WEIGHTED_AVERAGE,
    journal: Mapping[str, JournalEntry] | None = None,
    now: datetime | None = None,
) -> list[Trade]:
    """Match completed orders into round-trip trades, one symbol at a time.

    Open positions left at the end of a symbol's stream are emitted as open
    trades. When ``journal`` is given, trades are enriched from the entry keyed
    by their orders' ``journal_key``.
    """
    resolved = MatchingPolicy.parse(policy)
    by_symbol: dict[str, list[Order]] = {}
    for order in orders:
        if not order.is_complete:
            continue
        by_symbol.setdefault(order.symbol, []).append(order)

    sequence = itertools.count()
    trades: list[Trade] = []
    for symbol in sorted(by_symbol):
        trades.extend(
            match_symbol(by_symbol[symbol], resolved, now=now, sequence=sequence)
        )

    if journal is not None:
        trades = enrich_trades(trades, journal)
    return trades


def match_symbol(
    orders: Iterable[Order],
    policy: MatchingPolicy | str = MatchingPolicy.WEIGHTED_AVERAGE,
    *,
    now: datetime | None = None,
    sequence: Iterator[int] | None = None,
) -> list[Trade]:
    resolved = MatchingPolicy.parse(policy)
    run = _Run(now=now or datetime.now(timezone.utc), sequence=sequence or itertools.count())
    ordered = sorted((order for order in orders if _is_valid(order)), key=_sort_key)
    if not ordered:
        return []
    if len({order.symbol for order in ordered}) > 1:
        raise ValueError("match_symbol expects orders for a single symbol")

    if resolved is MatchingPolicy.STRICT_FIFO:
        _match_fifo(ordered, run)
    else:
        _match_weighted(ordered, run)
    return run.trades


def _sort_key(order: Order) -> tuple:
    return (order.timestamp, order.order_id)


def _is_valid(order: Order) -> bool:
    if order.quantity <= 0:
        logger.warning("Skipping order %s: non-positive quantity %s", order.order_id, order.quantity)
        return False
    if order.average_price < 0:
        logger.warning("Skipping order %s: negative price %s", order.order_id, order.average_price)
        return False
    if order.side not in (SIDE_BUY, SIDE_SELL):
        logger.warning("Skipping order %s: unknown side %r", order.order_id, order.side)
        return False
    return True


def _match_weighted(orders: list[Order], run: _Run) -> None:
    state = PositionState(symbol=orders[0].symbol)
    for order in orders:
        if state.is_flat:
            _start_position(state, order, order.quantity)
            continue
        if (order.side == SIDE_SELL) == state.is_short:
            _add_to_position(state, order)
            continue
        _reduce_or_reverse(state, order, run)

    if not state.is_flat:
        _emit_open_position(state, run)


def _start_position(state: PositionState, order: Order, quantity: float) -> None:
    state.is_short = order.side == SIDE_SELL
    state.open_quantity = -quantity if state.is_short else quantity
    state.avg_entry_price = order.average_price
    if quantity != order.quantity:
        order = replace(order, quantity=quantity)
    state.entry_orders = [order]


def _add_to_position(state: PositionState, order: Order) -> None:
    held = abs(state.open_quantity)
    new_abs = held + order.quantity
    state.avg_entry_price = (state.avg_entry_price * held + order.average_price * order.quantity) / new_abs
    state.open_quantity = -new_abs if state.is_short else new_abs
    state.entry_orders.append(order)


def _reduce_or_reverse(state: PositionState, order: Order, run: _Run) -> None:
    held = abs(state.open_quantity)
    exit_qty = min(order.quantity, held)
    if exit_qty > 0:
        entry_order = state.entry_orders[0]
        run.trades.append(
            _closed_trade(
                run,
                symbol=state.symbol,
                is_short=state.is_short,
                quantity=exit_qty,
                entry_price=state.avg_entry_price,
                exit_price=order.average_price,
                entry_time=entry_order.timestamp,
                exit_time=order.timestamp,
                entry_orders=state.entry_orders,
                exit_order=order,
            )
        )

    remaining = held - exit_qty
    if remaining < EPSILON:
        _reset_state(state)
    else:
        state.open_quantity = -remaining if state.is_short else remaining

    overflow = order.quantity - exit_qty
    if overflow > EPSILON:
        # The unfilled part of an oversized exit reverses the position.
        _start_position(state, order, overflow)


def _reset_state(state: PositionState) -> None:
    state.open_quantity = 0.0
    state.avg_entry_price = 0.0
    state.is_short = False
    state.entry_orders = []


def _emit_open_position(state: PositionState, run: _Run) -> None:
    run.trades.append(
        _open_trade(
            run,
            symbol=state.symbol,
            is_short=state.is_short,
            quantity=abs(state.open_quantity),
            entry_price=state.avg_entry_price,
            entry_orders=state.entry_orders,
        )
    )


def _match_fifo(orders: list[Order], run: _Run) -> None:
    buys: deque[list] = deque()
    sells: deque[list] = deque()

    for order in orders:
        queue = buys if order.side == SIDE_BUY else sells
        queue.append([order, order.quantity])

        while buys and sells:
            buy, sell = buys[0], sells[0]
            qty = min(buy[1], sell[1])
            is_short = _sort_key(sell[0]) < _sort_key(buy[0])
            entry, exit_ = (sell[0], buy[0]) if is_short else (buy[0], sell[0])
            run.trades.append(
                _closed_trade(
                    run,
                    symbol=entry.symbol,
                    is_short=is_short,
                    quantity=qty,
                    entry_price=entry.average_price,
                    exit_price=exit_.average_price,
                    entry_time=entry.timestamp,
                    exit_time=exit_.timestamp,
                    entry_orders=[entry],
                    exit_order=exit_,
                )
            )
            buy[1] -= qty
            sell[1] -= qty
            if buy[1] < EPSILON:
                buys.popleft()
            if sell[1] < EPSILON:
                sells.popleft()

    leftovers = sorted(list(buys) + list(sells), key=lambda item: _sort_key(item[0]))
    for order, remaining in leftovers:
        run.trades.append(
            _open_trade(
                run,
                symbol=order.symbol,
                is_short=order.side == SIDE_SELL,
                quantity=remaining,
                entry_price=order.average_price,
                entry_orders=[replace(order, quantity=remaining)],
            )
        )


def _closed_trade(
    run: _Run,
    *,
    symbol: str,
    is_short: bool,
    quantity: float,
    entry_price: float,
    exit_price: float,
    entry_time: datetime,
    exit_time: datetime,
    entry_orders: list[Order],
    exit_order: Order,
) -> Trade:
    direction = -1.0 if is_short else 1.0
    pnl = (exit_price - entry_price) * quantity * direction
    return_pct = 0.0
    if entry_price:
        return_pct = (exit_price - entry_price) / entry_price * 100.0 * direction
    duration = (exit_time - entry_time).total_seconds() / 60.0

    return Trade(
        trade_id=f"trade-{next(run.sequence)}",
        symbol=symbol,
        side=SHORT if is_short else LONG,
        quantity=quantity,
        entry_price=round_money(entry_price),
        exit_price=round_money(exit_price),
        pnl=round_money(pnl),
        return_pct=round_money(return_pct),
        entry_time=entry_time,
        exit_time=exit_time,
        duration_minutes=round_money(duration),
        broker=entry_orders[0].broker or exit_order.broker,
        journal_key=_journal_key(entry_orders, exit_order),
        orders=_order_ids(entry_orders, exit_order),
    )


def _open_trade(
    run: _Run,
    *,
    symbol: str,
    is_short: bool,
    quantity: float,
    entry_price: float,
    entry_orders: list[Order],
) -> Trade:
    entry_time = entry_orders[0].timestamp
    elapsed = max((run.now - entry_time).total_seconds() / 60.0, 0.0)
    return Trade(
        trade_id=f"open-{next(run.sequence)}",
        symbol=symbol,
        side=SHORT if is_short else LONG,
        quantity=quantity,
        entry_price=round_money(entry_price),
        exit_price=0.0,
        pnl=0.0,
        return_pct=0.0,
        entry_time=entry_time,
        exit_time=None,
        duration_minutes=round_money(elapsed),
        broker=entry_orders[0].broker,
        journal_key=_journal_key(entry_orders, None),
        orders=_order_ids(entry_orders, None),
        data_flags=[FLAG_OPEN_POSITION],
    )


def _journal_key(entry_orders: list[Order], exit_order: Order | None) -> str | None:
    for order in entry_orders:
        if order.journal_key:
            return order.journal_key
    if exit_order is not None:
        return exit_order.journal_key
    return None


def _order_ids(entry_orders: list[Order], exit_order: Order | None) -> list[str]:
    ids: list[str] = []
    for order in [*entry_orders, *([exit_order] if exit_order is not None else [])]:
        if order.order_id not in ids:
            ids.append(order.order_id)
    return ids


def round_money(value: float) -> float:
    """Round half-up to 2 decimals, the precision trades are reported at."""
    rounded = float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    return rounded if rounded else 0.0
