from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

SIDE_BUY = "BUY"
SIDE_SELL = "SELL"

STATUS_COMPLETE = "COMPLETE"
STATUS_OTHER = "OTHER"

LONG = "LONG"
SHORT = "SHORT"

DEFAULT_STRATEGY = "Not Selected"
DEFAULT_MISTAKE = "Not Specified"
DEFAULT_FEELINGS = "Not Selected"

FLAG_OPEN_POSITION = "open_position"


@dataclass(frozen=True)
class Order:
    order_id: str
    symbol: str
    side: str
    quantity: float
    average_price: float
    timestamp: datetime
    status: str = STATUS_COMPLETE
    broker: str | None = None
    journal_key: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return self.status == STATUS_COMPLETE


@dataclass(frozen=True)
class JournalEntry:
    """User-authored metadata for one journal trade group.

    Fields keep whatever shape the stored document had (legacy documents carry
    lists for ``strategy`` and ``feelings``); the enricher resolves them.
    """

    strategy: Any = None
    mistake: Any = None
    feelings: Any = None
    stop_loss: Any = None
    target_price: Any = None
    notes: Any = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "JournalEntry":
        if not raw:
            return cls()
        strategy = raw.get("strategy")
        if not strategy:
            strategy = raw.get("startegy")
        feelings = raw.get("feelings")
        if feelings in (None, "", []):
            feelings = raw.get("emotion")
        notes = raw.get("description")
        if notes in (None, ""):
            notes = raw.get("notes")
        return cls(
            strategy=strategy,
            mistake=raw.get("mistake"),
            feelings=feelings,
            stop_loss=raw.get("stop_loss", raw.get("stopLoss")),
            target_price=raw.get("target_price", raw.get("targetPrice")),
            notes=notes,
        )


@dataclass
class Trade:
    trade_id: str
    symbol: str
    side: str
    quantity: float
    entry_price: float
    exit_price: float
    pnl: float
    return_pct: float
    entry_time: datetime
    exit_time: datetime | None
    duration_minutes: float
    strategy: str = DEFAULT_STRATEGY
    mistake: str = DEFAULT_MISTAKE
    feelings: str = DEFAULT_FEELINGS
    notes: str = ""
    stop_loss: float = 0.0
    target_price: float = 0.0
    broker: str | None = None
    journal_key: str | None = None
    orders: list[str] = field(default_factory=list)
    data_flags: list[str] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.exit_time is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.trade_id,
            "symbol": self.symbol,
            "side": self.side,
            "quantity": self.quantity,
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "pnl": self.pnl,
            "return_pct": self.return_pct,
            "entry_time": self.entry_time.isoformat(),
            "exit_time": self.exit_time.isoformat() if self.exit_time else None,
            "duration_minutes": self.duration_minutes,
            "strategy": self.strategy,
            "mistake": self.mistake,
            "feelings": self.feelings,
            "notes": self.notes,
            "stop_loss": self.stop_loss,
            "target_price": self.target_price,
            "broker": self.broker,
            "journal_key": self.journal_key,
            "orders": list(self.orders),
            "data_flags": list(self.data_flags),
            "is_open": self.is_open,
        }
