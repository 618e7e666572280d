from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from journal.core import performance


@dataclass
class Pos:
    id: int
    ticker: str
    status: str
    total_realized_pnl: Decimal
    direction: str = "Buy"
    average_entry_price: Decimal = Decimal("10")
    current_quantity: Decimal = Decimal("0")
    last_exit_date: Optional[datetime] = None
    operations: List = field(default_factory=list)


@dataclass
class Op:
    kind: str
    quantity: Decimal
    price: Decimal


def closed(id, pnl, day):
    return Pos(id, f"T{id}", "Closed", Decimal(pnl), last_exit_date=datetime(2024, 3, day))


def test_summary_counts_closed_positions_only():
    positions = [
        closed(1, "300", 5),
        closed(2, "-100", 6),
        closed(3, "100", 7),
        Pos(4, "OPEN", "Open", Decimal("50"), current_quantity=Decimal("10")),
    ]
    summary = performance.summarize(positions, Decimal("1000"))

    assert summary["closed"] == 3
    assert summary["open"] == 1
    assert summary["winning"] == 2
    assert summary["losing"] == 1
    assert summary["win_rate"] == Decimal(2) / 3
    assert summary["average_profit"] == Decimal("200")
    assert summary["average_loss"] == Decimal("-100")
    assert summary["payoff_ratio"] == Decimal("2")
    # Partial exits of open positions count towards realized P&L
    assert summary["total_realized_pnl"] == Decimal("350")
    assert summary["current_capital"] == Decimal("1350")


def test_summary_without_trades():
    summary = performance.summarize([], Decimal("500"))
    assert summary["win_rate"] == 0
    assert summary["payoff_ratio"] == 0
    assert summary["current_capital"] == Decimal("500")


def test_cumulative_pnl_follows_exit_dates():
    positions = [closed(1, "50", 9), closed(2, "-20", 3), closed(3, "10", 6)]
    points = performance.cumulative_pnl(positions)
    assert [p["position_id"] for p in points] == [2, 3, 1]
    assert [p["cumulative_pnl"] for p in points] == [Decimal("-20"), Decimal("-10"), Decimal("40")]


def test_unrealized_pnl_by_direction():
    long = Pos(1, "A", "Open", Decimal(0), direction="Buy", current_quantity=Decimal("10"))
    short = Pos(2, "B", "Open", Decimal(0), direction="Sell", current_quantity=Decimal("10"))

    assert performance.unrealized_pnl(long, Decimal("12")) == Decimal("20")
    assert performance.unrealized_pnl(short, Decimal("12")) == Decimal("-20")
    assert performance.unrealized_pnl_pct(long, Decimal("12")) == Decimal("20")
    assert performance.unrealized_pnl(long, None) == 0
    assert performance.unrealized_pnl(long, Decimal("0")) == 0


def test_unrealized_pnl_is_zero_when_flat():
    flat = Pos(1, "A", "Closed", Decimal(0), current_quantity=Decimal("0"))
    assert performance.unrealized_pnl(flat, Decimal("12")) == 0
    assert performance.unrealized_pnl_pct(flat, Decimal("12")) == 0


def test_exit_summary():
    position = Pos(1, "A", "Closed", Decimal(0), operations=[
        Op("Entry", Decimal("100"), Decimal("10")),
        Op("Increment", Decimal("100"), Decimal("20")),
        Op("PartialExit", Decimal("50"), Decimal("25")),
        Op("PartialExit", Decimal("150"), Decimal("5")),
    ])
    summary = performance.exit_summary(position)
    assert summary["total_quantity"] == Decimal("200")
    assert summary["average_exit_price"] == Decimal("10")

    position.operations = position.operations[:2]
    assert performance.exit_summary(position)["average_exit_price"] is None
