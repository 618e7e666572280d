"""
Journal performance metrics.

Aggregates shown on the dashboard: win rate, average win/loss, payoff
ratio, capital and the cumulative realized P&L curve.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from journal.models.positions import Direction, OperationKind, PositionStatus, ENTRY_KINDS
from journal.utils.constants import ZERO


def _closed(positions: Iterable) -> List:
    return [p for p in positions if p.status == PositionStatus.CLOSED.value]


def _mean(values: List[Decimal]) -> Decimal:
    if not values:
        return ZERO
    return sum(values, ZERO) / len(values)


def summarize(positions: Iterable, initial_capital: Decimal) -> Dict:
    """
    Compute the journal summary for a set of positions.

    Win/loss statistics only count closed positions. Total realized P&L
    includes partial exits of positions that are still open.
    """
    positions = list(positions)
    closed = _closed(positions)
    winners = [Decimal(p.total_realized_pnl) for p in closed if p.total_realized_pnl > 0]
    losers = [Decimal(p.total_realized_pnl) for p in closed if p.total_realized_pnl < 0]

    average_profit = _mean(winners)
    average_loss = _mean(losers)
    payoff_ratio = abs(average_profit / average_loss) if average_loss != ZERO else ZERO
    win_rate = Decimal(len(winners)) / len(closed) if closed else ZERO

    total_realized_pnl = sum((Decimal(p.total_realized_pnl) for p in positions), ZERO)
    initial_capital = Decimal(initial_capital)

    return {
        'total': len(positions),
        'open': len(positions) - len(closed),
        'closed': len(closed),
        'winning': len(winners),
        'losing': len(losers),
        'win_rate': win_rate,
        'average_profit': average_profit,
        'average_loss': average_loss,
        'payoff_ratio': payoff_ratio,
        'total_realized_pnl': total_realized_pnl,
        'initial_capital': initial_capital,
        'current_capital': initial_capital + total_realized_pnl,
    }


def cumulative_pnl(positions: Iterable) -> List[Dict]:
    """
    Running sum of realized P&L over closed positions, in exit order.
    """
    closed = sorted(
        (p for p in _closed(positions) if p.last_exit_date is not None),
        key=lambda p: (p.last_exit_date, p.id or 0)
    )
    points = []
    running = ZERO
    for position in closed:
        running += Decimal(position.total_realized_pnl)
        points.append({
            'position_id': position.id,
            'ticker': position.ticker,
            'date': position.last_exit_date,
            'pnl': Decimal(position.total_realized_pnl),
            'cumulative_pnl': running,
        })
    return points


def unrealized_pnl(position, current_price: Optional[Decimal]) -> Decimal:
    """
    Open P&L of a position at `current_price`.

    Zero when the price is missing or non-positive, or nothing is open.
    """
    if current_price is None or Decimal(current_price) <= ZERO:
        return ZERO
    quantity = Decimal(position.current_quantity)
    if quantity <= ZERO:
        return ZERO
    base = Decimal(position.average_entry_price)
    price = Decimal(current_price)
    diff = price - base if position.direction == Direction.BUY.value else base - price
    return diff * quantity


def unrealized_pnl_pct(position, current_price: Optional[Decimal]) -> Decimal:
    """Unrealized P&L as a percentage of the open cost basis."""
    base = Decimal(position.average_entry_price or 0)
    quantity = Decimal(position.current_quantity or 0)
    if base <= ZERO or quantity <= ZERO:
        return ZERO
    return unrealized_pnl(position, current_price) / (base * quantity) * 100


def exit_summary(position) -> Dict:
    """
    Total quantity entered and quantity-weighted average exit price.
    """
    entered = ZERO
    exited = ZERO
    exit_value = ZERO
    for op in position.operations:
        if op.kind in ENTRY_KINDS:
            entered += Decimal(op.quantity)
        elif op.kind == OperationKind.PARTIAL_EXIT.value:
            exited += Decimal(op.quantity)
            exit_value += Decimal(op.quantity) * Decimal(op.price)
    return {
        'total_quantity': entered,
        'average_exit_price': exit_value / exited if exited > ZERO else None,
    }
