"""
Position ledger math.

Derives a position's aggregates (average entry price, open quantity,
realized P&L, status, dates) from its operations. Everything here is pure:
callers load the operations and persist the result.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional, Sequence, Tuple

from journal.core.exceptions import InsufficientQuantityError, ValidationError
from journal.models.positions import Direction, OperationKind, PositionStatus, ENTRY_KINDS
from journal.utils.constants import ZERO


@dataclass
class LedgerState:
    """Aggregates of a position after walking its operations."""
    average_entry_price: Decimal
    current_quantity: Decimal
    total_realized_pnl: Decimal
    initial_entry_date: datetime
    last_exit_date: Optional[datetime]
    status: PositionStatus
    # (operation, realized result) for every partial exit, in walk order
    exit_results: List[Tuple[Any, Decimal]] = field(default_factory=list)


def direction_sign(direction: str) -> int:
    """+1 for Buy, -1 for Sell."""
    if direction == Direction.BUY.value:
        return 1
    if direction == Direction.SELL.value:
        return -1
    raise ValidationError(f"Unknown direction: {direction}")


def operation_sort_key(operation) -> Tuple[datetime, int]:
    """Date ascending; same-date operations keep insertion (id) order."""
    return (operation.date, operation.id or 0)


def exit_result(direction: str, average_entry_price: Decimal, exit_price: Decimal, quantity: Decimal) -> Decimal:
    """Realized result of exiting `quantity` at `exit_price`."""
    sign = direction_sign(direction)
    return (Decimal(exit_price) - Decimal(average_entry_price)) * Decimal(quantity) * sign


def recalculate(direction: str, operations: Sequence) -> Optional[LedgerState]:
    """
    Walk a position's operations in order and derive its aggregates.

    Args:
        direction: Position direction ("Buy" or "Sell")
        operations: Objects with kind, quantity, price and date attributes,
            already ordered by `operation_sort_key`

    Returns:
        LedgerState, or None when there are no operations left (the
        position should then be deleted)

    Raises:
        InsufficientQuantityError: an exit sells more than is open at that point
    """
    if not operations:
        return None

    sign = direction_sign(direction)
    running_cost = ZERO
    running_qty = ZERO
    last_average = ZERO
    total_realized_pnl = ZERO
    last_exit_date = None
    exit_results = []

    for op in operations:
        quantity = Decimal(op.quantity)
        price = Decimal(op.price)

        if op.kind in ENTRY_KINDS:
            running_cost += price * quantity
            running_qty += quantity
            last_average = running_cost / running_qty
        elif op.kind == OperationKind.PARTIAL_EXIT.value:
            if running_qty <= ZERO or quantity > running_qty:
                raise InsufficientQuantityError(
                    f"Exit of {quantity} on {op.date:%Y-%m-%d} exceeds open quantity {running_qty}"
                )
            average = running_cost / running_qty
            pnl = (price - average) * quantity * sign
            total_realized_pnl += pnl
            exit_results.append((op, pnl))
            running_cost -= average * quantity
            running_qty -= quantity
            if running_qty == ZERO:
                running_cost = ZERO
            last_exit_date = op.date
        else:
            raise ValidationError(f"Unknown operation kind: {op.kind}")

    if running_qty > ZERO:
        average_entry_price = running_cost / running_qty
        status = PositionStatus.OPEN
    else:
        # Fully exited: keep the cost basis the shares were closed against
        average_entry_price = last_average
        status = PositionStatus.CLOSED

    return LedgerState(
        average_entry_price=average_entry_price,
        current_quantity=running_qty,
        total_realized_pnl=total_realized_pnl,
        initial_entry_date=operations[0].date,
        last_exit_date=last_exit_date,
        status=status,
        exit_results=exit_results,
    )
