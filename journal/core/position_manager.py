"""
Transactional position management.

Every mutating action runs in one database transaction: the position row is
locked, its operations are read and written, the aggregates are recomputed
with the ledger and the whole change commits or rolls back together.
"""
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import case, desc, nulls_last
from sqlalchemy.orm import Session

from journal.core import ledger
from journal.core.exceptions import (
    InsufficientQuantityError, NotFoundError, PositionClosedError, ValidationError
)
from journal.models.positions import Direction, Operation, OperationKind, Position, PositionStatus
from journal.utils import metrics
from journal.utils.constants import DEFAULT_QUERY_LIMIT, ZERO
from journal.utils.logging import get_logger

logger = get_logger(__name__)

ENTRY_FIELDS = ('direction', 'quantity', 'price', 'date')
DETAIL_FIELDS = ('ticker', 'setup', 'observations', 'stop_gain', 'stop_loss')


def _require_positive(name: str, value) -> Decimal:
    if value is None:
        raise ValidationError(f"{name} is required")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value <= ZERO:
        raise ValidationError(f"{name} must be greater than zero")
    return value


def _require_date(value) -> datetime:
    if value is None:
        raise ValidationError("date is required")
    return value


def _normalize_ticker(ticker: str) -> str:
    ticker = (ticker or "").strip().upper()
    if not ticker:
        raise ValidationError("ticker is required")
    return ticker


def _normalize_direction(direction) -> str:
    try:
        return Direction(direction).value
    except ValueError:
        raise ValidationError(f"direction must be one of: {', '.join(d.value for d in Direction)}")


def _outcome(pnl: Decimal) -> str:
    if pnl > ZERO:
        return "win"
    if pnl < ZERO:
        return "loss"
    return "flat"


class PositionManager:
    """
    Creates, mutates and deletes positions for one user at a time.

    Reads and writes are always scoped by user_id; a position owned by
    someone else is reported as not found.
    """

    def __init__(self, db: Session):
        self.db = db

    # ========== TRANSACTION HELPERS ==========

    @contextmanager
    def _transaction(self):
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _lock_position(self, position_id: int, user_id: int) -> Position:
        """Load a position with a row lock held until commit/rollback."""
        position = (
            self.db.query(Position)
            .filter(Position.id == position_id, Position.user_id == user_id)
            .with_for_update()
            .first()
        )
        if not position:
            raise NotFoundError("Position not found")
        return position

    def _load_operations(self, position: Position) -> List[Operation]:
        self.db.flush()
        return (
            self.db.query(Operation)
            .filter(Operation.position_id == position.id)
            .order_by(Operation.date, Operation.id)
            .all()
        )

    def _apply_recalculation(self, position: Position) -> Optional[Position]:
        """
        Recompute a position's aggregates from its stored operations.

        Deletes the position when no operations remain.
        """
        operations = self._load_operations(position)
        state = ledger.recalculate(position.direction, operations)

        if state is None:
            logger.info("Position has no operations left, deleting", position_id=position.id)
            self.db.delete(position)
            return None

        was_open = position.status != PositionStatus.CLOSED.value

        position.average_entry_price = state.average_entry_price
        position.current_quantity = state.current_quantity
        position.total_realized_pnl = state.total_realized_pnl
        position.initial_entry_date = state.initial_entry_date
        position.last_exit_date = state.last_exit_date
        position.status = state.status.value
        for operation, result in state.exit_results:
            operation.result = result

        if was_open and state.status == PositionStatus.CLOSED:
            metrics.record_position_closed(_outcome(state.total_realized_pnl))
            logger.info(
                "Position closed",
                position_id=position.id,
                ticker=position.ticker,
                total_realized_pnl=float(state.total_realized_pnl)
            )
        elif not was_open and state.status == PositionStatus.OPEN:
            logger.info("Position reopened", position_id=position.id, ticker=position.ticker)

        return position

    # ========== QUERIES ==========

    def list_positions(
        self,
        user_id: int,
        status: Optional[str] = None,
        ticker: Optional[str] = None,
        limit: Optional[int] = DEFAULT_QUERY_LIMIT
    ) -> List[Position]:
        """
        List a user's positions.

        Open positions first, then the most recently exited, then the most
        recently entered.
        """
        query = self.db.query(Position).filter(Position.user_id == user_id)

        if status:
            query = query.filter(Position.status == status.capitalize())
        if ticker:
            query = query.filter(Position.ticker == ticker.upper())

        open_first = case((Position.status == PositionStatus.OPEN.value, 0), else_=1)
        query = query.order_by(
            open_first,
            nulls_last(desc(Position.last_exit_date)),
            desc(Position.initial_entry_date),
            desc(Position.id)
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def get_position(self, position_id: int, user_id: int) -> Position:
        position = (
            self.db.query(Position)
            .filter(Position.id == position_id, Position.user_id == user_id)
            .first()
        )
        if not position:
            raise NotFoundError("Position not found")
        return position

    def get_operations(self, position_id: int, user_id: int) -> List[Operation]:
        position = self.get_position(position_id, user_id)
        return list(position.operations)

    # ========== MUTATIONS ==========

    def create_position(
        self,
        user_id: int,
        ticker: str,
        direction: str,
        quantity: Decimal,
        price: Decimal,
        date: datetime,
        setup: Optional[str] = None,
        observations: Optional[str] = None,
        stop_gain: Optional[Decimal] = None,
        stop_loss: Optional[Decimal] = None
    ) -> Position:
        """
        Open a position together with its Entry operation.
        """
        ticker = _normalize_ticker(ticker)
        direction = _normalize_direction(direction)
        quantity = _require_positive("quantity", quantity)
        price = _require_positive("price", price)
        date = _require_date(date)

        with self._transaction():
            position = Position(
                user_id=user_id,
                ticker=ticker,
                direction=direction,
                status=PositionStatus.OPEN.value,
                average_entry_price=price,
                current_quantity=quantity,
                total_realized_pnl=ZERO,
                initial_entry_date=date,
                setup=setup,
                observations=observations,
                stop_gain=stop_gain,
                stop_loss=stop_loss,
            )
            position.operations.append(Operation(
                user_id=user_id,
                kind=OperationKind.ENTRY.value,
                quantity=quantity,
                price=price,
                date=date,
            ))
            self.db.add(position)
            self._apply_recalculation(position)

        metrics.record_position_opened(direction)
        metrics.record_operation(OperationKind.ENTRY.value)
        logger.info(
            "Position created",
            position_id=position.id,
            ticker=ticker,
            direction=direction,
            quantity=float(quantity),
            price=float(price)
        )
        return position

    def increment(
        self,
        position_id: int,
        user_id: int,
        quantity: Decimal,
        price: Decimal,
        date: datetime,
        observations: Optional[str] = None
    ) -> Position:
        """
        Add shares to an open position, blending the average entry price.
        """
        quantity = _require_positive("quantity", quantity)
        price = _require_positive("price", price)
        date = _require_date(date)

        with self._transaction():
            position = self._lock_position(position_id, user_id)
            if not position.is_open:
                raise PositionClosedError("Cannot increment a closed position")

            self.db.add(Operation(
                position_id=position.id,
                user_id=user_id,
                kind=OperationKind.INCREMENT.value,
                quantity=quantity,
                price=price,
                date=date,
                observations=observations,
            ))
            self._apply_recalculation(position)

        metrics.record_operation(OperationKind.INCREMENT.value)
        logger.info(
            "Position incremented",
            position_id=position_id,
            quantity=float(quantity),
            price=float(price),
            average_entry_price=float(position.average_entry_price),
            current_quantity=float(position.current_quantity)
        )
        return position

    def partial_exit(
        self,
        position_id: int,
        user_id: int,
        quantity: Decimal,
        price: Decimal,
        date: datetime,
        observations: Optional[str] = None
    ) -> Position:
        """
        Sell part (or all) of an open position.

        The exit's result is taken at the average entry price before the
        exit reduces the quantity. Closing the last share closes the position.
        """
        quantity = _require_positive("quantity", quantity)
        price = _require_positive("price", price)
        date = _require_date(date)

        with self._transaction():
            position = self._lock_position(position_id, user_id)
            if not position.is_open:
                raise PositionClosedError("Cannot exit a closed position")
            if quantity > position.current_quantity:
                raise InsufficientQuantityError(
                    "Exit quantity cannot be greater than current quantity"
                )

            result = ledger.exit_result(
                position.direction, position.average_entry_price, price, quantity
            )
            self.db.add(Operation(
                position_id=position.id,
                user_id=user_id,
                kind=OperationKind.PARTIAL_EXIT.value,
                quantity=quantity,
                price=price,
                date=date,
                result=result,
                observations=observations,
            ))
            self._apply_recalculation(position)

        metrics.record_operation(OperationKind.PARTIAL_EXIT.value)
        logger.info(
            "Partial exit recorded",
            position_id=position_id,
            quantity=float(quantity),
            price=float(price),
            result=float(result),
            status=position.status
        )
        return position

    def delete_operation(self, position_id: int, operation_id: int, user_id: int) -> Optional[Position]:
        """
        Remove an Increment or PartialExit and recalculate from what is left.

        Returns the updated position, or None if it was deleted because no
        operations remained.
        """
        with self._transaction():
            position = self._lock_position(position_id, user_id)
            if not position.is_open:
                raise PositionClosedError("Only open positions can be changed")

            operation = (
                self.db.query(Operation)
                .filter(Operation.id == operation_id, Operation.position_id == position.id)
                .first()
            )
            if not operation:
                raise NotFoundError("Operation not found")
            if operation.kind == OperationKind.ENTRY.value:
                raise ValidationError("The entry operation cannot be deleted")

            kind = operation.kind
            self.db.delete(operation)
            position = self._apply_recalculation(position)

        metrics.record_operation_deleted(kind)
        logger.info(
            "Operation deleted",
            position_id=position_id,
            operation_id=operation_id,
            kind=kind,
            position_deleted=position is None
        )
        return position

    def update_position(self, position_id: int, user_id: int, **changes) -> Position:
        """
        Edit a position's details.

        Notes, stops and ticker are always editable. The entry itself
        (direction, quantity, price, date) can only be edited while the
        position is open and holds nothing but its Entry operation.
        """
        unknown = set(changes) - set(ENTRY_FIELDS) - set(DETAIL_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        entry_changes = {k: v for k, v in changes.items() if k in ENTRY_FIELDS and v is not None}

        with self._transaction():
            position = self._lock_position(position_id, user_id)

            for name in DETAIL_FIELDS:
                if name not in changes:
                    continue
                value = changes[name]
                if name == 'ticker':
                    if value is None:
                        continue
                    value = _normalize_ticker(value)
                setattr(position, name, value)

            if entry_changes:
                operations = self._load_operations(position)
                if not position.is_open or len(operations) > 1:
                    raise ValidationError(
                        "Entry details can only be edited on an open position with no other operations"
                    )
                entry = operations[0]
                if 'direction' in entry_changes:
                    position.direction = _normalize_direction(entry_changes['direction'])
                if 'quantity' in entry_changes:
                    entry.quantity = _require_positive("quantity", entry_changes['quantity'])
                if 'price' in entry_changes:
                    entry.price = _require_positive("price", entry_changes['price'])
                if 'date' in entry_changes:
                    entry.date = entry_changes['date']
                self._apply_recalculation(position)

        logger.info(
            "Position updated",
            position_id=position_id,
            fields=sorted(changes),
            entry_edited=bool(entry_changes)
        )
        return position

    def set_last_price(self, position_id: int, user_id: int, price: Decimal) -> Position:
        """Record the latest market price seen for a position."""
        price = _require_positive("price", price)
        with self._transaction():
            position = self._lock_position(position_id, user_id)
            position.last_price = price

        logger.debug("Last price set", position_id=position_id, price=float(price))
        return position

    def delete_position(self, position_id: int, user_id: int):
        """Delete a position and all of its operations."""
        with self._transaction():
            position = self._lock_position(position_id, user_id)
            self.db.delete(position)

        metrics.record_position_deleted()
        logger.info("Position deleted", position_id=position_id)

    def recalculate(self, position_id: int, user_id: int) -> Optional[Position]:
        """
        Rebuild a position's aggregates from its stored operations.

        Used for repairs after operations were edited outside the manager.
        """
        with self._transaction():
            position = self._lock_position(position_id, user_id)
            position = self._apply_recalculation(position)

        logger.info("Position recalculated", position_id=position_id, deleted=position is None)
        return position
