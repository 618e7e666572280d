"""Position and operation database models."""
from enum import Enum
from sqlalchemy import Column, String, Numeric, TIMESTAMP, Integer, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from journal.models.base import Base
from journal.utils.constants import MAX_TICKER_LENGTH, MAX_SETUP_LENGTH

class Direction(str, Enum):
    """Position direction."""
    BUY = "Buy"
    SELL = "Sell"

class PositionStatus(str, Enum):
    """Position lifecycle status."""
    OPEN = "Open"
    CLOSED = "Closed"

class OperationKind(str, Enum):
    """Kind of operation recorded against a position."""
    ENTRY = "Entry"
    INCREMENT = "Increment"
    PARTIAL_EXIT = "PartialExit"

ENTRY_KINDS = (OperationKind.ENTRY.value, OperationKind.INCREMENT.value)


class Position(Base):
    """
    Aggregate of every entry, increment and exit for one ticker/direction.

    The aggregate columns are derived from the operations and are rewritten
    by the position manager after every change.
    """
    __tablename__ = 'positions'

    # Primary key
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    ticker = Column(String(MAX_TICKER_LENGTH), nullable=False, index=True)
    direction = Column(String(4), nullable=False)
    status = Column(String(10), nullable=False, default=PositionStatus.OPEN.value, index=True)

    # Aggregates
    average_entry_price = Column(Numeric, nullable=False, default=0)
    current_quantity = Column(Numeric, nullable=False, default=0)
    total_realized_pnl = Column(Numeric, nullable=False, default=0)

    # Dates
    initial_entry_date = Column(TIMESTAMP, nullable=False)
    last_exit_date = Column(TIMESTAMP)

    # Journal notes
    setup = Column(String(MAX_SETUP_LENGTH))
    observations = Column(Text)

    # Stops and last known market price
    stop_gain = Column(Numeric)
    stop_loss = Column(Numeric)
    last_price = Column(Numeric)

    # Timestamps
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="positions")
    operations = relationship(
        "Operation",
        back_populates="position",
        cascade="all, delete-orphan",
        order_by=lambda: (Operation.date, Operation.id),
    )

    @property
    def is_open(self) -> bool:
        return self.status == PositionStatus.OPEN.value


class Operation(Base):
    """
    A single transaction recorded against a position.
    """
    __tablename__ = 'operations'

    # Primary key
    id = Column(Integer, primary_key=True)
    position_id = Column(Integer, ForeignKey('positions.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    # Operation details
    kind = Column(String(20), nullable=False)
    quantity = Column(Numeric, nullable=False)
    price = Column(Numeric, nullable=False)
    date = Column(TIMESTAMP, nullable=False, index=True)

    # Realized result, only set on partial exits
    result = Column(Numeric)
    observations = Column(Text)

    # Audit
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())

    position = relationship("Position", back_populates="operations")
