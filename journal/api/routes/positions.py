"""
Position management endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from config.settings import get_journal_config
from journal.api.auth import get_current_user
from journal.core import performance, risk
from journal.core.position_manager import PositionManager
from journal.models.base import get_db
from journal.models.positions import Direction, Position, PositionStatus
from journal.models.users import User
from journal.utils.constants import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT, MAX_TICKER_LENGTH

router = APIRouter()

# ========== REQUEST MODELS ==========

class PositionCreate(BaseModel):
    ticker: str = Field(..., min_length=1, max_length=MAX_TICKER_LENGTH)
    direction: Direction
    quantity: Decimal = Field(..., gt=0)
    price: Decimal = Field(..., gt=0)
    date: datetime
    setup: Optional[str] = None
    observations: Optional[str] = None
    stop_gain: Optional[Decimal] = Field(None, gt=0)
    stop_loss: Optional[Decimal] = Field(None, gt=0)

class PositionUpdate(BaseModel):
    ticker: Optional[str] = Field(None, min_length=1, max_length=MAX_TICKER_LENGTH)
    setup: Optional[str] = None
    observations: Optional[str] = None
    stop_gain: Optional[Decimal] = Field(None, gt=0)
    stop_loss: Optional[Decimal] = Field(None, gt=0)
    # Entry fields, only editable while the entry is the sole operation
    direction: Optional[Direction] = None
    quantity: Optional[Decimal] = Field(None, gt=0)
    price: Optional[Decimal] = Field(None, gt=0)
    date: Optional[datetime] = None

class OperationCreate(BaseModel):
    quantity: Decimal = Field(..., gt=0)
    price: Decimal = Field(..., gt=0)
    date: datetime
    observations: Optional[str] = None

class PriceUpdate(BaseModel):
    price: Decimal = Field(..., gt=0)

class RiskCalculation(BaseModel):
    direction: Direction
    # Leave exactly one of these empty (or zero) to have it calculated
    entry_price: Optional[Decimal] = None
    stop_price: Optional[Decimal] = None
    risk_amount: Optional[Decimal] = None
    quantity: Optional[Decimal] = None

# ========== RESPONSE MODELS ==========

class OperationResponse(BaseModel):
    id: int
    position_id: int
    kind: str
    quantity: Decimal
    price: Decimal
    date: datetime
    result: Optional[Decimal]
    observations: Optional[str]

    class Config:
        from_attributes = True

class PositionResponse(BaseModel):
    id: int
    ticker: str
    direction: str
    status: str
    average_entry_price: Decimal
    current_quantity: Decimal
    total_realized_pnl: Decimal
    initial_entry_date: datetime
    last_exit_date: Optional[datetime]
    setup: Optional[str]
    observations: Optional[str]
    stop_gain: Optional[Decimal]
    stop_loss: Optional[Decimal]
    last_price: Optional[Decimal]
    operations: List[OperationResponse]
    total_quantity: Optional[Decimal] = None
    average_exit_price: Optional[Decimal] = None
    unrealized_pnl: Optional[Decimal] = None
    unrealized_pnl_pct: Optional[Decimal] = None

    class Config:
        from_attributes = True

class PriceResponse(BaseModel):
    position_id: int
    last_price: Optional[Decimal]

class RiskResponse(BaseModel):
    direction: str
    calculated: str
    entry_price: Optional[Decimal]
    stop_price: Optional[Decimal]
    risk_amount: Optional[Decimal]
    quantity: Optional[Decimal]

def _to_response(position: Position) -> PositionResponse:
    response = PositionResponse.model_validate(position)
    summary = performance.exit_summary(position)
    response.total_quantity = summary['total_quantity']
    if position.status == PositionStatus.CLOSED.value:
        response.average_exit_price = summary['average_exit_price']
    if position.last_price is not None:
        response.unrealized_pnl = performance.unrealized_pnl(position, position.last_price)
        response.unrealized_pnl_pct = performance.unrealized_pnl_pct(position, position.last_price)
    return response

# ========== STATISTICS ==========

@router.get("/stats/summary")
def position_stats(
    initial_capital: Optional[Decimal] = Query(None, gt=0, description="Override the configured initial capital"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """
    Get position statistics summary.
    """
    if initial_capital is None:
        initial_capital = Decimal(str(get_journal_config()['capital']['initial']))

    positions = PositionManager(db).list_positions(user.id, limit=None)
    summary = performance.summarize(positions, initial_capital)

    return {
        key: float(value) if isinstance(value, Decimal) else value
        for key, value in summary.items()
    }

@router.get("/stats/cumulative")
def cumulative_pnl(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """
    Cumulative realized P&L curve over closed positions.
    """
    positions = PositionManager(db).list_positions(
        user.id, status=PositionStatus.CLOSED.value, limit=None
    )
    return [
        {
            "position_id": point['position_id'],
            "ticker": point['ticker'],
            "date": point['date'].isoformat(),
            "pnl": float(point['pnl']),
            "cumulative_pnl": float(point['cumulative_pnl'])
        }
        for point in performance.cumulative_pnl(positions)
    ]

# ========== RISK CALCULATOR ==========

@router.post("/risk", response_model=RiskResponse)
def calculate_risk(payload: RiskCalculation, user: User = Depends(get_current_user)):
    """
    Calculate the missing one of entry price, stop price, risk amount and quantity.
    """
    values = payload.model_dump(include=set(risk.RISK_FIELDS))
    field, value = risk.calculate_missing_value(payload.direction.value, **values)
    values[field] = value
    return RiskResponse(direction=payload.direction.value, calculated=field, **values)

# ========== POSITIONS ==========

@router.get("/", response_model=List[PositionResponse])
def list_positions(
    status: Optional[str] = Query(None, description="Filter by status (Open, Closed)"),
    ticker: Optional[str] = Query(None, description="Filter by ticker"),
    limit: int = Query(DEFAULT_QUERY_LIMIT, ge=1, le=MAX_QUERY_LIMIT, description="Maximum number of results"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """
    List positions with optional filters.
    """
    positions = PositionManager(db).list_positions(
        user.id,
        status=status,
        ticker=ticker,
        limit=limit
    )
    return [_to_response(p) for p in positions]

@router.post("/", response_model=PositionResponse, status_code=201)
def create_position(
    payload: PositionCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """
    Open a new position with its entry operation.
    """
    position = PositionManager(db).create_position(
        user.id,
        ticker=payload.ticker,
        direction=payload.direction.value,
        quantity=payload.quantity,
        price=payload.price,
        date=payload.date,
        setup=payload.setup,
        observations=payload.observations,
        stop_gain=payload.stop_gain,
        stop_loss=payload.stop_loss
    )
    return _to_response(position)

@router.get("/{position_id}", response_model=PositionResponse)
def get_position(position_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """
    Get specific position by ID.
    """
    return _to_response(PositionManager(db).get_position(position_id, user.id))

@router.put("/{position_id}", response_model=PositionResponse)
def update_position(
    position_id: int,
    payload: PositionUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """
    Update a position's notes, stops, ticker or (while untouched) its entry.
    """
    changes = payload.model_dump(exclude_unset=True)
    if changes.get('direction') is not None:
        changes['direction'] = changes['direction'].value
    position = PositionManager(db).update_position(position_id, user.id, **changes)
    return _to_response(position)

@router.delete("/{position_id}")
def delete_position(position_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """
    Delete a position and all of its operations.
    """
    PositionManager(db).delete_position(position_id, user.id)
    return {"message": "Position deleted successfully"}

# ========== OPERATIONS ==========

@router.post("/{position_id}/increment", response_model=PositionResponse)
def increment_position(
    position_id: int,
    payload: OperationCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """
    Add shares to an open position.
    """
    position = PositionManager(db).increment(
        position_id, user.id, payload.quantity, payload.price, payload.date, payload.observations
    )
    return _to_response(position)

@router.post("/{position_id}/partial-exit", response_model=PositionResponse)
def partial_exit(
    position_id: int,
    payload: OperationCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """
    Exit part or all of an open position.
    """
    position = PositionManager(db).partial_exit(
        position_id, user.id, payload.quantity, payload.price, payload.date, payload.observations
    )
    return _to_response(position)

@router.get("/{position_id}/operations", response_model=List[OperationResponse])
def list_operations(position_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """
    List a position's operations in ledger order.
    """
    return PositionManager(db).get_operations(position_id, user.id)

@router.delete("/{position_id}/operations/{operation_id}")
def delete_operation(
    position_id: int,
    operation_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """
    Delete an increment or partial exit and recalculate the position.
    """
    position = PositionManager(db).delete_operation(position_id, operation_id, user.id)
    if position is None:
        return {"message": "Operation removed, position deleted", "position": None}
    return {
        "message": "Operation removed and position recalculated",
        "position": _to_response(position).model_dump(mode="json")
    }

# ========== LAST PRICE ==========

@router.get("/{position_id}/price", response_model=PriceResponse)
def get_last_price(position_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """
    Get the last recorded market price of a position.
    """
    position = PositionManager(db).get_position(position_id, user.id)
    return PriceResponse(position_id=position.id, last_price=position.last_price)

@router.put("/{position_id}/price", response_model=PriceResponse)
def set_last_price(
    position_id: int,
    payload: PriceUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """
    Record the latest market price of a position.
    """
    position = PositionManager(db).set_last_price(position_id, user.id, payload.price)
    return PriceResponse(position_id=position.id, last_price=position.last_price)
