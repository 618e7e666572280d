"""
Trade risk calculator.

Relates entry price, stop price, amount at risk and quantity for a planned
trade: given any three, the fourth follows from

    risk = (entry - stop) * quantity     for Buy
    risk = (stop - entry) * quantity     for Sell
"""
from decimal import Decimal, ROUND_FLOOR
from typing import Optional, Tuple

from journal.core.exceptions import ValidationError
from journal.models.positions import Direction
from journal.utils.constants import ZERO

RISK_FIELDS = ('entry_price', 'stop_price', 'risk_amount', 'quantity')


def _to_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _price_difference(direction: str, entry_price: Decimal, stop_price: Decimal) -> Decimal:
    if direction == Direction.BUY.value:
        difference = _to_decimal(entry_price) - _to_decimal(stop_price)
        if difference <= ZERO:
            raise ValidationError("Entry price must be greater than stop price")
    elif direction == Direction.SELL.value:
        difference = _to_decimal(stop_price) - _to_decimal(entry_price)
        if difference <= ZERO:
            raise ValidationError("Stop price must be greater than entry price")
    else:
        raise ValidationError(f"Unknown direction: {direction}")
    return difference


def _require_positive(name: str, value) -> Decimal:
    value = _to_decimal(value)
    if value <= ZERO:
        raise ValidationError(f"{name} must be greater than zero")
    return value


def calculate_quantity(entry_price, stop_price, risk_amount, direction: str) -> Decimal:
    """Whole shares that keep the loss at the stop within `risk_amount`.

    Rounded down so the real risk never exceeds the amount asked for.
    """
    difference = _price_difference(direction, entry_price, stop_price)
    risk_amount = _require_positive("risk_amount", risk_amount)
    return (risk_amount / difference).to_integral_value(rounding=ROUND_FLOOR)


def calculate_risk_amount(entry_price, stop_price, quantity, direction: str) -> Decimal:
    """Loss taken if `quantity` shares are stopped out."""
    difference = _price_difference(direction, entry_price, stop_price)
    quantity = _require_positive("quantity", quantity)
    return difference * quantity


def calculate_stop_price(entry_price, risk_amount, quantity, direction: str) -> Decimal:
    """Stop at which `quantity` shares lose exactly `risk_amount`."""
    entry_price = _require_positive("entry_price", entry_price)
    risk_amount = _require_positive("risk_amount", risk_amount)
    quantity = _require_positive("quantity", quantity)

    per_share = risk_amount / quantity
    if direction == Direction.BUY.value:
        stop_price = entry_price - per_share
    elif direction == Direction.SELL.value:
        stop_price = entry_price + per_share
    else:
        raise ValidationError(f"Unknown direction: {direction}")

    if stop_price <= ZERO:
        raise ValidationError("Calculated stop price would be zero or negative")
    return stop_price


def calculate_entry_price(stop_price, risk_amount, quantity, direction: str) -> Decimal:
    """Entry at which `quantity` shares stopped at `stop_price` lose `risk_amount`."""
    stop_price = _require_positive("stop_price", stop_price)
    risk_amount = _require_positive("risk_amount", risk_amount)
    quantity = _require_positive("quantity", quantity)

    per_share = risk_amount / quantity
    if direction == Direction.BUY.value:
        entry_price = stop_price + per_share
    elif direction == Direction.SELL.value:
        entry_price = stop_price - per_share
    else:
        raise ValidationError(f"Unknown direction: {direction}")

    if entry_price <= ZERO:
        raise ValidationError("Calculated entry price would be zero or negative")
    return entry_price


def _is_filled(value) -> bool:
    return value is not None and _to_decimal(value) > ZERO


def missing_field(
    entry_price: Optional[Decimal] = None,
    stop_price: Optional[Decimal] = None,
    risk_amount: Optional[Decimal] = None,
    quantity: Optional[Decimal] = None
) -> str:
    """
    Name of the single field left to calculate.

    Exactly three of the four values must be positive; zero or negative
    counts as empty.
    """
    values = dict(zip(RISK_FIELDS, (entry_price, stop_price, risk_amount, quantity)))
    empty = [name for name, value in values.items() if not _is_filled(value)]

    if len(empty) > 1:
        raise ValidationError("Fill exactly 3 fields to calculate the 4th")
    if not empty:
        raise ValidationError("All fields are filled. Leave one empty to calculate it")
    return empty[0]


def calculate_missing_value(
    direction: str,
    entry_price: Optional[Decimal] = None,
    stop_price: Optional[Decimal] = None,
    risk_amount: Optional[Decimal] = None,
    quantity: Optional[Decimal] = None
) -> Tuple[str, Decimal]:
    """
    Fill in whichever of the four values is missing.

    Returns:
        (field name, calculated value)

    Raises:
        ValidationError: not exactly one field empty, or the prices are on
            the wrong side of each other for the direction
    """
    field = missing_field(entry_price, stop_price, risk_amount, quantity)

    if field == 'quantity':
        value = calculate_quantity(entry_price, stop_price, risk_amount, direction)
    elif field == 'risk_amount':
        value = calculate_risk_amount(entry_price, stop_price, quantity, direction)
    elif field == 'stop_price':
        value = calculate_stop_price(entry_price, risk_amount, quantity, direction)
    else:
        value = calculate_entry_price(stop_price, risk_amount, quantity, direction)
    return field, value
