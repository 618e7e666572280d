from datetime import datetime
from decimal import Decimal

import pytest

from journal.core.exceptions import (
    InsufficientQuantityError, NotFoundError, PositionClosedError, ValidationError
)
from journal.models.positions import Operation, Position


def test_create_position_records_entry(manager, open_position):
    assert open_position.ticker == "AAPL"
    assert open_position.status == "Open"
    assert open_position.average_entry_price == Decimal("10")
    assert open_position.current_quantity == Decimal("100")
    assert open_position.total_realized_pnl == 0
    assert [op.kind for op in open_position.operations] == ["Entry"]


@pytest.mark.parametrize("quantity,price", [(0, 10), (10, 0), (-1, 10), (None, 10)])
def test_create_position_rejects_bad_numbers(manager, user, quantity, price):
    with pytest.raises(ValidationError):
        manager.create_position(user.id, "AAPL", "Buy", quantity, price, datetime(2024, 1, 2))


def test_create_position_rejects_unknown_direction(manager, user):
    with pytest.raises(ValidationError):
        manager.create_position(user.id, "AAPL", "Long", 10, 10, datetime(2024, 1, 2))


def test_full_lifecycle(manager, user, open_position):
    position = manager.increment(open_position.id, user.id, Decimal("100"), Decimal("20"), datetime(2024, 1, 3))
    assert position.average_entry_price == Decimal("15")
    assert position.current_quantity == Decimal("200")

    position = manager.partial_exit(open_position.id, user.id, Decimal("50"), Decimal("25"), datetime(2024, 1, 4))
    assert position.current_quantity == Decimal("150")
    assert position.total_realized_pnl == Decimal("500")
    assert position.status == "Open"

    position = manager.partial_exit(open_position.id, user.id, Decimal("150"), Decimal("5"), datetime(2024, 1, 5))
    assert position.current_quantity == 0
    assert position.status == "Closed"
    assert position.total_realized_pnl == Decimal("-1000")
    assert position.last_exit_date == datetime(2024, 1, 5)

    results = [op.result for op in position.operations if op.kind == "PartialExit"]
    assert results == [Decimal("500"), Decimal("-1500")]


def test_oversized_exit_leaves_state_untouched(manager, db, user, open_position):
    with pytest.raises(InsufficientQuantityError):
        manager.partial_exit(open_position.id, user.id, Decimal("101"), Decimal("12"), datetime(2024, 1, 3))

    position = manager.get_position(open_position.id, user.id)
    assert position.current_quantity == Decimal("100")
    assert db.query(Operation).filter(Operation.position_id == position.id).count() == 1


def test_backdated_exit_that_oversells_is_rolled_back(manager, db, user, open_position):
    manager.increment(open_position.id, user.id, Decimal("100"), Decimal("12"), datetime(2024, 1, 10))
    # 150 <= 200 currently open, but only 100 were open on 2024-01-05
    with pytest.raises(InsufficientQuantityError):
        manager.partial_exit(open_position.id, user.id, Decimal("150"), Decimal("12"), datetime(2024, 1, 5))

    position = manager.get_position(open_position.id, user.id)
    assert position.current_quantity == Decimal("200")
    assert db.query(Operation).filter(Operation.position_id == position.id).count() == 2


def test_closed_position_rejects_mutations(manager, user, open_position):
    manager.partial_exit(open_position.id, user.id, Decimal("100"), Decimal("11"), datetime(2024, 1, 3))

    with pytest.raises(PositionClosedError):
        manager.increment(open_position.id, user.id, Decimal("1"), Decimal("11"), datetime(2024, 1, 4))
    with pytest.raises(PositionClosedError):
        manager.partial_exit(open_position.id, user.id, Decimal("1"), Decimal("11"), datetime(2024, 1, 4))

    exit_op = manager.get_operations(open_position.id, user.id)[-1]
    with pytest.raises(PositionClosedError):
        manager.delete_operation(open_position.id, exit_op.id, user.id)


def test_delete_operation_recalculates(manager, user, open_position):
    manager.increment(open_position.id, user.id, Decimal("100"), Decimal("20"), datetime(2024, 1, 3))
    manager.partial_exit(open_position.id, user.id, Decimal("50"), Decimal("25"), datetime(2024, 1, 4))
    increment_op = manager.get_operations(open_position.id, user.id)[1]

    position = manager.delete_operation(open_position.id, increment_op.id, user.id)
    assert position.average_entry_price == Decimal("10")
    assert position.current_quantity == Decimal("50")
    # Exit result refreshed against the new basis: (25 - 10) * 50
    assert position.total_realized_pnl == Decimal("750")
    assert position.operations[-1].result == Decimal("750")


def test_deleting_increment_can_close_position(manager, user, open_position):
    manager.increment(open_position.id, user.id, Decimal("50"), Decimal("12"), datetime(2024, 1, 3))
    manager.partial_exit(open_position.id, user.id, Decimal("100"), Decimal("15"), datetime(2024, 1, 4))
    increment_op = manager.get_operations(open_position.id, user.id)[1]

    position = manager.delete_operation(open_position.id, increment_op.id, user.id)
    assert position.status == "Closed"
    assert position.current_quantity == 0
    assert position.total_realized_pnl == Decimal("500")


def test_deleting_increment_needed_by_exits_is_rejected(manager, user, open_position):
    manager.increment(open_position.id, user.id, Decimal("100"), Decimal("12"), datetime(2024, 1, 3))
    manager.partial_exit(open_position.id, user.id, Decimal("150"), Decimal("15"), datetime(2024, 1, 4))
    increment_op = manager.get_operations(open_position.id, user.id)[1]

    with pytest.raises(InsufficientQuantityError):
        manager.delete_operation(open_position.id, increment_op.id, user.id)
    assert len(manager.get_operations(open_position.id, user.id)) == 3


def test_deleting_all_non_entry_operations_restores_entry_state(manager, user, open_position):
    manager.increment(open_position.id, user.id, Decimal("100"), Decimal("20"), datetime(2024, 1, 3))
    manager.partial_exit(open_position.id, user.id, Decimal("30"), Decimal("25"), datetime(2024, 1, 4))
    manager.increment(open_position.id, user.id, Decimal("10"), Decimal("30"), datetime(2024, 1, 5))

    # Newest first so exits never outlive the shares they sold
    for op in reversed(manager.get_operations(open_position.id, user.id)[1:]):
        manager.delete_operation(open_position.id, op.id, user.id)

    position = manager.get_position(open_position.id, user.id)
    assert position.average_entry_price == Decimal("10")
    assert position.current_quantity == Decimal("100")
    assert position.total_realized_pnl == 0
    assert position.status == "Open"
    assert position.last_exit_date is None


def test_entry_operation_cannot_be_deleted(manager, user, open_position):
    entry = manager.get_operations(open_position.id, user.id)[0]
    with pytest.raises(ValidationError):
        manager.delete_operation(open_position.id, entry.id, user.id)


def test_missing_operation(manager, user, open_position):
    with pytest.raises(NotFoundError):
        manager.delete_operation(open_position.id, 9999, user.id)


def test_removing_last_operation_deletes_position(manager, db, user, open_position):
    position_id = open_position.id
    db.query(Operation).filter(Operation.position_id == position_id).delete()
    db.commit()

    assert manager.recalculate(position_id, user.id) is None
    assert db.query(Position).filter(Position.id == position_id).count() == 0


def test_positions_are_scoped_to_owner(manager, user, other_user, open_position):
    with pytest.raises(NotFoundError):
        manager.get_position(open_position.id, other_user.id)
    with pytest.raises(NotFoundError):
        manager.increment(open_position.id, other_user.id, Decimal("1"), Decimal("1"), datetime(2024, 1, 3))
    with pytest.raises(NotFoundError):
        manager.delete_position(open_position.id, other_user.id)
    assert manager.list_positions(other_user.id) == []


def test_update_details_and_entry(manager, user, open_position):
    position = manager.update_position(
        open_position.id, user.id,
        setup="breakout", stop_loss=Decimal("9"), ticker="msft",
        price=Decimal("11"), quantity=Decimal("200")
    )
    assert position.setup == "breakout"
    assert position.ticker == "MSFT"
    assert position.average_entry_price == Decimal("11")
    assert position.current_quantity == Decimal("200")
    assert position.operations[0].quantity == Decimal("200")


def test_entry_edit_refused_once_operations_exist(manager, user, open_position):
    manager.increment(open_position.id, user.id, Decimal("10"), Decimal("12"), datetime(2024, 1, 3))
    with pytest.raises(ValidationError):
        manager.update_position(open_position.id, user.id, price=Decimal("11"))

    position = manager.update_position(open_position.id, user.id, observations="held through earnings")
    assert position.observations == "held through earnings"


def test_delete_position_cascades(manager, db, user, open_position):
    manager.increment(open_position.id, user.id, Decimal("10"), Decimal("12"), datetime(2024, 1, 3))
    manager.delete_position(open_position.id, user.id)
    assert db.query(Position).count() == 0
    assert db.query(Operation).count() == 0


def test_list_positions_orders_open_first(manager, user, open_position):
    closed = manager.create_position(user.id, "MSFT", "Sell", 10, 300, datetime(2024, 1, 1))
    manager.partial_exit(closed.id, user.id, Decimal("10"), Decimal("290"), datetime(2024, 1, 8))
    later = manager.create_position(user.id, "NVDA", "Buy", 5, 400, datetime(2024, 2, 1))

    listed = manager.list_positions(user.id)
    assert [p.ticker for p in listed] == ["NVDA", "AAPL", "MSFT"]
    assert [p.ticker for p in manager.list_positions(user.id, status="closed")] == ["MSFT"]
    assert [p.ticker for p in manager.list_positions(user.id, ticker="aapl")] == ["AAPL"]


def test_set_last_price(manager, user, open_position):
    position = manager.set_last_price(open_position.id, user.id, Decimal("12.5"))
    assert position.last_price == Decimal("12.5")
    with pytest.raises(ValidationError):
        manager.set_last_price(open_position.id, user.id, Decimal("0"))
