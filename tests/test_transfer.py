import pytest

from app.core.exceptions import CapacityExceededError, InsufficientStockError, ValidationError
from app.models import StockMovement
from app.schemas.stock import TransferLine
from app.services.stock_service import StockService
from app.services.transfer_service import TransferService


def test_transfer_then_capacity_exceeded(db, make_warehouse, make_product, stock_in):
    w1 = make_warehouse("WH-A")
    w2 = make_warehouse("WH-B", capacity=35)
    product = make_product()
    stock_in(w1, product, 50)
    stock_in(w2, product, 10)

    result = TransferService.transfer(db, w1.id, w2.id, product.id, None, 20)

    assert StockService.get_entry(db, w1.id, product.id).quantity == 30
    assert StockService.get_entry(db, w2.id, product.id).quantity == 30
    out_movement, in_movement = result["movements"]
    assert out_movement.movement_type == "transfer_out"
    assert in_movement.movement_type == "transfer_in"
    assert out_movement.reference_id == in_movement.reference_id == result["transfer_id"]
    assert out_movement.counterpart_warehouse_id == w2.id
    assert in_movement.counterpart_warehouse_id == w1.id

    movement_count = db.query(StockMovement).count()
    with pytest.raises(CapacityExceededError):
        TransferService.transfer(db, w1.id, w2.id, product.id, None, 20)

    assert StockService.get_entry(db, w1.id, product.id).quantity == 30
    assert StockService.get_entry(db, w2.id, product.id).quantity == 30
    assert db.query(StockMovement).count() == movement_count


def test_transfer_only_moves_available_units(db, make_warehouse, make_product, stock_in, make_order, advance):
    w1 = make_warehouse("WH-A")
    w2 = make_warehouse("WH-B")
    product = make_product()
    stock_in(w1, product, 10)
    order = make_order(product, 6)
    advance(order, "confirmed", "dispatch")

    with pytest.raises(InsufficientStockError):
        TransferService.transfer(db, w1.id, w2.id, product.id, None, 5)

    TransferService.transfer(db, w1.id, w2.id, product.id, None, 4)
    entry = StockService.get_entry(db, w1.id, product.id)
    assert entry.quantity == 6
    assert entry.reserved_quantity == 6


def test_transfer_removes_emptied_source_line(db, make_warehouse, make_product, stock_in):
    w1 = make_warehouse("WH-A")
    w2 = make_warehouse("WH-B")
    product = make_product()
    stock_in(w1, product, 8)

    TransferService.transfer(db, w1.id, w2.id, product.id, None, 8)

    assert StockService.get_entry(db, w1.id, product.id) is None
    assert StockService.get_entry(db, w2.id, product.id).quantity == 8


def test_multi_line_transfer_is_all_or_nothing(db, make_warehouse, make_product, stock_in):
    w1 = make_warehouse("WH-A")
    w2 = make_warehouse("WH-B")
    first = make_product("SKU-001")
    second = make_product("SKU-002")
    stock_in(w1, first, 10)
    stock_in(w1, second, 2)

    with pytest.raises(InsufficientStockError):
        TransferService.transfer_items(db, w1.id, w2.id, [
            TransferLine(product_id=first.id, quantity=5),
            TransferLine(product_id=second.id, quantity=3),
        ])

    assert StockService.get_entry(db, w1.id, first.id).quantity == 10
    assert StockService.get_entry(db, w2.id, first.id) is None


def test_transfer_validation(db, make_warehouse, make_product, stock_in):
    w1 = make_warehouse("WH-A")
    w2 = make_warehouse("WH-B", is_active=False)
    product = make_product()
    stock_in(w1, product, 10)

    with pytest.raises(ValidationError):
        TransferService.transfer(db, w1.id, w1.id, product.id, None, 1)
    with pytest.raises(ValidationError):
        TransferService.transfer(db, w1.id, w2.id, product.id, None, 1)


def test_opposite_transfers_lock_warehouses_in_the_same_order(db, monkeypatch, make_warehouse, make_product, stock_in):
    w1 = make_warehouse("WH-A")
    w2 = make_warehouse("WH-B")
    product = make_product()
    stock_in(w1, product, 20)
    stock_in(w2, product, 20)

    original = StockService.lock_warehouse
    locked = []

    def recording_lock(session, warehouse_id):
        locked.append(warehouse_id)
        return original(session, warehouse_id)

    monkeypatch.setattr(StockService, "lock_warehouse", staticmethod(recording_lock))

    TransferService.transfer(db, w1.id, w2.id, product.id, None, 5)
    TransferService.transfer(db, w2.id, w1.id, product.id, None, 5)

    expected = sorted([w1.id, w2.id], key=str)
    assert locked == expected + expected
    assert StockService.get_entry(db, w1.id, product.id).quantity == 20
    assert StockService.get_entry(db, w2.id, product.id).quantity == 20
