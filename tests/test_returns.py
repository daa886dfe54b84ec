import pytest

from app.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from app.models import ExpectedReturn
from app.schemas.return_schema import ReturnRequest, ReturnItem
from app.services.order_service import OrderService
from app.services.return_service import ReturnService
from app.services.stock_service import StockService


@pytest.fixture
def delivered_order(db, make_warehouse, make_product, stock_in, make_order, advance):
    warehouse = make_warehouse()
    product = make_product()
    stock_in(warehouse, product, 100)
    order = make_order(product, 30)
    advance(order, "confirmed", "dispatch", "delivered")
    return warehouse, product, order


def test_direct_returned_from_delivered_is_rejected(db, delivered_order, advance):
    warehouse, product, order = delivered_order

    with pytest.raises(InvalidTransitionError):
        advance(order, "returned")

    entry = StockService.get_entry(db, warehouse.id, product.id)
    assert entry.delivered_quantity == 30
    assert entry.returned_quantity == 0
    assert OrderService.get_order(db, order.id).status == "delivered"


def test_expected_return_then_returned(db, delivered_order, advance):
    warehouse, product, order = delivered_order

    result = advance(order, "expected_return")
    expected_return = result["expected_return"]
    assert expected_return.status == "pending"
    assert expected_return.return_number == "RET-0001"
    assert expected_return.warehouse_id == warehouse.id
    assert [(m.movement_type, m.quantity) for m in result["movements"]] == [("expected_return_hold", 30)]

    entry = StockService.get_entry(db, warehouse.id, product.id)
    assert entry.expected_returns == 30

    result = advance(order, "returned")
    assert [(m.movement_type, m.quantity) for m in result["movements"]] == [("return", 30)]

    entry = StockService.get_entry(db, warehouse.id, product.id)
    assert entry.expected_returns == 0
    assert entry.delivered_quantity == 0
    assert entry.returned_quantity == 30
    assert entry.quantity == 100
    assert "returned" in entry.tags
    assert "unopened" in entry.tags
    assert entry.returned_at is not None

    assert OrderService.get_order(db, order.id).status == "returned"
    received = ReturnService.get_return(db, expected_return.id)
    assert received.status == "received"
    assert received.received_at is not None


def test_returned_without_open_return_is_rejected(db, delivered_order, advance):
    warehouse, product, order = delivered_order
    result = advance(order, "expected_return")
    ReturnService.update_status(db, result["expected_return"].id, "cancelled")

    assert StockService.get_entry(db, warehouse.id, product.id).expected_returns == 0
    with pytest.raises(InvalidTransitionError):
        advance(order, "returned")


def test_create_return_is_idempotent_per_order(db, delivered_order):
    warehouse, product, order = delivered_order
    request = ReturnRequest(sales_order_id=order.id, reason="Customer changed mind")

    first = ReturnService.create(db, request)
    second = ReturnService.create(db, request)

    assert first["created"] is True
    assert second["created"] is False
    assert second["movements"] == []
    assert first["expected_return"].id == second["expected_return"].id
    assert db.query(ExpectedReturn).count() == 1
    assert StockService.get_entry(db, warehouse.id, product.id).expected_returns == 30
    assert OrderService.get_order(db, order.id).status == "expected_return"


def test_create_return_with_explicit_items(db, delivered_order):
    warehouse, product, order = delivered_order
    request = ReturnRequest(
        sales_order_id=order.id,
        items=[ReturnItem(product_id=product.id, quantity=10, reason="defective", condition="damaged")]
    )

    result = ReturnService.create(db, request)
    ReturnService.update_status(db, result["expected_return"].id, "in_transit")
    ReturnService.update_status(db, result["expected_return"].id, "received")

    entry = StockService.get_entry(db, warehouse.id, product.id)
    assert entry.returned_quantity == 10
    assert entry.delivered_quantity == 20
    assert entry.expected_returns == 0
    assert "damaged" in entry.tags
    assert OrderService.get_order(db, order.id).status == "returned"


def test_create_return_requires_delivered_order(db, make_warehouse, make_product, stock_in, make_order):
    warehouse = make_warehouse()
    product = make_product()
    stock_in(warehouse, product, 10)
    order = make_order(product, 2)

    with pytest.raises(InvalidTransitionError):
        ReturnService.create(db, ReturnRequest(sales_order_id=order.id))
    assert db.query(ExpectedReturn).count() == 0


def test_create_return_without_order(db, make_warehouse, make_product):
    warehouse = make_warehouse()
    product = make_product()

    with pytest.raises(ValidationError):
        ReturnService.create(db, ReturnRequest(warehouse_id=warehouse.id))

    result = ReturnService.create(db, ReturnRequest(
        warehouse_id=warehouse.id,
        items=[ReturnItem(product_id=product.id, quantity=3)]
    ))
    assert result["created"] is True
    assert result["expected_return"].sales_order_id is None
    assert StockService.get_entry(db, warehouse.id, product.id).expected_returns == 3


def test_return_status_guard(db, delivered_order):
    _, _, order = delivered_order
    result = ReturnService.create(db, ReturnRequest(sales_order_id=order.id))
    return_id = result["expected_return"].id
    ReturnService.update_status(db, return_id, "received")

    with pytest.raises(InvalidTransitionError):
        ReturnService.update_status(db, return_id, "cancelled")
    with pytest.raises(NotFoundError):
        ReturnService.get_return(db, order.id)


def test_returns_by_product(db, delivered_order):
    _, product, order = delivered_order
    ReturnService.create(db, ReturnRequest(sales_order_id=order.id))

    summary = ReturnService.summary_by_product(db)
    assert summary == [{
        "product_id": product.id,
        "sku": product.sku,
        "product_name": product.name,
        "expected_quantity": 30,
        "return_count": 1,
    }]
    assert len(ReturnService.list_by_product(db, product.id)) == 1


def test_delete_order_releases_open_return_hold(db, make_warehouse, make_product, stock_in, make_order, advance):
    warehouse = make_warehouse()
    product = make_product()
    stock_in(warehouse, product, 10)
    order = make_order(product, 2)
    advance(order, "cancelled")
    ReturnService.open_return(db, order, [{"product_id": product.id, "quantity": 2}], warehouse_id=warehouse.id)
    db.commit()
    assert StockService.get_entry(db, warehouse.id, product.id).expected_returns == 2

    result = OrderService.delete_order(db, order.id)

    assert [(m.movement_type, m.quantity) for m in result["movements"]] == [("expected_return_release", 2)]
    assert StockService.get_entry(db, warehouse.id, product.id).expected_returns == 0
    assert db.query(ExpectedReturn).one().status == "cancelled"


def test_return_leaves_other_orders_deliveries_alone(db, make_warehouse, make_product, stock_in, make_order, advance):
    warehouse = make_warehouse()
    product = make_product()
    stock_in(warehouse, product, 100)
    first = make_order(product, 30)
    second = make_order(product, 20)
    advance(first, "confirmed", "dispatch", "delivered", "confirmed_delivered")
    advance(second, "confirmed", "dispatch", "delivered")

    advance(first, "expected_return")
    result = advance(first, "returned")

    entry = StockService.get_entry(db, warehouse.id, product.id)
    assert entry.delivered_quantity == 20
    assert entry.returned_quantity == 30
    assert "capped at 0" in result["movements"][0].notes

    advance(second, "confirmed_delivered")
    entry = StockService.get_entry(db, warehouse.id, product.id)
    assert entry.delivered_quantity == 0
    assert entry.confirmed_delivered_quantity == 50
    assert OrderService.get_order(db, second.id).status == "confirmed_delivered"


def test_receive_at_another_warehouse(db, delivered_order, make_warehouse):
    warehouse, product, order = delivered_order
    other = make_warehouse("WH-B")
    result = ReturnService.create(db, ReturnRequest(sales_order_id=order.id))
    return_id = result["expected_return"].id

    result = ReturnService.update_status(db, return_id, "received", warehouse_id=other.id)

    assert [m.movement_type for m in result["movements"]] == ["expected_return_release", "return", "return"]
    assert result["expected_return"].warehouse_id == other.id

    origin = StockService.get_entry(db, warehouse.id, product.id)
    assert origin.expected_returns == 0
    assert origin.delivered_quantity == 0
    assert origin.returned_quantity == 0
    assert origin.available_quantity == 100
    target = StockService.get_entry(db, other.id, product.id)
    assert target.returned_quantity == 30
    assert target.expected_returns == 0
    assert OrderService.get_order(db, order.id).status == "returned"


def test_receiving_warehouse_only_given_on_receipt(db, delivered_order, make_warehouse):
    warehouse, product, order = delivered_order
    other = make_warehouse("WH-B")
    result = ReturnService.create(db, ReturnRequest(sales_order_id=order.id))

    with pytest.raises(ValidationError):
        ReturnService.update_status(db, result["expected_return"].id, "in_transit", warehouse_id=other.id)

    assert ReturnService.get_return(db, result["expected_return"].id).status == "pending"
