import pytest
from sqlalchemy.orm import sessionmaker

from app.core import Base
from app.core.database import build_engine
from app.core.exceptions import ConcurrencyConflictError
from app.models import Warehouse, Product, StockEntry, StockMovement
from app.services.stock_service import StockService
from app.services.transfer_service import TransferService


@pytest.fixture
def file_sessions(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def stocked(file_sessions):
    db = file_sessions()
    warehouse = Warehouse(code="WH-A", name="Main", capacity=1000)
    product = Product(sku="SKU-001", name="Widget")
    db.add_all([warehouse, product])
    db.commit()
    TransferService.receive_stock(db, warehouse.id, product.id, None, 100)
    key = (warehouse.id, product.id)
    db.close()
    return key


def reserve(db, key, wanted):
    warehouse_id, product_id = key
    return StockService.apply(
        db, warehouse_id, product_id, None,
        lambda e: {"reserved_quantity": min(e.available_quantity, wanted)},
        movement_type="reserved", counter="reserved_quantity"
    )


def interleave_writer(monkeypatch, file_sessions, write):
    """Let a second session write and commit right after the first session reads"""
    original = StockService.get_entry
    state = {"done": False}

    def racing_get_entry(db, *args, **kwargs):
        entry = original(db, *args, **kwargs)
        if not state["done"]:
            state["done"] = True
            other = file_sessions()
            try:
                write(other)
                other.commit()
            finally:
                other.close()
        return entry

    monkeypatch.setattr(StockService, "get_entry", staticmethod(racing_get_entry))


def test_stale_writer_retries_and_never_over_reserves(monkeypatch, file_sessions, stocked):
    interleave_writer(monkeypatch, file_sessions, lambda other: reserve(other, stocked, 70))

    db = file_sessions()
    entry, movement = reserve(db, stocked, 50)
    db.commit()

    assert movement.quantity == 30
    assert entry.reserved_quantity == 100
    assert entry.reserved_quantity <= entry.quantity
    assert db.query(StockMovement).filter(StockMovement.movement_type == "reserved").count() == 2
    db.close()


def test_conflict_after_exhausted_retries(monkeypatch, file_sessions, stocked):
    from app.core.config import settings
    monkeypatch.setattr(settings, "STOCK_WRITE_MAX_RETRIES", 1)
    interleave_writer(monkeypatch, file_sessions, lambda other: reserve(other, stocked, 10))

    db = file_sessions()
    with pytest.raises(ConcurrencyConflictError):
        reserve(db, stocked, 5)
    db.rollback()

    entry = StockService.get_entry(db, *stocked)
    assert entry.reserved_quantity == 10
    db.close()


def test_racing_first_receipt_keeps_one_entry(monkeypatch, file_sessions):
    db = file_sessions()
    warehouse = Warehouse(code="WH-B", name="Fresh", capacity=1000)
    product = Product(sku="SKU-002", name="Gadget")
    db.add_all([warehouse, product])
    db.commit()
    warehouse_id, product_id = warehouse.id, product.id

    def receive(session):
        return StockService.apply(
            session, warehouse_id, product_id, None, {"quantity": 10},
            movement_type="in", counter="quantity"
        )

    interleave_writer(monkeypatch, file_sessions, receive)

    with pytest.raises(ConcurrencyConflictError):
        receive(db)
    db.rollback()

    entries = db.query(StockEntry).filter(
        StockEntry.warehouse_id == warehouse_id,
        StockEntry.product_id == product_id
    ).all()
    assert len(entries) == 1
    assert entries[0].quantity == 10
    db.close()
