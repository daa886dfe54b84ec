from typing import Generator, Optional, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core import Base, get_db
from app.core.database import build_engine
from app.models import Warehouse, Product, ProductVariant
from app.schemas.order import SalesOrderCreate, SalesOrderItemCreate
from app.services.order_service import OrderService
from app.services.transfer_service import TransferService
from main import app


@pytest.fixture(name="db_engine")
def db_engine_fixture():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="session_factory")
def session_factory_fixture(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(name="db")
def db_fixture(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(name="client")
def client_fixture(session_factory):
    def get_db_override():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = get_db_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()

# ===================== FACTORIES =====================

@pytest.fixture
def make_warehouse(db):
    def _make(code: str = "WH-A", capacity: int = 1000, is_active: bool = True) -> Warehouse:
        warehouse = Warehouse(code=code, name=f"Warehouse {code}", location="Bangkok", capacity=capacity, is_active=is_active)
        db.add(warehouse)
        db.commit()
        db.refresh(warehouse)
        return warehouse
    return _make


@pytest.fixture
def make_product(db):
    def _make(sku: str = "SKU-001", variants: Optional[List[str]] = None) -> Product:
        product = Product(sku=sku, name=f"Product {sku}")
        for name in variants or []:
            product.variants.append(ProductVariant(sku=f"{sku}-{name}", name=name))
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make


@pytest.fixture
def stock_in(db):
    def _receive(warehouse, product, quantity: int, variant_id=None):
        return TransferService.receive_stock(db, warehouse.id, product.id, variant_id, quantity)
    return _receive


@pytest.fixture
def make_order(db):
    def _make(product, quantity: int, variant_id=None):
        data = SalesOrderCreate(
            customer_name="Somchai",
            items=[SalesOrderItemCreate(product_id=product.id, variant_id=variant_id, quantity=quantity)]
        )
        return OrderService.create_order(db, data)
    return _make


@pytest.fixture
def advance(db):
    def _advance(order, *statuses, **kwargs):
        result = None
        for status in statuses:
            result = OrderService.advance_order_status(db, order.id, status, **kwargs)
        return result
    return _advance
