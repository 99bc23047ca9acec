"""
Pytest configuration and fixtures for tests.

Sets the environment config.py needs before any app module is imported and
provides an in-memory SQLite database shared by every session of a test.
"""

import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

# Set required environment variables before importing app modules
os.environ.setdefault('RUNTIME_ENVIRONMENT', 'TEST')
os.environ.setdefault('DB_NAME', ':memory:')
os.environ.setdefault('API_SECRET_TOKEN', 'test_api_secret_0123456789abcdef0123456789')
os.environ.setdefault('TOKEN', '')
os.environ.setdefault('ADMIN_ID_LIST', '')
os.environ.setdefault('SYNC_ENABLED', 'false')
os.environ.setdefault('SYNC_NOTIFY_ADMINS', 'false')
os.environ.setdefault('COURIER_API_URL', 'https://courier.test/v1/merchant')

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from enums.item_status import ItemStatus
from enums.order_status import OrderStatus
from models.base import Base
from models.deliveryAccount import DeliveryAccount
from models.inventory import Inventory
from models.order import Order
from models.orderItem import OrderItem

# Importing db registers every model on Base.metadata
import db  # noqa: F401


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def engine():
    """In-memory SQLite database, one connection shared by all sessions of a test."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    session = Session(engine)
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def session_factory(engine):
    """Drop-in replacement for db.get_db_session, yielding sync sessions."""
    @asynccontextmanager
    async def factory():
        factory_session = Session(engine)
        try:
            yield factory_session
        finally:
            factory_session.close()
    return factory


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture
def make_account(session):
    def _make(username: str = "merchant", token: str | None = "courier-token",
              token_expires_at: datetime | None = datetime(2030, 1, 1), is_active: bool = True,
              employee_id: int | None = 7) -> DeliveryAccount:
        account = DeliveryAccount(partner_name="alwaseet", username=username, token=token,
                                  token_expires_at=token_expires_at, is_active=is_active, employee_id=employee_id)
        session.add(account)
        session.commit()
        return account
    return _make


@pytest.fixture
def make_inventory(session):
    def _make(product_id: int, variant_id: int | None = None, available: int = 0, reserved: int = 0,
              sold: int = 0) -> Inventory:
        inventory = Inventory(product_id=product_id, variant_id=variant_id, available_quantity=available,
                              reserved_quantity=reserved, sold_quantity=sold)
        session.add(inventory)
        session.commit()
        return inventory
    return _make


@pytest.fixture
def make_order(session):
    def _make(order_number: str = "ORD-1", account: DeliveryAccount | None = None,
              status: OrderStatus = OrderStatus.SHIPPED, delivery_status_code: str | None = "2",
              items: list[dict] | None = None, delivery_fee: float = 3000.0, final_amount: float | None = None,
              **fields) -> Order:
        """
        Create an order with items.

        items: [{"product_id": 1, "quantity": 2, "unit_price": 10000.0, "cost_price": 6000.0}, ...]
        """
        items = items or []
        total = sum(item["unit_price"] * item["quantity"] for item in items)
        order = Order(
            order_number=order_number,
            delivery_account_id=account.id if account else None,
            employee_id=account.employee_id if account else None,
            status=status,
            delivery_status_code=delivery_status_code,
            total_amount=total,
            delivery_fee=delivery_fee,
            final_amount=final_amount if final_amount is not None else total + delivery_fee,
            **fields
        )
        session.add(order)
        session.flush()
        for item in items:
            session.add(OrderItem(
                order_id=order.id,
                product_id=item["product_id"],
                variant_id=item.get("variant_id"),
                quantity=item["quantity"],
                unit_price=item["unit_price"],
                cost_price=item.get("cost_price", 0.0),
                item_status=item.get("item_status", ItemStatus.PENDING),
            ))
        session.commit()
        return order
    return _make
