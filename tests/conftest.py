"""Pytest configuration and fixtures."""

import os

# Must be set before anything imports app.config
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.config import settings  # noqa: E402
from app.db import get_db  # noqa: E402
from app.security import create_access_token, subject_for  # noqa: E402
from app.settings_service import PayoutConfig  # noqa: E402
from app.commission_service import CommissionConfig  # noqa: E402
from models import Base  # noqa: E402
from models.orders import Order, OrderStatus  # noqa: E402
from models.products import Product  # noqa: E402
from models.users import User, UserRole  # noqa: E402


# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite://"


@pytest.fixture
def engine():
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def file_sessions(tmp_path):
    """
    Session factory on a file database. Unlike the shared in-memory
    connection, sessions made from it interleave like separate requests.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()


@pytest.fixture
def db(engine) -> Generator[Session, None, None]:
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db, monkeypatch) -> Generator[TestClient, None, None]:
    """FastAPI test client sharing the test session."""
    from app.main import app

    monkeypatch.setattr(settings, "stripe_secret_key", "")
    monkeypatch.setattr(settings, "notifications_webhook_url", None)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------
# Configuration
# ---------------------------------------------------------
@pytest.fixture
def commission_config() -> CommissionConfig:
    return CommissionConfig(default_rate=10)


@pytest.fixture
def payout_config() -> PayoutConfig:
    return PayoutConfig(
        holding_period_days=7,
        minimum_payout_amount=2000,
        maximum_payout_amount=10_000_000,
    )


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def after_holding(now, payout_config) -> datetime:
    return now + timedelta(days=payout_config.holding_period_days, minutes=1)


# ---------------------------------------------------------
# Factories
# ---------------------------------------------------------
@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role: UserRole = UserRole.SELLER, email: str = None) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"{role.value}{counter['n']}@example.com",
            display_name=f"{role.value.title()} {counter['n']}",
            role=role,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_product(db):
    def _make(seller: User = None, price: int = 1000, title: str = "Widget") -> Product:
        product = Product(
            seller_id=seller.id if seller else None,
            title=title,
            price=price,
            is_active=True,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def make_order(db):
    counter = {"n": 0}

    def _make(
        lines,
        status: OrderStatus = OrderStatus.PAID,
        amount: int = None,
        payment_intent_id: str = None,
    ) -> Order:
        """lines: [(seller_id or None, price, quantity), ...]"""
        counter["n"] += 1
        basket = [
            {
                "product_id": 100 + i,
                "seller_id": seller_id,
                "title": f"Item {i}",
                "price": price,
                "quantity": quantity,
            }
            for i, (seller_id, price, quantity) in enumerate(lines)
        ]
        order = Order(
            guest_email="buyer@example.com",
            basket=basket,
            amount=amount if amount is not None else sum(p * q for _, p, q in lines),
            currency="usd",
            status=status,
            payment_intent_id=payment_intent_id or f"pi_test_{counter['n']}",
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make


@pytest.fixture
def token_for():
    def _token(user: User) -> dict:
        token = create_access_token({"sub": subject_for(user.role.value, user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _token


def naive(dt: datetime) -> datetime:
    """SQLite hands datetimes back without tzinfo."""
    return dt.replace(tzinfo=None) if dt.tzinfo else dt
