"""
Shared fixtures: in-memory database, seeded ledger data and auth headers.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_PASSWORD"] = "admin-secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_collecte"

from datetime import datetime
from decimal import Decimal
import pytest
from fastapi.testclient import TestClient
from collecte.core.security import create_access_token, hash_access_code, ROLE_ADMIN, ROLE_PROVIDER
from collecte.db.base import Base
from collecte.db.session import engine, SessionLocal, get_db
from collecte.main import app
from collecte.models import Driver, Order, Provider, ProviderType, ORDER_STATUS_COMPLETED
from collecte.schemas.fee_config import UpdateFeeConfigCommand
from collecte.services.fee_config_service import ensure_default_fee_config, update_fee_config

PROVIDER_CODE = "123456"


@pytest.fixture
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fee_config(db):
    """15% service fee, 5% provider commission."""
    ensure_default_fee_config(db)
    return update_fee_config(db, UpdateFeeConfigCommand(
        service_fee_percent=Decimal("15"),
        provider_commission_percent=Decimal("5"),
    ))


@pytest.fixture
def client(db):
    """TestClient sharing the test session."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_provider(db):
    counter = {"n": 0}

    def _make(name=None, code=PROVIDER_CODE, is_active=True):
        counter["n"] += 1
        provider = Provider(
            name=name or f"Taxi Tahiti {counter['n']}",
            type=ProviderType.SOCIETE_TAXI,
            code_hash=hash_access_code(code),
            is_active=is_active,
        )
        db.add(provider)
        db.commit()
        db.refresh(provider)
        return provider

    return _make


@pytest.fixture
def make_driver(db):
    counter = {"n": 0}

    def _make(provider=None):
        counter["n"] += 1
        driver = Driver(
            first_name="Teva",
            last_name=f"Driver{counter['n']}",
            phone=f"+6898700{counter['n']:04d}",
            provider_id=provider.id if provider else None,
        )
        db.add(driver)
        db.commit()
        db.refresh(driver)
        return driver

    return _make


@pytest.fixture
def make_order(db):
    def _make(driver=None, total_price=10000, created_at=None, status=ORDER_STATUS_COMPLETED):
        order = Order(
            client_name="Client",
            total_price=total_price,
            payment_method="card",
            status=status,
            assigned_driver_id=driver.id if driver else None,
            created_at=created_at or datetime(2024, 3, 10, 12, 0),
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make


@pytest.fixture
def admin_headers():
    token = create_access_token(data={"sub": "admin", "role": ROLE_ADMIN})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def provider_headers():
    def _headers(provider):
        token = create_access_token(
            data={"sub": f"provider:{provider.id}", "role": ROLE_PROVIDER, "provider_id": provider.id}
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def set_fees(db):
    """Change the fee configuration between steps of a test."""
    def _set(service_fee, provider_commission=None):
        return update_fee_config(db, UpdateFeeConfigCommand(
            service_fee_percent=Decimal(str(service_fee)),
            provider_commission_percent=(
                Decimal(str(provider_commission)) if provider_commission is not None else None
            ),
        ))

    return _set
