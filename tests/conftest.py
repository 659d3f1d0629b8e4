import time
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from wingx.core_settings import get_settings
from wingx.domain.models import Order, OrderItem, OrderStatus
from wingx.infrastructure.db import SessionLocal

ADMIN_EMAIL = "admin@wingx.com"
STORE_EMAIL = "tienda@wingx.com"
PASSWORD = "secreto1"


@pytest.fixture
def settings_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'wingx.db'}")
    monkeypatch.setenv("FEED_POLL_INTERVAL_SEC", "0.05")
    monkeypatch.setenv("ADMIN_EMAILS", ADMIN_EMAIL)
    monkeypatch.setenv("STORE_EMAILS", STORE_EMAIL)
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "client-123")
    monkeypatch.setenv("IMAGEKIT_PUBLIC_KEY", "public_test")
    monkeypatch.setenv("IMAGEKIT_PRIVATE_KEY", "private_test")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def client(settings_env):
    from wingx.main import app
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def register(client, email, password=PASSWORD, display_name="Operador"):
    resp = client.post("/api/auth/register", json={
        "email": email, "password": password, "display_name": display_name,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def auth_headers(token_response):
    return {"Authorization": f"Bearer {token_response['access_token']}"}


@pytest.fixture
def admin(client):
    return auth_headers(register(client, ADMIN_EMAIL, display_name="Admin"))


def insert_pending_order(order_id, customer_name="María González", phone="04121234567",
                         total=45.0, reference="123456", minutes_ago=0,
                         delivery_method="pickup"):
    """Write an order the way the storefront does, bypassing the admin backend."""
    with SessionLocal() as db:
        db.add(Order(
            id=order_id,
            total_price=total,
            customer_name=customer_name,
            customer_phone=phone,
            customer_address="Caracas",
            delivery_method=delivery_method,
            origin_bank="banesco",
            origin_phone=phone,
            payer_id="V-12345678",
            reference_number=reference,
            payment_date="2024-01-15",
            status=OrderStatus.PENDING_VERIFICATION.value,
            created_at=datetime.utcnow() - timedelta(minutes=minutes_ago),
            items=[OrderItem(position=0, product_id="p1", name="Franela", price=total, quantity=1)],
        ))
        db.commit()


def order_status(order_id):
    with SessionLocal() as db:
        order = db.get(Order, order_id)
        return order.status, order.rejection_reason, order.verified_at


def wait_until(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        result = predicate()
        if result:
            return result
        time.sleep(0.02)
    raise AssertionError("condition not met in time")
