"""Shared fixtures: in-memory SQLite database, two tenants, an operator and an API client."""

import os

# Settings are read once (lru_cache); set the environment before any app import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-for-testing-only")
os.environ.setdefault("PUBLIC_PORTAL_URL", "https://portal.test")
os.environ.setdefault("STORE_RETRY_BACKOFF_SECONDS", "0")

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import httpx
import pytest
from sqlalchemy.pool import StaticPool

from app.api.auth import create_access_token
from app.database import Database
from app.main import create_app
from app.models import (
    BankAccount,
    Client,
    CryptoWallet,
    Quotation,
    Shipment,
    Tenant,
    User,
)


@dataclass
class World:
    """Ids of the seeded rows. Plain values, safe across sessions."""
    tenant_id: object
    other_tenant_id: object
    owner_id: object
    viewer_id: object
    client_id: int
    client_no_phone_id: int
    other_client_id: int
    quotation_id: int
    second_quotation_id: int
    other_client_quotation_id: int
    shipment_id: int
    second_shipment_id: int


@pytest.fixture
async def database():
    db = Database(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await db.create_all()
    yield db
    await db.dispose()


def _quotation(tenant_id, client_id, reference, product_name) -> Quotation:
    return Quotation(
        tenant_id=tenant_id,
        client_id=client_id,
        reference=reference,
        product_name=product_name,
        quantity=100,
        destination_country="Morocco",
        destination_city="Casablanca",
        shipping_method="Sea",
        price_options=[
            {"label": "Sea freight", "total": 1200},
            {"label": "Air freight", "total": 1800},
        ],
        total_amount=Decimal("1200.00"),
        currency="USD",
        status="quoted",
    )


@pytest.fixture
async def world(database) -> World:
    async with database.session_maker() as s:
        tenant = Tenant(name="Atlas Sourcing", slug="atlas", currency="USD")
        other_tenant = Tenant(name="Other Co", slug="other", currency="EUR")
        s.add_all([tenant, other_tenant])
        await s.flush()

        owner = User(tenant_id=tenant.id, email="owner@atlassourcing.com", first_name="Olga", role="owner")
        viewer = User(tenant_id=tenant.id, email="viewer@atlassourcing.com", role="viewer")
        s.add_all([owner, viewer])

        client = Client(tenant_id=tenant.id, name="Youssef", phone_e164="+212612345678")
        client_no_phone = Client(tenant_id=tenant.id, name="No Phone")
        other_client = Client(tenant_id=other_tenant.id, name="Foreign", phone_e164="+33612345678")
        s.add_all([client, client_no_phone, other_client])
        await s.flush()

        q1 = _quotation(tenant.id, client.id, "QT-2026-0001", "LED panels")
        q2 = _quotation(tenant.id, client.id, "QT-2026-0002", "Office chairs")
        q_other = _quotation(other_tenant.id, other_client.id, "QT-2026-0001", "Secret product")
        s.add_all([q1, q2, q_other])
        await s.flush()

        ship1 = Shipment(
            tenant_id=tenant.id,
            quotation_id=q1.id,
            carrier="Maersk",
            tracking_number="MAEU1",
            status="in_transit",
            estimated_delivery=date(2026, 12, 1),
            tracking_events=[{"at": "2026-10-01", "status": "in_transit", "location": "Ningbo"}],
        )
        ship2 = Shipment(tenant_id=tenant.id, quotation_id=q2.id, carrier="DHL", status="preparing")
        s.add_all([ship1, ship2])

        s.add(BankAccount(tenant_id=tenant.id, bank_name="Atlas Bank", account_holder="Atlas SARL", iban="MA64"))
        s.add(BankAccount(
            tenant_id=tenant.id, bank_name="Closed Bank", account_holder="Atlas SARL", is_active=False,
        ))
        s.add(CryptoWallet(tenant_id=tenant.id, currency="USDT", network="TRC20", address="Txyz"))
        s.add(BankAccount(tenant_id=other_tenant.id, bank_name="Other Bank", account_holder="Other Co"))
        await s.flush()

        seeded = World(
            tenant_id=tenant.id,
            other_tenant_id=other_tenant.id,
            owner_id=owner.id,
            viewer_id=viewer.id,
            client_id=client.id,
            client_no_phone_id=client_no_phone.id,
            other_client_id=other_client.id,
            quotation_id=q1.id,
            second_quotation_id=q2.id,
            other_client_quotation_id=q_other.id,
            shipment_id=ship1.id,
            second_shipment_id=ship2.id,
        )
        await s.commit()
    return seeded


@pytest.fixture
async def api(database):
    app = create_app(database=database)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def owner_headers(world) -> dict:
    return {"Authorization": f"Bearer {create_access_token(world.owner_id)}"}


@pytest.fixture
def viewer_headers(world) -> dict:
    return {"Authorization": f"Bearer {create_access_token(world.viewer_id)}"}


@pytest.fixture
def issue(api, owner_headers, world):
    """Issue a link through the operator API and return the response JSON."""

    async def _issue(**overrides) -> dict:
        payload = {"client_id": world.client_id}
        payload.update(overrides)
        response = await api.post("/magic-links", json=payload, headers=owner_headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _issue
