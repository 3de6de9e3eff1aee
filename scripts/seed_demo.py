"""
Seed script - Creates demo data for development.

Creates one company with operators, a client, a quotation with a shipment,
payment methods, and prints a magic link for the client portal.

Run with: python -m scripts.seed_demo
"""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import get_password_hash
from app.config import get_settings
from app.database import Database
from app.models.client import Client
from app.models.payment import BankAccount, CryptoWallet
from app.models.quotation import Quotation
from app.models.shipment import Shipment
from app.models.tenant import Tenant
from app.models.user import User
from app.services.magic_links import issue_link


async def create_tenant(db: AsyncSession) -> Tenant:
    """Create demo tenant."""
    tenant = Tenant(
        name="Atlas Sourcing Demo",
        slug="atlas-sourcing-demo",
        country_code="MA",
        currency="USD",
        settings={"default_link_days": 30},
    )
    db.add(tenant)
    await db.flush()
    print(f"✅ Created tenant: {tenant.name} (ID: {tenant.id})")
    return tenant


async def create_users(db: AsyncSession, tenant: Tenant) -> list[User]:
    """Create demo operators."""
    users = []
    user_data = [
        ("Owner", "User", "owner@atlas-demo.com", "owner", "owner123"),
        ("Staff", "User", "staff@atlas-demo.com", "staff", "staff123"),
        ("Viewer", "User", "viewer@atlas-demo.com", "viewer", "viewer123"),
    ]

    for first_name, last_name, email, role, password in user_data:
        user = User(
            tenant_id=tenant.id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=get_password_hash(password),
            role=role,
            is_active=True,
        )
        db.add(user)
        users.append(user)

    await db.flush()
    print(f"✅ Created {len(users)} users")
    return users


async def create_payment_methods(db: AsyncSession, tenant: Tenant) -> None:
    """Create demo bank account and crypto wallet."""
    db.add(BankAccount(
        tenant_id=tenant.id,
        bank_name="Banque Populaire",
        account_holder="Atlas Sourcing SARL",
        iban="MA64011519000001205000534921",
        swift_bic="BCPOMAMC",
        currency="USD",
        sort_order=1,
    ))
    db.add(CryptoWallet(
        tenant_id=tenant.id,
        currency="USDT",
        network="TRC20",
        address="TQn9Y2khEsLJW1ChVWFMSMeRDow5KcbLSE",
        label="USDT (Tron)",
        sort_order=1,
    ))
    await db.flush()
    print("✅ Created payment methods")


async def create_client_with_quotation(db: AsyncSession, tenant: Tenant) -> tuple[Client, Quotation]:
    """Create a demo client, one priced quotation and its shipment."""
    client = Client(
        tenant_id=tenant.id,
        name="Youssef El Amrani",
        company_name="El Amrani Trading",
        email="youssef@example.com",
        phone_e164="+212612345678",
    )
    db.add(client)
    await db.flush()

    quotation = Quotation(
        tenant_id=tenant.id,
        client_id=client.id,
        reference=f"QT-{date.today().year}-0001",
        product_name="LED panel lights 600x600",
        product_url="https://example.com/products/led-panel",
        quantity=500,
        destination_country="Morocco",
        destination_city="Casablanca",
        shipping_method="Sea",
        price_options=[
            {"label": "Sea freight", "unit_price": 7.2, "total": 3600, "lead_days": 45},
            {"label": "Air freight", "unit_price": 9.8, "total": 4900, "lead_days": 12},
        ],
        total_amount=Decimal("3600.00"),
        currency="USD",
        status="quoted",
    )
    db.add(quotation)
    await db.flush()

    db.add(Shipment(
        tenant_id=tenant.id,
        quotation_id=quotation.id,
        carrier="Maersk",
        tracking_number="MAEU1234567",
        shipping_method="Sea",
        origin="Ningbo, CN",
        destination="Casablanca, MA",
        status="in_transit",
        estimated_delivery=date.today() + timedelta(days=30),
        tracking_events=[
            {"at": date.today().isoformat(), "status": "in_transit", "location": "Ningbo", "note": "Departed"},
        ],
    ))
    await db.flush()
    print(f"✅ Created client {client.name} with quotation {quotation.reference}")
    return client, quotation


async def seed_demo_data():
    """Main seed function."""
    print("🌱 Starting demo data seed...")

    database = Database.from_settings(get_settings())
    try:
        async with database.session_maker() as db:
            # Check if data already exists
            result = await db.execute(select(Tenant).limit(1))
            if result.scalar_one_or_none():
                print("⚠️  Data already exists. Skipping seed.")
                return

            tenant = await create_tenant(db)
            users = await create_users(db, tenant)
            await create_payment_methods(db, tenant)
            client, quotation = await create_client_with_quotation(db, tenant)

            issued = await issue_link(
                db,
                client=client,
                scopes=["view", "pay", "track", "create"],
                expires_in_days=30,
                created_by=users[0].id,
            )

            await db.commit()
            print("✅ Demo data seed completed!")
            print(f"\n📝 Login credentials:")
            print(f"   Owner: owner@atlas-demo.com / owner123")
            print(f"   Staff: staff@atlas-demo.com / staff123")
            print(f"\n🔗 Client portal link (shown once): {issued.url}")
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
