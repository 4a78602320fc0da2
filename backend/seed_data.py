"""
Database seeding script for development data.

Creates a demo wallet account with an opening balance, a small product
catalog, and prints access tokens for each staff role.
Run this script after database is set up but before first use.
"""

import asyncio
from decimal import Decimal

from sqlalchemy import select

from backend.app.core.jwt import create_access_token
from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.domain.billing.ledger_service import LedgerService
from backend.app.models.account import Account
from backend.app.models.catalog_item import CatalogItem
from backend.app.models.enums import UserRole, STAFF_ROLES

# Import models to ensure they are registered with Base
from backend.app.models.order import Order, OrderItem
from backend.app.models.transaction import Transaction
from backend.app.models.audit_log import AuditLog
from backend.app.models.dlq import DeadLetterQueue

DEMO_ENROLLMENT = "ENR-DEMO"

CATALOG = [
    {"sku": "DEMO-LAMP", "name": "Brass Lamp", "unit_price": Decimal("250"), "unit_shipping": Decimal("0"),
     "tax_rate_percent": Decimal("18"), "hsn": "9405", "weight_kg": 1.2},
    {"sku": "DEMO-BAG", "name": "Jute Bag", "unit_price": Decimal("100"), "unit_shipping": Decimal("50"),
     "tax_rate_percent": Decimal("12"), "weight_kg": 0.4},
]


async def seed_data():
    """
    Seed the demo account and catalog.

    The opening balance goes through the ledger so the account
    reconciles from the first request.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("Starting data seeding...")

        existing = await db.execute(select(Account).where(Account.enrollment == DEMO_ENROLLMENT))
        if existing.scalar_one_or_none():
            print("Demo account already exists, skipping seeding")
        else:
            account = Account(
                enrollment=DEMO_ENROLLMENT,
                brand_name="Demo Brand",
                email="demo@example.com",
                address="1 Demo Street",
                state="Gujarat",
                pincode="380001",
                country="India",
                balance=0,
                balance_version=0,
            )
            db.add(account)
            await db.flush()
            await LedgerService.credit(
                db, account, "1000", "Opening balance", external_payment_id=f"seed-{DEMO_ENROLLMENT}"
            )

            known = set((await db.execute(select(CatalogItem.sku))).scalars().all())
            db.add_all([CatalogItem(**item) for item in CATALOG if item["sku"] not in known])

            await db.commit()
            print(f"Created account {DEMO_ENROLLMENT} with balance 1000.00 and {len(CATALOG)} catalog items")

    print("\nDevelopment tokens:")
    for role in STAFF_ROLES:
        token = create_access_token({"sub": f"{role.value.lower()}@example.com", "role": role.value})
        print(f"  - {role.value:<11} {token}")
    customer = create_access_token({"sub": "demo@example.com", "role": UserRole.USER.value, "enrollment": DEMO_ENROLLMENT})
    print(f"  - {UserRole.USER.value:<11} {customer}")


if __name__ == "__main__":
    asyncio.run(seed_data())
