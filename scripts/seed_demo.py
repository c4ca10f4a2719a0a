#!/usr/bin/env python3
"""
Seed script to create demo staff accounts and stocked snacks
"""

import asyncio


async def seed_demo_data():
    """Seed demo data for development"""
    from sqlalchemy import select

    from app.api.auth import get_password_hash
    from app.database import SessionLocal, engine, Base
    from app.models.inventory import InventoryItem
    from app.models.store import DeliveryMode, StoreSettings
    from app.models.user import User, UserRole
    from app.services.inventory import InventoryLedger

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        result = await db.execute(select(User).where(User.email == "admin@hostel.local"))
        if result.scalar_one_or_none():
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo users...")

        db.add_all([
            User(
                email="admin@hostel.local",
                hashed_password=get_password_hash("admin123"),
                full_name="Hostel Admin",
                role=UserRole.ADMIN,
            ),
            User(
                email="staff@hostel.local",
                hashed_password=get_password_hash("staff123"),
                full_name="Night Shift",
                role=UserRole.STAFF,
            ),
        ])

        db.add(StoreSettings(id=1, delivery_mode=DeliveryMode.NOW.value, cod_enabled=True, version=1))

        # Stock goes through the ledger, like every other stock change
        snacks = [
            {"name": "Maggi", "category": "Noodles", "price": 30, "cost": 18, "stock": 40},
            {"name": "Cup Noodles", "category": "Noodles", "price": 50, "cost": 35, "stock": 25},
            {"name": "Lays Classic", "category": "Chips", "price": 20, "cost": 15, "stock": 60},
            {"name": "Kurkure", "category": "Chips", "price": 20, "cost": 14, "stock": 60},
            {"name": "Cold Coffee", "category": "Drinks", "price": 40, "cost": 25, "stock": 20},
            {"name": "Bread Omelette", "category": "Hot Food", "price": 45, "cost": None, "stock": 15},
        ]

        ledger = InventoryLedger(db)
        for snack in snacks:
            item = InventoryItem(
                name=snack["name"],
                category=snack["category"],
                price=snack["price"],
                cost=snack["cost"],
                stock=0,
            )
            db.add(item)
            await db.flush()
            await ledger.adjust_stock(item.id, snack["stock"])

        await db.commit()

        print(f"""
Demo data created successfully!

Users:
  Admin:
    Email: admin@hostel.local
    Password: admin123

  Staff:
    Email: staff@hostel.local
    Password: staff123

Inventory: {len(snacks)} items stocked
""")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
