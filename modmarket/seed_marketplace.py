"""
Database seeding script for a demo marketplace.

Creates an admin, a developer with a small catalog and bundle, and a buyer
with a server. Prints bearer tokens for each account.
Run this script after database is set up but before first use.
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from modmarket.app.db.session import AsyncSessionLocal, engine, Base
from modmarket.app.core.jwt import issue_access_token
from modmarket.app.models.user import User
from modmarket.app.models.server import Server
from modmarket.app.models.catalog import Mod, Developer, Bundle
from modmarket.app.models.enums import UserRole
from sqlalchemy import select


async def seed_marketplace():
    """
    Seed demo data.
    
    Creates:
    - 1 ADMIN account
    - 1 DEVELOPER account with three mods and one bundle
    - 1 BUYER account with a balance and one server
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    async with AsyncSessionLocal() as db:
        print("🌱 Starting marketplace seeding...")
        
        result = await db.execute(select(User).where(User.login == "admin"))
        if result.scalar_one_or_none():
            print("ℹ️  ADMIN account already exists, skipping seeding")
            return
        
        admin = User(login="admin", email="admin@modmarket.dev", role=UserRole.ADMIN)
        developer = User(login="acme", email="acme@modmarket.dev", role=UserRole.DEVELOPER)
        buyer = User(login="player1", email="player1@modmarket.dev", role=UserRole.BUYER, balance=Decimal("50.00"))
        db.add_all([admin, developer, buyer])
        await db.flush()
        print("✅ Created accounts: admin, acme (developer), player1 (buyer)")
        
        db.add(Developer(developer_key="acme", payable_login=developer.login))
        mods = [
            Mod(name="Better Maps", developer_key="acme", price=Decimal("10.00")),
            Mod(name="Night Vision", developer_key="acme", price=Decimal("5.00")),
            Mod(name="Free Skins", developer_key="acme", price=Decimal("0.00")),
        ]
        db.add_all(mods)
        await db.flush()
        db.add(Bundle(
            developer_key="acme",
            mod_ids=",".join(str(mod.id) for mod in mods[:2]),
            price=Decimal("12.00"),
        ))
        print("✅ Created catalog: 3 mods, 1 bundle")
        
        db.add(Server(owner_id=buyer.id, name="player1-main", ip="127.0.0.1", port="27015"))
        print("✅ Created server for player1")
        
        await db.commit()
        
        print("\n🎉 Marketplace seeding completed successfully!")
        print("\nBearer tokens:")
        for user in (admin, developer, buyer):
            token = issue_access_token({"sub": user.login, "user_id": user.id, "role": user.role.value})
            print(f"  - {user.role.value:<9} {user.login}: {token}")


if __name__ == "__main__":
    asyncio.run(seed_marketplace())
