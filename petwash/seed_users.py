"""
Database seeding script for initial users.

Creates an ADMIN plus a demo owner, walker, pet and pending walk for
local development. Run this script after the database is set up.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from petwash.app.db.session import AsyncSessionLocal, engine, Base
from petwash.app.models.user import User
from petwash.app.models.audit_log import AuditLog
from petwash.app.models.pet import Pet
from petwash.app.models.walk_session import WalkSession
from petwash.app.models.walk_location import WalkLocation
from petwash.app.models.walk_media import WalkPhoto, WalkAlert
from petwash.app.models.enums import UserRole, WalkStatus
from petwash.app.core.security import get_password_hash
from sqlalchemy import select


async def seed_users():
    """
    Seed initial users with different roles.

    Creates:
    - 1 ADMIN user
    - 1 OWNER user with one pet
    - 1 WALKER user
    - 1 pending walk between them
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting user seeding...")

        # Check if ADMIN already exists
        result = await db.execute(
            select(User).where(User.username == "admin")
        )
        existing_admin = result.scalar_one_or_none()

        if existing_admin:
            print("ℹ️  ADMIN user already exists, skipping seeding")
            return

        # ADMIN cannot be registered through the API
        admin_user = User(
            email="admin@petwash.co.il",
            username="admin",
            hashed_password=get_password_hash("admin123"),
            role=UserRole.ADMIN,
            is_active=True,
        )
        db.add(admin_user)
        print("✅ Created ADMIN user (username: admin, password: admin123)")

        owner = User(
            email="owner@petwash.co.il",
            username="owner",
            hashed_password=get_password_hash("owner123"),
            role=UserRole.OWNER,
            first_name="Noa",
            last_name="Cohen",
            is_active=True,
        )
        walker = User(
            email="walker@petwash.co.il",
            username="walker",
            hashed_password=get_password_hash("walker123"),
            role=UserRole.WALKER,
            first_name="Dana",
            last_name="Levi",
            phone_number="+972500000000",
            rating=4.9,
            is_active=True,
        )
        db.add_all([owner, walker])
        await db.flush()
        print("✅ Created OWNER user (username: owner, password: owner123)")
        print("✅ Created WALKER user (username: walker, password: walker123)")

        pet = Pet(owner_id=owner.id, name="Rex", breed="Labrador")
        db.add(pet)
        await db.flush()

        walk = WalkSession(
            owner_id=owner.id,
            walker_id=walker.id,
            pet_id=pet.id,
            status=WalkStatus.PENDING,
            pickup_latitude=32.0853,
            pickup_longitude=34.7818,
        )
        db.add(walk)

        await db.commit()

        print("\n🎉 Seeding completed successfully!")
        print(f"\nDemo walk #{walk.id}: {pet.name} with {walker.first_name}")
        print("  - ADMIN:  admin / admin123")
        print("  - OWNER:  owner / owner123")
        print("  - WALKER: walker / walker123")
        print("\nNote: further owners and walkers register via POST /api/auth/register")


if __name__ == "__main__":
    asyncio.run(seed_users())
