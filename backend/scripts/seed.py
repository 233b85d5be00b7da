"""Seed script: creates dev users, default queues, routing rules and group memberships.

Idempotent: checks for existing records before inserting.
Run: docker exec pdsdesk-backend-1 python scripts/seed.py
"""
import asyncio
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings
from app.core.security import hash_password as get_password_hash
from app.core.seed import seed_operator_groups, seed_routing_rules, seed_system_settings
from app.models.operator_group import OperatorGroupMember
from app.models.user import User


# ─── Upsert helpers ───────────────────────────────────────────────────────────

async def _upsert_user(db: AsyncSession, email: str, name: str, role: str) -> User:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalars().first()
    if user:
        print(f"  [skip] User {email}")
        return user
    user = User(
        email=email, name=name,
        password_hash=get_password_hash("changeme123"),
        role=role, is_active=True,
    )
    db.add(user)
    await db.flush()
    print(f"  [new]  User {email} ({role})")
    return user


async def _ensure_member(db: AsyncSession, group, user: User) -> None:
    result = await db.execute(
        select(OperatorGroupMember).where(
            OperatorGroupMember.group_id == group.id,
            OperatorGroupMember.user_id == user.id,
        )
    )
    if result.scalars().first():
        print(f"  [skip] {user.email} in {group.group_key}")
        return
    db.add(OperatorGroupMember(group_id=group.id, user_id=user.id))
    print(f"  [new]  {user.email} -> {group.group_key}")


# ─── Main ─────────────────────────────────────────────────────────────────────

async def seed():
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async with SessionLocal() as db:
        print("\n── Users ──")
        admin     = await _upsert_user(db, "admin@example.com",     "Admin User",    "ADMIN")
        operator  = await _upsert_user(db, "operator@example.com",  "Desk Operator", "OPERATOR")
        await _upsert_user(db, "requester@example.com", "Requester",     "REQUESTER")
        await db.commit()

        print("\n── Queues & routing ──")
        groups = await seed_operator_groups(db)
        await seed_routing_rules(db, groups)
        await seed_system_settings(db)
        await db.commit()

        print("\n── Memberships ──")
        await _ensure_member(db, groups["service-desk-queue"], operator)
        await _ensure_member(db, groups["service-desk-queue"], admin)
        await _ensure_member(db, groups["customer-service-queue"], operator)
        await db.commit()

    await engine.dispose()
    print("\n✓ Seed complete.")
    print("  admin@example.com      / changeme123  (ADMIN)")
    print("  operator@example.com   / changeme123  (OPERATOR)")
    print("  requester@example.com  / changeme123  (REQUESTER)")
    print("  Queues: service-desk-queue · customer-service-queue · facilities-queue")


if __name__ == "__main__":
    asyncio.run(seed())
