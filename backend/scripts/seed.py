"""Seed script — creates portal users and scholar profiles for local development.

Idempotent: checks for existing records before inserting.
Prints a dev access token per user (the managed auth provider issues them in
production).
Run: python scripts/seed.py
"""
import asyncio
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings
from app.core.security import create_access_token
from app.models.profile import Profile
from app.models.user import User


# ─── Upsert helpers ───────────────────────────────────────────────────────────

async def _upsert_user(db: AsyncSession, email: str, name: str, role: str) -> User:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalars().first()
    if user:
        print(f"  [skip] User {email}")
        return user
    user = User(email=email, name=name, role=role, is_active=True)
    db.add(user)
    await db.flush()
    print(f"  [new]  User {email} ({role})")
    return user


async def _upsert_profile(db: AsyncSession, user: User, cpf: str, phone: str | None = None) -> Profile:
    result = await db.execute(select(Profile).where(Profile.user_id == user.id))
    profile = result.scalars().first()
    if profile:
        print(f"  [skip] Profile {user.email}")
        return profile
    profile = Profile(
        user_id=user.id, full_name=user.name, email=user.email,
        cpf=cpf, phone=phone,
    )
    db.add(profile)
    await db.flush()
    print(f"  [new]  Profile {user.email} (CPF {cpf})")
    return profile


async def seed():
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async with SessionLocal() as db:
        print("\n── Users ──")
        admin   = await _upsert_user(db, "admin@example.com",   "Admin User",     "ADMIN")
        manager = await _upsert_user(db, "gestor@example.com",  "Gestora ICCA",   "MANAGER")
        ana     = await _upsert_user(db, "ana@example.com",     "Ana Silva",      "SCHOLAR")
        bruno   = await _upsert_user(db, "bruno@example.com",   "Bruno Costa",    "SCHOLAR")
        await db.commit()

        print("\n── Profiles ──")
        await _upsert_profile(db, ana, "111.444.777-35", phone="(11) 98888-0001")
        await _upsert_profile(db, bruno, "52998224725")
        await db.commit()

    await engine.dispose()
    print("\n✓ Seed complete. Dev tokens:")
    for user in (admin, manager, ana, bruno):
        print(f"  {user.email:<20} ({user.role:<7}) {create_access_token(str(user.id), user.role)}")


if __name__ == "__main__":
    asyncio.run(seed())
