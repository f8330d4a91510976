# app/scripts/create_admin.py
"""Seed an admin account: ``python -m app.scripts.create_admin [username] [password]``."""
import asyncio
import os
import sys

from sqlalchemy.future import select

from app.core.db import AsyncSessionLocal, init_models
from app.core.security import hash_password
from app.models.user_models import User, UserRole


async def create_admin(username: str, password: str) -> bool:
    await init_models()
    async with AsyncSessionLocal() as session:
        existing = await session.execute(select(User).where(User.username == username))
        if existing.scalars().first():
            print(f"User '{username}' already exists, nothing to do.")
            return False

        admin = User(
            username=username,
            password_hash=hash_password(password),
            role=UserRole.ADMIN.value,
            is_active=True
        )
        session.add(admin)
        await session.commit()
        print(f"Admin user '{username}' created!")
        return True


if __name__ == "__main__":
    args = sys.argv[1:]
    username = args[0] if args else os.getenv("ADMIN_USERNAME", "admin")
    password = args[1] if len(args) > 1 else os.getenv("ADMIN_PASSWORD", "admin123")
    asyncio.run(create_admin(username, password))
