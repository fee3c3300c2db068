"""
User service — lookups and creation for the User aggregate.

Users are read without caching: they are only loaded on the auth path
(login and bearer-token resolution), never on the public read path.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import User


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def user_to_dict(user: User) -> dict:
    """Serialise a User to a plain dict.  The password hash is never included."""
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_user(db: AsyncSession, user_id: str) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, email: str, username: str, password_hash: str) -> User:
    """
    Insert a user and return it with its server-generated timestamps loaded.

    Email uniqueness is enforced by a unique constraint; callers check
    ``get_user_by_email`` first to report a friendly conflict.
    """
    user = User(email=email, username=username, password_hash=password_hash)
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user
