"""
UserRepository - account lookups and creation
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import User


class UserRepository:
    """Accounts are keyed by lowercased email."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def create_user(self, email: str, hashed_password: str, is_active: bool = True) -> User:
        """
        Add an account. The caller commits.

        Raises:
            sqlalchemy.exc.IntegrityError: on flush if the email is taken
        """
        user = User(
            email=email.strip().lower(),
            hashed_password=hashed_password,
            is_active=is_active,
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user
