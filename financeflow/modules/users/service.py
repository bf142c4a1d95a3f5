import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from financeflow.core.exceptions import NotFoundError
from financeflow.modules.users.models import User

logger = logging.getLogger(__name__)


class UsersService:
    def __init__(self):
        self.logger = logger

    async def find_or_create(
        self, db: AsyncSession, email: str, name: Optional[str] = None
    ) -> User:
        """Find existing user by email or create a new one"""
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user:
            return user

        self.logger.info(f"Creating new user with email: {email}")
        new_user = User(email=email, name=name)

        db.add(new_user)
        await db.commit()
        await db.refresh(new_user)

        return new_user

    async def get_user_by_id(self, db: AsyncSession, user_id: int) -> Optional[User]:
        """Get user by ID"""
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def require_user(self, db: AsyncSession, user_id: int) -> User:
        """Get user by ID or raise NotFoundError"""
        user = await self.get_user_by_id(db, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user
