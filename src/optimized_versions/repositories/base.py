"""Base repository with common database operations."""

from typing import Generic, Optional, Type, TypeVar

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Base repository with common CRUD operations."""

    def __init__(self, model: Type[T], session: AsyncSession):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy ORM model class
            session: Database session
        """
        self.model = model
        self.session = session

    async def get(self, id: str) -> Optional[T]:
        """
        Get a single record by ID.

        Args:
            id: Primary key value

        Returns:
            Model instance or None
        """
        return await self.session.get(self.model, id)

    async def create(self, instance: T) -> T:
        """
        Create a new record.

        Args:
            instance: Model instance to create

        Returns:
            Created instance
        """
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def delete_all(self) -> int:
        """
        Delete every record of this model.

        Returns:
            Number of rows deleted
        """
        result = await self.session.execute(delete(self.model))
        return result.rowcount or 0
