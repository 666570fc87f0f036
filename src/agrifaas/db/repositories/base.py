"""Base repository with common CRUD operations.

Repositories never commit: they add and flush inside the caller's
transaction, which is opened by ``Database.transaction()`` or
``Database.run_in_transaction()``.

Usage:
    from agrifaas.db.repositories.base import BaseRepository

    class TenantRepository(BaseRepository[Tenant, str]):
        pass

    repo = TenantRepository(session)
    tenant = await repo.get(tenant_id)
"""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agrifaas.db.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)
PKType = TypeVar("PKType", bound=int | str)


class BaseRepository(Generic[ModelType, PKType]):
    """Generic repository for SQLAlchemy models.

    Type Parameters:
        ModelType: The SQLAlchemy model class
        PKType: The type of the primary key

    Attributes:
        model: The model class
        db: The database session
    """

    model: type[ModelType]

    def __init__(self, db: AsyncSession):
        self.db = db

    def __init_subclass__(cls, **kwargs):
        """Extract model type from generic parameter."""
        super().__init_subclass__(**kwargs)
        for base in getattr(cls, "__orig_bases__", []):
            args = getattr(base, "__args__", None)
            if args and len(args) >= 1:
                first_arg = args[0]
                if isinstance(first_arg, type) and issubclass(first_arg, Base):
                    cls.model = first_arg
                    break

    async def get(self, pk: PKType) -> ModelType | None:
        """Get a single record by primary key."""
        return await self.db.get(self.model, pk)

    async def list(
        self,
        *,
        limit: int = 100,
        offset: int = 0,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[ModelType]:
        """List records with pagination.

        Args:
            limit: Maximum records to return
            offset: Number of records to skip
            order_by: Column name to order by (default: primary key)
            descending: Sort in descending order
        """
        stmt = select(self.model)

        col = getattr(self.model, order_by, None) if order_by else None
        if col is None:
            col = self._get_pk_column()
        stmt = stmt.order_by(col.desc() if descending else col)

        stmt = stmt.limit(limit).offset(offset)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count(self) -> int:
        """Count total records."""
        stmt = select(func.count(self._get_pk_column()))
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def add(self, obj: ModelType) -> ModelType:
        """Add a new record and flush it so defaults are populated."""
        self.db.add(obj)
        await self.db.flush()
        return obj

    async def update(self, obj: ModelType, updates: dict[str, Any]) -> ModelType:
        """Merge the given fields into a record.

        Args:
            obj: Model instance to update
            updates: Dictionary of field: value to update

        Raises:
            AttributeError: If a field does not exist on the model
        """
        for field, value in updates.items():
            if not hasattr(obj, field):
                raise AttributeError(f"{self.model.__name__} has no field '{field}'")
            setattr(obj, field, value)
        await self.db.flush()
        return obj

    async def exists(self, pk: PKType) -> bool:
        """Check if a record exists."""
        pk_col = self._get_pk_column()
        stmt = select(func.count(pk_col)).where(pk_col == pk)
        result = await self.db.execute(stmt)
        return (result.scalar() or 0) > 0

    async def find_by(self, **filters: Any) -> Sequence[ModelType]:
        """Find records matching every equality filter."""
        stmt = select(self.model).filter_by(**filters)
        result = await self.db.execute(stmt)
        return result.scalars().all()

    def _get_pk_column(self):
        mapper = self.model.__mapper__
        pk_cols = mapper.primary_key
        if not pk_cols:
            raise ValueError(f"No primary key found for {self.model.__name__}")
        return pk_cols[0]
