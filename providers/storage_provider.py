"""
Storage Provider Classes

One storage capability with two interchangeable backends. Services never talk
to a database directly: they open a unit of work with
``async with storage.session() as s`` and use the small set of operations on
`StorageSession` (get / add / delete / find / count / increment). The unit of
work commits when the block exits normally and rolls back when it raises.

Business rules (cascades, counter maintenance, quotas) are not implemented
here; both backends only do bookkeeping.

- `MemoryStorageProvider`: dict-backed, optionally persisted to a JSON file.
  Units of work are serialised with an asyncio lock and rolled back from a
  snapshot, which makes every unit of work atomic and isolated.
- `SQLStorageProvider`: SQLModel tables over an async SQLAlchemy engine.
  Counter increments are single ``UPDATE`` statements so concurrent writers
  never lose updates.
"""

import asyncio
import copy
import json
import logging
import os
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
)

from sqlalchemy import case, delete, func, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from core.exceptions import StorageError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)

# (field name, descending)
OrderBy = Sequence[Tuple[str, bool]]


class StorageSession(ABC):
    """Operations available inside one unit of work"""

    @abstractmethod
    async def get(self, model: Type[ModelT], entity_id: int) -> Optional[ModelT]:
        """Fetch a row by primary key"""
        pass

    @abstractmethod
    async def add(self, entity: ModelT) -> ModelT:
        """Insert a new row (id assigned) or overwrite an existing one"""
        pass

    @abstractmethod
    async def delete(self, model: Type[ModelT], entity_id: int) -> bool:
        """Delete a row by primary key; False if it did not exist"""
        pass

    @abstractmethod
    async def find(
        self,
        model: Type[ModelT],
        filters: Optional[Dict[str, Any]] = None,
        order_by: OrderBy = (),
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[ModelT]:
        """Rows whose fields equal ``filters`` (None matches NULL)"""
        pass

    @abstractmethod
    async def count(
        self, model: Type[ModelT], filters: Optional[Dict[str, Any]] = None
    ) -> int:
        pass

    @abstractmethod
    async def increment(
        self, model: Type[ModelT], entity_id: int, field: str, delta: int = 1
    ) -> bool:
        """
        Atomically add ``delta`` to a counter column, flooring at zero.

        Returns False if the row does not exist.
        """
        pass


class StorageProvider(ABC):
    """Abstract base class for storage backends"""

    backend_name: str = "abstract"

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend (create tables, load files)"""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    def session(self) -> "AsyncIterator[StorageSession]":
        """Async context manager yielding a `StorageSession` unit of work"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        pass


# In-memory backend


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class MemoryStorageSession(StorageSession):
    def __init__(self, provider: "MemoryStorageProvider"):
        self._provider = provider

    def _table(self, model: Type[SQLModel]) -> Dict[int, Dict[str, Any]]:
        return self._provider.tables.setdefault(model.__tablename__, {})

    async def get(self, model, entity_id):
        row = self._table(model).get(entity_id)
        if row is None:
            return None
        return model.model_validate(row)

    async def add(self, entity):
        model = type(entity)
        table = self._table(model)
        if entity.id is None:
            entity.id = self._provider.next_id(model.__tablename__)
        else:
            counters = self._provider.counters
            counters[model.__tablename__] = max(
                counters.get(model.__tablename__, 1), entity.id + 1
            )
        # Rows are kept JSON-shaped, the same as the persisted file
        table[entity.id] = entity.model_dump(mode="json")
        return model.model_validate(table[entity.id])

    async def delete(self, model, entity_id):
        return self._table(model).pop(entity_id, None) is not None

    async def find(self, model, filters=None, order_by=(), offset=0, limit=None):
        filters = filters or {}
        entities = [
            model.model_validate(row)
            for row in self._table(model).values()
            if all(row.get(key) == value for key, value in filters.items())
        ]

        # Stable multi-key sort: apply the least significant key first
        for field, descending in reversed(list(order_by)):
            entities.sort(
                key=lambda entity: (getattr(entity, field) is None, getattr(entity, field)),
                reverse=descending,
            )

        entities = entities[offset:]
        if limit is not None:
            entities = entities[:limit]
        return entities

    async def count(self, model, filters=None):
        filters = filters or {}
        return sum(
            1
            for row in self._table(model).values()
            if all(row.get(key) == value for key, value in filters.items())
        )

    async def increment(self, model, entity_id, field, delta=1):
        row = self._table(model).get(entity_id)
        if row is None:
            return False
        row[field] = max(0, (row.get(field) or 0) + delta)
        return True


class MemoryStorageProvider(StorageProvider):
    """
    Dict-backed storage, optionally mirrored to a JSON file after every commit.

    Only one unit of work runs at a time, so check-then-act sequences inside a
    unit of work are exact.
    """

    backend_name = "memory"

    def __init__(self, path: Optional[str] = None):
        self.path = path or None
        self.tables: Dict[str, Dict[int, Dict[str, Any]]] = {}
        self.counters: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        if self.path and os.path.exists(self.path):
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                self.tables = {
                    name: {int(entity_id): row for entity_id, row in rows.items()}
                    for name, rows in data.get("tables", {}).items()
                }
                self.counters = {
                    name: int(value) for name, value in data.get("counters", {}).items()
                }
                logger.info(f"Loaded memory store from {self.path}")
            except (OSError, ValueError) as e:
                logger.error(f"Error loading {self.path}, starting empty: {e}")
                self.tables = {}
                self.counters = {}

        for table in SQLModel.metadata.sorted_tables:
            self.tables.setdefault(table.name, {})

    async def close(self) -> None:
        pass

    def next_id(self, table_name: str) -> int:
        next_id = self.counters.get(table_name)
        if next_id is None:
            existing = self.tables.get(table_name, {})
            next_id = max(existing.keys(), default=0) + 1
        self.counters[table_name] = next_id + 1
        return next_id

    def _save(self) -> None:
        if not self.path:
            return
        payload = {"tables": self.tables, "counters": self.counters}
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, default=_json_default)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageError("save", str(e)) from e

    @asynccontextmanager
    async def session(self) -> AsyncIterator[StorageSession]:
        async with self._lock:
            snapshot = (copy.deepcopy(self.tables), dict(self.counters))
            try:
                yield MemoryStorageSession(self)
            except BaseException:
                self.tables, self.counters = snapshot
                raise
            self._save()

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "backend": self.backend_name,
            "persistent": self.path is not None,
            "rows": {name: len(rows) for name, rows in self.tables.items()},
        }


# Relational backend


class SQLStorageSession(StorageSession):
    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _conditions(model: Type[SQLModel], filters: Optional[Dict[str, Any]]):
        conditions = []
        for key, value in (filters or {}).items():
            column = getattr(model, key)
            conditions.append(column.is_(None) if value is None else column == value)
        return conditions

    async def get(self, model, entity_id):
        # populate_existing drops values cached before an UPDATE statement
        return await self._session.get(model, entity_id, populate_existing=True)

    async def add(self, entity):
        if entity.id is not None:
            entity = await self._session.merge(entity)
        else:
            self._session.add(entity)
        await self._session.flush()
        return entity

    async def delete(self, model, entity_id):
        result = await self._session.execute(
            delete(model)
            .where(model.id == entity_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def find(self, model, filters=None, order_by=(), offset=0, limit=None):
        statement = select(model).where(*self._conditions(model, filters))
        for field, descending in order_by:
            column = getattr(model, field)
            statement = statement.order_by(column.desc() if descending else column.asc())
        if offset:
            statement = statement.offset(offset)
        if limit is not None:
            statement = statement.limit(limit)

        result = await self._session.execute(
            statement.execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def count(self, model, filters=None):
        statement = (
            select(func.count())
            .select_from(model)
            .where(*self._conditions(model, filters))
        )
        result = await self._session.execute(statement)
        return result.scalar_one()

    async def increment(self, model, entity_id, field, delta=1):
        column = getattr(model, field)
        new_value = case((column + delta < 0, 0), else_=column + delta)
        result = await self._session.execute(
            update(model)
            .where(model.id == entity_id)
            .values({field: new_value})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0


class SQLStorageProvider(StorageProvider):
    """SQLModel tables behind an async SQLAlchemy engine"""

    backend_name = "sql"

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    async def initialize(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database tables created successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}")
            raise StorageError("create_tables", str(e)) from e

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[StorageSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield SQLStorageSession(session)
        except SQLAlchemyError as e:
            logger.error(f"Storage transaction failed: {e}", exc_info=True)
            raise StorageError("transaction", str(e)) from e

    async def health_check(self) -> Dict[str, Any]:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "healthy", "backend": self.backend_name}
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "unhealthy", "backend": self.backend_name, "error": str(e)}
