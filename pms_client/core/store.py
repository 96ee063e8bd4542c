from typing import Dict, Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from pms_client.core.errors import StorageError
from pms_client.database import Base, make_engine, make_sessionmaker
from pms_client.models.cache import CacheEntry


class KeyValueStore(Protocol):
    """Durable string store addressed by namespaced keys ("entityType:key")."""

    async def open(self) -> None:
        ...

    async def load_all(self) -> Dict[str, str]:
        ...

    async def put(self, key: str, raw: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def close(self) -> None:
        ...


class MemoryStore:
    """
    Process-lifetime store. `max_bytes` emulates a storage quota:
    a write that would exceed it raises StorageError and leaves the
    previous contents untouched.
    """

    def __init__(self, max_bytes: Optional[int] = None):
        self.max_bytes = max_bytes
        self._data: Dict[str, str] = {}

    async def open(self) -> None:
        return None

    async def load_all(self) -> Dict[str, str]:
        return dict(self._data)

    async def put(self, key: str, raw: str) -> None:
        if self.max_bytes is not None:
            used = sum(len(k) + len(v) for k, v in self._data.items() if k != key)
            if used + len(key) + len(raw) > self.max_bytes:
                raise StorageError(f"Storage quota exceeded writing {key}")
        self._data[key] = raw

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def close(self) -> None:
        return None


class SqlAlchemyStore:
    """Store backed by the `cache_entries` table (sqlite+aiosqlite by default)."""

    def __init__(self, db_url: Optional[str] = None, engine: Optional[AsyncEngine] = None):
        if engine is None:
            if not db_url:
                raise ValueError("SqlAlchemyStore needs a db_url or an engine")
            engine = make_engine(db_url)
        self.engine = engine
        self._sessions = make_sessionmaker(engine)

    async def open(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not open cache database: {e}") from e

    async def load_all(self) -> Dict[str, str]:
        try:
            async with self._sessions() as session:
                result = await session.execute(select(CacheEntry))
                return {row.key: row.value for row in result.scalars()}
        except SQLAlchemyError as e:
            raise StorageError(f"Could not read cache database: {e}") from e

    async def put(self, key: str, raw: str) -> None:
        try:
            async with self._sessions() as session:
                await session.merge(CacheEntry(key=key, value=raw))
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not persist {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            async with self._sessions() as session:
                await session.execute(delete(CacheEntry).where(CacheEntry.key == key))
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not remove {key}: {e}") from e

    async def close(self) -> None:
        await self.engine.dispose()
