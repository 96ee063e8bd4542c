import copy
import json
import logging
from typing import Any, Dict, List

from pydantic_core import to_jsonable_python

from pms_client.core.entities import namespace
from pms_client.core.store import KeyValueStore

logger = logging.getLogger(__name__)


class _Missing:
    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def to_jsonable(value: Any) -> Any:
    """pydantic models, enums and dates -> plain JSON-compatible data."""
    return to_jsonable_python(value, by_alias=True)


class LocalCache:
    """
    Last-known-good mirror of server entities.

    Reads are served from memory; writes update memory first and then the
    durable store. A store failure surfaces as StorageError after the
    in-memory copy has already been replaced.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._entries: Dict[str, Any] = {}

    @staticmethod
    def make_key(entity_type, key) -> str:
        return f"{namespace(entity_type)}:{key}"

    async def load(self) -> int:
        raw_entries = await self.store.load_all()
        for full_key, raw in raw_entries.items():
            try:
                self._entries[full_key] = json.loads(raw)
            except ValueError:
                logger.warning("Skipping unreadable cache entry %s", full_key)
        logger.info("Local cache hydrated with %d entries", len(self._entries))
        return len(self._entries)

    def read(self, entity_type, key) -> Any:
        full_key = self.make_key(entity_type, key)
        if full_key not in self._entries:
            return MISSING
        # callers get their own copy; the mirror only changes through write()
        return copy.deepcopy(self._entries[full_key])

    def get(self, entity_type, key, default: Any = None) -> Any:
        value = self.read(entity_type, key)
        return default if value is MISSING else value

    def contains(self, entity_type, key) -> bool:
        return self.make_key(entity_type, key) in self._entries

    def keys(self, entity_type) -> List[str]:
        prefix = f"{namespace(entity_type)}:"
        return [k[len(prefix):] for k in self._entries if k.startswith(prefix)]

    async def write(self, entity_type, key, value: Any) -> None:
        full_key = self.make_key(entity_type, key)
        raw = json.dumps(to_jsonable(value))
        self._entries[full_key] = json.loads(raw)
        await self.store.put(full_key, raw)

    async def remove(self, entity_type, key) -> None:
        full_key = self.make_key(entity_type, key)
        self._entries.pop(full_key, None)
        await self.store.delete(full_key)
