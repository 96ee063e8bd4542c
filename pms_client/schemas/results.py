from enum import Enum
from pydantic import BaseModel
from typing import Any, Optional, Type

class ReadStatus(str, Enum):
    FRESH = "fresh"              # straight from the backend
    STALE = "stale"              # last-known-good cache, backend unreachable
    PENDING = "pending"          # local value with unsent writes queued behind it
    UNAVAILABLE = "unavailable"  # backend unreachable and nothing cached

class SaveStatus(str, Enum):
    SAVED = "saved"
    QUEUED = "queued"

class ReadResult(BaseModel):
    """
    A read tagged with where its value came from.

    `stale` and `pending` both mean the backend copy was not used; a read
    that fails while local writes are still queued reports `pending`.
    UI code that only needs "is this live data" should check `offline`.
    """

    value: Any = None
    status: ReadStatus

    @property
    def offline(self) -> bool:
        return self.status is not ReadStatus.FRESH

    def parsed(self, model: Type[BaseModel]) -> "ReadResult":
        if self.value is None or isinstance(self.value, model):
            return self
        return ReadResult(value=model.model_validate(self.value), status=self.status)

class SaveResult(BaseModel):
    value: Any = None
    status: SaveStatus
    task_id: Optional[int] = None
    response: Any = None

    @property
    def queued(self) -> bool:
        return self.status is SaveStatus.QUEUED
