from pydantic import BaseModel, Field
from typing import Any, List, Optional

class SyncTask(BaseModel):
    id: int
    endpoint: str
    method: str
    payload: Any = None
    enqueued_at: float
    retry_count: int = 0
    # cache entry mirrored by this mutation, when it has one
    entity: Optional[str] = None
    key: Optional[str] = None

class DrainReport(BaseModel):
    succeeded: List[int] = Field(default_factory=list)
    dropped: List[int] = Field(default_factory=list)
    blocked: List[int] = Field(default_factory=list)  # failed, retried next pass; holds back its record
    skipped: bool = False  # another drain pass was already in flight
