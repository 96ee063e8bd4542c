import logging
import time
from typing import Any, Callable, List, Optional, Set, Tuple

from pms_client.core.entities import EntityType, namespace
from pms_client.core.errors import NetworkError, StorageError
from pms_client.schemas.sync import DrainReport, SyncTask
from pms_client.services.cache import LocalCache
from pms_client.services.gateway import RequestGateway

logger = logging.getLogger(__name__)

QUEUE_KEY = "pending"


class SyncQueue:
    """
    Durable FIFO of mutations that could not reach the backend.

    Every pass attempts each queued task in enqueue order. A task that
    fails but still has retries left holds back the later tasks for the
    same record (same entity and key, or same endpoint when the task has
    none) until the next pass, so a later write to a record can never land
    before an earlier one. Tasks for other records keep replaying.
    """

    def __init__(
        self,
        cache: LocalCache,
        gateway: RequestGateway,
        max_retries: int,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self.gateway = gateway
        self.max_retries = max_retries
        self._clock = clock
        self._tasks: List[SyncTask] = []
        self._next_id = 1
        self._draining = False

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def draining(self) -> bool:
        return self._draining

    def pending(self) -> List[SyncTask]:
        return [task.model_copy() for task in self._tasks]

    def has_pending(self, entity, key) -> bool:
        entity = namespace(entity)
        return any(t.entity == entity and t.key == str(key) for t in self._tasks)

    async def load(self) -> int:
        stored = self.cache.get(EntityType.SYNC_QUEUE, QUEUE_KEY, default=[])
        self._tasks = [SyncTask.model_validate(item) for item in stored]
        if self._tasks:
            self._next_id = max(t.id for t in self._tasks) + 1
            logger.info("Restored %d pending sync tasks", len(self._tasks))
        return len(self._tasks)

    async def _persist(self) -> None:
        try:
            await self.cache.write(EntityType.SYNC_QUEUE, QUEUE_KEY, self._tasks)
        except StorageError as e:
            logger.warning("Sync queue kept in memory only: %s", e)

    async def enqueue(
        self,
        endpoint: str,
        method: str,
        payload: Any = None,
        entity: Optional[Any] = None,
        key: Optional[Any] = None,
    ) -> int:
        task = SyncTask(
            id=self._next_id,
            endpoint=endpoint,
            method=method.upper(),
            payload=payload,
            enqueued_at=self._clock(),
            entity=namespace(entity) if entity is not None else None,
            key=str(key) if key is not None else None,
        )
        self._next_id += 1
        self._tasks.append(task)
        await self._persist()
        logger.info("Queued %s %s as sync task %d", task.method, task.endpoint, task.id)
        return task.id

    async def drain(self) -> DrainReport:
        if self._draining:
            logger.info("Sync drain already in flight; ignoring")
            return DrainReport(skipped=True)

        self._draining = True
        report = DrainReport()
        attempted: Set[int] = set()
        held: Set[Tuple[Optional[str], ...]] = set()
        try:
            if self._tasks:
                logger.info("Processing %d queued operations...", len(self._tasks))
            while True:
                task = self._next_task(attempted, held)
                if task is None:
                    break
                attempted.add(task.id)
                try:
                    await self.gateway.send(task.endpoint, task.method, task.payload)
                except NetworkError as e:
                    task.retry_count += 1
                    if task.retry_count >= self.max_retries:
                        self._discard(task)
                        report.dropped.append(task.id)
                        logger.error(
                            "Dropping sync task %d (%s %s) after %d attempts: %s",
                            task.id, task.method, task.endpoint, task.retry_count, e,
                        )
                    else:
                        held.add(self._record(task))
                        report.blocked.append(task.id)
                        logger.warning("Sync task %d deferred to the next pass: %s", task.id, e)
                    await self._persist()
                    continue
                self._discard(task)
                report.succeeded.append(task.id)
                logger.info("Synced: %s %s", task.method, task.endpoint)
                await self._persist()
        finally:
            self._draining = False
        return report

    @staticmethod
    def _record(task: SyncTask) -> Tuple[Optional[str], ...]:
        if task.entity is not None:
            return (task.entity, task.key)
        return (None, task.endpoint)

    def _next_task(self, attempted: Set[int], held: Set[Tuple[Optional[str], ...]]) -> Optional[SyncTask]:
        # re-scanned after every await: tasks may be enqueued or cleared meanwhile
        for task in self._tasks:
            if task.id in attempted:
                continue
            if self._record(task) in held:
                continue
            return task
        return None

    def _discard(self, task: SyncTask) -> None:
        # by identity: clear() may have replaced the list while the send was in flight
        self._tasks = [t for t in self._tasks if t is not task]

    async def clear(self) -> None:
        self._tasks = []
        await self._persist()
