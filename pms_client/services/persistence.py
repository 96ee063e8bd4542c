import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pms_client.core.connectivity import ConnectivityChannel
from pms_client.core.entities import AUTH_ENDPOINT, ROUTES, EntityType, Route
from pms_client.core.errors import AuthError, NetworkError, StorageError, ValidationError
from pms_client.core.notify import LoggingNotifier, Notifier
from pms_client.schemas.competency import CompetencyEvaluation, CompetencyMasterItem
from pms_client.schemas.employee import EmployeeRecord
from pms_client.schemas.goal import GoalSet
from pms_client.schemas.performance import PerformanceSummary
from pms_client.schemas.results import ReadResult, ReadStatus, SaveResult, SaveStatus
from pms_client.schemas.session import AuthResult
from pms_client.schemas.sync import DrainReport
from pms_client.schemas.timewindow import TimeWindowConfig
from pms_client.services.cache import MISSING, LocalCache, to_jsonable
from pms_client.services.gateway import RequestGateway
from pms_client.services.performance import calculate_offline_summary
from pms_client.services.sync_queue import SyncQueue

logger = logging.getLogger(__name__)

Validator = Callable[[Any], List[str]]
AuthFailureHandler = Callable[[AuthError], Awaitable[None]]

CURRENT = "current"
CATALOG = "all"


class PersistenceFacade:
    """
    The one data API used by every UI module.

    Reads: backend first, write-through to the cache; on NetworkError the
    last-known-good cached value comes back tagged `stale`.
    Writes: backend first, write-through; on NetworkError the value is
    written to the cache optimistically and the call is queued for replay,
    tagged `queued`. The same policy applies to every entity type.
    """

    def __init__(
        self,
        cache: LocalCache,
        gateway: RequestGateway,
        queue: SyncQueue,
        connectivity: Optional[ConnectivityChannel] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.cache = cache
        self.gateway = gateway
        self.queue = queue
        self.connectivity = connectivity
        self.notifier = notifier or LoggingNotifier()
        self._validators: Dict[EntityType, Validator] = {}
        self._auth_failure_handlers: List[AuthFailureHandler] = []
        if connectivity is not None:
            connectivity.on_connectivity_change(self._on_connectivity_change)

    # -- hooks -----------------------------------------------------------

    def register_validator(self, entity, validator: Validator) -> None:
        """`validator(value)` returns a list of error messages; empty means valid."""
        self._validators[EntityType(entity)] = validator

    def on_auth_failure(self, handler: AuthFailureHandler) -> None:
        self._auth_failure_handlers.append(handler)

    # -- generic read / write ---------------------------------------------

    @staticmethod
    def _route(entity: EntityType) -> Route:
        route = ROUTES.get(entity)
        if route is None:
            raise ValueError(f"{entity.value} is not a backend entity")
        return route

    @staticmethod
    def _refused(body: Any) -> bool:
        return isinstance(body, dict) and body.get("success") is False

    @staticmethod
    def _unwrap(body: Any) -> Any:
        # backend envelope: {"success": true, "data": ...}
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    async def _cache_write(self, entity, key, value: Any) -> None:
        try:
            await self.cache.write(entity, key, value)
        except StorageError as e:
            logger.warning("Cache write for %s:%s not persisted: %s", EntityType(entity).value, key, e)

    def _cached_result(self, entity: EntityType, key: str, offline: bool = True) -> ReadResult:
        cached = self.cache.read(entity, key)
        if cached is MISSING:
            if offline:
                self.notifier.notify(f"Offline mode: no local copy of {entity.value} available", "warning")
            return ReadResult(value=None, status=ReadStatus.UNAVAILABLE)
        if offline:
            self.notifier.notify(f"Offline mode: loading {entity.value} from local cache", "info")
        if self.queue.has_pending(entity, key):
            return ReadResult(value=cached, status=ReadStatus.PENDING)
        return ReadResult(value=cached, status=ReadStatus.STALE)

    async def get(self, entity, key) -> ReadResult:
        entity = EntityType(entity)
        key = str(key)
        endpoint = self._route(entity).read_endpoint(key)
        if endpoint is None:
            return self._cached_result(entity, key, offline=False)

        try:
            body = await self.gateway.send(endpoint, "GET")
        except NetworkError as e:
            logger.warning("Reading %s:%s from cache: %s", entity.value, key, e)
            return self._cached_result(entity, key)
        except AuthError as e:
            await self._auth_failed(e)
            raise

        if self._refused(body):
            logger.warning("Backend refused reading %s:%s: %s", entity.value, key, body.get("message"))
            return self._cached_result(entity, key)

        value = self._unwrap(body)
        if self.queue.has_pending(entity, key):
            # unsent local writes win over what the backend has not seen yet
            cached = self.cache.read(entity, key)
            if cached is not MISSING:
                return ReadResult(value=cached, status=ReadStatus.PENDING)
        await self._cache_write(entity, key, value)
        return ReadResult(value=value, status=ReadStatus.FRESH)

    def _validate(self, entity: EntityType, value: Any) -> None:
        validator = self._validators.get(entity)
        if validator is None:
            return
        errors = validator(value)
        if errors:
            raise ValidationError(errors)

    def _local_value(self, entity: EntityType, key: str, route: Route, data: Any) -> Any:
        if not route.merge or not isinstance(data, dict):
            return data
        cached = self.cache.read(entity, key)
        if isinstance(cached, dict):
            return {**cached, **data}
        return data

    async def save(self, entity, key, value: Any) -> SaveResult:
        entity = EntityType(entity)
        key = str(key)
        route = self._route(entity)
        endpoint = route.write_endpoint(key)
        if endpoint is None:
            raise ValueError(f"{entity.value} cannot be written")

        self._validate(entity, value)
        data = to_jsonable(value)
        payload = {route.payload_key: data} if route.payload_key else data
        local = self._local_value(entity, key, route, data)

        if self.queue.has_pending(entity, key) and self._online():
            await self.sync()
        if self.queue.has_pending(entity, key):
            return await self._queue_write(entity, key, local, endpoint, route.write_method, payload)

        try:
            response = await self.gateway.send(endpoint, route.write_method, payload)
        except NetworkError as e:
            logger.warning("Saving %s:%s offline: %s", entity.value, key, e)
            return await self._queue_write(entity, key, local, endpoint, route.write_method, payload)
        except AuthError as e:
            await self._auth_failed(e)
            raise

        if self._refused(response):
            raise ValidationError([response.get("message") or f"Backend refused saving {entity.value}"])

        await self._cache_write(entity, key, local)
        return SaveResult(value=local, status=SaveStatus.SAVED, response=response)

    async def _queue_write(
        self, entity: EntityType, key: str, local: Any, endpoint: str, method: str, payload: Any
    ) -> SaveResult:
        await self._cache_write(entity, key, local)
        task_id = await self.queue.enqueue(endpoint, method, payload, entity=entity, key=key)
        self.notifier.notify("Saved locally (offline). Will sync when online.", "success")
        return SaveResult(value=local, status=SaveStatus.QUEUED, task_id=task_id)

    def _online(self) -> bool:
        return self.connectivity is None or self.connectivity.is_online

    # -- sync ----------------------------------------------------------------

    async def _auth_failed(self, error: AuthError) -> None:
        logger.warning("Session rejected by backend: %s", error)
        for handler in list(self._auth_failure_handlers):
            await handler(error)

    async def sync(self) -> DrainReport:
        try:
            report = await self.queue.drain()
        except AuthError as e:
            await self._auth_failed(e)
            return DrainReport()
        if report.succeeded:
            self.notifier.notify(f"Synced {len(report.succeeded)} operations", "success")
        if report.dropped:
            self.notifier.notify(
                f"{len(report.dropped)} offline changes could not be synced and were discarded", "error"
            )
        return report

    async def _on_connectivity_change(self, online: bool) -> None:
        if online:
            await self.sync()

    # -- authentication --------------------------------------------------------

    async def authenticate(self, principal_id: str) -> AuthResult:
        try:
            body = await self.gateway.send(AUTH_ENDPOINT, "POST", {"employeeCode": principal_id})
        except NetworkError:
            cached = self.cache.read(EntityType.EMPLOYEE, principal_id)
            if cached is MISSING:
                raise
            self.notifier.notify("Offline mode: authenticating from local cache", "info")
            return AuthResult(user=EmployeeRecord.model_validate(cached), offline=True)

        if not isinstance(body, dict) or not body.get("success"):
            message = body.get("message") if isinstance(body, dict) else None
            raise AuthError(message or "Authentication failed")

        user = EmployeeRecord.model_validate(body.get("user") or body.get("data"))
        await self._cache_write(EntityType.EMPLOYEE, user.emp_code, user)
        return AuthResult(user=user, token=body.get("token"))

    # -- typed helpers -----------------------------------------------------------

    async def get_employee(self, emp_code: str) -> ReadResult:
        return (await self.get(EntityType.EMPLOYEE, emp_code)).parsed(EmployeeRecord)

    async def update_employee(self, emp_code: str, changes: Dict[str, Any]) -> SaveResult:
        return await self.save(EntityType.EMPLOYEE, emp_code, changes)

    async def get_goals(self, emp_code: str) -> ReadResult:
        result = (await self.get(EntityType.GOALS, emp_code)).parsed(GoalSet)
        if result.value is not None and result.value.emp_code is None:
            result.value.emp_code = emp_code
        return result

    async def save_goals(self, emp_code: str, goal_set: GoalSet) -> SaveResult:
        return await self.save(EntityType.GOALS, emp_code, goal_set)

    async def get_competencies(self, emp_code: str) -> ReadResult:
        result = (await self.get(EntityType.COMPETENCIES, emp_code)).parsed(CompetencyEvaluation)
        if result.value is not None and result.value.emp_code is None:
            result.value.emp_code = emp_code
        return result

    async def save_competencies(self, emp_code: str, evaluation: CompetencyEvaluation) -> SaveResult:
        return await self.save(EntityType.COMPETENCIES, emp_code, evaluation)

    async def get_competency_master(self) -> ReadResult:
        result = await self.get(EntityType.COMPETENCY_MASTER, CATALOG)
        if result.value is None:
            return result
        items = [CompetencyMasterItem.model_validate(item) for item in result.value]
        active = sorted((i for i in items if i.is_active), key=lambda i: i.sort_order)
        return ReadResult(value=active, status=result.status)

    async def get_time_window(self) -> ReadResult:
        return (await self.get(EntityType.TIME_WINDOW, CURRENT)).parsed(TimeWindowConfig)

    async def save_time_windows(self, config: TimeWindowConfig) -> SaveResult:
        return await self.save(EntityType.TIME_WINDOW, CURRENT, config)

    async def update_system_settings(self, settings: Dict[str, Any]) -> SaveResult:
        return await self.save(EntityType.SYSTEM_SETTINGS, CURRENT, settings)

    async def get_performance_summary(self, emp_code: str) -> ReadResult:
        result = await self.get(EntityType.PERFORMANCE_SUMMARY, emp_code)
        if result.status is not ReadStatus.UNAVAILABLE:
            return result.parsed(PerformanceSummary)

        goals = self.cache.read(EntityType.GOALS, emp_code)
        competencies = self.cache.read(EntityType.COMPETENCIES, emp_code)
        summary = calculate_offline_summary(
            GoalSet.model_validate(goals) if goals is not MISSING else None,
            CompetencyEvaluation.model_validate(competencies) if competencies is not MISSING else None,
        )
        return ReadResult(value=summary, status=ReadStatus.STALE)
