import asyncio
import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional

from pms_client.config import Settings
from pms_client.core.entities import EntityType
from pms_client.core.errors import AuthError, LockoutError, LoginError, NetworkError, StorageError
from pms_client.core.notify import LoggingNotifier, Notifier
from pms_client.schemas.session import ActivityEntry, AuthResult, Session, SessionState
from pms_client.services.cache import MISSING, LocalCache

logger = logging.getLogger(__name__)

CURRENT = "current"
LOCK_KEY = "lock"
LOG_KEY = "entries"

ROLES: Dict[str, Dict[str, Any]] = {
    "admin": {"name": "Administrator", "permissions": ["*"], "level": 100},
    "approval_manager1": {
        "name": "Approval Manager 1",
        "permissions": ["view_all", "approve_department", "manage_department"],
        "level": 80,
    },
    "approval_manager2": {
        "name": "Approval Manager 2",
        "permissions": ["view_all", "approve_division", "manage_division"],
        "level": 85,
    },
    "hr_manager1": {"name": "HR Manager 1", "permissions": ["view_all", "manage_hr", "view_reports"], "level": 70},
    "hr_manager2": {
        "name": "HR Manager 2",
        "permissions": ["view_all", "manage_hr", "view_reports", "approve_hr"],
        "level": 75,
    },
    "individual_user": {"name": "Individual User", "permissions": ["view_own", "edit_own"], "level": 10},
}

_EMP_CODE = re.compile(r"^[a-zA-Z0-9]{4,10}$")


def validate_employee_code(emp_code: Any) -> bool:
    """4-10 alphanumeric characters, surrounding whitespace ignored"""
    if not isinstance(emp_code, str):
        return False
    return bool(_EMP_CODE.match(emp_code.strip()))


class SessionAuthority:
    """
    Who is logged in, for how long, and whether logins are currently refused.

    Failed logins are counted per browser (this process), not per employee
    code: after MAX_LOGIN_ATTEMPTS failures every login is refused until
    the lockout elapses.
    """

    def __init__(
        self,
        facade,
        cache: LocalCache,
        settings: Settings,
        resolver=None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.facade = facade
        self.cache = cache
        self.resolver = resolver
        self.notifier = notifier or LoggingNotifier()
        self.session: Optional[Session] = None
        self.state = SessionState.ANONYMOUS
        self.session_timeout = settings.session_timeout_seconds
        self.lockout_duration = settings.lockout_seconds
        self.max_login_attempts = settings.MAX_LOGIN_ATTEMPTS
        self.activity_log_limit = settings.ACTIVITY_LOG_LIMIT
        self._clock = clock
        self._failed_attempts = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._expiry_task: Optional[asyncio.Task] = None
        facade.on_auth_failure(self._on_backend_auth_failure)

    # -- storage helpers -----------------------------------------------------

    async def _store(self, entity, key, value: Any) -> None:
        try:
            await self.cache.write(entity, key, value)
        except StorageError as e:
            logger.warning("Could not persist %s: %s", key, e)

    async def _discard(self, entity, key) -> None:
        try:
            await self.cache.remove(entity, key)
        except StorageError as e:
            logger.warning("Could not remove %s: %s", key, e)

    # -- lockout -------------------------------------------------------------

    @property
    def failed_attempts(self) -> int:
        return self._failed_attempts

    def lock_remaining(self) -> float:
        lock = self.cache.read(EntityType.ACCOUNT, LOCK_KEY)
        if lock is MISSING:
            return 0.0
        try:
            elapsed = self._clock() - float(lock["timestamp"])
        except (KeyError, TypeError, ValueError):
            return 0.0
        return max(self.lockout_duration - elapsed, 0.0)

    def is_locked(self) -> bool:
        return self.lock_remaining() > 0

    async def _record_failure(self, message: str) -> LoginError:
        self._failed_attempts += 1
        remaining = self.max_login_attempts - self._failed_attempts
        await self.log_activity("login_failed", {"attempts": self._failed_attempts})

        if remaining <= 0:
            await self._store(
                EntityType.ACCOUNT, LOCK_KEY, {"timestamp": self._clock(), "attempts": self._failed_attempts}
            )
            self.state = SessionState.LOCKED
            logger.warning("Login locked after %d failed attempts", self._failed_attempts)
            self.notifier.notify("Account locked due to multiple failed attempts", "error")
        else:
            self.notifier.notify(f"{message}. {remaining} attempts remaining.", "error")
        return LoginError(message, max(remaining, 0))

    # -- login / logout ------------------------------------------------------------

    async def login(self, principal_id: str) -> Session:
        remaining_lock = self.lock_remaining()
        if remaining_lock > 0:
            self.state = SessionState.LOCKED
            raise LockoutError(
                "Account temporarily locked due to multiple failed attempts. Please try again later.",
                retry_after=remaining_lock,
            )
        if self.cache.contains(EntityType.ACCOUNT, LOCK_KEY):
            # lockout elapsed: start counting afresh
            self._failed_attempts = 0
            await self._discard(EntityType.ACCOUNT, LOCK_KEY)
            if self.state is SessionState.LOCKED:
                self.state = SessionState.ANONYMOUS

        if not validate_employee_code(principal_id):
            raise await self._record_failure("Invalid employee code format")
        emp_code = principal_id.strip()

        try:
            result = await self.facade.authenticate(emp_code)
        except (AuthError, NetworkError) as e:
            raise await self._record_failure(str(e) or "Authentication failed") from e
        return await self._start_session(result)

    async def _start_session(self, result: AuthResult) -> Session:
        now = self._clock()
        user = result.user
        self._failed_attempts = 0
        await self._discard(EntityType.ACCOUNT, LOCK_KEY)

        self.session = Session(
            principal_id=user.emp_code,
            role=user.role,
            issued_at=now,
            last_activity=now,
            offline=result.offline,
            token=result.token,
            user=user,
        )
        self.state = SessionState.AUTHENTICATED
        self.facade.gateway.auth_token = result.token
        await self._store(EntityType.SESSION, CURRENT, self.session)
        self._start_timer(self.session_timeout)
        await self.log_activity("login", {"emp_code": user.emp_code, "offline": result.offline})

        logger.info("Login successful: %s%s", user.emp_code, " (offline)" if result.offline else "")
        if result.offline:
            self.notifier.notify("Logged in offline mode", "warning")
        else:
            self.notifier.notify("Login successful", "success")
        return self.session

    async def restore(self) -> bool:
        """Resume a persisted session if its inactivity window has not elapsed."""
        stored = self.cache.read(EntityType.SESSION, CURRENT)
        if stored is MISSING:
            return False
        session = Session.model_validate(stored)
        idle = self._clock() - session.last_activity
        if idle >= self.session_timeout:
            await self._clear_session()
            return False
        self.session = session
        self.state = SessionState.AUTHENTICATED
        self.facade.gateway.auth_token = session.token
        self._start_timer(self.session_timeout - idle)
        return True

    async def logout(self) -> None:
        await self._end_session(SessionState.LOGGED_OUT)
        self.notifier.notify("Logged out successfully", "info")

    async def force_logout(self, reason: str) -> None:
        """Timeout or a backend rejection of the session token."""
        if self.session is None:
            return
        self.notifier.notify(reason, "warning")
        await self._end_session(SessionState.EXPIRED)

    async def _end_session(self, state: SessionState) -> None:
        emp_code = self.session.principal_id if self.session else "unknown"
        await self.log_activity("logout", {"emp_code": emp_code, "reason": state.value})
        self._cancel_timer()
        await self._clear_session()
        self.state = state
        logger.info("Session ended for %s (%s)", emp_code, state.value)

    async def _clear_session(self) -> None:
        self.session = None
        self.facade.gateway.auth_token = None
        await self._discard(EntityType.SESSION, CURRENT)

    async def _on_backend_auth_failure(self, error: AuthError) -> None:
        await self.force_logout("Session rejected by server. Please login again.")

    # -- inactivity ------------------------------------------------------------------

    def is_session_valid(self) -> bool:
        if self.session is None:
            return False
        return self._clock() - self.session.last_activity < self.session_timeout

    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED and self.is_session_valid()

    async def record_activity(self) -> None:
        """User activity: slide the inactivity window. Local only."""
        if not self.is_authenticated():
            return
        self.session.last_activity = self._clock()
        await self._store(EntityType.SESSION, CURRENT, self.session)
        self._start_timer(self.session_timeout)

    def pause(self) -> None:
        self._cancel_timer()

    def resume(self) -> None:
        if self.session is None or self.state is not SessionState.AUTHENTICATED:
            return
        idle = self._clock() - self.session.last_activity
        self._start_timer(max(self.session_timeout - idle, 0.0))

    def _start_timer(self, delay: float) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._on_timeout)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timeout(self) -> None:
        self._timer = None
        loop = asyncio.get_running_loop()
        self._expiry_task = loop.create_task(self.force_logout("Session expired. Please login again."))

    # -- roles & permissions ---------------------------------------------------------

    def current_role(self) -> str:
        if self.session is None:
            return "individual_user"
        return self.session.role or "individual_user"

    def has_permission(self, permission: str) -> bool:
        if self.session is None:
            return False
        role = ROLES.get(self.current_role())
        if role is None:
            return False
        return "*" in role["permissions"] or permission in role["permissions"]

    def can_access(self, resource: str, emp_code: Optional[str] = None) -> bool:
        if not self.is_authenticated():
            return False
        if resource == "own_data":
            return emp_code == self.session.principal_id or self.has_permission("view_all")
        if resource in ("system_config", "user_roles"):
            return self.has_permission("*")
        if resource == "all_reports":
            return self.has_permission("view_all") or self.has_permission("view_reports")
        if resource == "department_data":
            return self.has_permission("manage_department") or self.has_permission("view_all")
        if resource == "division_data":
            return self.has_permission("manage_division") or self.has_permission("view_all")
        return False

    def can_edit(self, window, emp_code: str) -> bool:
        """Record is reachable for this user and the phase window is open for editing."""
        if self.resolver is None or not self.can_access("own_data", emp_code):
            return False
        return self.resolver.is_editable(window)

    # -- activity log -----------------------------------------------------------------

    async def log_activity(self, action: str, details: Optional[Dict[str, Any]] = None) -> None:
        entry = ActivityEntry(
            timestamp=self._clock(),
            action=action,
            emp_code=self.session.principal_id if self.session else "unknown",
            details=details or {},
        )
        logs = self.cache.get(EntityType.ACTIVITY_LOG, LOG_KEY, default=[])
        logs.append(entry.model_dump(mode="json"))
        if len(logs) > self.activity_log_limit:
            logs = logs[len(logs) - self.activity_log_limit:]
        await self._store(EntityType.ACTIVITY_LOG, LOG_KEY, logs)

    def activity_logs(self) -> List[ActivityEntry]:
        return [ActivityEntry.model_validate(e) for e in self.cache.get(EntityType.ACTIVITY_LOG, LOG_KEY, default=[])]
