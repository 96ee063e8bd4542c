from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EntityType(str, Enum):
    EMPLOYEE = "employee"
    GOALS = "goals"
    COMPETENCIES = "competencies"
    COMPETENCY_MASTER = "competencyMaster"
    TIME_WINDOW = "timeWindow"
    SYSTEM_SETTINGS = "systemSettings"
    PERFORMANCE_SUMMARY = "performanceSummary"

    # local-only namespaces
    SYNC_QUEUE = "syncQueue"
    SESSION = "session"
    ACTIVITY_LOG = "activityLog"
    ACCOUNT = "account"


def namespace(entity_type) -> str:
    if isinstance(entity_type, Enum):
        return str(entity_type.value)
    return str(entity_type)


@dataclass(frozen=True)
class Route:
    read_path: Optional[str] = None
    write_path: Optional[str] = None
    write_method: str = "POST"
    merge: bool = False                # partial updates are merged into the cached value
    payload_key: Optional[str] = None  # wrap the written value as {payload_key: value}

    def read_endpoint(self, key: str) -> Optional[str]:
        return self.read_path.format(key=key) if self.read_path else None

    def write_endpoint(self, key: str) -> Optional[str]:
        return self.write_path.format(key=key) if self.write_path else None


ROUTES = {
    EntityType.EMPLOYEE: Route("/employee/{key}", "/employee/{key}", "PUT", merge=True),
    EntityType.GOALS: Route("/goals/{key}", "/goals/{key}"),
    EntityType.COMPETENCIES: Route("/competencies/{key}", "/competencies/{key}"),
    EntityType.COMPETENCY_MASTER: Route("/competencies/master"),
    EntityType.TIME_WINDOW: Route("/system/timewindow", "/system/settings", payload_key="timeWindows"),
    EntityType.SYSTEM_SETTINGS: Route(None, "/system/settings", merge=True),
    EntityType.PERFORMANCE_SUMMARY: Route("/performance/summary/{key}"),
}

AUTH_ENDPOINT = "/auth"
