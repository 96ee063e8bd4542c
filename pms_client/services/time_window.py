import logging
from datetime import date
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError as SchemaError

from pms_client.config import Settings
from pms_client.core.entities import EntityType
from pms_client.schemas.timewindow import TimeWindowConfig, WindowName, WindowState
from pms_client.services.cache import MISSING, LocalCache
from pms_client.utils.months import month_in_range

logger = logging.getLogger(__name__)

CONFIG_KEY = "current"


class TimeWindowResolver:
    """
    Editability of each review phase.

    `status()` holds no state of its own: every call re-reads the cached
    admin config, and only when none has ever been cached does it fall
    back to the configured calendar month ranges.
    """

    def __init__(
        self,
        cache: LocalCache,
        settings: Settings,
        facade=None,
        today: Callable[[], date] = date.today,
    ):
        self.cache = cache
        self.facade = facade
        self._ranges = settings.window_ranges
        self._today = today

    async def refresh(self) -> Optional[TimeWindowConfig]:
        """Fetch the admin config through the facade (which caches it)."""
        if self.facade is None:
            raise RuntimeError("TimeWindowResolver.refresh() needs a PersistenceFacade")
        result = await self.facade.get_time_window()
        return result.value

    def current_config(self) -> Optional[TimeWindowConfig]:
        raw = self.cache.read(EntityType.TIME_WINDOW, CONFIG_KEY)
        if raw is MISSING or raw is None:
            return None
        return TimeWindowConfig.model_validate(raw)

    def status(self, window) -> WindowState:
        window = WindowName(window)
        try:
            config = self.current_config()
        except SchemaError as e:
            logger.warning("Cached time-window config unreadable, treating %s as inactive: %s", window.value, e)
            return WindowState.INACTIVE
        if config is None:
            return self._calendar_status(window)
        window_config = config.window(window)
        if window_config is None:
            return WindowState.INACTIVE
        return window_config.state

    def _calendar_status(self, window: WindowName) -> WindowState:
        bounds = self._ranges.get(window.value)
        if bounds is None:
            return WindowState.INACTIVE
        start, end = bounds
        if month_in_range(self._today().month, start, end):
            return WindowState.ACTIVE_EDITABLE
        return WindowState.INACTIVE

    def statuses(self) -> Dict[WindowName, WindowState]:
        return {name: self.status(name) for name in WindowName}

    def active_windows(self) -> List[WindowName]:
        return [name for name, state in self.statuses().items() if state is not WindowState.INACTIVE]

    def is_editable(self, window) -> bool:
        return self.status(window) is WindowState.ACTIVE_EDITABLE

    def achievement_window(self) -> Optional[WindowName]:
        # The achievement screen follows mid-year first, then year-end
        for name in (WindowName.MID_YEAR, WindowName.YEAR_END):
            if self.status(name) is not WindowState.INACTIVE:
                return name
        return None
