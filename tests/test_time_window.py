import unittest
from datetime import date

from fake_backend import build_services, make_settings
from pms_client.core.entities import EntityType
from pms_client.core.store import MemoryStore
from pms_client.schemas.timewindow import TimeWindowConfig, WindowConfig, WindowName, WindowState
from pms_client.services.cache import LocalCache
from pms_client.services.time_window import CONFIG_KEY, TimeWindowResolver


def on(month: int):
    return lambda: date(2026, month, 15)


class TestTimeWindowResolver(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.cache = LocalCache(MemoryStore())
        self.settings = make_settings()

    def resolver(self, month: int = 6) -> TimeWindowResolver:
        return TimeWindowResolver(self.cache, self.settings, today=on(month))

    async def test_admin_config_decides_state(self) -> None:
        await self.cache.write(
            EntityType.TIME_WINDOW,
            CONFIG_KEY,
            {
                "kraKpiWindow": {"active": True, "readOnly": False},
                "midYearWindow": {"active": True, "readOnly": True},
                "yearEndWindow": {"active": False, "readOnly": False},
            },
        )
        resolver = self.resolver()

        self.assertIs(resolver.status(WindowName.GOAL_SETTING), WindowState.ACTIVE_EDITABLE)
        self.assertIs(resolver.status("mid_year"), WindowState.ACTIVE_READ_ONLY)
        self.assertIs(resolver.status(WindowName.YEAR_END), WindowState.INACTIVE)
        # configured, but this window is absent from it
        self.assertIs(resolver.status(WindowName.COMPETENCY), WindowState.INACTIVE)
        self.assertEqual(resolver.active_windows(), [WindowName.GOAL_SETTING, WindowName.MID_YEAR])
        self.assertTrue(resolver.is_editable(WindowName.GOAL_SETTING))
        self.assertFalse(resolver.is_editable(WindowName.MID_YEAR))

    async def test_calendar_fallback_without_config(self) -> None:
        self.assertIs(self.resolver(8).status(WindowName.GOAL_SETTING), WindowState.ACTIVE_EDITABLE)
        self.assertIs(self.resolver(10).status(WindowName.GOAL_SETTING), WindowState.INACTIVE)
        self.assertIs(self.resolver(2).status(WindowName.YEAR_END), WindowState.ACTIVE_EDITABLE)

    async def test_calendar_range_wraps_year_end(self) -> None:
        for month, expected in ((12, WindowState.ACTIVE_EDITABLE), (1, WindowState.ACTIVE_EDITABLE), (6, WindowState.INACTIVE)):
            with self.subTest(month=month):
                self.assertIs(self.resolver(month).status(WindowName.COMPETENCY), expected)

    async def test_status_follows_cache_changes(self) -> None:
        resolver = self.resolver(6)
        self.assertIs(resolver.status(WindowName.MID_YEAR), WindowState.INACTIVE)

        config = TimeWindowConfig(mid_year=WindowConfig(active=True, read_only=False))
        await self.cache.write(EntityType.TIME_WINDOW, CONFIG_KEY, config)
        self.assertIs(resolver.status(WindowName.MID_YEAR), WindowState.ACTIVE_EDITABLE)

        config.mid_year.read_only = True
        await self.cache.write(EntityType.TIME_WINDOW, CONFIG_KEY, config)
        self.assertIs(resolver.status(WindowName.MID_YEAR), WindowState.ACTIVE_READ_ONLY)

    async def test_repeated_calls_agree(self) -> None:
        resolver = self.resolver(11)
        self.assertEqual(resolver.statuses(), resolver.statuses())

    async def test_unreadable_config_is_inactive(self) -> None:
        await self.cache.write(EntityType.TIME_WINDOW, CONFIG_KEY, {"kraKpiWindow": {"active": "sometimes"}})
        resolver = self.resolver(8)
        self.assertIs(resolver.status(WindowName.GOAL_SETTING), WindowState.INACTIVE)

    async def test_achievement_window_prefers_mid_year(self) -> None:
        await self.cache.write(
            EntityType.TIME_WINDOW,
            CONFIG_KEY,
            {"midYearWindow": {"active": True, "readOnly": True}, "yearEndWindow": {"active": True}},
        )
        self.assertIs(self.resolver().achievement_window(), WindowName.MID_YEAR)

        await self.cache.write(EntityType.TIME_WINDOW, CONFIG_KEY, {"yearEndWindow": {"active": True}})
        self.assertIs(self.resolver().achievement_window(), WindowName.YEAR_END)

        await self.cache.write(EntityType.TIME_WINDOW, CONFIG_KEY, {})
        self.assertIsNone(self.resolver().achievement_window())

    async def test_refresh_requires_facade(self) -> None:
        with self.assertRaises(RuntimeError):
            await self.resolver().refresh()


class TestTimeWindowRefresh(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.services, self.state, self.transport = await build_services()

    async def asyncTearDown(self) -> None:
        await self.services.aclose()

    async def test_refresh_caches_backend_config(self) -> None:
        config = await self.services.time_windows.refresh()
        self.assertTrue(config.goal_setting.active)
        self.assertIs(self.services.time_windows.status(WindowName.MID_YEAR), WindowState.ACTIVE_READ_ONLY)

        # offline afterwards: the cached config keeps answering
        self.transport.online = False
        self.assertIs(self.services.time_windows.status(WindowName.GOAL_SETTING), WindowState.ACTIVE_EDITABLE)
        self.assertIs(self.services.time_windows.status(WindowName.YEAR_END), WindowState.INACTIVE)

    async def test_admin_save_changes_resolution(self) -> None:
        await self.services.time_windows.refresh()
        config = self.services.time_windows.current_config()
        config.year_end = WindowConfig(active=True, read_only=False)

        result = await self.services.facade.save_time_windows(config)

        self.assertFalse(result.queued)
        self.assertTrue(self.state.time_windows["yearEndWindow"]["active"])
        self.assertIs(self.services.time_windows.status(WindowName.YEAR_END), WindowState.ACTIVE_EDITABLE)


if __name__ == "__main__":
    unittest.main()
