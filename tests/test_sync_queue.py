import asyncio
import unittest

from fake_backend import BackendState, SwitchableTransport, create_app, make_settings, no_sleep
from pms_client.core.entities import EntityType
from pms_client.core.errors import AuthError
from pms_client.core.store import MemoryStore
from pms_client.services.cache import LocalCache
from pms_client.services.gateway import RequestGateway
from pms_client.services.sync_queue import QUEUE_KEY, SyncQueue


class TestSyncQueue(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.state = BackendState()
        self.transport = SwitchableTransport(create_app(self.state))
        # the queue owns retry accounting here, so the gateway tries once per send
        self.gateway = RequestGateway(make_settings(MAX_RETRIES=0), transport=self.transport, sleep=no_sleep)
        self.store = MemoryStore()
        self.cache = LocalCache(self.store)
        self.queue = SyncQueue(self.cache, self.gateway, max_retries=3, clock=lambda: 1000.0)

    async def asyncTearDown(self) -> None:
        await self.gateway.aclose()

    async def _enqueue_goals(self, title: str) -> int:
        return await self.queue.enqueue(
            "/goals/E100", "post", {"goals": [{"title": title}]}, entity=EntityType.GOALS, key="E100"
        )

    async def test_enqueue_persists_and_tracks_entry(self) -> None:
        task_id = await self._enqueue_goals("A")
        self.assertEqual(task_id, 1)
        self.assertEqual(len(self.queue), 1)
        self.assertTrue(self.queue.has_pending(EntityType.GOALS, "E100"))
        self.assertFalse(self.queue.has_pending(EntityType.GOALS, "E200"))

        stored = self.cache.read(EntityType.SYNC_QUEUE, QUEUE_KEY)
        self.assertEqual(stored[0]["method"], "POST")
        self.assertEqual(stored[0]["entity"], "goals")
        self.assertEqual(stored[0]["enqueued_at"], 1000.0)

    async def test_drain_replays_in_enqueue_order(self) -> None:
        for title in ("first", "second", "third"):
            await self._enqueue_goals(title)

        report = await self.queue.drain()

        self.assertEqual(report.succeeded, [1, 2, 3])
        self.assertEqual(len(self.queue), 0)
        titles = [p["goals"][0]["title"] for p in self.state.goal_history]
        self.assertEqual(titles, ["first", "second", "third"])
        self.assertEqual(self.state.goals["E100"]["goals"][0]["title"], "third")
        self.assertEqual(self.cache.read(EntityType.SYNC_QUEUE, QUEUE_KEY), [])

    async def test_transient_failure_holds_back_same_record(self) -> None:
        await self._enqueue_goals("first")
        await self._enqueue_goals("second")
        self.transport.online = False

        report = await self.queue.drain()

        self.assertEqual(report.succeeded, [])
        self.assertEqual(report.blocked, [1])
        tasks = self.queue.pending()
        self.assertEqual([t.retry_count for t in tasks], [1, 0])
        self.assertEqual(self.cache.read(EntityType.SYNC_QUEUE, QUEUE_KEY)[0]["retry_count"], 1)

    async def test_task_dropped_when_retry_budget_spent(self) -> None:
        await self._enqueue_goals("doomed")
        self.transport.online = False

        await self.queue.drain()
        await self.queue.drain()
        self.assertEqual(len(self.queue), 1)
        report = await self.queue.drain()

        self.assertEqual(report.dropped, [1])
        self.assertEqual(len(self.queue), 0)

    async def test_drop_does_not_stop_later_tasks(self) -> None:
        await self._enqueue_goals("doomed")
        self.transport.online = False
        await self.queue.drain()
        await self.queue.drain()
        self.transport.online = True
        self.state.fail_status = 500
        await self._enqueue_goals("next")

        report = await self.queue.drain()
        self.assertEqual(report.dropped, [1])
        self.assertEqual(report.blocked, [2])

        self.state.fail_status = None
        report = await self.queue.drain()
        self.assertEqual(report.succeeded, [2])

    async def test_failing_record_does_not_hold_back_other_records(self) -> None:
        # /missing/E100 answers 404 on every attempt
        await self.queue.enqueue("/missing/E100", "POST", {}, entity=EntityType.GOALS, key="E100")
        await self.queue.enqueue(
            "/goals/E200", "POST", {"goals": [{"title": "other"}]}, entity=EntityType.GOALS, key="E200"
        )
        await self._enqueue_goals("after the failure")

        report = await self.queue.drain()

        self.assertEqual(report.blocked, [1])
        self.assertEqual(report.succeeded, [2])
        self.assertEqual([p["goals"][0]["title"] for p in self.state.goal_history], ["other"])
        self.assertEqual([(t.id, t.retry_count) for t in self.queue.pending()], [(1, 1), (3, 0)])

    async def test_tasks_without_record_are_held_by_endpoint(self) -> None:
        await self.queue.enqueue("/missing/settings", "POST", {"a": 1})
        await self.queue.enqueue("/missing/settings", "POST", {"a": 2})
        await self.queue.enqueue("/system/settings", "POST", {"cycle": "2026"})

        report = await self.queue.drain()

        self.assertEqual(report.blocked, [1])
        self.assertEqual(report.succeeded, [3])
        self.assertEqual(self.state.settings, {"cycle": "2026"})
        self.assertEqual([t.id for t in self.queue.pending()], [1, 2])

    async def test_clear_during_send_keeps_later_writes(self) -> None:
        await self._enqueue_goals("in flight")
        self.transport.gate = asyncio.Event()

        running = asyncio.create_task(self.queue.drain())
        while self.transport.calls == 0:
            await asyncio.sleep(0)
        await self.queue.clear()
        new_id = await self.queue.enqueue(
            "/goals/E200", "POST", {"goals": [{"title": "new"}]}, entity=EntityType.GOALS, key="E200"
        )
        self.transport.gate.set()
        report = await running

        self.assertEqual(report.succeeded, [1, new_id])
        self.assertEqual(self.state.goals["E200"]["goals"][0]["title"], "new")
        self.assertEqual(len(self.queue), 0)

    async def test_concurrent_drain_is_skipped(self) -> None:
        await self._enqueue_goals("only")
        self.transport.gate = asyncio.Event()

        first = asyncio.create_task(self.queue.drain())
        while self.transport.calls == 0:
            await asyncio.sleep(0)
        self.assertTrue(self.queue.draining)

        second = await self.queue.drain()
        self.transport.gate.set()
        first_report = await first

        self.assertTrue(second.skipped)
        self.assertEqual(first_report.succeeded, [1])
        self.assertEqual(len(self.state.goal_history), 1)
        self.assertFalse(self.queue.draining)

    async def test_reload_restores_tasks_and_ids(self) -> None:
        await self._enqueue_goals("A")
        await self._enqueue_goals("B")

        cache = LocalCache(self.store)
        await cache.load()
        restored = SyncQueue(cache, self.gateway, max_retries=3)
        self.assertEqual(await restored.load(), 2)
        self.assertEqual(await restored.enqueue("/goals/E200", "POST", {}), 3)
        self.assertEqual([t.id for t in restored.pending()], [1, 2, 3])

    async def test_rejected_session_keeps_tasks(self) -> None:
        await self._enqueue_goals("A")
        self.state.fail_status = 401

        with self.assertRaises(AuthError):
            await self.queue.drain()
        self.assertEqual(len(self.queue), 1)
        self.assertEqual(self.queue.pending()[0].retry_count, 0)
        self.assertFalse(self.queue.draining)

    async def test_clear(self) -> None:
        await self._enqueue_goals("A")
        await self.queue.clear()
        self.assertEqual(len(self.queue), 0)
        self.assertEqual(self.cache.read(EntityType.SYNC_QUEUE, QUEUE_KEY), [])


if __name__ == "__main__":
    unittest.main()
