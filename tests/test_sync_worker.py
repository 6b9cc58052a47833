import asyncio
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

from app.services.sync_result import SyncResult
from app.workers.sync_worker import SyncWorker, WorkerState


class FakeScheduler:
    """Renvoie une liste d'intégrations échues, une seule fois par défaut"""

    def __init__(self, batches: List[List[int]]):
        self.batches = list(batches)
        self.calls = 0

    def get_integrations_due_for_sync(self, limit: int = 10):
        self.calls += 1
        ids = self.batches.pop(0) if self.batches else []
        return [SimpleNamespace(id=integration_id, name=f"source {integration_id}") for integration_id in ids[:limit]]


class FakeSyncService:
    def __init__(self, delays: Optional[Dict[int, float]] = None, failing: Optional[Dict[int, Exception]] = None):
        self.delays = delays or {}
        self.failing = failing or {}
        self.started: List[int] = []
        self.completed: List[int] = []
        self.cancelled: List[int] = []
        self.active = 0
        self.max_active = 0
        self.manual: List[int] = []

    def is_syncing(self, integration_id: int) -> bool:
        return integration_id in self.manual

    async def execute_sync_with_logging(self, integration_id: int) -> SyncResult:
        self.started.append(integration_id)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(integration_id, 0.01))
            if integration_id in self.failing:
                raise self.failing[integration_id]
            self.completed.append(integration_id)
            return SyncResult(success=True, records_count=1, duration_ms=10)
        except asyncio.CancelledError:
            self.cancelled.append(integration_id)
            raise
        finally:
            self.active -= 1


def make_worker(scheduler, sync_service, **overrides) -> SyncWorker:
    options = dict(poll_interval=0.01, concurrency_limit=3, rate_limit_delay=0,
                   batch_size=10, shutdown_grace_period=1.0, drain_tick=0.01)
    options.update(overrides)
    return SyncWorker(sync_service, scheduler, **options)


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_batch_isolation(self):
        service = FakeSyncService(failing={2: RuntimeError("boom")})
        worker = make_worker(FakeScheduler([[1, 2, 3]]), service)

        dispatched = await worker.run_once()

        assert dispatched == 3
        assert sorted(service.completed) == [1, 3]
        assert worker.active_count == 0

    @pytest.mark.asyncio
    async def test_failed_results_do_not_stop_the_batch(self):
        class FailingService(FakeSyncService):
            async def execute_sync_with_logging(self, integration_id):
                self.started.append(integration_id)
                return SyncResult.failure("API error: 500")

        service = FailingService()
        worker = make_worker(FakeScheduler([[1, 2]]), service)

        assert await worker.run_once() == 2
        assert service.started == [1, 2]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        service = FakeSyncService(delays={integration_id: 0.05 for integration_id in range(1, 8)})
        worker = make_worker(FakeScheduler([list(range(1, 8))]), service, concurrency_limit=2)

        await worker.run_once()

        assert service.max_active == 2
        assert sorted(service.completed) == list(range(1, 8))

    @pytest.mark.asyncio
    async def test_dispatch_follows_due_order(self):
        service = FakeSyncService()
        worker = make_worker(FakeScheduler([[5, 3, 9, 1]]), service, concurrency_limit=1)

        await worker.run_once()

        assert service.started == [5, 3, 9, 1]

    @pytest.mark.asyncio
    async def test_rate_limit_holds_the_slot(self):
        service = FakeSyncService(delays={1: 0, 2: 0})
        worker = make_worker(FakeScheduler([[1, 2]]), service, concurrency_limit=1, rate_limit_delay=0.05)
        loop = asyncio.get_running_loop()

        start = loop.time()
        await worker.run_once()

        assert loop.time() - start >= 0.1

    @pytest.mark.asyncio
    async def test_empty_poll(self):
        worker = make_worker(FakeScheduler([]), FakeSyncService())

        assert await worker.run_once() == 0


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_polls_until_stopped(self):
        scheduler = FakeScheduler([[1], [2], []])
        service = FakeSyncService()
        worker = make_worker(scheduler, service)

        task = asyncio.create_task(worker.run())
        while scheduler.calls < 3:
            await asyncio.sleep(0.01)
        worker.stop()
        await asyncio.wait_for(task, timeout=1)

        assert service.completed == [1, 2]
        assert worker.state == WorkerState.STOPPED
        assert worker.running is False

    @pytest.mark.asyncio
    async def test_stop_interrupts_poll_sleep(self):
        worker = make_worker(FakeScheduler([]), FakeSyncService(), poll_interval=60)

        task = asyncio.create_task(worker.run())
        await asyncio.sleep(0.05)
        worker.stop()

        await asyncio.wait_for(task, timeout=1)
        assert worker.state == WorkerState.STOPPED

    @pytest.mark.asyncio
    async def test_drain_waits_for_in_flight_syncs(self):
        service = FakeSyncService(delays={1: 0.1, 2: 0.1, 3: 0.1, 4: 0.1})
        worker = make_worker(FakeScheduler([[1, 2, 3, 4]]), service, concurrency_limit=2)

        task = asyncio.create_task(worker.run())
        while len(service.started) < 2:
            await asyncio.sleep(0.005)
        worker.stop()
        await asyncio.wait_for(task, timeout=2)

        assert sorted(service.completed) == [1, 2]
        # Aucun dispatch après le signal d'arrêt
        assert service.started == [1, 2]
        assert service.cancelled == []

    @pytest.mark.asyncio
    async def test_grace_period_cancels_remaining_syncs(self, caplog):
        service = FakeSyncService(delays={1: 10})
        worker = make_worker(FakeScheduler([[1]]), service, shutdown_grace_period=0.05)

        task = asyncio.create_task(worker.run())
        while not service.started:
            await asyncio.sleep(0.005)
        worker.stop()
        await asyncio.wait_for(task, timeout=1)

        assert service.cancelled == [1]
        assert worker.active_count == 0
        assert any("Délai de grâce dépassé" in record.message for record in caplog.records)

    @pytest.mark.asyncio
    async def test_in_flight_integration_is_not_dispatched_twice(self):
        service = FakeSyncService(delays={1: 0.2})
        worker = make_worker(FakeScheduler([[1], [1]]), service)

        first = asyncio.create_task(worker.run_once())
        while not service.started:
            await asyncio.sleep(0.005)
        second = await worker.run_once()
        await first

        assert second == 0
        assert service.started == [1]

    @pytest.mark.asyncio
    async def test_integration_under_manual_sync_is_skipped(self):
        service = FakeSyncService()
        service.manual = [2]
        worker = make_worker(FakeScheduler([[1, 2, 3]]), service)

        assert await worker.run_once() == 2
        assert service.started == [1, 3]

    @pytest.mark.asyncio
    async def test_status(self):
        worker = make_worker(FakeScheduler([]), FakeSyncService(), concurrency_limit=4)

        status = worker.get_status()

        assert status["state"] == "idle"
        assert status["active_syncs"] == 0
        assert status["concurrency_limit"] == 4
        assert status["healthy"] is False
