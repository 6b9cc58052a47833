"""
Worker de synchronisation des intégrations.

Cycle : polling des intégrations échues → dispatch borné par un sémaphore
(CONCURRENCY_LIMIT créneaux, pause RATE_LIMIT_DELAY avant de libérer un
créneau) → attente du lot → pause POLL_INTERVAL. Sur signal d'arrêt, plus
aucun dispatch ; les syncs en vol ont un délai de grâce puis sont annulées.

Lancement autonome : python -m app.workers.sync_worker
"""

import asyncio
import enum
import logging
import signal
import time
from typing import Any, Callable, Dict, List, Optional

from app.services.scheduler import SyncScheduler
from app.services.sync_service import SyncService

logger = logging.getLogger(__name__)


class WorkerState(str, enum.Enum):
    IDLE = "idle"
    POLLING = "polling"
    DISPATCHING = "dispatching"
    DRAINING = "draining"
    STOPPED = "stopped"


class SyncWorker:
    def __init__(self, sync_service: SyncService, scheduler: SyncScheduler,
                 poll_interval: float = 30.0, concurrency_limit: int = 3,
                 rate_limit_delay: float = 1.0, batch_size: int = 10,
                 shutdown_grace_period: float = 30.0,
                 clock: Callable[[], float] = time.monotonic, drain_tick: float = 1.0):
        self.sync_service = sync_service
        self.scheduler = scheduler
        self.poll_interval = poll_interval
        self.concurrency_limit = concurrency_limit
        self.rate_limit_delay = rate_limit_delay
        self.batch_size = batch_size
        self.shutdown_grace_period = shutdown_grace_period
        self.clock = clock
        self.drain_tick = drain_tick

        self.state = WorkerState.IDLE
        self.running = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._semaphore = asyncio.Semaphore(concurrency_limit)
        self._in_flight: Dict[int, asyncio.Task] = {}

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._in_flight.values() if not task.done())

    def start(self) -> asyncio.Task:
        """Lance la boucle en tâche de fond (mode embarqué dans l'API)"""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    def stop(self):
        """Demande l'arrêt : plus de nouveau lot ni de nouveau dispatch"""
        if not self._stop_event.is_set():
            logger.info("🛑 Signal d'arrêt reçu par le worker de synchronisation")
            self._stop_event.set()

    def is_healthy(self) -> bool:
        return self.running and self._task is not None and not self._task.done()

    def get_status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "running": self.running,
            "healthy": self.is_healthy(),
            "active_syncs": self.active_count,
            "in_flight": sorted(self._in_flight.keys()),
            "concurrency_limit": self.concurrency_limit,
            "poll_interval_seconds": self.poll_interval,
        }

    async def run(self):
        """Boucle principale, jusqu'au signal d'arrêt puis drainage"""
        if self.running:
            return

        self.running = True
        logger.info(
            f"🔄 Worker de synchronisation démarré (poll {self.poll_interval}s, "
            f"concurrence {self.concurrency_limit}, lot {self.batch_size})"
        )

        try:
            while not self._stop_event.is_set():
                try:
                    await self.run_once()
                except Exception as e:
                    logger.error(f"❌ Erreur dans la boucle de synchronisation: {e}")

                if self._stop_event.is_set():
                    break

                self.state = WorkerState.IDLE
                await self._sleep(self.poll_interval)

            await self._drain()
        finally:
            self.state = WorkerState.STOPPED
            self.running = False
            logger.info("⏹️ Worker de synchronisation arrêté")

    async def run_once(self) -> int:
        """Un cycle polling + dispatch ; retourne le nombre de syncs lancées"""
        self.state = WorkerState.POLLING
        integrations = self.scheduler.get_integrations_due_for_sync(self.batch_size)

        if not integrations:
            logger.debug("Aucune intégration à synchroniser")
            return 0

        logger.info(f"📋 {len(integrations)} intégration(s) à synchroniser")
        self.state = WorkerState.DISPATCHING

        batch: List[asyncio.Task] = []
        for integration in integrations:
            integration_id = integration.id

            if integration_id in self._in_flight:
                logger.debug(f"Intégration {integration_id} déjà en cours, ignorée")
                continue

            # Sync manuelle en cours : on la laisse finir, elle replanifie l'intégration
            if self.sync_service.is_syncing(integration_id):
                logger.debug(f"Intégration {integration_id} en cours de sync manuelle, ignorée")
                continue

            if not await self._acquire_slot():
                logger.info("Arrêt demandé, le reste du lot n'est pas lancé")
                break

            task = asyncio.create_task(self._run_sync(integration_id))
            self._in_flight[integration_id] = task
            task.add_done_callback(lambda _, iid=integration_id: self._in_flight.pop(iid, None))
            batch.append(task)

        if batch:
            await self._wait_batch(batch)

        return len(batch)

    async def _acquire_slot(self) -> bool:
        """Prend un créneau ; False si l'arrêt est demandé pendant l'attente"""
        if self._stop_event.is_set():
            return False

        acquire = asyncio.ensure_future(self._semaphore.acquire())
        stop = asyncio.ensure_future(self._stop_event.wait())
        await asyncio.wait({acquire, stop}, return_when=asyncio.FIRST_COMPLETED)
        stop.cancel()

        if not acquire.done():
            acquire.cancel()
            try:
                await acquire
            except asyncio.CancelledError:
                return False

        # Créneau obtenu mais arrêt demandé entre-temps : on le rend
        if self._stop_event.is_set():
            self._semaphore.release()
            return False
        return True

    async def _run_sync(self, integration_id: int):
        try:
            await self._execute(integration_id)
            await self._sleep(self.rate_limit_delay)
        finally:
            self._semaphore.release()

    async def _execute(self, integration_id: int):
        try:
            result = await self.sync_service.execute_sync_with_logging(integration_id)
        except Exception as e:
            logger.error(f"❌ Erreur inattendue pendant la sync de l'intégration {integration_id}: {e}")
            return

        if result.success:
            logger.info(
                f"✅ Intégration {integration_id} synchronisée: "
                f"{result.records_count} valeur(s) en {result.duration_ms} ms"
            )
        else:
            logger.warning(f"⚠️ Sync de l'intégration {integration_id} échouée: {result.error}")

    async def _wait_batch(self, batch: List[asyncio.Task]):
        """Attend la fin du lot, ou le signal d'arrêt (le drainage prend le relais)"""
        batch_done = asyncio.ensure_future(asyncio.wait(batch))
        stop = asyncio.ensure_future(self._stop_event.wait())
        await asyncio.wait({batch_done, stop}, return_when=asyncio.FIRST_COMPLETED)
        for waiter in (batch_done, stop):
            if not waiter.done():
                waiter.cancel()

    async def _sleep(self, seconds: float) -> bool:
        """Pause interrompue par le signal d'arrêt ; True si l'arrêt est demandé"""
        if seconds <= 0:
            return self._stop_event.is_set()
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def _drain(self):
        self.state = WorkerState.DRAINING
        pending = {task for task in self._in_flight.values() if not task.done()}

        if not pending:
            return

        logger.info(
            f"⏳ Attente de {len(pending)} sync(s) en cours (délai de grâce {self.shutdown_grace_period}s)"
        )
        deadline = self.clock() + self.shutdown_grace_period

        while pending:
            remaining = deadline - self.clock()
            if remaining <= 0:
                break
            _, pending = await asyncio.wait(pending, timeout=min(self.drain_tick, remaining))
            if pending:
                logger.info(f"⏳ {len(pending)} sync(s) encore en cours...")

        if pending:
            logger.warning(f"⚠️ Délai de grâce dépassé, annulation de {len(pending)} sync(s)")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        else:
            logger.info("✅ Toutes les syncs en cours sont terminées")


async def main():
    from app.config import settings
    from app.core.database import get_db_manager
    from app.core.logging import setup_logging
    from app.dependencies import get_sync_worker

    setup_logging(settings.LOG_LEVEL, log_file=settings.LOG_FILE)

    db_manager = get_db_manager()
    try:
        db_manager.check_connection()
    except Exception as e:
        logger.error(f"❌ Base de données injoignable: {e}")
        raise SystemExit(1)

    worker = get_sync_worker()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, worker.stop)

    try:
        await worker.run()
    finally:
        db_manager.dispose()


if __name__ == "__main__":
    asyncio.run(main())
