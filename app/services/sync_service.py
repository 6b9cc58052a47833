"""
Moteur de synchronisation : fetch → normalisation → persistance, pour une intégration.

`execute_sync_with_logging` est le seul point d'entrée utilisé par le worker et
par la synchronisation manuelle : il ouvre et ferme le SyncLog et applique la
politique de reprise dans tous les cas.
"""

import asyncio
import contextlib
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Protocol, Tuple

from sqlalchemy.orm import Session

from app.core.adapter_registry import AdapterRegistry
from app.external.base_adapter import IntegrationConfig, describe_error
from app.models.integration import IntegrationType
from app.models.sync_log import SyncLog
from app.repositories.data_value_repository import DataValueRepository
from app.repositories.integration_repository import IntegrationRepository
from app.repositories.sync_repository import SyncRepository
from app.services.scheduler import SyncScheduler
from app.services.sync_result import SyncResult

logger = logging.getLogger(__name__)

ARRAY_MARKER = "[]"


class CredentialStore(Protocol):
    def decrypt_json(self, encrypted_data: str) -> Any:
        ...


def _walk_path(current: Any, segments: List[str]) -> List[Any]:
    if current is None:
        return []
    if not segments:
        return [current]

    # Un tableau rencontré en cours de chemin : on parcourt chaque élément
    if isinstance(current, list):
        values: List[Any] = []
        for item in current:
            values.extend(_walk_path(item, segments))
        return values

    if not isinstance(current, dict):
        return []

    segment, rest = segments[0], segments[1:]
    key = segment[:-len(ARRAY_MARKER)] if segment.endswith(ARRAY_MARKER) else segment
    if key not in current:
        return []
    return _walk_path(current[key], rest)


def extract_path_values(row: Any, path: str) -> List[Any]:
    """Valeurs non nulles d'une ligne pour un chemin pointé (clé aplatie exacte d'abord)"""
    if isinstance(row, dict) and path in row:
        value = row[path]
        return [] if value is None else [value]
    return _walk_path(row, path.split("."))


def collect_field_values(rows: List[Any], path: str) -> List[Any]:
    values: List[Any] = []
    for row in rows:
        values.extend(extract_path_values(row, path))
    return values


class SyncService:
    def __init__(self, session_factory: Callable[[], Session], adapter_registry: AdapterRegistry,
                 credential_store: CredentialStore, scheduler: SyncScheduler,
                 clock: Callable[[], datetime] = datetime.utcnow):
        self.session_factory = session_factory
        self.adapter_registry = adapter_registry
        self.credential_store = credential_store
        self.scheduler = scheduler
        self.clock = clock
        # Une sync à la fois par intégration dans ce processus (manuelle ou planifiée)
        self._locks: Dict[int, asyncio.Lock] = {}
        self._lock_users: Dict[int, int] = {}

    @contextlib.asynccontextmanager
    async def _integration_lock(self, integration_id: int):
        """Verrou de l'intégration, oublié dès que plus personne ne l'attend"""
        lock = self._locks.setdefault(integration_id, asyncio.Lock())
        self._lock_users[integration_id] = self._lock_users.get(integration_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[integration_id] -= 1
            if self._lock_users[integration_id] == 0:
                del self._lock_users[integration_id]
                del self._locks[integration_id]

    def is_syncing(self, integration_id: int) -> bool:
        lock = self._locks.get(integration_id)
        return lock is not None and lock.locked()

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)

    async def sync_integration(self, integration_id: int) -> SyncResult:
        """Exécute le cycle fetch → extraction → persistance ; ne lève jamais"""
        start = time.perf_counter()

        try:
            with self.session_factory() as db:
                integration = IntegrationRepository(db).get_with_fields(integration_id)

                if integration is None:
                    return SyncResult.failure("Integration not found", self._elapsed_ms(start))

                # Les intégrations manuelles n'ont rien à récupérer
                if integration.type == IntegrationType.MANUAL:
                    return SyncResult(success=True, records_count=0, duration_ms=self._elapsed_ms(start))

                integration_type = integration.type
                encrypted_config = integration.config
                fields: List[Tuple[int, str]] = [(field.id, field.path) for field in integration.data_fields]

            adapter = self.adapter_registry.get(integration_type)
            config = IntegrationConfig.model_validate(self.credential_store.decrypt_json(encrypted_config))

            result = await adapter.fetch_data(config, [path for _, path in fields])

            if not result.success:
                return SyncResult.failure(result.error or "Fetch failed", self._elapsed_ms(start))

            records_count = 0

            if result.data:
                synced_at = self.clock()
                values_to_create = []

                for field_id, path in fields:
                    values = collect_field_values(result.data, path)
                    if values:
                        # Une seule valeur : scalaire ; plusieurs : la liste complète
                        values_to_create.append({
                            "data_field_id": field_id,
                            "value": values[0] if len(values) == 1 else values,
                            "synced_at": synced_at,
                        })

                if values_to_create:
                    with self.session_factory() as db:
                        records_count = DataValueRepository(db).bulk_insert(values_to_create)

            return SyncResult(success=True, records_count=records_count, duration_ms=self._elapsed_ms(start))

        except Exception as e:
            error_message = describe_error(e)
            logger.error(f"❌ Sync échouée pour l'intégration {integration_id}: {error_message}")
            return SyncResult.failure(error_message, self._elapsed_ms(start))

    async def execute_sync_with_logging(self, integration_id: int) -> SyncResult:
        """Sync complète avec SyncLog et mise à jour de la planification"""
        async with self._integration_lock(integration_id):
            with self.session_factory() as db:
                if not IntegrationRepository(db).exists(integration_id):
                    logger.info(f"Intégration {integration_id} introuvable, sync ignorée")
                    return SyncResult.failure("Integration not found")
                log_id = SyncRepository(db).start_log(integration_id, self.clock()).id

            start = time.perf_counter()

            try:
                result = await self.sync_integration(integration_id)
            except asyncio.CancelledError:
                # Arrêt forcé du worker : le log est clos, l'intégration reste échue
                self._complete_sync_log(
                    log_id, SyncResult.failure("Sync cancelled during shutdown", self._elapsed_ms(start))
                )
                raise
            except Exception as e:
                result = SyncResult.failure(describe_error(e), self._elapsed_ms(start))

            self._complete_sync_log(log_id, result)
            self.scheduler.update_integration_after_sync(integration_id, result)
            return result

    def _complete_sync_log(self, log_id: int, result: SyncResult) -> None:
        with self.session_factory() as db:
            SyncRepository(db).complete_log(
                log_id,
                success=result.success,
                completed_at=self.clock(),
                duration_ms=result.duration_ms,
                records_count=result.records_count,
                error_message=result.error,
            )

    def get_sync_history(self, integration_id: int, page: int = 1,
                         page_size: int = 20) -> Tuple[List[SyncLog], int]:
        """Historique paginé des syncs (page commence à 1)"""
        page = max(page, 1)
        skip = (page - 1) * page_size
        with self.session_factory() as db:
            return SyncRepository(db).get_history(integration_id, skip=skip, limit=page_size)
