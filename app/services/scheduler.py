"""
Politique de planification et de reprise des synchronisations.

- intervalle NULL : intégration manuelle, jamais planifiée
- échecs 1 à MAX_RETRIES : backoff exponentiel (1, 2, 4 minutes)
- au-delà de MAX_RETRIES échecs consécutifs : synchronisation désactivée
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional
import logging

from sqlalchemy.orm import Session

from app.models.integration import Integration, IntegrationStatus
from app.repositories.integration_repository import IntegrationRepository
from app.services.sync_result import SyncResult

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
BASE_BACKOFF_SECONDS = 60
DEFAULT_DUE_LIMIT = 10


def calculate_next_sync_at(
    sync_interval: Optional[int],
    retry_count: int = 0,
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """Calcule la date de la prochaine synchronisation"""
    if sync_interval is None:
        return None

    now = now or datetime.utcnow()

    if 0 < retry_count <= MAX_RETRIES:
        backoff_seconds = BASE_BACKOFF_SECONDS * 2 ** (retry_count - 1)
        return now + timedelta(seconds=backoff_seconds)

    return now + timedelta(seconds=sync_interval)


class SyncScheduler:
    """Sélection des intégrations échues et mise à jour de leur état après sync"""

    def __init__(self, session_factory: Callable[[], Session],
                 clock: Callable[[], datetime] = datetime.utcnow):
        self.session_factory = session_factory
        self.clock = clock

    def get_integrations_due_for_sync(self, limit: int = DEFAULT_DUE_LIMIT) -> List[Integration]:
        """Intégrations à synchroniser, les plus en retard d'abord"""
        with self.session_factory() as db:
            return IntegrationRepository(db).get_due_for_sync(self.clock(), limit)

    def update_integration_after_sync(self, integration_id: int, result: SyncResult) -> None:
        """Applique la politique de reprise ; sans effet si l'intégration a été supprimée"""
        with self.session_factory() as db:
            repo = IntegrationRepository(db)
            integration = repo.get_by_id(integration_id)

            if integration is None:
                logger.info(f"Intégration {integration_id} introuvable après sync, mise à jour ignorée")
                return

            now = self.clock()

            if result.success:
                repo.update(integration_id, {
                    "last_sync": now,
                    "status": IntegrationStatus.SYNCED.value,
                    "retry_count": 0,
                    "next_sync_at": calculate_next_sync_at(integration.sync_interval, now=now),
                })
                return

            new_retry_count = integration.retry_count + 1
            should_disable = new_retry_count > MAX_RETRIES

            repo.update(integration_id, {
                "status": IntegrationStatus.ERROR.value,
                "retry_count": new_retry_count,
                "sync_enabled": False if should_disable else integration.sync_enabled,
                "next_sync_at": None if should_disable else calculate_next_sync_at(
                    integration.sync_interval, new_retry_count, now=now
                ),
            })

            if should_disable:
                logger.warning(
                    f"⛔ Intégration {integration_id} désactivée après {new_retry_count} échecs consécutifs"
                )
