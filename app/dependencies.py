from functools import lru_cache
from typing import Callable

from sqlalchemy.orm import Session

from app.config import settings
from app.core.adapter_registry import AdapterRegistry, build_default_registry
from app.core.crypto import ConfigEncryption
from app.core.database import get_db_manager
from app.services.integration_service import IntegrationService
from app.services.scheduler import SyncScheduler
from app.services.sync_service import SyncService
from app.workers.sync_worker import SyncWorker


def get_session_factory() -> Callable[[], Session]:
    """Fabrique de sessions courtes (une par étape de sync)"""
    return get_db_manager().get_session


# === CLIENTS EXTERNES ===
@lru_cache()
def get_credential_store() -> ConfigEncryption:
    return ConfigEncryption(settings.ENCRYPTION_KEY)


@lru_cache()
def get_adapter_registry() -> AdapterRegistry:
    return build_default_registry(
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        user_agent=settings.HTTP_USER_AGENT
    )


# === SERVICES ===
@lru_cache()
def get_scheduler() -> SyncScheduler:
    return SyncScheduler(get_session_factory())


@lru_cache()
def get_sync_service() -> SyncService:
    """Service de sync partagé : ses verrous par intégration valent pour l'API et le worker"""
    return SyncService(
        session_factory=get_session_factory(),
        adapter_registry=get_adapter_registry(),
        credential_store=get_credential_store(),
        scheduler=get_scheduler()
    )


@lru_cache()
def get_integration_service() -> IntegrationService:
    return IntegrationService(
        session_factory=get_session_factory(),
        adapter_registry=get_adapter_registry(),
        credential_store=get_credential_store()
    )


# === WORKERS ===
_sync_worker_instance = None


def get_sync_worker() -> SyncWorker:
    """Factory pour le worker de synchronisation (singleton)"""
    global _sync_worker_instance
    if _sync_worker_instance is None:
        _sync_worker_instance = SyncWorker(
            sync_service=get_sync_service(),
            scheduler=get_scheduler(),
            poll_interval=settings.SYNC_POLL_INTERVAL_SECONDS,
            concurrency_limit=settings.SYNC_CONCURRENCY_LIMIT,
            rate_limit_delay=settings.SYNC_RATE_LIMIT_DELAY_SECONDS,
            batch_size=settings.SYNC_BATCH_SIZE,
            shutdown_grace_period=settings.SYNC_SHUTDOWN_GRACE_SECONDS
        )
    return _sync_worker_instance
