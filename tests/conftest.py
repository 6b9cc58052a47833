import json
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.adapter_registry import build_default_registry
from app.core.crypto import ConfigEncryption
from app.core.database import Base
from app.models import DataField, Integration, IntegrationType
from app.services.scheduler import SyncScheduler
from app.services.sync_service import SyncService

NOW = datetime(2026, 3, 1, 12, 0, 0)

TEST_ENCRYPTION_KEY = "0123456789abcdef" * 4


@pytest.fixture
def engine():
    """Base SQLite en mémoire, recréée pour chaque test"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def encryption():
    return ConfigEncryption(TEST_ENCRYPTION_KEY)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def make_integration(session_factory, encryption):
    """Crée une intégration (et ses champs) en base, retourne son id"""

    def _make(
        name: str = "Ventes",
        integration_type: IntegrationType = IntegrationType.API,
        config: Optional[Dict[str, Any]] = None,
        fields: Optional[List[Tuple[str, str]]] = None,
        **columns,
    ) -> int:
        columns.setdefault("sync_interval", 3600)
        with session_factory() as db:
            integration = Integration(
                name=name,
                type=integration_type,
                config=encryption.encrypt_json(config or {"url": "https://api.example.com/sales"}),
                **columns,
            )
            for field_name, path in fields or []:
                integration.data_fields.append(DataField(name=field_name, path=path))
            db.add(integration)
            db.commit()
            return integration.id

    return _make


def json_transport(payload: Any, status_code: int = 200,
                   calls: Optional[List[httpx.Request]] = None) -> httpx.MockTransport:
    """Transport httpx qui répond toujours le même JSON"""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return httpx.Response(status_code, content=json.dumps(payload),
                              headers={"Content-Type": "application/json"})

    return httpx.MockTransport(handler)


@pytest.fixture
def build_sync_service(session_factory, encryption, clock) -> Callable[..., SyncService]:
    """SyncService câblé sur la base de test et un transport httpx simulé"""

    def _build(transport: httpx.MockTransport) -> SyncService:
        scheduler = SyncScheduler(session_factory, clock=clock)
        return SyncService(
            session_factory=session_factory,
            adapter_registry=build_default_registry(transport=transport),
            credential_store=encryption,
            scheduler=scheduler,
            clock=clock,
        )

    return _build
