import logging
from typing import Any, Callable, Dict, List, Tuple

from sqlalchemy.orm import Session

from app.core.adapter_registry import AdapterRegistry
from app.core.exceptions import ConfigurationError, IntegrationNotFoundError
from app.external.base_adapter import (
    ConnectionResult,
    DataResult,
    FieldSchema,
    IntegrationConfig,
    describe_error,
)
from app.models.integration import IntegrationStatus, IntegrationType
from app.repositories.data_value_repository import DataValueRepository
from app.repositories.integration_repository import IntegrationRepository
from app.services.sync_service import CredentialStore

logger = logging.getLogger(__name__)

PREVIEW_ROWS = 5


class IntegrationService:
    """Opérations ponctuelles sur une intégration stockée : test, découverte, dernières valeurs"""

    def __init__(self, session_factory: Callable[[], Session], adapter_registry: AdapterRegistry,
                 credential_store: CredentialStore):
        self.session_factory = session_factory
        self.adapter_registry = adapter_registry
        self.credential_store = credential_store

    def ensure_exists(self, integration_id: int) -> None:
        with self.session_factory() as db:
            if not IntegrationRepository(db).exists(integration_id):
                raise IntegrationNotFoundError(integration_id)

    def _load(self, integration_id: int) -> Tuple[IntegrationType, str]:
        with self.session_factory() as db:
            integration = IntegrationRepository(db).get_by_id(integration_id)
            if integration is None:
                raise IntegrationNotFoundError(integration_id)
            return integration.type, integration.config

    def _decrypt_config(self, encrypted_config: str) -> IntegrationConfig:
        try:
            return IntegrationConfig.model_validate(self.credential_store.decrypt_json(encrypted_config))
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Unable to read integration configuration: {describe_error(e)}")

    async def test_connection(self, integration_id: int) -> ConnectionResult:
        """Teste la connexion et met à jour le statut (connected / error)"""
        integration_type, encrypted_config = self._load(integration_id)

        try:
            adapter = self.adapter_registry.get(integration_type)
            config = self._decrypt_config(encrypted_config)
            result = await adapter.test_connection(config)
        except ConfigurationError as e:
            result = ConnectionResult(success=False, message="Connection failed", error=str(e))

        status = IntegrationStatus.CONNECTED if result.success else IntegrationStatus.ERROR
        with self.session_factory() as db:
            IntegrationRepository(db).update(integration_id, {"status": status.value})

        logger.info(f"Test de connexion de l'intégration {integration_id}: {result.message}")
        return result

    async def discover_fields(self, integration_id: int) -> List[FieldSchema]:
        """Champs proposés par l'adapter (lève ConfigurationError si la config est illisible)"""
        integration_type, encrypted_config = self._load(integration_id)
        adapter = self.adapter_registry.get(integration_type)
        config = self._decrypt_config(encrypted_config)
        return await adapter.discover_fields(config)

    async def preview(self, integration_id: int, limit: int = PREVIEW_ROWS) -> DataResult:
        """Quelques lignes brutes de la source, pour aider au mapping des champs"""
        integration_type, encrypted_config = self._load(integration_id)
        adapter = self.adapter_registry.get(integration_type)
        config = self._decrypt_config(encrypted_config)
        return await adapter.fetch_data(config, limit=limit)

    def get_latest_values(self, integration_id: int) -> List[Dict[str, Any]]:
        """Valeur courante de chaque champ (None si jamais synchronisé)"""
        with self.session_factory() as db:
            integration = IntegrationRepository(db).get_with_fields(integration_id)
            if integration is None:
                raise IntegrationNotFoundError(integration_id)

            latest = DataValueRepository(db).get_latest_for_integration(integration_id)

            values = []
            for field in integration.data_fields:
                data_value = latest.get(field.id)
                values.append({
                    "field_id": field.id,
                    "name": field.name,
                    "path": field.path,
                    "data_type": field.data_type,
                    "value": data_value.value if data_value else None,
                    "synced_at": data_value.synced_at if data_value else None,
                })
            return values
