from typing import Dict, List, Optional, Union
import logging

import httpx

from app.core.exceptions import AdapterNotFoundError
from app.external.base_adapter import IntegrationAdapter
from app.external.graphql_adapter import GraphqlAdapter
from app.external.http_adapter import DEFAULT_USER_AGENT
from app.external.manual_adapter import ManualAdapter
from app.external.rest_adapter import RestAdapter
from app.models.integration import IntegrationType

logger = logging.getLogger(__name__)


def _coerce_type(integration_type: Union[IntegrationType, str]) -> Union[IntegrationType, str]:
    if isinstance(integration_type, IntegrationType):
        return integration_type
    try:
        return IntegrationType(integration_type)
    except ValueError:
        return integration_type


class AdapterRegistry:
    """Point d'accès unique aux adapters, indexés par type d'intégration"""

    def __init__(self, adapters: Optional[List[IntegrationAdapter]] = None):
        self._adapters: Dict[Union[IntegrationType, str], IntegrationAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: IntegrationAdapter) -> None:
        """Enregistre (ou remplace) l'adapter de son type"""
        self._adapters[adapter.integration_type] = adapter
        logger.debug(f"Adapter '{adapter.__class__.__name__}' enregistré pour le type {adapter.integration_type.value}")

    def get(self, integration_type: Union[IntegrationType, str]) -> IntegrationAdapter:
        """Retourne l'adapter du type demandé, lève AdapterNotFoundError sinon"""
        adapter = self._adapters.get(_coerce_type(integration_type))
        if adapter is None:
            raise AdapterNotFoundError(integration_type)
        return adapter

    def has(self, integration_type: Union[IntegrationType, str]) -> bool:
        return _coerce_type(integration_type) in self._adapters

    def get_types(self) -> List[Union[IntegrationType, str]]:
        return list(self._adapters.keys())


def build_default_registry(timeout: float = 30.0, user_agent: str = DEFAULT_USER_AGENT,
                           transport: Optional[httpx.AsyncBaseTransport] = None) -> AdapterRegistry:
    """Registre peuplé avec les adapters intégrés (API, GRAPHQL, MANUAL)"""
    return AdapterRegistry([
        RestAdapter(timeout=timeout, user_agent=user_agent, transport=transport),
        GraphqlAdapter(timeout=timeout, user_agent=user_agent, transport=transport),
        ManualAdapter(),
    ])
