from fastapi import APIRouter, Depends, HTTPException, Query, status
import logging

from app.api.schemas.integrations import (
    ConnectionTestResponse,
    DiscoveredField,
    DiscoverResponse,
    FieldValueResponse,
    IntegrationDataResponse,
    IntegrationTypesResponse,
    PreviewResponse,
    SyncHistoryResponse,
    SyncLogResponse,
    SyncResponse,
)
from app.core.exceptions import ConfigurationError, IntegrationNotFoundError
from app.core.adapter_registry import AdapterRegistry
from app.dependencies import get_adapter_registry, get_integration_service, get_sync_service
from app.services.integration_service import IntegrationService
from app.services.sync_service import SyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["integrations"])


def _not_found(integration_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Integration {integration_id} not found"
    )


def get_existing_integration_id(
        integration_id: int,
        integration_service: IntegrationService = Depends(get_integration_service)
) -> int:
    """Vérifie l'existence de l'intégration avant d'appeler un service"""
    try:
        integration_service.ensure_exists(integration_id)
    except IntegrationNotFoundError:
        raise _not_found(integration_id)
    return integration_id


@router.get("/types", response_model=IntegrationTypesResponse)
async def get_available_types(
        adapter_registry: AdapterRegistry = Depends(get_adapter_registry)
):
    """Types d'intégration pour lesquels un adapter est enregistré"""
    return IntegrationTypesResponse(
        types=[getattr(integration_type, "value", integration_type) for integration_type in adapter_registry.get_types()]
    )


@router.post("/{integration_id}/sync", response_model=SyncResponse)
async def sync_now(
        integration_id: int = Depends(get_existing_integration_id),
        sync_service: SyncService = Depends(get_sync_service)
):
    """Déclenche une synchronisation immédiate (même chemin que le worker)"""
    result = await sync_service.execute_sync_with_logging(integration_id)
    return SyncResponse(integration_id=integration_id, **result.model_dump())


@router.post("/{integration_id}/test", response_model=ConnectionTestResponse)
async def test_connection(
        integration_id: int,
        integration_service: IntegrationService = Depends(get_integration_service)
):
    """Teste la connexion à la source et met à jour le statut de l'intégration"""
    try:
        result = await integration_service.test_connection(integration_id)
    except IntegrationNotFoundError:
        raise _not_found(integration_id)
    return ConnectionTestResponse(integration_id=integration_id, **result.model_dump())


@router.get("/{integration_id}/discover", response_model=DiscoverResponse)
async def discover_fields(
        integration_id: int,
        integration_service: IntegrationService = Depends(get_integration_service)
):
    """Propose les champs disponibles dans les données de la source"""
    try:
        fields = await integration_service.discover_fields(integration_id)
    except IntegrationNotFoundError:
        raise _not_found(integration_id)
    except ConfigurationError as e:
        logger.warning(f"Découverte impossible pour l'intégration {integration_id}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return DiscoverResponse(
        integration_id=integration_id,
        fields=[DiscoveredField(**field.model_dump()) for field in fields]
    )


@router.get("/{integration_id}/preview", response_model=PreviewResponse)
async def preview_data(
        integration_id: int,
        limit: int = Query(5, ge=1, le=50),
        integration_service: IntegrationService = Depends(get_integration_service)
):
    """Aperçu des premières lignes renvoyées par la source"""
    try:
        result = await integration_service.preview(integration_id, limit=limit)
    except IntegrationNotFoundError:
        raise _not_found(integration_id)
    except ConfigurationError as e:
        logger.warning(f"Aperçu impossible pour l'intégration {integration_id}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return PreviewResponse(integration_id=integration_id, **result.model_dump())


@router.get("/{integration_id}/sync-history", response_model=SyncHistoryResponse)
async def get_sync_history(
        integration_id: int = Depends(get_existing_integration_id),
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=100),
        sync_service: SyncService = Depends(get_sync_service)
):
    """Historique paginé des synchronisations, plus récentes d'abord"""
    logs, total = sync_service.get_sync_history(integration_id, page=page, page_size=page_size)
    return SyncHistoryResponse(
        integration_id=integration_id,
        logs=[SyncLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{integration_id}/data", response_model=IntegrationDataResponse)
async def get_latest_data(
        integration_id: int,
        integration_service: IntegrationService = Depends(get_integration_service)
):
    """Dernière valeur connue de chaque champ"""
    try:
        values = integration_service.get_latest_values(integration_id)
    except IntegrationNotFoundError:
        raise _not_found(integration_id)
    return IntegrationDataResponse(
        integration_id=integration_id,
        values=[FieldValueResponse(**value) for value in values]
    )
