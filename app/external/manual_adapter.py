from typing import List, Optional

from app.external.base_adapter import (
    DEFAULT_FETCH_LIMIT,
    ConnectionResult,
    DataResult,
    FieldSchema,
    IntegrationAdapter,
    IntegrationConfig,
)
from app.models.integration import IntegrationType


class ManualAdapter(IntegrationAdapter):
    """Saisie manuelle : les valeurs arrivent hors adapter, directement en base"""

    integration_type = IntegrationType.MANUAL

    async def test_connection(self, config: IntegrationConfig) -> ConnectionResult:
        return ConnectionResult(
            success=True,
            message="Manual integration ready for data entry",
            response_time_ms=0,
        )

    async def fetch_data(
        self,
        config: IntegrationConfig,
        field_paths: Optional[List[str]] = None,
        limit: int = DEFAULT_FETCH_LIMIT,
    ) -> DataResult:
        return DataResult(success=True, data=[], total_rows=0)

    async def discover_fields(self, config: IntegrationConfig) -> List[FieldSchema]:
        return list(config.fields)
