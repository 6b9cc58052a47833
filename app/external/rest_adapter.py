import json
import logging
import time
from typing import Any, List, Optional, Tuple

from app.core.exceptions import ConfigurationError
from app.external.base_adapter import (
    DEFAULT_FETCH_LIMIT,
    ConnectionResult,
    DataResult,
    FieldSchema,
    IntegrationConfig,
    describe_error,
    infer_data_type,
)
from app.external.http_adapter import HttpAdapter
from app.models.integration import IntegrationType

logger = logging.getLogger(__name__)

# Clés usuelles portant la liste de résultats, dans l'ordre de priorité
ARRAY_KEYS = ("data", "items", "results", "records", "rows", "entries")

DISCOVERY_SAMPLE_SIZE = 5
DISCOVERY_MAX_SEGMENTS = 3


class RestAdapter(HttpAdapter):
    """Adapter pour les API REST (GET/POST/PUT/DELETE, auth apiKey/bearer/basic)"""

    integration_type = IntegrationType.API

    async def test_connection(self, config: IntegrationConfig) -> ConnectionResult:
        start = time.perf_counter()

        try:
            response = await self._make_request(config)
            response_time = self._elapsed_ms(start)

            if response.is_success:
                return ConnectionResult(
                    success=True,
                    message=f"Connection successful ({self._status_text(response)})",
                    response_time_ms=response_time,
                )
            return ConnectionResult(
                success=False,
                message=f"API returned error: {self._status_text(response)}",
                response_time_ms=response_time,
                error=response.text,
            )
        except Exception as e:
            return ConnectionResult(
                success=False,
                message="Connection failed",
                response_time_ms=self._elapsed_ms(start),
                error=describe_error(e),
            )

    async def fetch_data(
        self,
        config: IntegrationConfig,
        field_paths: Optional[List[str]] = None,
        limit: int = DEFAULT_FETCH_LIMIT,
    ) -> DataResult:
        try:
            payload, error = await self._request_json(config)
            if error:
                return DataResult(success=False, error=error)

            data = self.normalize_data(payload, limit)
            return DataResult(success=True, data=data, total_rows=len(data))
        except Exception as e:
            return DataResult(success=False, error=describe_error(e))

    async def discover_fields(self, config: IntegrationConfig) -> List[FieldSchema]:
        try:
            result = await self.fetch_data(config, limit=DISCOVERY_SAMPLE_SIZE)

            if not result.success or not result.data:
                return []

            first_row = result.data[0]
            if not isinstance(first_row, dict):
                return []
            return self.extract_fields_from_object(first_row, "")
        except Exception as e:
            logger.warning(f"Découverte des champs REST impossible: {describe_error(e)}")
            return []

    async def _make_request(self, config: IntegrationConfig):
        if not config.url:
            raise ConfigurationError("URL is required")

        headers = self._build_headers(config)
        content = None

        if config.body and config.method != "GET":
            content = config.body if isinstance(config.body, str) else json.dumps(config.body)
            if "Content-Type" not in headers:
                headers["Content-Type"] = "application/json"

        return await self._send(config.method, config.url, headers, content)

    async def _request_json(self, config: IntegrationConfig) -> Tuple[Any, Optional[str]]:
        response = await self._make_request(config)
        if not response.is_success:
            return None, f"API error: {self._status_text(response)}"
        return response.json(), None

    def normalize_data(self, payload: Any, limit: int = DEFAULT_FETCH_LIMIT) -> List[Any]:
        """Transforme une réponse JSON quelconque en liste de lignes"""
        if isinstance(payload, list):
            return payload[:limit]

        if isinstance(payload, dict):
            for key in ARRAY_KEYS:
                if isinstance(payload.get(key), list):
                    return payload[key][:limit]

            # Aucun tableau trouvé : l'objet devient une ligne unique
            return [payload]

        return []

    def extract_fields_from_object(self, obj: dict, prefix: str) -> List[FieldSchema]:
        fields: List[FieldSchema] = []

        for key, value in obj.items():
            path = f"{prefix}.{key}" if prefix else key
            data_type = infer_data_type(value)

            fields.append(FieldSchema(name=key, path=path, data_type=data_type, sample=value))

            if data_type == "object" and len(path.split(".")) < DISCOVERY_MAX_SEGMENTS:
                fields.extend(self.extract_fields_from_object(value, path))

        return fields
