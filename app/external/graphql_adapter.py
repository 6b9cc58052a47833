"""
Adapter GraphQL.

Les réponses GraphQL sont imbriquées à profondeur arbitraire : la normalisation
cherche le premier tableau non vide du graphe pour en faire les lignes, sinon
aplatit l'objet en une ligne synthétique aux clés pointées. Toutes les
récursions sont bornées.
"""

import json
import logging
import math
import re
import time
from typing import Any, Dict, List, Optional, Tuple

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

# Propriétés numériques collectées dans les tableaux imbriqués (ex: tickets[].price[].price)
VALUE_KEYS = ("price", "value", "amount")

MAX_DEPTH = 10
ARRAY_SEARCH_DEPTH = 5
FLATTEN_MAX_SEGMENTS = 7
DISCOVERY_SAMPLE_SIZE = 3

# Préfixe numérique d'une chaîne (ex: "12.5 EUR" -> 12.5)
_NUMERIC_PREFIX = re.compile(r"\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_number(value: str) -> Optional[float]:
    """Nombre fini en tête de chaîne, None sinon (NaN et Infinity exclus)"""
    match = _NUMERIC_PREFIX.match(value)
    if match is None:
        return None
    number = float(match.group(0))
    return number if math.isfinite(number) else None


def _first_error_message(errors: List[Any]) -> str:
    first = errors[0]
    if isinstance(first, dict):
        return str(first.get("message", first))
    return str(first)


class GraphqlAdapter(HttpAdapter):
    """Adapter pour les API GraphQL (requête, variables, operationName)"""

    integration_type = IntegrationType.GRAPHQL

    async def test_connection(self, config: IntegrationConfig) -> ConnectionResult:
        start = time.perf_counter()

        try:
            response = await self._execute_query(config)
            response_time = self._elapsed_ms(start)

            if not response.is_success:
                return ConnectionResult(
                    success=False,
                    message=f"API returned error: {self._status_text(response)}",
                    response_time_ms=response_time,
                    error=response.text,
                )

            payload = response.json()
            errors = payload.get("errors") if isinstance(payload, dict) else None

            # Une réponse partielle reste un échec pour le test de connexion
            if errors:
                return ConnectionResult(
                    success=False,
                    message=f"GraphQL error: {_first_error_message(errors)}",
                    response_time_ms=response_time,
                    error=json.dumps(errors),
                )

            return ConnectionResult(
                success=True,
                message=f"Connection successful ({self._status_text(response)})",
                response_time_ms=response_time,
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
            data, error = await self._query_data(config)
            if error:
                return DataResult(success=False, error=error)

            rows = self.normalize_data(data, limit)
            return DataResult(success=True, data=rows, total_rows=len(rows))
        except Exception as e:
            return DataResult(success=False, error=describe_error(e))

    async def discover_fields(self, config: IntegrationConfig) -> List[FieldSchema]:
        try:
            data, error = await self._query_data(config)
            if error:
                logger.info(f"[GraphQL] Pas de données pour la découverte: {error}")
                return []

            sample = self._discovery_sample(data)
            if sample is None:
                return []

            unique_fields: Dict[str, FieldSchema] = {}
            for field in self.discover_fields_deep(sample):
                unique_fields.setdefault(field.path, field)

            logger.debug(f"[GraphQL] {len(unique_fields)} champ(s) découvert(s)")
            return list(unique_fields.values())
        except Exception as e:
            logger.warning(f"[GraphQL] Découverte des champs impossible: {describe_error(e)}")
            return []

    async def _execute_query(self, config: IntegrationConfig):
        if not config.url:
            raise ConfigurationError("GraphQL endpoint URL is required")
        if not config.query:
            raise ConfigurationError("GraphQL query is required")

        headers = self._build_headers(config, defaults={"Content-Type": "application/json"})

        body: Dict[str, Any] = {"query": config.query}
        variables = self._parse_variables(config.variables)
        if variables:
            body["variables"] = variables
        if config.operation_name:
            body["operationName"] = config.operation_name

        return await self._send("POST", config.url, headers, json.dumps(body))

    def _parse_variables(self, variables: Any) -> Dict[str, Any]:
        if isinstance(variables, str):
            try:
                variables = json.loads(variables) if variables.strip() else {}
            except ValueError:
                raise ConfigurationError("GraphQL variables must be valid JSON")
        return variables if isinstance(variables, dict) else {}

    async def _query_data(self, config: IntegrationConfig) -> Tuple[Any, Optional[str]]:
        """Exécute la requête et renvoie (data, erreur)"""
        response = await self._execute_query(config)

        if not response.is_success:
            return None, f"API error: {self._status_text(response)}"

        payload = response.json()
        if not isinstance(payload, dict):
            return None, "Invalid GraphQL response"

        errors = payload.get("errors")
        data = payload.get("data")

        # Données partielles acceptées malgré les erreurs
        if errors and data is None:
            return None, f"GraphQL error: {_first_error_message(errors)}"
        if errors:
            logger.warning(f"[GraphQL] Réponse partielle: {_first_error_message(errors)}")

        return data, None

    def normalize_data(self, data: Any, limit: int = DEFAULT_FETCH_LIMIT) -> List[Any]:
        if data is None:
            return []

        if isinstance(data, list):
            return data[:limit]

        if isinstance(data, dict):
            found = self.find_first_array(data)
            if found is not None:
                return found[:limit]

            return [self.flatten_object(data)]

        return []

    def find_first_array(self, obj: Dict[str, Any], depth: int = 0) -> Optional[List[Any]]:
        """Premier tableau non vide rencontré dans le graphe d'objets"""
        if depth > ARRAY_SEARCH_DEPTH:
            return None

        for value in obj.values():
            if isinstance(value, list) and value:
                return value
            if isinstance(value, dict):
                found = self.find_first_array(value, depth + 1)
                if found is not None:
                    return found
        return None

    def flatten_object(self, obj: Dict[str, Any], prefix: str = "", depth: int = 0) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if depth > MAX_DEPTH:
            return result

        for key, value in obj.items():
            path = f"{prefix}.{key}" if prefix else key

            if isinstance(value, list):
                # Valeurs extraites pour les formules d'agrégation (sum, avg...)
                extracted = self.extract_values_from_array(value)
                if extracted:
                    result[path] = extracted
                if value and isinstance(value[0], dict):
                    result.update(self.flatten_object(value[0], f"{path}[]", depth + 1))
            elif isinstance(value, dict):
                if len(path.split(".")) < FLATTEN_MAX_SEGMENTS:
                    result.update(self.flatten_object(value, path, depth + 1))
            else:
                result[path] = value

        return result

    def extract_values_from_array(self, items: List[Any], depth: int = 0) -> List[Any]:
        """Collecte les valeurs primitives d'une structure de tableaux imbriqués"""
        values: List[Any] = []
        if depth > MAX_DEPTH:
            return values

        for item in items:
            if _is_number(item) or isinstance(item, str):
                values.append(item)
            elif isinstance(item, list):
                values.extend(self.extract_values_from_array(item, depth + 1))
            elif isinstance(item, dict):
                for key, value in item.items():
                    if key in VALUE_KEYS and _is_number(value):
                        values.append(value)
                    elif key in VALUE_KEYS and isinstance(value, str):
                        number = _parse_number(value)
                        if number is not None:
                            values.append(number)
                    elif isinstance(value, list):
                        values.extend(self.extract_values_from_array(value, depth + 1))

        return values

    def _discovery_sample(self, data: Any) -> Any:
        """Élément brut (non aplati) servant de base à la découverte"""
        if isinstance(data, list):
            return data[0] if data else None
        if isinstance(data, dict):
            found = self.find_first_array(data)
            if found is not None:
                return found[0]
            return data
        return None

    def discover_fields_deep(self, obj: Any, prefix: str = "", depth: int = 0) -> List[FieldSchema]:
        """Découverte récursive, y compris dans les tableaux d'objets"""
        if depth > MAX_DEPTH or obj is None:
            return []

        fields: List[FieldSchema] = []

        if isinstance(obj, list):
            if not obj:
                return fields
            first = obj[0]
            if _is_number(first) or isinstance(first, str):
                fields.append(FieldSchema(
                    name=prefix.split(".")[-1] or "values",
                    path=prefix,
                    data_type="array",
                    sample=obj[:DISCOVERY_SAMPLE_SIZE],
                ))
            elif isinstance(first, (dict, list)):
                array_path = f"{prefix}[]" if prefix else "[]"
                fields.extend(self.discover_fields_deep(first, array_path, depth + 1))

        elif isinstance(obj, dict):
            for key, value in obj.items():
                path = f"{prefix}.{key}" if prefix else key
                clean_path = path.replace("[].", ".").lstrip(".")

                if value is None:
                    fields.append(FieldSchema(name=key, path=clean_path, data_type="string", sample=None))
                elif isinstance(value, list):
                    if not value:
                        continue
                    if isinstance(value[0], (dict, list)):
                        fields.extend(self.discover_fields_deep(value, path, depth + 1))
                    else:
                        fields.append(FieldSchema(
                            name=key,
                            path=clean_path,
                            data_type="array",
                            sample=value[:DISCOVERY_SAMPLE_SIZE],
                        ))
                elif isinstance(value, dict):
                    fields.extend(self.discover_fields_deep(value, path, depth + 1))
                else:
                    fields.append(FieldSchema(
                        name=key,
                        path=clean_path,
                        data_type=infer_data_type(value),
                        sample=value,
                    ))

        return fields
