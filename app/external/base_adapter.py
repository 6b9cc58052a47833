"""
Contrat commun des adapters de sources de données.

Chaque type d'intégration (API, GRAPHQL, MANUAL) expose les trois mêmes
opérations : test de connexion, récupération des données, découverte des
champs. Aucune des trois ne lève d'exception : les erreurs réseau, de parsing
ou de configuration sont renvoyées dans le résultat.
"""

import re
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.integration import IntegrationType

DataType = Literal["string", "number", "boolean", "date", "object", "array"]

DEFAULT_FETCH_LIMIT = 100

_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


class FieldSchema(BaseModel):
    """Champ candidat proposé au mapping"""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    path: str
    data_type: DataType = Field(default="string", alias="dataType")
    sample: Any = None


class IntegrationConfig(BaseModel):
    """Configuration déchiffrée d'une intégration (les secrets sont exclus du repr)"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None

    # API / GraphQL
    url: Optional[str] = None
    method: str = "GET"
    headers: Union[Dict[str, Any], str, None] = None
    body: Union[str, Dict[str, Any], List[Any], None] = Field(default=None, repr=False)
    auth_type: Optional[str] = Field(default=None, alias="authType")
    api_key: Optional[str] = Field(default=None, alias="apiKey", repr=False)
    auth_value: Optional[str] = Field(default=None, alias="authValue", repr=False)
    auth_header: Optional[str] = Field(default=None, alias="authHeader")
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)

    # GraphQL
    query: Optional[str] = None
    variables: Union[Dict[str, Any], str, None] = None
    operation_name: Optional[str] = Field(default=None, alias="operationName")

    # Manuel
    fields: List[FieldSchema] = Field(default_factory=list)

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, value):
        return (value or "GET").upper()

    @property
    def token(self) -> Optional[str]:
        """Le front envoie authValue, l'ancienne API apiKey"""
        return self.api_key or self.auth_value


class ConnectionResult(BaseModel):
    success: bool
    message: str
    response_time_ms: int = 0
    error: Optional[str] = None


class DataResult(BaseModel):
    success: bool
    data: List[Any] = Field(default_factory=list)
    total_rows: Optional[int] = None
    error: Optional[str] = None
    fetched_at: datetime = Field(default_factory=datetime.utcnow)


def infer_data_type(value: Any) -> DataType:
    """Déduit le type d'un champ à partir d'une valeur d'exemple"""
    if value is None:
        return "string"
    if isinstance(value, list):
        return "array"
    # bool est un sous-type de int
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, str) and _ISO_DATE_PREFIX.match(value):
        try:
            date.fromisoformat(value[:10])
            return "date"
        except ValueError:
            pass
    return "string"


def describe_error(error: BaseException) -> str:
    """Message lisible pour une exception (certaines exceptions httpx n'ont pas de message)"""
    return str(error) or error.__class__.__name__


class IntegrationAdapter(ABC):
    """Interface que tous les adapters d'intégration doivent implémenter"""

    integration_type: IntegrationType

    @abstractmethod
    async def test_connection(self, config: IntegrationConfig) -> ConnectionResult:
        """Vérifie la connectivité et les identifiants sans forcément tout récupérer"""

    @abstractmethod
    async def fetch_data(
        self,
        config: IntegrationConfig,
        field_paths: Optional[List[str]] = None,
        limit: int = DEFAULT_FETCH_LIMIT,
    ) -> DataResult:
        """Récupère au plus `limit` lignes ; `field_paths` n'est qu'une indication"""

    @abstractmethod
    async def discover_fields(self, config: IntegrationConfig) -> List[FieldSchema]:
        """Propose des champs pour le mapping à partir d'un échantillon"""
