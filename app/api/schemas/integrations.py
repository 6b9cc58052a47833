from pydantic import BaseModel, ConfigDict
from typing import Any, List, Optional
from datetime import datetime

from app.models.sync_log import SyncStatus


class SyncResponse(BaseModel):
    integration_id: int
    success: bool
    records_count: int = 0
    duration_ms: int = 0
    error: Optional[str] = None


class ConnectionTestResponse(BaseModel):
    integration_id: int
    success: bool
    message: str
    response_time_ms: int = 0
    error: Optional[str] = None


class DiscoveredField(BaseModel):
    name: str
    path: str
    data_type: str
    sample: Any = None


class DiscoverResponse(BaseModel):
    integration_id: int
    fields: List[DiscoveredField]


class SyncLogResponse(BaseModel):
    id: int
    status: SyncStatus
    records_count: Optional[int] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration: Optional[int] = None
    error_message: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SyncHistoryResponse(BaseModel):
    integration_id: int
    logs: List[SyncLogResponse]
    total: int
    page: int
    page_size: int


class FieldValueResponse(BaseModel):
    field_id: int
    name: str
    path: str
    data_type: str
    value: Any = None
    synced_at: Optional[datetime] = None


class IntegrationDataResponse(BaseModel):
    integration_id: int
    values: List[FieldValueResponse]


class PreviewResponse(BaseModel):
    integration_id: int
    success: bool
    data: List[Any] = []
    total_rows: Optional[int] = None
    error: Optional[str] = None
    fetched_at: datetime


class IntegrationTypesResponse(BaseModel):
    types: List[str]
