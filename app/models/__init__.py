from .base import BaseModel
from .integration import Integration, IntegrationType, IntegrationStatus, SYNCABLE_TYPES
from .data_field import DataField
from .data_value import DataValue
from .sync_log import SyncLog, SyncStatus

__all__ = [
    "BaseModel", "Integration", "IntegrationType", "IntegrationStatus", "SYNCABLE_TYPES",
    "DataField", "DataValue", "SyncLog", "SyncStatus",
]
