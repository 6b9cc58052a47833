# app/models/integration.py
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, Enum, true
from sqlalchemy.orm import relationship
import enum

from app.models.base import BaseModel


class IntegrationType(str, enum.Enum):
    API = "API"
    GRAPHQL = "GRAPHQL"
    MANUAL = "MANUAL"


class IntegrationStatus(str, enum.Enum):
    PENDING = "pending"
    CONNECTED = "connected"
    SYNCED = "synced"
    ERROR = "error"


# Types synchronisés automatiquement par le worker
SYNCABLE_TYPES = (IntegrationType.API, IntegrationType.GRAPHQL)


class Integration(BaseModel):
    __tablename__ = "integrations"

    name = Column(String(255), nullable=False)
    type = Column(Enum(IntegrationType), nullable=False, index=True)

    # Blob chiffré (URL, auth, en-têtes, requête ou liste de champs selon le type)
    config = Column(Text, nullable=False)

    status = Column(String(20), default=IntegrationStatus.PENDING.value,
                    server_default=IntegrationStatus.PENDING.value, nullable=False)

    # Planification
    sync_enabled = Column(Boolean, default=True, server_default=true(), nullable=False, index=True)
    sync_interval = Column(Integer, nullable=True)  # secondes, NULL = manuel uniquement
    retry_count = Column(Integer, default=0, server_default="0", nullable=False)
    next_sync_at = Column(DateTime, nullable=True, index=True)
    last_sync = Column(DateTime, nullable=True)

    data_fields = relationship(
        "DataField", back_populates="integration", cascade="all, delete-orphan"
    )
    sync_logs = relationship("SyncLog", back_populates="integration")

    def __repr__(self):
        # Ne jamais exposer le blob de configuration
        return f"<Integration(id={self.id}, name='{self.name}', type={self.type}, status='{self.status}')>"

