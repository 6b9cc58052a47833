from sqlalchemy import Column, DateTime, Integer, Text, Enum, ForeignKey
from sqlalchemy.orm import relationship
import enum

from .base import BaseModel


class SyncStatus(str, enum.Enum):
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class SyncLog(BaseModel):
    __tablename__ = "sync_logs"

    integration_id = Column(Integer, ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Enum(SyncStatus), nullable=False, default=SyncStatus.RUNNING)

    # Résultats
    records_count = Column(Integer, default=0)

    # Timing
    started_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime)
    duration = Column(Integer)  # millisecondes

    # Erreurs
    error_message = Column(Text)

    integration = relationship("Integration", back_populates="sync_logs")
