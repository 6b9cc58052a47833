from sqlalchemy import Column, Integer, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from app.models.base import BaseModel


class DataValue(BaseModel):
    """Observation horodatée d'un champ (insertion seule, jamais mise à jour)"""
    __tablename__ = "data_values"

    data_field_id = Column(Integer, ForeignKey("data_fields.id", ondelete="CASCADE"), nullable=False, index=True)

    # Scalaire, liste de scalaires ou JSON arbitraire
    value = Column(JSON, nullable=True)
    synced_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    data_field = relationship("DataField", back_populates="values")
