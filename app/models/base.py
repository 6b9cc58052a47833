from sqlalchemy import Column, Integer, DateTime
from datetime import datetime

from app.core.database import Base


class BaseModel(Base):
    """Colonnes communes à toutes les tables"""
    __abstract__ = True

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
