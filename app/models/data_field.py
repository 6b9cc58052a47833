from sqlalchemy import Column, String, Integer, ForeignKey
from sqlalchemy.orm import relationship

from app.models.base import BaseModel


class DataField(BaseModel):
    __tablename__ = "data_fields"

    integration_id = Column(Integer, ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    path = Column(String(500), nullable=False)  # notation pointée, ex: data.items[].price
    data_type = Column(String(20), default="string", nullable=False)  # string, number, boolean, date, object, array

    integration = relationship("Integration", back_populates="data_fields")
    values = relationship("DataValue", back_populates="data_field")

    def __repr__(self):
        return f"<DataField(name='{self.name}', path='{self.path}', type='{self.data_type}')>"
