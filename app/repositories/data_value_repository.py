from typing import Dict, List
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from app.repositories.base_repository import BaseRepository
from app.models.data_field import DataField
from app.models.data_value import DataValue


class DataValueRepository(BaseRepository[DataValue]):
    def __init__(self, db: Session):
        super().__init__(DataValue, db)

    def get_latest_for_integration(self, integration_id: int) -> Dict[int, DataValue]:
        """Dernière valeur (synced_at le plus récent) de chaque champ d'une intégration"""
        try:
            latest = (self.db.query(DataValue.data_field_id, func.max(DataValue.synced_at).label("synced_at"))
                      .join(DataField, DataField.id == DataValue.data_field_id)
                      .filter(DataField.integration_id == integration_id)
                      .group_by(DataValue.data_field_id)
                      .subquery())
            rows: List[DataValue] = (self.db.query(DataValue)
                                     .join(latest, (DataValue.data_field_id == latest.c.data_field_id)
                                           & (DataValue.synced_at == latest.c.synced_at))
                                     .order_by(DataValue.id.desc())
                                     .all())
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

        result: Dict[int, DataValue] = {}
        for row in rows:
            result.setdefault(row.data_field_id, row)
        return result
