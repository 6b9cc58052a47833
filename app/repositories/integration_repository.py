# app/repositories/integration_repository.py
from typing import List, Optional
from datetime import datetime
from sqlalchemy import and_, or_, nulls_first
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import SQLAlchemyError
from app.repositories.base_repository import BaseRepository
from app.models.integration import Integration, SYNCABLE_TYPES


class IntegrationRepository(BaseRepository[Integration]):
    """Repository spécialisé pour les intégrations"""

    def __init__(self, db: Session):
        super().__init__(Integration, db)

    def get_with_fields(self, integration_id: int) -> Optional[Integration]:
        """Récupère une intégration avec ses champs configurés"""
        try:
            return (self.db.query(Integration)
                    .options(selectinload(Integration.data_fields))
                    .filter(Integration.id == integration_id)
                    .first())
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def get_due_for_sync(self, now: datetime, limit: int = 10) -> List[Integration]:
        """Intégrations API/GRAPHQL actives dont la prochaine sync est échue (ou jamais planifiée)"""
        try:
            return (self.db.query(Integration)
                    .filter(Integration.sync_enabled.is_(True))
                    .filter(Integration.sync_interval.isnot(None))
                    .filter(Integration.type.in_(SYNCABLE_TYPES))
                    .filter(or_(
                        Integration.next_sync_at <= now,
                        and_(Integration.next_sync_at.is_(None), Integration.last_sync.is_(None)),
                    ))
                    .order_by(nulls_first(Integration.next_sync_at.asc()), Integration.id.asc())
                    .limit(limit)
                    .all())
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
