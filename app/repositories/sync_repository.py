from typing import List, Optional, Tuple
from datetime import datetime
from sqlalchemy.orm import Session
from app.repositories.base_repository import BaseRepository
from app.models.sync_log import SyncLog, SyncStatus


class SyncRepository(BaseRepository[SyncLog]):
    def __init__(self, db: Session):
        super().__init__(SyncLog, db)

    def start_log(self, integration_id: int, started_at: datetime) -> SyncLog:
        """Ouvre un log de sync au statut RUNNING"""
        return self.create({
            "integration_id": integration_id,
            "status": SyncStatus.RUNNING,
            "started_at": started_at,
        })

    def complete_log(self, log_id: int, success: bool, completed_at: datetime,
                     duration_ms: int, records_count: int,
                     error_message: Optional[str] = None) -> Optional[SyncLog]:
        """Clôture un log avec son statut terminal"""
        return self.update(log_id, {
            "status": SyncStatus.SUCCESS if success else SyncStatus.FAILED,
            "completed_at": completed_at,
            "duration": duration_ms,
            "records_count": records_count,
            "error_message": error_message,
        })

    def get_history(self, integration_id: int, skip: int = 0, limit: int = 20) -> Tuple[List[SyncLog], int]:
        """Récupère les logs d'une intégration, du plus récent au plus ancien"""
        logs = (self.db.query(SyncLog)
                .filter(SyncLog.integration_id == integration_id)
                .order_by(SyncLog.created_at.desc(), SyncLog.id.desc())
                .offset(skip)
                .limit(limit)
                .all())
        total = self.count_by_field("integration_id", integration_id)
        return logs, total
