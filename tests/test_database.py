import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from app.core.database import DatabaseManager
from app.models import Integration, IntegrationStatus


class TestDatabaseManager:
    def test_sessions_and_connection_check(self):
        manager = DatabaseManager("sqlite:///:memory:")

        manager.check_connection()
        with manager.get_session() as db:
            assert db.is_active

        manager.dispose()

    def test_unreachable_database(self, tmp_path):
        manager = DatabaseManager(f"sqlite:///{tmp_path}/missing/dir/db.sqlite")

        with pytest.raises(OperationalError):
            manager.check_connection()


class TestIntegrationTableDefaults:
    def test_raw_insert_gets_scheduling_defaults(self, session_factory):
        """Une ligne insérée hors ORM reste planifiable"""
        with session_factory() as db:
            db.execute(text(
                "INSERT INTO integrations (name, type, config, created_at, updated_at) "
                "VALUES ('Import SQL', 'API', 'x', '2026-03-01 12:00:00', '2026-03-01 12:00:00')"
            ))
            db.commit()

            integration = db.query(Integration).filter_by(name="Import SQL").one()

            assert integration.status == IntegrationStatus.PENDING.value
            assert integration.sync_enabled is True
            assert integration.retry_count == 0
