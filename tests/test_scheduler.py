from datetime import timedelta

import pytest

from app.models import Integration, IntegrationStatus, IntegrationType
from app.services.scheduler import MAX_RETRIES, SyncScheduler, calculate_next_sync_at
from app.services.sync_result import SyncResult
from tests.conftest import NOW


class TestCalculateNextSyncAt:
    def test_normal_interval(self):
        assert calculate_next_sync_at(3600, 0, now=NOW) == NOW + timedelta(hours=1)
        assert calculate_next_sync_at(300, now=NOW) == NOW + timedelta(minutes=5)

    @pytest.mark.parametrize("retry_count, minutes", [(1, 1), (2, 2), (3, 4)])
    def test_exponential_backoff_ignores_interval(self, retry_count, minutes):
        assert calculate_next_sync_at(3600, retry_count, now=NOW) == NOW + timedelta(minutes=minutes)

    def test_beyond_max_retries_falls_back_to_interval(self):
        assert calculate_next_sync_at(3600, MAX_RETRIES + 1, now=NOW) == NOW + timedelta(hours=1)

    def test_manual_only_integration(self):
        assert calculate_next_sync_at(None, 0, now=NOW) is None
        assert calculate_next_sync_at(None, 2, now=NOW) is None


class TestDueIntegrations:
    def test_filters_and_orders_due_integrations(self, session_factory, clock, make_integration):
        never_synced = make_integration(name="jamais")
        overdue = make_integration(name="en retard", next_sync_at=NOW - timedelta(hours=2),
                                   last_sync=NOW - timedelta(hours=3))
        just_due = make_integration(name="échue", next_sync_at=NOW - timedelta(minutes=1),
                                    last_sync=NOW - timedelta(hours=1))
        make_integration(name="future", next_sync_at=NOW + timedelta(minutes=5), last_sync=NOW)
        make_integration(name="manuelle", integration_type=IntegrationType.MANUAL)
        make_integration(name="désactivée", sync_enabled=False)
        make_integration(name="sans intervalle", sync_interval=None)
        make_integration(name="auto-désactivée", next_sync_at=None, last_sync=NOW - timedelta(days=1))

        scheduler = SyncScheduler(session_factory, clock=clock)
        due = scheduler.get_integrations_due_for_sync()

        assert [integration.id for integration in due] == [never_synced, overdue, just_due]

    def test_limit(self, session_factory, clock, make_integration):
        for index in range(4):
            make_integration(name=f"source {index}")

        scheduler = SyncScheduler(session_factory, clock=clock)

        assert len(scheduler.get_integrations_due_for_sync(limit=2)) == 2


class TestUpdateAfterSync:
    def _get(self, session_factory, integration_id) -> Integration:
        with session_factory() as db:
            return db.get(Integration, integration_id)

    def test_success_resets_retries(self, session_factory, clock, make_integration):
        integration_id = make_integration(retry_count=2, status=IntegrationStatus.ERROR.value)
        scheduler = SyncScheduler(session_factory, clock=clock)

        scheduler.update_integration_after_sync(integration_id, SyncResult(success=True, records_count=3))

        integration = self._get(session_factory, integration_id)
        assert integration.retry_count == 0
        assert integration.status == IntegrationStatus.SYNCED.value
        assert integration.last_sync == NOW
        assert integration.next_sync_at == NOW + timedelta(hours=1)

    def test_failure_applies_backoff(self, session_factory, clock, make_integration):
        integration_id = make_integration(retry_count=1)
        scheduler = SyncScheduler(session_factory, clock=clock)

        scheduler.update_integration_after_sync(integration_id, SyncResult.failure("API error: 500"))

        integration = self._get(session_factory, integration_id)
        assert integration.retry_count == 2
        assert integration.status == IntegrationStatus.ERROR.value
        assert integration.sync_enabled is True
        assert integration.next_sync_at == NOW + timedelta(minutes=2)
        assert integration.last_sync is None

    def test_failure_beyond_max_retries_disables(self, session_factory, clock, make_integration, caplog):
        integration_id = make_integration(retry_count=MAX_RETRIES)
        scheduler = SyncScheduler(session_factory, clock=clock)

        scheduler.update_integration_after_sync(integration_id, SyncResult.failure("timeout"))

        integration = self._get(session_factory, integration_id)
        assert integration.retry_count == MAX_RETRIES + 1
        assert integration.sync_enabled is False
        assert integration.next_sync_at is None
        assert any(f"désactivée après {MAX_RETRIES + 1} échecs" in record.message for record in caplog.records)

    def test_missing_integration_is_noop(self, session_factory, clock):
        scheduler = SyncScheduler(session_factory, clock=clock)

        scheduler.update_integration_after_sync(999, SyncResult.failure("boom"))
