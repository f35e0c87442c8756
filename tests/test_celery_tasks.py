"""Tests for Celery tasks."""

from unittest.mock import MagicMock, patch

import pytest

from app.schemas.lifecycle import (
    ExpiryReminderRunResponse,
    GracePeriodRunResponse,
    NotificationDeliveryResponse,
    StaleSessionRunResponse,
)
from app.schemas.radius import OutboxReplayResponse

RUN_AT = "2026-03-10T02:00:00Z"


# =============================================================================
# Billing Lifecycle Task Tests
# =============================================================================


class TestExpiryRemindersTask:
    """Tests for billing.run_expiry_reminders task."""

    def test_run_expiry_reminders_success(self):
        mock_session = MagicMock()
        response = ExpiryReminderRunResponse(
            run_at=RUN_AT, tenants_scanned=2, reminders_queued=5, failures=0
        )

        with patch("app.tasks.billing.SessionLocal", return_value=mock_session):
            with patch(
                "app.tasks.billing.billing_lifecycle.run_expiry_reminders",
                return_value=response,
            ) as mock_run:
                from app.tasks.billing import run_expiry_reminders

                result = run_expiry_reminders()

                mock_run.assert_called_once_with(mock_session)
                mock_session.close.assert_called_once()
                assert result["reminders_queued"] == 5

    def test_run_expiry_reminders_exception_rollback(self):
        mock_session = MagicMock()

        with patch("app.tasks.billing.SessionLocal", return_value=mock_session):
            with patch(
                "app.tasks.billing.billing_lifecycle.run_expiry_reminders",
                side_effect=Exception("Reminder error"),
            ):
                from app.tasks.billing import run_expiry_reminders

                with pytest.raises(Exception, match="Reminder error"):
                    run_expiry_reminders()

                mock_session.rollback.assert_called_once()
                mock_session.close.assert_called_once()


class TestGracePeriodTask:
    """Tests for billing.run_grace_period_resolution task."""

    def test_run_grace_period_resolution_success(self):
        mock_session = MagicMock()
        response = GracePeriodRunResponse(
            run_at=RUN_AT,
            tenants_scanned=1,
            subscribers_scanned=3,
            subscribers_renewed=1,
            subscribers_expired=2,
            sessions_disconnected=2,
            failures=0,
        )

        with patch("app.tasks.billing.SessionLocal", return_value=mock_session):
            with patch(
                "app.tasks.billing.billing_lifecycle.run_grace_period_resolution",
                return_value=response,
            ):
                from app.tasks.billing import run_grace_period_resolution

                result = run_grace_period_resolution()

                assert result["subscribers_expired"] == 2
                mock_session.close.assert_called_once()

    def test_partial_failures_recorded(self):
        mock_session = MagicMock()
        response = GracePeriodRunResponse(
            run_at=RUN_AT,
            tenants_scanned=1,
            subscribers_scanned=3,
            subscribers_renewed=0,
            subscribers_expired=2,
            sessions_disconnected=0,
            failures=1,
        )

        with patch("app.tasks.billing.SessionLocal", return_value=mock_session):
            with patch(
                "app.tasks.billing.billing_lifecycle.run_grace_period_resolution",
                return_value=response,
            ):
                with patch("app.tasks.billing.observe_job") as mock_observe:
                    from app.tasks.billing import run_grace_period_resolution

                    run_grace_period_resolution()

                    assert mock_observe.call_args[0][:2] == ("grace_period_resolution", "partial")
                    mock_session.rollback.assert_not_called()


# =============================================================================
# RADIUS Task Tests
# =============================================================================


class TestStaleSessionTask:
    """Tests for radius.cleanup_stale_sessions task."""

    def test_cleanup_passes_arguments(self):
        mock_session = MagicMock()
        response = StaleSessionRunResponse(run_at=RUN_AT, sessions_closed=4)

        with patch("app.tasks.radius.SessionLocal", return_value=mock_session):
            with patch(
                "app.tasks.radius.billing_lifecycle.run_stale_session_cleanup",
                return_value=response,
            ) as mock_run:
                from app.tasks.radius import cleanup_stale_sessions

                result = cleanup_stale_sessions(nas_ip="10.0.0.1", stale_minutes=30)

                mock_run.assert_called_once_with(
                    mock_session, nas_ip="10.0.0.1", stale_minutes=30
                )
                assert result["sessions_closed"] == 4
                mock_session.close.assert_called_once()

    def test_cleanup_exception_closes_session(self):
        mock_session = MagicMock()

        with patch("app.tasks.radius.SessionLocal", return_value=mock_session):
            with patch(
                "app.tasks.radius.billing_lifecycle.run_stale_session_cleanup",
                side_effect=Exception("Accounting error"),
            ):
                from app.tasks.radius import cleanup_stale_sessions

                with pytest.raises(Exception, match="Accounting error"):
                    cleanup_stale_sessions()

                mock_session.rollback.assert_called_once()
                mock_session.close.assert_called_once()


class TestOutboxReplayTask:
    """Tests for radius.replay_radius_outbox task."""

    def test_replay_success(self):
        mock_session = MagicMock()
        response = OutboxReplayResponse(scanned=2, succeeded=2, failed=0, abandoned=0)

        with patch("app.tasks.radius.SessionLocal", return_value=mock_session):
            with patch(
                "app.tasks.radius.radius_outbox.replay_pending", return_value=response
            ) as mock_replay:
                from app.tasks.radius import replay_radius_outbox

                result = replay_radius_outbox()

                mock_replay.assert_called_once_with(mock_session)
                assert result == {"scanned": 2, "succeeded": 2, "failed": 0, "abandoned": 0}

    def test_replay_exception_rollback(self):
        mock_session = MagicMock()

        with patch("app.tasks.radius.SessionLocal", return_value=mock_session):
            with patch(
                "app.tasks.radius.radius_outbox.replay_pending",
                side_effect=Exception("Replay error"),
            ):
                from app.tasks.radius import replay_radius_outbox

                with pytest.raises(Exception, match="Replay error"):
                    replay_radius_outbox()

                mock_session.rollback.assert_called_once()
                mock_session.close.assert_called_once()


# =============================================================================
# Notification Task Tests
# =============================================================================


class TestNotificationQueueTask:
    """Tests for notifications.deliver_notification_queue task."""

    def test_deliver_with_batch_size(self):
        mock_session = MagicMock()
        response = NotificationDeliveryResponse(scanned=3, delivered=3, failed=0)

        with patch("app.tasks.notifications.SessionLocal", return_value=mock_session):
            with patch(
                "app.tasks.notifications.notification_service.deliver_queued_notifications",
                return_value=response,
            ) as mock_deliver:
                from app.tasks.notifications import deliver_notification_queue

                result = deliver_notification_queue(batch_size=50)

                mock_deliver.assert_called_once_with(mock_session, limit=50)
                assert result["delivered"] == 3
                mock_session.close.assert_called_once()

    def test_deliver_exception_rollback(self):
        mock_session = MagicMock()

        with patch("app.tasks.notifications.SessionLocal", return_value=mock_session):
            with patch(
                "app.tasks.notifications.notification_service.deliver_queued_notifications",
                side_effect=Exception("Webhook error"),
            ):
                from app.tasks.notifications import deliver_notification_queue

                with pytest.raises(Exception, match="Webhook error"):
                    deliver_notification_queue()

                mock_session.rollback.assert_called_once()
                mock_session.close.assert_called_once()
