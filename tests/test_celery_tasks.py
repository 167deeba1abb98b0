"""Tests for Celery tasks."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import httpx
import pytest

from boardevents.models import Event, Notification, Webhook, WebhookDeliveryState
from boardevents.services import cards as cards_service
from boardevents.services import scheduler_config


# =============================================================================
# Fanout Task Tests
# =============================================================================


class TestNotifyRecipientsTask:
    """Tests for events.notify_recipients task."""

    def test_success(self):
        mock_session = MagicMock()

        with patch("boardevents.tasks.events.SessionLocal", return_value=mock_session):
            with patch(
                "boardevents.tasks.events.notifier_service.notify_recipients",
                return_value=[MagicMock(), MagicMock()],
            ) as mock_notify:
                from boardevents.tasks.events import notify_recipients

                result = notify_recipients("6f1c1d56-3b1a-4d57-9d0b-0c6f3a2b9e11")

                assert result == 2
                mock_notify.assert_called_once_with(
                    mock_session, mock_session.get.return_value
                )
                mock_session.close.assert_called_once()

    def test_missing_event(self):
        mock_session = MagicMock()
        mock_session.get.return_value = None

        with patch("boardevents.tasks.events.SessionLocal", return_value=mock_session):
            with patch(
                "boardevents.tasks.events.notifier_service.notify_recipients"
            ) as mock_notify:
                from boardevents.tasks.events import notify_recipients

                assert notify_recipients("6f1c1d56-3b1a-4d57-9d0b-0c6f3a2b9e11") == 0
                mock_notify.assert_not_called()
                mock_session.close.assert_called_once()

    def test_exception_rollback(self):
        mock_session = MagicMock()

        with patch("boardevents.tasks.events.SessionLocal", return_value=mock_session):
            with patch(
                "boardevents.tasks.events.notifier_service.notify_recipients",
                side_effect=RuntimeError("Notifier error"),
            ):
                from boardevents.tasks.events import notify_recipients

                with pytest.raises(RuntimeError, match="Notifier error"):
                    notify_recipients("6f1c1d56-3b1a-4d57-9d0b-0c6f3a2b9e11")

                mock_session.rollback.assert_called_once()
                mock_session.close.assert_called_once()

    def test_against_database(self, db_session, card, alice, bob, dave):
        cards_service.cards.close(db_session, str(card.id), str(alice.id))
        event = db_session.query(Event).one()

        with patch("boardevents.tasks.events.SessionLocal", return_value=db_session):
            with patch.object(db_session, "close"):
                from boardevents.tasks.events import notify_recipients

                assert notify_recipients(str(event.id)) == 2
                assert notify_recipients(str(event.id)) == 2

        assert db_session.query(Notification).count() == 2


class TestDispatchWebhooksTask:
    """Tests for events.dispatch_webhooks task."""

    def test_success(self):
        mock_session = MagicMock()

        with patch("boardevents.tasks.events.SessionLocal", return_value=mock_session):
            with patch(
                "boardevents.tasks.events.webhook_service.dispatch_webhooks",
                return_value=[MagicMock()],
            ) as mock_dispatch:
                from boardevents.tasks.events import dispatch_webhooks

                assert dispatch_webhooks("6f1c1d56-3b1a-4d57-9d0b-0c6f3a2b9e11") == 1
                mock_dispatch.assert_called_once()
                mock_session.close.assert_called_once()

    def test_exception_rollback(self):
        mock_session = MagicMock()

        with patch("boardevents.tasks.events.SessionLocal", return_value=mock_session):
            with patch(
                "boardevents.tasks.events.webhook_service.dispatch_webhooks",
                side_effect=RuntimeError("Dispatch error"),
            ):
                from boardevents.tasks.events import dispatch_webhooks

                with pytest.raises(RuntimeError, match="Dispatch error"):
                    dispatch_webhooks("6f1c1d56-3b1a-4d57-9d0b-0c6f3a2b9e11")

                mock_session.rollback.assert_called_once()
                mock_session.close.assert_called_once()


# =============================================================================
# Webhook Task Tests
# =============================================================================


class TestDeliverWebhookTask:
    """Tests for webhooks.deliver_webhook task."""

    def test_missing_delivery(self):
        mock_session = MagicMock()
        mock_session.get.return_value = None

        with patch("boardevents.tasks.webhooks.SessionLocal", return_value=mock_session):
            from boardevents.tasks.webhooks import deliver_webhook

            assert deliver_webhook("6f1c1d56-3b1a-4d57-9d0b-0c6f3a2b9e11") is None
            mock_session.close.assert_called_once()

    def test_delivers_pending_delivery(self, db_session, board, card, alice):
        from boardevents.services import webhook as webhook_service
        from boardevents.tasks.webhooks import deliver_webhook

        db_session.add(
            Webhook(
                account_id=board.account_id,
                board_id=board.id,
                name="Ops",
                url="https://hooks.example.com/in",
                signing_secret="s3cret-signing-key-0123456789",
                subscribed_actions=["card_closed"],
            )
        )
        db_session.commit()
        cards_service.cards.close(db_session, str(card.id), str(alice.id))
        event = db_session.query(Event).one()
        delivery = webhook_service.dispatch_webhooks(db_session, event)[0]

        mock_client = httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(204))
        )
        with patch("boardevents.tasks.webhooks.SessionLocal", return_value=db_session):
            with patch.object(db_session, "close"):
                with patch(
                    "boardevents.tasks.webhooks.httpx.Client", return_value=mock_client
                ):
                    assert deliver_webhook(str(delivery.id)) == "completed"

        assert delivery.state == WebhookDeliveryState.completed

    def test_exception_rollback(self):
        mock_session = MagicMock()

        with patch("boardevents.tasks.webhooks.SessionLocal", return_value=mock_session):
            with patch(
                "boardevents.tasks.webhooks.webhook_service.deliver",
                side_effect=RuntimeError("Delivery error"),
            ):
                from boardevents.tasks.webhooks import deliver_webhook

                with pytest.raises(RuntimeError, match="Delivery error"):
                    deliver_webhook("6f1c1d56-3b1a-4d57-9d0b-0c6f3a2b9e11")

                mock_session.rollback.assert_called_once()
                mock_session.close.assert_called_once()


class TestCleanupTask:
    """Tests for webhooks.cleanup_stale_deliveries task."""

    def test_success(self):
        mock_session = MagicMock()

        with patch("boardevents.tasks.webhooks.SessionLocal", return_value=mock_session):
            with patch(
                "boardevents.tasks.webhooks.webhook_service.cleanup_stale_deliveries",
                return_value=3,
            ):
                from boardevents.tasks.webhooks import cleanup_stale_deliveries

                assert cleanup_stale_deliveries() == {"deleted": 3}
                mock_session.close.assert_called_once()


# =============================================================================
# Scheduler Config Tests
# =============================================================================


class TestSchedulerConfig:
    def test_env_bool(self, monkeypatch):
        monkeypatch.setenv("BOOL_VAR", "yes")
        assert scheduler_config._env_bool("BOOL_VAR", False) is True
        monkeypatch.setenv("BOOL_VAR", "")
        assert scheduler_config._env_bool("BOOL_VAR", False) is False

    def test_env_int_ignores_garbage(self, monkeypatch):
        monkeypatch.setenv("INT_VAR", "many")
        assert scheduler_config._env_int("INT_VAR", 7) == 7

    def test_celery_config_defaults(self, monkeypatch):
        monkeypatch.delenv("CELERY_TASK_ACKS_LATE", raising=False)
        monkeypatch.delenv("CELERY_WORKER_PREFETCH_MULTIPLIER", raising=False)

        config = scheduler_config.get_celery_config()

        assert config["task_acks_late"] is True
        assert config["worker_prefetch_multiplier"] == 1

    def test_beat_schedule(self, monkeypatch):
        monkeypatch.setenv("WEBHOOK_DELIVERY_CLEANUP_INTERVAL_HOURS", "6")

        schedule = scheduler_config.build_beat_schedule()

        entry = schedule["webhook_delivery_cleanup"]
        assert entry["task"] == "boardevents.tasks.webhooks.cleanup_stale_deliveries"
        assert entry["schedule"] == timedelta(hours=6)

    def test_beat_schedule_disabled(self, monkeypatch):
        monkeypatch.setenv("WEBHOOK_DELIVERY_CLEANUP_ENABLED", "false")

        assert scheduler_config.build_beat_schedule() == {}
