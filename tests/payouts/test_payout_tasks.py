"""Tests for the compute_payouts Celery task: batch lock and transaction handling."""
from unittest.mock import MagicMock, patch

from redis.exceptions import LockNotOwnedError

from marketplace.payouts import tasks
from marketplace.services import locks


class TestComputePayoutsTask:
    @patch.object(tasks, "batch_lock")
    @patch.object(tasks, "SessionLocal")
    def test_skips_when_lock_held(self, mock_session_local, mock_batch_lock):
        mock_batch_lock.return_value.acquire.return_value = False

        result = tasks.compute_payouts()

        assert result == {"ok": True, "skipped": "locked"}
        mock_session_local.assert_not_called()
        mock_batch_lock.return_value.release.assert_not_called()

    @patch.object(tasks, "PayoutService")
    @patch.object(tasks, "batch_lock")
    @patch.object(tasks, "SessionLocal")
    def test_commits_and_releases_lock(self, mock_session_local, mock_batch_lock, mock_service_cls):
        lock = mock_batch_lock.return_value
        lock.acquire.return_value = True
        db = mock_session_local.return_value
        mock_service_cls.return_value.compute_payouts.return_value = [
            MagicMock(amount=800),
            MagicMock(amount=1600),
        ]

        result = tasks.compute_payouts()

        assert result == {"ok": True, "created": 2, "amount": 2400}
        mock_batch_lock.assert_called_once_with(tasks.PAYOUT_LOCK_NAME, tasks.settings.payout_lock_ttl_seconds)
        db.commit.assert_called_once()
        db.close.assert_called_once()
        lock.release.assert_called_once()

    @patch.object(tasks, "PayoutService")
    @patch.object(tasks, "batch_lock")
    @patch.object(tasks, "SessionLocal")
    def test_rolls_back_on_error(self, mock_session_local, mock_batch_lock, mock_service_cls):
        lock = mock_batch_lock.return_value
        lock.acquire.return_value = True
        db = mock_session_local.return_value
        mock_service_cls.return_value.compute_payouts.side_effect = RuntimeError("db gone")

        result = tasks.compute_payouts()

        assert result["ok"] is False
        db.rollback.assert_called_once()
        db.commit.assert_not_called()
        lock.release.assert_called_once()


class TestBatchLock:
    @patch("marketplace.services.locks.redis.Redis.from_url")
    def test_non_blocking_lock_with_ttl(self, mock_from_url):
        lock = locks.batch_lock("compute_payouts", 600)

        client = mock_from_url.return_value
        client.lock.assert_called_once_with("lock:compute_payouts", timeout=600, blocking=False)
        assert lock is client.lock.return_value

    def test_release_after_expiry_is_logged_not_raised(self):
        lock = MagicMock()
        lock.release.side_effect = LockNotOwnedError("expired")

        with patch.object(locks.logger, "warning") as mock_warning:
            locks.release_batch_lock(lock)

        mock_warning.assert_called_once_with("batch_lock_expired", extra={"error": "LockNotOwnedError"})
