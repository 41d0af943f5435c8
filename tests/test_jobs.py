"""
Tests for Scheduled Jobs

Tests covering:
1. Token cleanup job: run, status, one run at a time
2. Expiry warnings at exactly 5, 3 and 1 day(s)
3. Expired-token notices within the recent window
4. Daily summary only on activity
5. Manual trigger dispatch
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import ADMIN_EMAIL, FailingNotifier
from editorial.exceptions import ValidationException
from editorial.jobs import EmailNotificationJob, JobAlreadyRunningError, TokenCleanupJob
from editorial.submission.ports import NotificationKind
from editorial.submission.schema import SubmissionStatus
from editorial.submission.tokens import TokenService


@pytest.fixture
def email_job(store, tokens, notifier):
    return EmailNotificationJob(store, tokens, notifier, admin_emails=(ADMIN_EMAIL,))


class TestTokenCleanupJob:
    @pytest.mark.asyncio
    async def test_run_records_result(self, tokens, store, make_submission):
        lapsed = await make_submission(expires_in=timedelta(hours=-1))
        job = TokenCleanupJob(tokens)

        result = await job.run()

        assert result.expired_count == 1
        assert (await store.get_submission(lapsed.id)).status is SubmissionStatus.EXPIRED
        status = job.status()
        assert status["is_running"] is False
        assert status["last_run"] is not None
        assert status["last_result"]["expired_count"] == 1

    @pytest.mark.asyncio
    async def test_refuses_overlapping_run(self, tokens):
        job = TokenCleanupJob(tokens)
        job.is_running = True

        with pytest.raises(JobAlreadyRunningError) as exc_info:
            await job.run()

        assert exc_info.value.status_code == 409

    def test_idle_status(self, tokens):
        assert TokenCleanupJob(tokens).status()["last_result"] is None


class TestExpiryWarnings:
    @pytest.mark.asyncio
    async def test_warns_only_on_warning_days(self, email_job, notifier, make_submission):
        for days in (1, 2, 3, 4, 5):
            await make_submission(expires_in=timedelta(days=days))

        result = await email_job.check_expiring_tokens()

        assert result == {"sent": {"5_days": 1, "3_days": 1, "1_days": 1}, "failed": 0}
        warnings = notifier.of_kind(NotificationKind.EXPIRATION_WARNING)
        assert sorted(payload["days_left"] for _, payload in warnings) == [1, 3, 5]

    @pytest.mark.asyncio
    async def test_send_failures_are_counted(self, store, make_submission):
        job = EmailNotificationJob(store, TokenService(store), FailingNotifier())
        await make_submission(expires_in=timedelta(days=3))

        result = await job.check_expiring_tokens()

        assert result["failed"] == 1
        assert job.is_running is False

    @pytest.mark.asyncio
    async def test_refuses_overlapping_check(self, email_job):
        email_job.is_running = True
        with pytest.raises(JobAlreadyRunningError):
            await email_job.check_expiring_tokens()


class TestExpiredNotices:
    @pytest.mark.asyncio
    async def test_recently_expired_authors_are_told(self, email_job, notifier, store, make_submission):
        recent = await make_submission(expires_in=timedelta(hours=-2))
        await make_submission(expires_in=timedelta(hours=-10))
        await make_submission(status=SubmissionStatus.UNDER_REVIEW, expires_in=timedelta(hours=-1))

        result = await email_job.process_expired_tokens()

        assert result["notified"] == 1
        assert result["cleanup"]["expired_count"] == 3
        notices = notifier.of_kind(NotificationKind.TOKEN_EXPIRED)
        assert notices[0][1]["submission_id"] == recent.id


class TestDailySummary:
    @pytest.mark.asyncio
    async def test_no_activity_sends_nothing(self, email_job, notifier):
        result = await email_job.send_daily_summary()
        assert result["sent"] is False
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_summary_is_sent_to_admins(self, email_job, notifier, make_submission):
        await make_submission()
        await make_submission(status=SubmissionStatus.UNDER_REVIEW)
        await make_submission(expires_in=timedelta(days=2))

        result = await email_job.send_daily_summary()

        assert result["sent"] is True
        assert result["summary"] == {
            "new_submissions": 2,
            "pending_reviews": 1,
            "published_articles": 0,
            "expiring_tokens": 1,
        }
        recipients, payload = notifier.of_kind(NotificationKind.DAILY_SUMMARY)[0]
        assert recipients == (ADMIN_EMAIL,)
        assert "date" in payload

    @pytest.mark.asyncio
    async def test_no_admin_emails(self, store, tokens, notifier, make_submission):
        job = EmailNotificationJob(store, tokens, notifier)
        await make_submission()
        assert (await job.send_daily_summary())["sent"] is False


class TestManualTrigger:
    @pytest.mark.asyncio
    async def test_dispatch(self, email_job):
        result = await email_job.run_manual("expired_tokens")
        assert result["success"] is True
        assert result["type"] == "expired_tokens"
        assert result["result"]["notified"] == 0

    @pytest.mark.asyncio
    async def test_unknown_kind(self, email_job):
        with pytest.raises(ValidationException):
            await email_job.run_manual("weekly_digest")
