"""
Scheduled Jobs - Token Cleanup and Email Reminders

Jobs are plain async callables. An external scheduler triggers them through
the admin job endpoints; nothing here schedules itself.

Jobs:
- TokenCleanupJob: expire submissions whose token has passed its expiry
- EmailNotificationJob: expiry warnings, expired notices, daily summary
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Final, Optional, Sequence

from editorial.exceptions import SubmissionError, ValidationException
from editorial.submission.ports import NotificationKind, NotificationPort, SubmissionStore
from editorial.submission.schema import SubmissionStatus, utc_now
from editorial.submission.tokens import CleanupResult, TokenService, days_until
from utils.logging_setup import log_audit_event

logger = logging.getLogger(__name__)

# Warnings go out when exactly this many days remain
WARNING_DAYS: Final[tuple[int, ...]] = (5, 3, 1)

EXPIRED_NOTICE_WINDOW: Final[timedelta] = timedelta(hours=6)
SUMMARY_WINDOW: Final[timedelta] = timedelta(hours=24)
SUMMARY_EXPIRING_DAYS: Final[int] = 5

# Statuses whose authors still have work to do before expiry
AUTHOR_ACTIVE_STATUSES: Final[tuple[SubmissionStatus, ...]] = (
    SubmissionStatus.DRAFT,
    SubmissionStatus.CHANGES_REQUESTED,
)

MANUAL_KINDS: Final[tuple[str, ...]] = ("expiring_tokens", "daily_summary", "expired_tokens")


class JobAlreadyRunningError(SubmissionError):
    """A job was triggered while a previous run is still in progress."""

    status_code = 409
    error_code = "JOB_ALREADY_RUNNING"

    def __init__(self, job_name: str):
        super().__init__(f"Job já está em execução: {job_name}")


# =============================================================================
# Token Cleanup
# =============================================================================


class TokenCleanupJob:
    """Marks expired submissions as EXPIRED. One run at a time."""

    name = "token_cleanup"

    def __init__(self, tokens: TokenService, warning_days: int = SUMMARY_EXPIRING_DAYS):
        self._tokens = tokens
        self._warning_days = warning_days
        self.is_running = False
        self.last_run: Optional[datetime] = None
        self.last_result: Optional[CleanupResult] = None

    async def run(self) -> CleanupResult:
        """
        Run cleanup once.

        Raises:
            JobAlreadyRunningError: If a run is already in progress
        """
        if self.is_running:
            raise JobAlreadyRunningError(self.name)

        self.is_running = True
        try:
            logger.info("Starting token cleanup")
            result = await self._tokens.cleanup_expired()
            if result.expired_count:
                expiring = await self._tokens.find_expiring(self._warning_days)
                logger.info(
                    "Token cleanup expired %d submission(s); %d more expiring within %d days",
                    result.expired_count,
                    len(expiring),
                    self._warning_days,
                )
            self.last_run = utc_now()
            self.last_result = result
            return result
        finally:
            self.is_running = False

    def status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "is_running": self.is_running,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }


# =============================================================================
# Email Notifications
# =============================================================================


class EmailNotificationJob:
    """Reminder and summary emails."""

    name = "email_notifications"

    def __init__(
        self,
        store: SubmissionStore,
        tokens: TokenService,
        notifier: NotificationPort,
        admin_emails: Sequence[str] = (),
    ):
        self._store = store
        self._tokens = tokens
        self._notifier = notifier
        self._admin_emails = tuple(admin_emails)
        self.is_running = False

    async def check_expiring_tokens(self) -> dict[str, Any]:
        """
        Warn authors whose access expires in exactly 5, 3 or 1 day(s).

        Raises:
            JobAlreadyRunningError: If a check is already in progress
        """
        if self.is_running:
            raise JobAlreadyRunningError("expiring_tokens")

        self.is_running = True
        sent = {days: 0 for days in WARNING_DAYS}
        failed = 0
        try:
            now = utc_now()
            for submission in await self._tokens.find_expiring(max(WARNING_DAYS)):
                days_left = days_until(submission.expires_at, now)
                if days_left not in sent:
                    continue
                try:
                    await self._notifier.send(
                        NotificationKind.EXPIRATION_WARNING,
                        submission.author_email,
                        {
                            "submission_id": submission.id,
                            "author_name": submission.author_name,
                            "title": submission.title,
                            "token": submission.token,
                            "days_left": days_left,
                            "expires_at": submission.expires_at.isoformat(),
                        },
                    )
                    sent[days_left] += 1
                except Exception:
                    failed += 1
                    logger.exception("Failed to send expiration warning for %s", submission.id)
        finally:
            self.is_running = False

        log_audit_event("Expiring tokens check completed", sent=sent, failed=failed)
        return {"sent": {f"{d}_days": n for d, n in sent.items()}, "failed": failed}

    async def process_expired_tokens(self) -> dict[str, Any]:
        """Notify authors whose access expired in the last 6 hours, then clean up."""
        now = utc_now()
        since = now - EXPIRED_NOTICE_WINDOW
        notified = 0
        for submission in await self._store.list_submissions():
            if submission.status not in AUTHOR_ACTIVE_STATUSES:
                continue
            if not since < submission.expires_at < now:
                continue
            try:
                await self._notifier.send(
                    NotificationKind.TOKEN_EXPIRED,
                    submission.author_email,
                    {
                        "submission_id": submission.id,
                        "author_name": submission.author_name,
                        "title": submission.title,
                    },
                )
                notified += 1
                log_audit_event("Token expired notification sent", submission_id=submission.id)
            except Exception:
                logger.exception("Failed to send expired notice for %s", submission.id)

        cleanup = await self._tokens.cleanup_expired()
        return {"notified": notified, "cleanup": cleanup.to_dict()}

    async def collect_daily_summary(self) -> dict[str, int]:
        now = utc_now()
        since = now - SUMMARY_WINDOW
        horizon = now + timedelta(days=SUMMARY_EXPIRING_DAYS)
        submissions = await self._store.list_submissions()
        return {
            "new_submissions": sum(
                1 for s in submissions
                if s.created_at >= since and s.status is SubmissionStatus.DRAFT
            ),
            "pending_reviews": sum(
                1 for s in submissions if s.status is SubmissionStatus.UNDER_REVIEW
            ),
            "published_articles": sum(
                1 for s in submissions
                if s.created_at >= since and s.status is SubmissionStatus.PUBLISHED
            ),
            "expiring_tokens": sum(
                1 for s in submissions
                if s.expires_at <= horizon and s.status in AUTHOR_ACTIVE_STATUSES
            ),
        }

    async def send_daily_summary(self) -> dict[str, Any]:
        """Email the admins a summary, only when there was activity."""
        summary = await self.collect_daily_summary()
        active = (
            summary["new_submissions"]
            or summary["pending_reviews"]
            or summary["published_articles"]
        )
        if not active or not self._admin_emails:
            return {"sent": False, "summary": summary}

        await self._notifier.send(
            NotificationKind.DAILY_SUMMARY,
            list(self._admin_emails),
            {**summary, "date": utc_now().date().isoformat()},
        )
        log_audit_event("Daily summary sent", recipients=len(self._admin_emails))
        return {"sent": True, "summary": summary}

    async def run_manual(self, kind: str) -> dict[str, Any]:
        """
        Run one notification task on demand.

        Raises:
            ValidationException: Unknown kind
        """
        if kind == "expiring_tokens":
            result = await self.check_expiring_tokens()
        elif kind == "daily_summary":
            result = await self.send_daily_summary()
        elif kind == "expired_tokens":
            result = await self.process_expired_tokens()
        else:
            raise ValidationException(
                f"Tipo de notificação desconhecido: {kind}",
                [f"Permitidos: {', '.join(MANUAL_KINDS)}"],
            )
        return {"success": True, "type": kind, "result": result}

    def status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "is_running": self.is_running,
            "admin_emails": list(self._admin_emails),
        }
