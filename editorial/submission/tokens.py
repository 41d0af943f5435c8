"""
Submission Access Tokens

Opaque, time-limited tokens give anonymous authors access to their own
submission. No accounts. No passwords.

Principles:
1. Tokens are cryptographically random (256 bits, lowercase hex)
2. Format is checked before storage is touched
3. A token past its expiry is never reported valid, whatever the status
4. Tokens are never logged in full
"""

from __future__ import annotations

import logging
import math
import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Final, Optional, Sequence

from editorial.exceptions import SubmissionNotFoundException, ValidationException
from editorial.submission.lifecycle import (
    LifecycleEvent,
    allowed_statuses,
    can_transition,
    next_status,
)
from editorial.submission.ports import NotificationKind, NotificationPort, SubmissionStore
from editorial.submission.schema import (
    TOKEN_EXPIRY_DAYS,
    Submission,
    SubmissionStatus,
    utc_now,
)
from utils.logging_setup import log_audit_event, log_security_event, mask_token

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# 32 bytes = 64 hex chars
TOKEN_BYTES: Final[int] = 32
TOKEN_LENGTH: Final[int] = 64

# Days before expiry at which a token counts as near expiry
TOKEN_WARNING_DAYS: Final[int] = 5

RENEWAL_MIN_DAYS: Final[int] = 1
RENEWAL_MAX_DAYS: Final[int] = 90

_TOKEN_PATTERN = re.compile(r"^[a-f0-9]+$")

# Validation reasons
TOKEN_INVALID_FORMAT: Final[str] = "TOKEN_INVALID_FORMAT"
TOKEN_NOT_FOUND: Final[str] = "TOKEN_NOT_FOUND"
TOKEN_EXPIRED: Final[str] = "TOKEN_EXPIRED"
VALIDATION_ERROR: Final[str] = "VALIDATION_ERROR"
EMAIL_VALID: Final[str] = "EMAIL_VALID"
EMAIL_MISMATCH: Final[str] = "EMAIL_MISMATCH"
SUBMISSION_NOT_FOUND: Final[str] = "SUBMISSION_NOT_FOUND"


# =============================================================================
# Token Codec
# =============================================================================


def generate_token_value() -> str:
    """
    Generate a cryptographically secure token value.

    Uses secrets module for cryptographic randomness.
    Returns 64 lowercase hex characters.
    """
    return secrets.token_hex(TOKEN_BYTES)


def is_well_formed_token(token: Any) -> bool:
    """Check length and alphabet without touching storage."""
    return (
        isinstance(token, str)
        and len(token) == TOKEN_LENGTH
        and _TOKEN_PATTERN.match(token) is not None
    )


def days_until(moment: datetime, now: Optional[datetime] = None) -> int:
    """Whole days until a moment, rounded up (negative once past)."""
    now = now or utc_now()
    return math.ceil((moment - now).total_seconds() / 86400)


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class TokenIssue:
    token: str
    expires_at: datetime
    expiry_days: int

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "expires_at": self.expires_at.isoformat(),
            "expiry_days": self.expiry_days,
        }


@dataclass(frozen=True)
class TokenInfo:
    """Expiry details attached to a valid token."""

    expires_at: datetime
    days_to_expiry: int
    is_near_expiry: bool
    needs_renewal: bool

    def to_dict(self) -> dict:
        return {
            "expires_at": self.expires_at.isoformat(),
            "days_to_expiry": self.days_to_expiry,
            "is_near_expiry": self.is_near_expiry,
            "needs_renewal": self.needs_renewal,
        }


@dataclass(frozen=True)
class TokenValidation:
    """
    Outcome of validating a token.

    An expired token is reported with is_valid=False and reason
    TOKEN_EXPIRED, and still carries the submission snapshot so the caller
    can offer recovery guidance.
    """

    is_valid: bool
    submission: Optional[Submission] = None
    token_info: Optional[TokenInfo] = None
    reason: Optional[str] = None
    snapshot: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class EmailValidation:
    is_valid: bool
    reason: str


@dataclass(frozen=True)
class Reactivation:
    token: str
    status: SubmissionStatus
    expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "status": self.status.value,
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass(frozen=True)
class CleanupResult:
    expired_count: int
    expired_submissions: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "expired_count": self.expired_count,
            "expired_submissions": list(self.expired_submissions),
        }


# =============================================================================
# Token Service
# =============================================================================


class TokenService:
    """
    Issues, validates, renews and recovers submission access tokens.

    Depends on the SubmissionStore for persistence and, optionally, the
    NotificationPort for token and security-alert emails.
    """

    def __init__(
        self,
        store: SubmissionStore,
        notifier: Optional[NotificationPort] = None,
        expiry_days: int = TOKEN_EXPIRY_DAYS,
        warning_days: int = TOKEN_WARNING_DAYS,
        alert_recipients: Sequence[str] = (),
    ):
        self._store = store
        self._notifier = notifier
        self.expiry_days = expiry_days
        self.warning_days = warning_days
        self._alert_recipients = tuple(alert_recipients)

    async def _require(self, submission_id: str) -> Submission:
        submission = await self._store.get_submission(submission_id)
        if not submission:
            raise SubmissionNotFoundException()
        return submission

    async def generate_unique_token(self) -> str:
        """Fresh token value not held by any submission."""
        token = generate_token_value()
        # Ensure uniqueness (collision is extremely unlikely)
        while await self._store.get_submission_by_token(token):
            token = generate_token_value()
        return token

    # =========================================================================
    # Issue
    # =========================================================================

    async def issue(self, submission_id: str, expiry_days: Optional[int] = None) -> TokenIssue:
        """
        Mint a token for a submission, persist it and email it to the author.

        Raises:
            SubmissionNotFoundException: If the submission does not exist
        """
        await self._require(submission_id)
        days = expiry_days or self.expiry_days
        token = await self.generate_unique_token()
        now = utc_now()
        expires_at = now + timedelta(days=days)

        submission = await self._store.update_submission(
            submission_id, token=token, expires_at=expires_at, updated_at=now
        )
        log_audit_event(
            "Submission token created",
            submission_id=submission_id,
            token=mask_token(token),
            expiry_days=days,
        )

        await self.notify_token_issued(submission)
        return TokenIssue(token=token, expires_at=expires_at, expiry_days=days)

    async def notify_token_issued(self, submission: Submission) -> None:
        """Send the access link to the author. Failures are logged, not raised."""
        if not self._notifier:
            return
        try:
            await self._notifier.send(
                NotificationKind.SUBMISSION_TOKEN,
                submission.author_email,
                {
                    "submission_id": submission.id,
                    "author_name": submission.author_name,
                    "title": submission.title,
                    "token": submission.token,
                    "expires_at": submission.expires_at.isoformat(),
                },
            )
        except Exception:
            logger.exception("Failed to send token email for submission %s", submission.id)

    # =========================================================================
    # Validate
    # =========================================================================

    def token_info(self, expires_at: datetime) -> TokenInfo:
        days = days_until(expires_at)
        near = days <= self.warning_days
        return TokenInfo(
            expires_at=expires_at,
            days_to_expiry=days,
            is_near_expiry=near,
            needs_renewal=near,
        )

    async def validate(self, token: Any) -> TokenValidation:
        """
        Validate a token: format, then lookup, then expiry.

        Never raises. An unexpected store failure is reported as
        VALIDATION_ERROR.
        """
        if not is_well_formed_token(token):
            log_security_event("Invalid token format attempted", token=mask_token(token))
            return TokenValidation(is_valid=False, reason=TOKEN_INVALID_FORMAT)

        try:
            submission = await self._store.get_submission_by_token(token)
            if not submission:
                log_security_event("Token not found", token=mask_token(token))
                return TokenValidation(is_valid=False, reason=TOKEN_NOT_FOUND)

            if submission.is_expired or submission.status is SubmissionStatus.EXPIRED:
                if can_transition(submission.status, LifecycleEvent.EXPIRE):
                    await self._mark_expired(submission)
                log_security_event(
                    "Expired token access attempted",
                    submission_id=submission.id,
                    token=mask_token(token),
                    status=submission.status.value,
                )
                return TokenValidation(
                    is_valid=False,
                    reason=TOKEN_EXPIRED,
                    snapshot=submission.snapshot(),
                )

            info = self.token_info(submission.expires_at)
            log_audit_event(
                "Valid token access",
                submission_id=submission.id,
                token=mask_token(token),
                days_to_expiry=info.days_to_expiry,
            )
            return TokenValidation(is_valid=True, submission=submission, token_info=info)

        except Exception:
            logger.exception("Error validating token %s", mask_token(token))
            return TokenValidation(is_valid=False, reason=VALIDATION_ERROR)

    async def _mark_expired(self, submission: Submission) -> None:
        status = next_status(submission.status, LifecycleEvent.EXPIRE)
        await self._store.update_submission(submission.id, status=status, updated_at=utc_now())
        log_audit_event("Submission marked as expired", submission_id=submission.id)

    async def validate_author_email(self, submission_id: str, email: Optional[str]) -> EmailValidation:
        """
        Compare a claimed email with the submission's author email.

        Case and surrounding whitespace are ignored.
        """
        submission = await self._store.get_submission(submission_id)
        if not submission:
            return EmailValidation(is_valid=False, reason=SUBMISSION_NOT_FOUND)

        provided = (email or "").strip().lower()
        if provided and provided == submission.author_email.strip().lower():
            return EmailValidation(is_valid=True, reason=EMAIL_VALID)

        log_security_event(
            "Email mismatch for submission access",
            submission_id=submission_id,
            provided_email=email,
        )
        await self._send_security_alert(submission_id, email)
        return EmailValidation(is_valid=False, reason=EMAIL_MISMATCH)

    async def _send_security_alert(self, submission_id: str, email: Optional[str]) -> None:
        if not self._notifier or not self._alert_recipients:
            return
        try:
            await self._notifier.send(
                NotificationKind.SECURITY_ALERT,
                list(self._alert_recipients),
                {
                    "event": "EMAIL_MISMATCH",
                    "submission_id": submission_id,
                    "provided_email": email,
                    "occurred_at": utc_now().isoformat(),
                },
            )
        except Exception:
            logger.exception("Failed to send security alert for submission %s", submission_id)

    # =========================================================================
    # Renew / Regenerate / Reactivate
    # =========================================================================

    async def renew(self, submission_id: str, additional_days: int = TOKEN_EXPIRY_DAYS) -> datetime:
        """
        Extend a submission's expiry without rotating its token.

        Raises:
            ValidationException: If additional_days is outside 1..90
            SubmissionNotFoundException: If the submission does not exist
        """
        if not RENEWAL_MIN_DAYS <= additional_days <= RENEWAL_MAX_DAYS:
            raise ValidationException(
                f"Dias adicionais devem estar entre {RENEWAL_MIN_DAYS} e {RENEWAL_MAX_DAYS}",
                [f"additional_days={additional_days}"],
            )
        await self._require(submission_id)

        now = utc_now()
        new_expires_at = now + timedelta(days=additional_days)
        await self._store.update_submission(submission_id, expires_at=new_expires_at, updated_at=now)
        log_audit_event(
            "Token renewed", submission_id=submission_id, additional_days=additional_days
        )
        return new_expires_at

    async def regenerate(self, submission_id: str) -> TokenIssue:
        """Replace the token outright. The old token stops working immediately."""
        await self._require(submission_id)
        token = await self.generate_unique_token()
        now = utc_now()
        expires_at = now + timedelta(days=self.expiry_days)
        await self._store.update_submission(
            submission_id, token=token, expires_at=expires_at, updated_at=now
        )
        log_audit_event("Token regenerated", submission_id=submission_id, token=mask_token(token))
        return TokenIssue(token=token, expires_at=expires_at, expiry_days=self.expiry_days)

    async def reactivate_expired(
        self,
        submission_id: str,
        expiry_days: Optional[int] = None,
    ) -> Reactivation:
        """
        Bring an EXPIRED submission back with a fresh token.

        The new status is CHANGES_REQUESTED when the author has received
        feedback, otherwise DRAFT.

        Raises:
            SubmissionNotFoundException: If the submission does not exist
            InvalidStatusException: If the submission is not EXPIRED
        """
        submission = await self._require(submission_id)
        feedback = await self._store.list_feedback(submission_id)
        status = next_status(
            submission.status, LifecycleEvent.REACTIVATE, has_feedback=bool(feedback)
        )

        days = expiry_days or self.expiry_days
        token = await self.generate_unique_token()
        now = utc_now()
        expires_at = now + timedelta(days=days)
        await self._store.update_submission(
            submission_id, token=token, status=status, expires_at=expires_at, updated_at=now
        )
        log_audit_event(
            "Expired submission reactivated",
            submission_id=submission_id,
            token=mask_token(token),
            status=status.value,
        )
        return Reactivation(token=token, status=status, expires_at=expires_at)

    # =========================================================================
    # Sweeps
    # =========================================================================

    async def find_expiring(self, days_ahead: int = TOKEN_WARNING_DAYS) -> list[Submission]:
        """Live submissions whose token expires within days_ahead, soonest first."""
        now = utc_now()
        horizon = now + timedelta(days=days_ahead)
        live = set(allowed_statuses(LifecycleEvent.EXPIRE))
        expiring = [
            s for s in await self._store.list_submissions()
            if s.status in live and now < s.expires_at <= horizon
        ]
        return sorted(expiring, key=lambda s: s.expires_at)

    async def cleanup_expired(self) -> CleanupResult:
        """
        Mark every live submission past its expiry as EXPIRED.

        Idempotent: a second run with no new expirations expires nothing.
        """
        now = utc_now()
        expired: list[dict[str, Any]] = []
        for submission in await self._store.list_submissions():
            if submission.expires_at >= now:
                continue
            if not can_transition(submission.status, LifecycleEvent.EXPIRE):
                continue
            await self._store.update_submission(
                submission.id, status=SubmissionStatus.EXPIRED, updated_at=now
            )
            expired.append(
                {
                    "id": submission.id,
                    "author_email": submission.author_email,
                    "title": submission.title,
                }
            )

        if expired:
            log_audit_event("Expired tokens cleaned up", expired_count=len(expired))
        return CleanupResult(expired_count=len(expired), expired_submissions=expired)

    async def token_stats(self) -> dict[str, dict[str, int]]:
        """Per-status totals with expired and expiring-soon counts."""
        now = utc_now()
        horizon = now + timedelta(days=self.warning_days)
        stats: dict[str, dict[str, int]] = {}
        for submission in await self._store.list_submissions():
            row = stats.setdefault(
                submission.status.value, {"total": 0, "expired": 0, "expiring_soon": 0}
            )
            row["total"] += 1
            if submission.expires_at < now:
                row["expired"] += 1
            elif submission.expires_at <= horizon:
                row["expiring_soon"] += 1
        return stats
