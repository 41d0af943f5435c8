"""
Tests for Submission Access Tokens

Tests covering:
1. Token format and uniqueness
2. Validation: format, lookup, expiry (with EXPIRED marking)
3. Author email matching and security alerts
4. Renewal bounds, regeneration, reactivation
5. Expiry sweeps are idempotent
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import ADMIN_EMAIL, AUTHOR_EMAIL, FailingNotifier
from editorial.exceptions import (
    InvalidStatusException,
    SubmissionNotFoundException,
    ValidationException,
)
from editorial.submission.ports import NotificationKind
from editorial.submission.schema import AdminFeedback, FeedbackStatus, SubmissionStatus, utc_now
from editorial.submission.tokens import (
    EMAIL_MISMATCH,
    EMAIL_VALID,
    SUBMISSION_NOT_FOUND,
    TOKEN_EXPIRED,
    TOKEN_INVALID_FORMAT,
    TOKEN_LENGTH,
    TOKEN_NOT_FOUND,
    TokenService,
    days_until,
    generate_token_value,
    is_well_formed_token,
)


# =============================================================================
# Token Codec
# =============================================================================


class TestTokenFormat:
    def test_generated_token_is_64_lowercase_hex(self):
        token = generate_token_value()
        assert len(token) == TOKEN_LENGTH
        assert is_well_formed_token(token)
        assert token == token.lower()

    def test_tokens_are_unique(self):
        assert len({generate_token_value() for _ in range(200)}) == 200

    @pytest.mark.parametrize(
        "token",
        [None, "", "abc", "A" * 64, "g" * 64, "a" * 63, "a" * 65, 12345],
    )
    def test_malformed_tokens(self, token):
        assert not is_well_formed_token(token)

    def test_days_until_rounds_up(self):
        now = utc_now()
        assert days_until(now + timedelta(days=2, hours=1), now) == 3
        assert days_until(now + timedelta(days=3), now) == 3


# =============================================================================
# Validation
# =============================================================================


class TestValidate:
    @pytest.mark.asyncio
    async def test_valid_token_returns_submission_and_info(self, tokens, make_submission):
        submission = await make_submission(expires_in=timedelta(days=3))

        result = await tokens.validate(submission.token)

        assert result.is_valid
        assert result.submission.id == submission.id
        assert result.token_info.days_to_expiry == 3
        assert result.token_info.is_near_expiry
        assert result.token_info.needs_renewal

    @pytest.mark.asyncio
    async def test_far_expiry_is_not_near(self, tokens, make_submission):
        submission = await make_submission(expires_in=timedelta(days=20))
        result = await tokens.validate(submission.token)
        assert not result.token_info.is_near_expiry

    @pytest.mark.asyncio
    async def test_malformed_token(self, tokens):
        result = await tokens.validate("not-a-token")
        assert not result.is_valid
        assert result.reason == TOKEN_INVALID_FORMAT

    @pytest.mark.asyncio
    async def test_unknown_token(self, tokens):
        result = await tokens.validate(generate_token_value())
        assert not result.is_valid
        assert result.reason == TOKEN_NOT_FOUND

    @pytest.mark.asyncio
    async def test_expired_token_marks_submission_expired(self, tokens, store, make_submission):
        submission = await make_submission(expires_in=timedelta(hours=-1))

        result = await tokens.validate(submission.token)

        assert not result.is_valid
        assert result.reason == TOKEN_EXPIRED
        assert result.snapshot["id"] == submission.id
        stored = await store.get_submission(submission.id)
        assert stored.status is SubmissionStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_expired_status_wins_over_future_expiry(self, tokens, make_submission):
        submission = await make_submission(status=SubmissionStatus.EXPIRED)

        result = await tokens.validate(submission.token)

        assert not result.is_valid
        assert result.reason == TOKEN_EXPIRED

    @pytest.mark.asyncio
    async def test_expired_token_on_published_keeps_status(self, tokens, store, make_submission):
        submission = await make_submission(
            status=SubmissionStatus.PUBLISHED, expires_in=timedelta(days=-1)
        )

        result = await tokens.validate(submission.token)

        assert result.reason == TOKEN_EXPIRED
        stored = await store.get_submission(submission.id)
        assert stored.status is SubmissionStatus.PUBLISHED


class TestAuthorEmail:
    @pytest.mark.asyncio
    async def test_match_ignores_case_and_whitespace(self, tokens, make_submission):
        submission = await make_submission()
        result = await tokens.validate_author_email(submission.id, f"  {AUTHOR_EMAIL.upper()} ")
        assert result.is_valid
        assert result.reason == EMAIL_VALID

    @pytest.mark.asyncio
    async def test_repeated_checks_agree(self, tokens, make_submission):
        submission = await make_submission()
        first = await tokens.validate_author_email(submission.id, AUTHOR_EMAIL)
        second = await tokens.validate_author_email(submission.id, AUTHOR_EMAIL)
        assert first == second

    @pytest.mark.asyncio
    async def test_mismatch_sends_security_alert(self, tokens, notifier, make_submission):
        submission = await make_submission()

        result = await tokens.validate_author_email(submission.id, "intruso@example.com")

        assert not result.is_valid
        assert result.reason == EMAIL_MISMATCH
        alerts = notifier.of_kind(NotificationKind.SECURITY_ALERT)
        assert len(alerts) == 1
        recipients, payload = alerts[0]
        assert recipients == (ADMIN_EMAIL,)
        assert payload["provided_email"] == "intruso@example.com"

    @pytest.mark.asyncio
    async def test_alert_failure_does_not_raise(self, store, make_submission):
        tokens = TokenService(store, FailingNotifier(), alert_recipients=(ADMIN_EMAIL,))
        submission = await make_submission()

        result = await tokens.validate_author_email(submission.id, "intruso@example.com")

        assert result.reason == EMAIL_MISMATCH

    @pytest.mark.asyncio
    async def test_unknown_submission(self, tokens):
        result = await tokens.validate_author_email("missing", AUTHOR_EMAIL)
        assert result.reason == SUBMISSION_NOT_FOUND


# =============================================================================
# Issue / Renew / Regenerate / Reactivate
# =============================================================================


class TestIssueAndRenew:
    @pytest.mark.asyncio
    async def test_issue_replaces_token_and_emails_author(self, tokens, store, notifier, make_submission):
        submission = await make_submission()

        issued = await tokens.issue(submission.id, expiry_days=10)

        stored = await store.get_submission(submission.id)
        assert stored.token == issued.token != submission.token
        assert days_until(stored.expires_at) == 10
        to, payload = notifier.of_kind(NotificationKind.SUBMISSION_TOKEN)[-1]
        assert to == (AUTHOR_EMAIL,)
        assert payload["token"] == issued.token

    @pytest.mark.asyncio
    async def test_issue_unknown_submission(self, tokens):
        with pytest.raises(SubmissionNotFoundException):
            await tokens.issue("missing")

    @pytest.mark.asyncio
    async def test_renew_keeps_token(self, tokens, store, make_submission):
        submission = await make_submission(expires_in=timedelta(days=2))

        new_expiry = await tokens.renew(submission.id, 15)

        stored = await store.get_submission(submission.id)
        assert stored.token == submission.token
        assert stored.expires_at == new_expiry
        assert days_until(new_expiry) == 15

    @pytest.mark.asyncio
    @pytest.mark.parametrize("days", [0, 91, -5])
    async def test_renew_out_of_range(self, tokens, make_submission, days):
        submission = await make_submission()
        with pytest.raises(ValidationException):
            await tokens.renew(submission.id, days)

    @pytest.mark.asyncio
    async def test_regenerate_invalidates_old_token(self, tokens, make_submission):
        submission = await make_submission()

        issued = await tokens.regenerate(submission.id)

        assert (await tokens.validate(submission.token)).reason == TOKEN_NOT_FOUND
        assert (await tokens.validate(issued.token)).is_valid


class TestReactivate:
    @pytest.mark.asyncio
    async def test_without_feedback_goes_to_draft(self, tokens, store, make_submission):
        submission = await make_submission(
            status=SubmissionStatus.EXPIRED, expires_in=timedelta(days=-3)
        )

        reactivation = await tokens.reactivate_expired(submission.id)

        assert reactivation.status is SubmissionStatus.DRAFT
        assert reactivation.token != submission.token
        assert (await tokens.validate(reactivation.token)).is_valid

    @pytest.mark.asyncio
    async def test_with_feedback_goes_to_changes_requested(self, tokens, store, make_submission):
        submission = await make_submission(
            status=SubmissionStatus.EXPIRED, expires_in=timedelta(days=-3)
        )
        await store.insert_feedback(
            AdminFeedback(
                id="fb-1",
                submission_id=submission.id,
                admin_id="admin-1",
                content="Revise a introdução",
                status=FeedbackStatus.PENDING,
                created_at=utc_now(),
                admin_name="Editora",
            )
        )

        reactivation = await tokens.reactivate_expired(submission.id, expiry_days=7)

        assert reactivation.status is SubmissionStatus.CHANGES_REQUESTED
        assert days_until(reactivation.expires_at) == 7

    @pytest.mark.asyncio
    async def test_only_expired_can_be_reactivated(self, tokens, make_submission):
        submission = await make_submission(status=SubmissionStatus.DRAFT)
        with pytest.raises(InvalidStatusException):
            await tokens.reactivate_expired(submission.id)


# =============================================================================
# Sweeps
# =============================================================================


class TestSweeps:
    @pytest.mark.asyncio
    async def test_find_expiring_soonest_first(self, tokens, make_submission):
        later = await make_submission(expires_in=timedelta(days=4))
        sooner = await make_submission(expires_in=timedelta(days=1))
        await make_submission(expires_in=timedelta(days=20))
        await make_submission(status=SubmissionStatus.PUBLISHED, expires_in=timedelta(days=2))

        expiring = await tokens.find_expiring(5)

        assert [s.id for s in expiring] == [sooner.id, later.id]

    @pytest.mark.asyncio
    async def test_cleanup_is_idempotent(self, tokens, store, make_submission):
        lapsed = await make_submission(expires_in=timedelta(hours=-2))
        await make_submission(status=SubmissionStatus.REJECTED, expires_in=timedelta(days=-2))
        await make_submission()

        first = await tokens.cleanup_expired()
        second = await tokens.cleanup_expired()

        assert first.expired_count == 1
        assert first.expired_submissions[0]["id"] == lapsed.id
        assert second.expired_count == 0
        assert (await store.get_submission(lapsed.id)).status is SubmissionStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_token_stats(self, tokens, make_submission):
        await make_submission(expires_in=timedelta(days=2))
        await make_submission(expires_in=timedelta(days=-1))
        await make_submission()

        stats = await tokens.token_stats()

        assert stats["DRAFT"] == {"total": 3, "expired": 1, "expiring_soon": 1}
