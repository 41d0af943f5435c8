"""
Admin Review Engine

Orchestrates every admin-side operation on submissions: listing and
search, review decisions, feedback, publishing, bulk actions, the
dashboard and the audit trail.

Principles:
1. Every operation takes the acting admin id explicitly
2. Status rules come from the lifecycle module, never from here
3. Every mutation ends with exactly one audit log entry
4. Status update and audit insert are two separate store calls
"""

from __future__ import annotations

import logging
import math
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Final, Optional

from editorial.exceptions import (
    InvalidStatusException,
    SubmissionNotFoundException,
    ValidationException,
)
from editorial.review import dashboard
from editorial.review.publish import (
    BULK_ACTION_LIMIT,
    BULK_EXTEND_DAYS,
    BulkAction,
    BulkActionResult,
    BulkActionType,
    BulkFailure,
    PublishFailure,
    PublishRequest,
    PublishResult,
    PublishSuccess,
)
from editorial.submission.lifecycle import (
    LifecycleEvent,
    allowed_statuses,
    can_transition,
    ensure_transition,
    next_status,
    submission_to_review_status,
)
from editorial.submission.ports import NotificationKind, NotificationPort, SubmissionStore
from editorial.submission.schema import (
    AdminActionLog,
    AdminFeedback,
    FeedbackStatus,
    ReviewStatus,
    Submission,
    SubmissionFilters,
    SubmissionReview,
    SubmissionStatus,
    generate_id,
    utc_now,
)
from editorial.submission.tokens import Reactivation, TokenService
from utils.formatting import build_article_url, generate_slug
from utils.logging_setup import log_audit_event

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

SORTABLE_FIELDS: Final[frozenset[str]] = frozenset(
    {"created_at", "updated_at", "title", "author_name", "status"}
)
DEFAULT_SORT_BY: Final[str] = "updated_at"
DEFAULT_SORT_ORDER: Final[str] = "desc"

DEFAULT_PAGE_SIZE: Final[int] = 20
MAX_PAGE_SIZE: Final[int] = 100

SEARCH_MIN_LENGTH: Final[int] = 2
SEARCH_RESULT_LIMIT: Final[int] = 50

ACTION_LOG_DEFAULT_LIMIT: Final[int] = 50
ACTION_LOG_MAX_LIMIT: Final[int] = 100

DEFAULT_ADMIN_NAME: Final[str] = "Admin"

REJECTED_FALLBACK: Final[str] = "Sua submissão foi rejeitada."
CHANGES_FALLBACK: Final[str] = "Foram solicitadas alterações em sua submissão."

_BULK_REVIEW_STATUS: Final[dict[BulkActionType, ReviewStatus]] = {
    BulkActionType.APPROVE: ReviewStatus.APPROVED,
    BulkActionType.REJECT: ReviewStatus.REJECTED,
    BulkActionType.REQUEST_CHANGES: ReviewStatus.CHANGES_REQUESTED,
}


# =============================================================================
# Queries and Pages
# =============================================================================


@dataclass(frozen=True)
class SubmissionQuery:
    """Filters plus sort and page for the admin listing."""

    filters: SubmissionFilters = field(default_factory=SubmissionFilters)
    sort_by: str = DEFAULT_SORT_BY
    sort_order: str = DEFAULT_SORT_ORDER
    page: int = 1
    limit: Optional[int] = None


@dataclass(frozen=True)
class PaginatedSubmissions:
    submissions: list[dict[str, Any]]
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1

    def to_dict(self) -> dict:
        return {
            "submissions": self.submissions,
            "pagination": {
                "current_page": self.current_page,
                "total_pages": self.total_pages,
                "total_items": self.total_items,
                "items_per_page": self.items_per_page,
                "has_next": self.has_next,
                "has_previous": self.has_previous,
            },
        }


@dataclass(frozen=True)
class ActionLogFilters:
    action: Optional[str] = None
    target_type: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    page: int = 1
    limit: Optional[int] = None


@dataclass(frozen=True)
class ActionLogPage:
    logs: list[AdminActionLog]
    total: int

    def to_dict(self) -> dict:
        return {"logs": [entry.to_dict() for entry in self.logs], "total": self.total}


def sanitize_sort(sort_by: Optional[str], sort_order: Optional[str]) -> tuple[str, str]:
    """Restrict sorting to the allow-list; field and order fall back independently."""
    field_name = sort_by if sort_by in SORTABLE_FIELDS else DEFAULT_SORT_BY
    order = (sort_order or "").lower()
    if order not in ("asc", "desc"):
        order = DEFAULT_SORT_ORDER
    return field_name, order


def clamp_limit(limit: Optional[int], default: int, maximum: int) -> int:
    return min(limit or default, maximum)


def _fold(text: Optional[str]) -> str:
    """Lowercase and strip accents for matching."""
    normalized = unicodedata.normalize("NFD", (text or "").lower())
    return "".join(ch for ch in normalized if unicodedata.category(ch) != "Mn")


# =============================================================================
# Engine
# =============================================================================


class AdminReviewEngine:
    """Admin operations over submissions."""

    def __init__(
        self,
        store: SubmissionStore,
        tokens: TokenService,
        notifier: NotificationPort,
        frontend_url: Optional[str] = None,
    ):
        self._store = store
        self._tokens = tokens
        self._notifier = notifier
        self._frontend_url = frontend_url

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _require(self, submission_id: str) -> Submission:
        submission = await self._store.get_submission(submission_id)
        if not submission:
            raise SubmissionNotFoundException()
        return submission

    async def _admin_name(self, admin_id: str) -> str:
        admin = await self._store.get_admin(admin_id)
        return admin.name if admin else DEFAULT_ADMIN_NAME

    async def _log_action(
        self,
        admin_id: str,
        action: str,
        target_type: str,
        target_id: str,
        details: dict[str, Any],
    ) -> None:
        entry = AdminActionLog.create(admin_id, action, target_type, target_id, details)
        await self._store.insert_action_log(entry)
        log_audit_event(
            "Admin action", admin_id=admin_id, action=action, target_id=target_id
        )

    async def _row(self, submission: Submission, now: datetime) -> dict[str, Any]:
        """Listing row: submission fields plus file totals, expiry and review view."""
        files = await self._store.list_files(submission.id)
        row = submission.to_dict(include_token=False)
        row.update(
            {
                "file_count": len(files),
                "total_size": sum(f.size for f in files),
                "days_until_expiry": int((submission.expires_at - now).total_seconds() / 86400),
                "can_be_published": submission.status is SubmissionStatus.APPROVED,
                "last_activity": submission.last_activity.isoformat(),
                "review": None,
            }
        )
        if submission.reviewed_by:
            row["review"] = {
                "submission_id": submission.id,
                "admin_id": submission.reviewed_by,
                "admin_name": await self._admin_name(submission.reviewed_by),
                "status": submission_to_review_status(submission.status).value,
                "review_notes": submission.review_notes,
                "rejection_reason": submission.rejection_reason,
                "reviewed_at": submission.reviewed_at.isoformat() if submission.reviewed_at else None,
            }
        return row

    # =========================================================================
    # Dashboard
    # =========================================================================

    async def get_dashboard(self, admin_id: str) -> dict[str, Any]:
        """Aggregate snapshot for the admin home page. Read-only."""
        submissions = await self._store.list_submissions()
        admins = {a.id: a for a in await self._store.list_active_admins()}
        for submission in submissions:
            reviewer = submission.reviewed_by
            if reviewer and reviewer not in admins:
                admin = await self._store.get_admin(reviewer)
                if admin:
                    admins[reviewer] = admin

        logger.debug("Dashboard requested by %s", admin_id)
        return dashboard.build_dashboard(submissions, admins, utc_now())

    # =========================================================================
    # Listing and Search
    # =========================================================================

    async def get_submissions(self, query: SubmissionQuery, admin_id: str) -> PaginatedSubmissions:
        """Filtered, sorted, paginated listing (page size capped at 100)."""
        sort_by, sort_order = sanitize_sort(query.sort_by, query.sort_order)
        page = max(query.page or 1, 1)
        limit = clamp_limit(query.limit, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)

        rows, total = await self._store.search_submissions(
            query.filters,
            sort_by=sort_by,
            sort_order=sort_order,
            offset=(page - 1) * limit,
            limit=limit,
        )
        now = utc_now()
        return PaginatedSubmissions(
            submissions=[await self._row(s, now) for s in rows],
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_items=total,
            items_per_page=limit,
        )

    async def search_submissions(
        self,
        query: str,
        admin_id: str,
        filters: Optional[SubmissionFilters] = None,
    ) -> list[dict[str, Any]]:
        """
        Free-text search ranked by relevance, then recency (at most 50).

        A term in the title counts double; the summary, content and the
        author's name and email count once.
        """
        terms = _fold(query).split()
        if len(query.strip()) < SEARCH_MIN_LENGTH or not terms:
            raise ValidationException(
                f"Termo de busca deve ter pelo menos {SEARCH_MIN_LENGTH} caracteres"
            )
        filters = filters or SubmissionFilters()

        ranked: list[tuple[int, Submission]] = []
        for s in await self._store.list_submissions():
            if filters.status and s.status not in filters.status:
                continue
            if filters.category and s.category not in filters.category:
                continue
            title = _fold(s.title)
            body = _fold(f"{s.summary or ''} {s.content}")
            author = _fold(f"{s.author_name} {s.author_email}")
            rank = sum(
                2 * (term in title) + (term in body) + (term in author) for term in terms
            )
            if rank:
                ranked.append((rank, s))

        ranked.sort(key=lambda pair: (pair[0], pair[1].updated_at), reverse=True)
        now = utc_now()
        return [await self._row(s, now) for _, s in ranked[:SEARCH_RESULT_LIMIT]]

    # =========================================================================
    # Review
    # =========================================================================

    async def review_submission(
        self,
        submission_id: str,
        admin_id: str,
        status: ReviewStatus,
        notes: Optional[str] = None,
        rejection_reason: Optional[str] = None,
    ) -> SubmissionReview:
        """
        Record a review decision.

        Writes one SubmissionReview and one audit entry. The author is
        notified for rejected and changes_requested only; a notification
        failure is logged.

        Raises:
            SubmissionNotFoundException: Unknown submission
            InvalidStatusException: Submission cannot be reviewed now
        """
        submission = await self._require(submission_id)
        new_status = next_status(submission.status, LifecycleEvent.REVIEW, review_status=status)
        admin_name = await self._admin_name(admin_id)
        now = utc_now()

        await self._store.update_submission(
            submission_id,
            status=new_status,
            reviewed_by=admin_id,
            reviewed_at=now,
            review_notes=notes,
            rejection_reason=rejection_reason,
            updated_at=now,
        )

        review = SubmissionReview(
            id=generate_id(),
            submission_id=submission_id,
            admin_id=admin_id,
            status=status,
            reviewed_at=now,
            admin_name=admin_name,
            review_notes=notes,
            rejection_reason=rejection_reason,
        )
        await self._store.insert_review(review)

        await self._log_action(
            admin_id,
            "review_submission",
            "submission",
            submission_id,
            {
                "status": status.value,
                "notes": notes,
                "rejection_reason": rejection_reason,
                "previous_status": submission.status.value,
            },
        )

        await self._send_review_notification(submission, review)
        return review

    async def _send_review_notification(self, submission: Submission, review: SubmissionReview) -> None:
        if review.status is ReviewStatus.REJECTED:
            content = review.rejection_reason or REJECTED_FALLBACK
        elif review.status is ReviewStatus.CHANGES_REQUESTED:
            content = review.review_notes or CHANGES_FALLBACK
        else:
            # Approval is announced on publish
            return

        try:
            await self._notifier.send(
                NotificationKind.FEEDBACK_TO_AUTHOR,
                submission.author_email,
                {
                    "submission_id": submission.id,
                    "author_name": submission.author_name,
                    "title": submission.title,
                    "token": submission.token,
                    "feedback": content,
                    "review_status": review.status.value,
                    "admin_name": review.admin_name,
                },
            )
        except Exception:
            logger.exception(
                "Error sending review notification for %s (%s)",
                submission.id,
                review.status.value,
            )

    # =========================================================================
    # Feedback
    # =========================================================================

    async def send_feedback(self, submission_id: str, admin_id: str, content: str) -> AdminFeedback:
        """
        Send a message to the author and move the submission to CHANGES_REQUESTED.

        The author is notified synchronously; a notification failure
        propagates to the caller after the feedback and status change have
        been stored.

        Raises:
            ValidationException: Empty content
            SubmissionNotFoundException: Unknown submission
            InvalidStatusException: Submission is terminal or expired
        """
        if not content or not content.strip():
            raise ValidationException(validation_errors=["Conteúdo do feedback é obrigatório"])

        submission = await self._require(submission_id)
        ensure_transition(submission.status, LifecycleEvent.SEND_FEEDBACK)
        admin_name = await self._admin_name(admin_id)
        now = utc_now()

        feedback = AdminFeedback(
            id=generate_id(),
            submission_id=submission_id,
            admin_id=admin_id,
            content=content.strip(),
            status=FeedbackStatus.PENDING,
            created_at=now,
            admin_name=admin_name,
        )
        await self._store.insert_feedback(feedback)

        if submission.status is not SubmissionStatus.CHANGES_REQUESTED:
            await self._store.update_submission(
                submission_id,
                status=next_status(submission.status, LifecycleEvent.SEND_FEEDBACK),
                updated_at=now,
            )

        await self._log_action(
            admin_id,
            "send_feedback",
            "feedback",
            feedback.id,
            {"submission_id": submission_id, "content_length": len(feedback.content)},
        )

        await self._notifier.send(
            NotificationKind.FEEDBACK_TO_AUTHOR,
            submission.author_email,
            {
                "submission_id": submission.id,
                "author_name": submission.author_name,
                "title": submission.title,
                "token": submission.token,
                "feedback": feedback.content,
                "admin_name": admin_name,
            },
        )
        return feedback

    # =========================================================================
    # Publish
    # =========================================================================

    async def publish_submission(
        self,
        submission_id: str,
        admin_id: str,
        request: Optional[PublishRequest] = None,
    ) -> PublishResult:
        """
        Publish an APPROVED submission. Never raises.

        Returns:
            PublishSuccess with slug and article URL
            PublishFailure if the submission is missing, not approved, or
                the store failed; a refused publish changes nothing
        """
        request = request or PublishRequest()
        try:
            submission = await self._store.get_submission(submission_id)
            if not submission:
                return PublishFailure(submission_id, SubmissionNotFoundException().message)
            if submission.status is not SubmissionStatus.APPROVED:
                return PublishFailure(
                    submission_id, "Apenas submissões aprovadas podem ser publicadas"
                )

            slug = generate_slug(submission.title)
            article_url = build_article_url(slug, self._frontend_url)
            now = utc_now()

            changes: dict[str, Any] = {
                "status": next_status(submission.status, LifecycleEvent.PUBLISH),
                "updated_at": now,
                "metadata": {**submission.metadata, "slug": slug, "article_url": article_url},
            }
            if request.category_override:
                changes["category"] = request.category_override
            if request.keywords_override is not None:
                changes["keywords"] = list(request.keywords_override)
            await self._store.update_submission(submission_id, **changes)

            await self._log_action(
                admin_id,
                "publish_submission",
                "submission",
                submission_id,
                {"publish_notes": request.publish_notes, "article_url": article_url},
            )
        except Exception as e:
            logger.exception("Error publishing submission %s", submission_id)
            return PublishFailure(submission_id, str(e))

        try:
            await self._notifier.send(
                NotificationKind.AUTHOR_APPROVAL,
                submission.author_email,
                {
                    "submission_id": submission.id,
                    "author_name": submission.author_name,
                    "title": submission.title,
                    "article_url": article_url,
                },
            )
        except Exception:
            logger.exception("Error sending publish notice for %s", submission_id)

        return PublishSuccess(
            submission_id=submission_id,
            slug=slug,
            article_url=article_url,
            published_at=now.isoformat(),
        )

    # =========================================================================
    # Bulk Actions
    # =========================================================================

    async def perform_bulk_action(self, action: BulkAction, admin_id: str) -> BulkActionResult:
        """
        Apply one action to many submissions, one at a time.

        Per-id failures are collected; one aggregate audit entry is always
        written.

        Raises:
            ValidationException: More than 50 ids
        """
        if len(action.submission_ids) > BULK_ACTION_LIMIT:
            raise ValidationException(
                f"Máximo de {BULK_ACTION_LIMIT} ações em lote permitidas"
            )

        result = BulkActionResult()
        for submission_id in action.submission_ids:
            try:
                await self._apply_bulk_action(submission_id, action, admin_id)
                result.successful.append(submission_id)
            except Exception as e:
                result.failed.append(BulkFailure(id=submission_id, error=str(e)))

        await self._log_action(
            admin_id,
            "bulk_action",
            "submission",
            "multiple",
            {
                "action": action.action.value,
                "submission_ids": list(action.submission_ids),
                "successful": len(result.successful),
                "failed": len(result.failed),
                "reason": action.reason,
            },
        )
        return result

    async def _apply_bulk_action(self, submission_id: str, action: BulkAction, admin_id: str) -> None:
        if action.action is BulkActionType.EXTEND_EXPIRY:
            await self._extend_expiry(submission_id, BULK_EXTEND_DAYS)
            return

        review_status = _BULK_REVIEW_STATUS[action.action]
        await self.review_submission(
            submission_id,
            admin_id,
            review_status,
            notes=action.notes,
            rejection_reason=action.reason if review_status is ReviewStatus.REJECTED else None,
        )

    async def _extend_expiry(self, submission_id: str, days: int) -> None:
        submission = await self._require(submission_id)
        if not can_transition(submission.status, LifecycleEvent.EXPIRE):
            raise InvalidStatusException(
                f"Prazo não pode ser estendido no status atual: {submission.status.value}",
                current_status=submission.status.value,
                required_statuses=[s.value for s in allowed_statuses(LifecycleEvent.EXPIRE)],
            )
        await self._store.update_submission(
            submission_id,
            expires_at=submission.expires_at + timedelta(days=days),
            updated_at=utc_now(),
        )

    # =========================================================================
    # Audit Trail
    # =========================================================================

    async def get_admin_action_log(
        self,
        admin_id: str,
        filters: Optional[ActionLogFilters] = None,
    ) -> ActionLogPage:
        """The acting admin's audit entries, newest first."""
        filters = filters or ActionLogFilters()
        limit = clamp_limit(filters.limit, ACTION_LOG_DEFAULT_LIMIT, ACTION_LOG_MAX_LIMIT)
        page = max(filters.page or 1, 1)
        logs, total = await self._store.query_action_logs(
            admin_id,
            action=filters.action,
            target_type=filters.target_type,
            date_from=filters.date_from,
            date_to=filters.date_to,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return ActionLogPage(logs=logs, total=total)

    # =========================================================================
    # Reactivation
    # =========================================================================

    async def reactivate_submission(
        self,
        submission_id: str,
        admin_id: str,
        expiry_days: Optional[int] = None,
    ) -> Reactivation:
        """
        Recover an EXPIRED submission and send the author a fresh link.

        Raises:
            SubmissionNotFoundException: Unknown submission
            InvalidStatusException: Submission is not EXPIRED
        """
        reactivation = await self._tokens.reactivate_expired(submission_id, expiry_days)
        await self._log_action(
            admin_id,
            "reactivate_submission",
            "submission",
            submission_id,
            {
                "status": reactivation.status.value,
                "expires_at": reactivation.expires_at.isoformat(),
            },
        )
        submission = await self._require(submission_id)
        await self._tokens.notify_token_issued(submission)
        return reactivation
