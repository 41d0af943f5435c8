"""
Submission Service - Author-facing Operations

Everything an anonymous author can do with a submission: create it, read it
through the access token, edit while editable, auto-save, send it for
review, preview it and see its statistics.

Principles:
- The author email is the only credential checked for writes
- Edits are allowed only while DRAFT or CHANGES_REQUESTED
- Every significant content change leaves a version snapshot
- Notification failures never undo a completed write
"""

from __future__ import annotations

import html
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from editorial.exceptions import (
    IncompleteSubmissionException,
    InvalidTokenException,
    SubmissionError,
    SubmissionNotFoundException,
    TokenExpiredException,
    ValidationException,
)
from editorial.submission.lifecycle import LifecycleEvent, ensure_editable, next_status
from editorial.submission.ports import NotificationKind, NotificationPort, SubmissionStore
from editorial.submission.schema import (
    TOKEN_EXPIRY_DAYS,
    AdminFeedback,
    FileUpload,
    ReviewStatus,
    Submission,
    SubmissionStatus,
    generate_id,
    utc_now,
)
from editorial.submission.tokens import (
    EMAIL_VALID,
    SUBMISSION_NOT_FOUND,
    TOKEN_EXPIRED,
    TokenInfo,
    TokenService,
    days_until,
)
from editorial.submission.validation import (
    check_completeness,
    has_significant_changes,
    normalize_keywords,
    validate_submission_data,
)
from editorial.submission.versions import SubmissionVersion
from utils.formatting import generate_slug
from utils.logging_setup import log_audit_event

logger = logging.getLogger(__name__)

# Fields an author may change after creation
AUTHOR_EDITABLE_FIELDS = (
    "title",
    "summary",
    "content",
    "keywords",
    "category",
    "author_institution",
    "metadata",
)

PREVIEW_MAX_LENGTH = 2000
AUTHOR_PAGE_SIZE = 10


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class SubmissionView:
    """A submission as its author sees it through the access token."""

    submission: Submission
    attachments: list[FileUpload]
    feedback: list[AdminFeedback]
    token_info: Optional[TokenInfo] = None
    versions: list[SubmissionVersion] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = self.submission.to_dict()
        data["attachments"] = [a.to_dict() for a in self.attachments]
        data["feedback"] = [f.to_dict() for f in self.feedback]
        data["versions"] = [v.to_dict() for v in self.versions]
        data["token_info"] = self.token_info.to_dict() if self.token_info else None
        return data


@dataclass(frozen=True)
class AutoSaveResult:
    auto_saved: bool
    message: str
    submission: Optional[Submission] = None
    saved_at: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "auto_saved": self.auto_saved,
            "message": self.message,
            "saved_at": self.saved_at,
        }


# =============================================================================
# Content Helpers
# =============================================================================


def process_content_for_preview(content: Optional[str]) -> str:
    """Render bold, italics and paragraphs as HTML, truncated for preview."""
    if not content:
        return ""

    processed = html.escape(content, quote=False)
    processed = re.sub(r"\*\*(.*?)\*\*", r"<strong>\1</strong>", processed)
    processed = re.sub(r"\*(.*?)\*", r"<em>\1</em>", processed)
    processed = processed.replace("\n\n", "</p><p>").replace("\n", "<br>")
    processed = f"<p>{processed}</p>"

    if len(processed) > PREVIEW_MAX_LENGTH:
        processed = processed[:PREVIEW_MAX_LENGTH] + "..."
    return processed


# =============================================================================
# Service
# =============================================================================


class SubmissionService:
    """Author-facing submission operations."""

    def __init__(
        self,
        store: SubmissionStore,
        tokens: TokenService,
        notifier: Optional[NotificationPort] = None,
        admin_emails: Sequence[str] = (),
    ):
        self._store = store
        self._tokens = tokens
        self._notifier = notifier
        self._admin_emails = tuple(admin_emails)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _require(self, submission_id: str) -> Submission:
        submission = await self._store.get_submission(submission_id)
        if not submission:
            raise SubmissionNotFoundException()
        return submission

    async def _require_author(self, submission_id: str, author_email: Optional[str]) -> Submission:
        """
        Load a submission and check the caller is its author.

        Raises:
            SubmissionNotFoundException: Unknown submission
            InvalidTokenException: Email does not match the author
            TokenExpiredException: Access has expired
        """
        check = await self._tokens.validate_author_email(submission_id, author_email)
        if check.reason == SUBMISSION_NOT_FOUND:
            raise SubmissionNotFoundException()
        if check.reason != EMAIL_VALID:
            raise InvalidTokenException(
                "Email não confere com o autor da submissão", reason=check.reason
            )

        submission = await self._require(submission_id)
        if submission.is_expired or submission.status is SubmissionStatus.EXPIRED:
            raise TokenExpiredException(submission=submission.snapshot())
        return submission

    async def _write_version(
        self,
        submission: Submission,
        change_summary: str,
        created_by: str = "system",
    ) -> SubmissionVersion:
        versions = await self._store.list_versions(submission.id)
        previous = versions[-1] if versions else None
        version = SubmissionVersion.create(
            submission,
            version_number=len(versions) + 1,
            change_summary=change_summary,
            created_by=created_by,
            previous=previous,
        )
        await self._store.insert_version(version)
        return version

    async def _has_change_requests(self, submission_id: str) -> bool:
        if await self._store.list_feedback(submission_id):
            return True
        reviews = await self._store.list_reviews(submission_id)
        return any(r.status is ReviewStatus.CHANGES_REQUESTED for r in reviews)

    # =========================================================================
    # Create / Read
    # =========================================================================

    async def create_submission(self, data: dict[str, Any]) -> Submission:
        """
        Create a DRAFT submission with a fresh access token.

        Writes version 1 and emails the access link; an email failure is
        logged and creation still succeeds.

        Raises:
            ValidationException: If any field rule fails
        """
        result = validate_submission_data(data, require_all=True)
        if not result.valid:
            raise ValidationException(validation_errors=result.errors)

        now = utc_now()
        submission = Submission(
            id=generate_id(),
            token=await self._tokens.generate_unique_token(),
            author_name=data["author_name"].strip(),
            author_email=data["author_email"].strip().lower(),
            author_institution=data.get("author_institution"),
            title=data["title"].strip(),
            summary=data.get("summary"),
            content=data.get("content") or "",
            keywords=normalize_keywords(data.get("keywords")),
            category=data.get("category") or None,
            metadata=dict(data.get("metadata") or {}),
            expires_at=now + timedelta(days=self._tokens.expiry_days),
            created_at=now,
            updated_at=now,
        )
        submission = await self._store.insert_submission(submission)
        await self._write_version(submission, "Versão inicial")

        log_audit_event(
            "Submission created",
            submission_id=submission.id,
            author_email=submission.author_email,
        )
        await self._tokens.notify_token_issued(submission)
        return submission

    async def get_submission_by_token(
        self,
        token: str,
        include_versions: bool = False,
    ) -> SubmissionView:
        """
        Resolve an access token to the author's view of the submission.

        Raises:
            TokenExpiredException: Token known but expired (recoverable)
            InvalidTokenException: Malformed or unknown token
        """
        validation = await self._tokens.validate(token)
        if not validation.is_valid:
            if validation.reason == TOKEN_EXPIRED:
                raise TokenExpiredException(can_recover=True, submission=validation.snapshot)
            raise InvalidTokenException(reason=validation.reason)

        submission = validation.submission
        versions = await self._store.list_versions(submission.id) if include_versions else []
        return SubmissionView(
            submission=submission,
            attachments=await self._store.list_files(submission.id),
            feedback=await self._store.list_feedback(submission.id),
            token_info=validation.token_info,
            versions=versions,
        )

    # =========================================================================
    # Edit
    # =========================================================================

    async def update_submission(
        self,
        submission_id: str,
        data: dict[str, Any],
        author_email: Optional[str],
    ) -> Submission:
        """
        Apply an author's partial edit.

        Only fields that actually change are written. A change to title,
        summary, content or category adds a version snapshot.

        Raises:
            InvalidTokenException: Email does not match the author
            InvalidStatusException: Submission is not editable
            ValidationException: A supplied field breaks a rule
        """
        submission = await self._require_author(submission_id, author_email)
        ensure_editable(submission.status)

        updates = {k: v for k, v in data.items() if k in AUTHOR_EDITABLE_FIELDS}
        result = validate_submission_data(updates, require_all=False)
        if not result.valid:
            raise ValidationException(validation_errors=result.errors)

        if "keywords" in updates:
            updates["keywords"] = normalize_keywords(updates["keywords"])
        if "title" in updates:
            updates["title"] = updates["title"].strip()

        changes = {k: v for k, v in updates.items() if getattr(submission, k) != v}
        if not changes:
            return submission

        significant = has_significant_changes(submission, changes)
        updated = await self._store.update_submission(
            submission_id, **changes, updated_at=utc_now()
        )
        if significant:
            await self._write_version(updated, "Atualização pelo autor", created_by=updated.author_email)

        log_audit_event(
            "Submission updated",
            submission_id=submission_id,
            fields=sorted(changes),
            significant=significant,
        )
        return updated

    async def auto_save(
        self,
        submission_id: str,
        data: dict[str, Any],
        author_email: Optional[str],
    ) -> AutoSaveResult:
        """Same path as update_submission, but reports failure instead of raising."""
        try:
            submission = await self.update_submission(submission_id, data, author_email)
        except SubmissionError as e:
            logger.info("Auto-save skipped for %s: %s", submission_id, e.message)
            return AutoSaveResult(auto_saved=False, message=e.message)
        except Exception:
            logger.exception("Auto-save failed for %s", submission_id)
            return AutoSaveResult(auto_saved=False, message="Erro ao salvar automaticamente")

        return AutoSaveResult(
            auto_saved=True,
            message="Salvo automaticamente",
            submission=submission,
            saved_at=utc_now().isoformat(),
        )

    # =========================================================================
    # Submit for Review
    # =========================================================================

    async def submit_for_review(self, submission_id: str, author_email: Optional[str]) -> Submission:
        """
        Send a submission to the editors.

        Rotates the access token with a fresh expiry, snapshots the content
        and notifies active admins.

        Raises:
            InvalidTokenException: Email does not match the author
            InvalidStatusException: Not DRAFT, or CHANGES_REQUESTED without feedback
            IncompleteSubmissionException: Required content is missing
        """
        submission = await self._require_author(submission_id, author_email)
        status = next_status(
            submission.status,
            LifecycleEvent.SUBMIT_FOR_REVIEW,
            has_feedback=await self._has_change_requests(submission_id),
        )

        report = check_completeness(submission)
        if not report.is_complete:
            raise IncompleteSubmissionException(
                f"Submissão incompleta. Campos obrigatórios: {', '.join(report.missing_fields)}",
                missing_fields=report.missing_fields,
            )

        now = utc_now()
        updated = await self._store.update_submission(
            submission_id,
            status=status,
            token=await self._tokens.generate_unique_token(),
            expires_at=now + timedelta(days=self._tokens.expiry_days),
            submitted_at=now,
            updated_at=now,
        )
        await self._write_version(
            updated, "Versão submetida para revisão", created_by=updated.author_email
        )
        log_audit_event(
            "Submission sent for review",
            submission_id=submission_id,
            previous_status=submission.status.value,
        )

        await self._tokens.notify_token_issued(updated)
        await self._notify_admins(updated)
        return updated

    async def _notify_admins(self, submission: Submission) -> None:
        if not self._notifier:
            return
        recipients = {a.email for a in await self._store.list_active_admins()}
        recipients.update(self._admin_emails)
        if not recipients:
            return
        try:
            await self._notifier.send(
                NotificationKind.ADMIN_NEW_SUBMISSION,
                sorted(recipients),
                {
                    "submission_id": submission.id,
                    "title": submission.title,
                    "author_name": submission.author_name,
                    "author_email": submission.author_email,
                    "category": submission.category,
                    "submitted_at": submission.submitted_at.isoformat(),
                },
            )
        except Exception:
            logger.exception("Failed to notify admins of submission %s", submission.id)

    async def renew_access(
        self,
        submission_id: str,
        author_email: Optional[str],
        additional_days: int = TOKEN_EXPIRY_DAYS,
    ) -> datetime:
        """
        Extend the author's access link before it lapses.

        An already expired link cannot be renewed here; an admin
        reactivates it instead.

        Raises:
            InvalidTokenException: Email does not match the author
            TokenExpiredException: Access has already expired
            ValidationException: additional_days outside 1..90
        """
        await self._require_author(submission_id, author_email)
        return await self._tokens.renew(submission_id, additional_days)

    # =========================================================================
    # Preview / Stats / Author Listing
    # =========================================================================

    async def completeness(self, submission_id: str) -> dict:
        submission = await self._require(submission_id)
        return check_completeness(submission).to_dict()

    async def generate_preview(self, submission_id: str) -> dict:
        """Article-shaped preview of a submission."""
        submission = await self._require(submission_id)
        attachments = await self._store.list_files(submission_id)
        return {
            "title": submission.title,
            "slug": generate_slug(submission.title),
            "summary": submission.summary,
            "content": process_content_for_preview(submission.content),
            "author": {
                "name": submission.author_name,
                "institution": submission.author_institution,
            },
            "category": submission.category,
            "keywords": list(submission.keywords),
            "attachments": [
                {
                    "filename": a.original_name,
                    "url": a.secure_url,
                    "file_type": a.resource_type.value,
                }
                for a in attachments
            ],
            "metadata": dict(submission.metadata),
            "preview_generated_at": utc_now().isoformat(),
        }

    async def get_submission_stats(self, submission_id: str) -> dict:
        submission = await self._require(submission_id)
        now = utc_now()
        report = check_completeness(submission)
        return {
            "id": submission.id,
            "status": submission.status.value,
            "content_stats": {
                "title_length": len(submission.title or ""),
                "summary_length": len(submission.summary or ""),
                "content_length": len(submission.content or ""),
                "keyword_count": len(submission.keywords),
                "has_category": bool(submission.category),
                "has_institution": bool(submission.author_institution),
            },
            "version_count": len(await self._store.list_versions(submission_id)),
            "attachment_count": await self._store.count_files(submission_id),
            "feedback_count": len(await self._store.list_feedback(submission_id)),
            "days_since_creation": (now - submission.created_at).days,
            "days_to_expiry": days_until(submission.expires_at, now),
            "completeness": {
                "percentage": report.completeness_percentage,
                "missing_fields": list(report.missing_fields),
                "is_complete": report.is_complete,
            },
        }

    async def get_submissions_by_author(
        self,
        author_email: str,
        page: int = 1,
        limit: int = AUTHOR_PAGE_SIZE,
    ) -> dict:
        """An author's submissions, most recently updated first."""
        page = max(page, 1)
        limit = max(limit, 1)
        email = author_email.strip().lower()
        mine = [
            s for s in await self._store.list_submissions()
            if s.author_email.lower() == email
        ]
        mine.sort(key=lambda s: s.updated_at, reverse=True)

        total = len(mine)
        total_pages = math.ceil(total / limit)
        offset = (page - 1) * limit
        rows = []
        for s in mine[offset:offset + limit]:
            rows.append(
                {
                    "id": s.id,
                    "title": s.title,
                    "status": s.status.value,
                    "category": s.category,
                    "created_at": s.created_at.isoformat(),
                    "updated_at": s.updated_at.isoformat(),
                    "expires_at": s.expires_at.isoformat(),
                    "feedback_count": len(await self._store.list_feedback(s.id)),
                }
            )

        return {
            "submissions": rows,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": total_pages,
                "has_next": page < total_pages,
                "has_prev": page > 1,
            },
        }
