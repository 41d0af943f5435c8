"""
Editorial Submission Schema - Articles, Feedback, Reviews and Files

Defines the canonical records for author submissions and the admin-side
records that accumulate around them.

Principles:
- One Submission per article, never hard-deleted
- author_email is the only credential for anonymous author actions
- Reviews, feedback and audit entries are append-only
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Final, Optional


# =============================================================================
# Enums
# =============================================================================


class SubmissionStatus(Enum):
    """Lifecycle status of a submission."""

    DRAFT = "DRAFT"
    UNDER_REVIEW = "UNDER_REVIEW"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    APPROVED = "APPROVED"
    PUBLISHED = "PUBLISHED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class ReviewStatus(Enum):
    """Outcome recorded on a SubmissionReview."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CHANGES_REQUESTED = "changes_requested"


class FeedbackStatus(Enum):
    """Status of an admin feedback message."""

    PENDING = "PENDING"
    ADDRESSED = "ADDRESSED"
    RESOLVED = "RESOLVED"


class ResourceType(Enum):
    """Kind of uploaded file."""

    IMAGE = "image"
    DOCUMENT = "document"


# =============================================================================
# Constants
# =============================================================================

CATEGORIES: Final[tuple[str, ...]] = (
    "História",
    "Filosofia",
    "Literatura",
    "Arte",
    "Política",
    "Economia",
    "Sociologia",
    "Antropologia",
    "Relações Internacionais",
    "Educação",
    "Outros",
)

NO_CATEGORY_LABEL: Final[str] = "Sem categoria"

AUTHOR_NAME_MIN: Final[int] = 2
TITLE_MIN: Final[int] = 5
TITLE_MAX: Final[int] = 200
SUMMARY_MAX: Final[int] = 500
CONTENT_MAX: Final[int] = 50000
KEYWORDS_MAX: Final[int] = 10

# Maximum upload size (10MB)
MAX_FILE_SIZE_BYTES: Final[int] = 10 * 1024 * 1024
MAX_ATTACHMENTS: Final[int] = 5

ALLOWED_IMAGE_EXTENSIONS: Final[tuple[str, ...]] = ("jpg", "jpeg", "png", "gif", "webp")
ALLOWED_DOCUMENT_EXTENSIONS: Final[tuple[str, ...]] = ("pdf", "doc", "docx", "txt")

TOKEN_EXPIRY_DAYS: Final[int] = 30

TERMINAL_STATUSES: Final[frozenset[SubmissionStatus]] = frozenset(
    {SubmissionStatus.PUBLISHED, SubmissionStatus.REJECTED}
)
EDITABLE_STATUSES: Final[tuple[SubmissionStatus, ...]] = (
    SubmissionStatus.DRAFT,
    SubmissionStatus.CHANGES_REQUESTED,
)


# =============================================================================
# Helpers
# =============================================================================


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def generate_id() -> str:
    """Generate a UUIDv4 identifier."""
    return str(uuid.uuid4())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# =============================================================================
# Submission
# =============================================================================


@dataclass
class Submission:
    """
    An article submitted by an anonymous author.

    Mutable: status, token, content and review metadata change over the
    lifecycle. Identity (id, created_at) never changes.
    """

    id: str
    token: str
    author_name: str
    author_email: str
    title: str
    expires_at: datetime
    status: SubmissionStatus = SubmissionStatus.DRAFT
    summary: Optional[str] = None
    content: str = ""
    keywords: list[str] = field(default_factory=list)
    category: Optional[str] = None
    attachments: list[str] = field(default_factory=list)  # FileUpload ids
    metadata: dict[str, Any] = field(default_factory=dict)
    author_institution: Optional[str] = None
    reviewed_by: Optional[str] = None
    review_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    submitted_at: Optional[datetime] = None

    @property
    def is_expired(self) -> bool:
        """Check if the access token is past its expiry."""
        return utc_now() > self.expires_at

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_editable(self) -> bool:
        """Check if the author may still change content."""
        return self.status in EDITABLE_STATUSES

    @property
    def last_activity(self) -> datetime:
        return max(self.created_at, self.updated_at)

    def snapshot(self) -> dict[str, Any]:
        """Minimal view returned alongside an expired token."""
        return {
            "id": self.id,
            "title": self.title,
            "author_email": self.author_email,
            "expires_at": _iso(self.expires_at),
        }

    def to_dict(self, include_token: bool = True) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = {
            "id": self.id,
            "status": self.status.value,
            "author_name": self.author_name,
            "author_email": self.author_email,
            "author_institution": self.author_institution,
            "title": self.title,
            "summary": self.summary,
            "content": self.content,
            "keywords": list(self.keywords),
            "category": self.category,
            "attachments": list(self.attachments),
            "metadata": dict(self.metadata),
            "reviewed_by": self.reviewed_by,
            "review_notes": self.review_notes,
            "rejection_reason": self.rejection_reason,
            "reviewed_at": _iso(self.reviewed_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "expires_at": _iso(self.expires_at),
            "submitted_at": _iso(self.submitted_at),
        }
        if include_token:
            data["token"] = self.token
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Submission":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            token=data["token"],
            author_name=data["author_name"],
            author_email=data["author_email"],
            title=data["title"],
            expires_at=datetime.fromisoformat(data["expires_at"]),
            status=SubmissionStatus(data["status"]),
            summary=data.get("summary"),
            content=data.get("content") or "",
            keywords=list(data.get("keywords") or []),
            category=data.get("category"),
            attachments=list(data.get("attachments") or []),
            metadata=dict(data.get("metadata") or {}),
            author_institution=data.get("author_institution"),
            reviewed_by=data.get("reviewed_by"),
            review_notes=data.get("review_notes"),
            rejection_reason=data.get("rejection_reason"),
            reviewed_at=_parse(data.get("reviewed_at")),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            submitted_at=_parse(data.get("submitted_at")),
        )


# =============================================================================
# Admin-side Records
# =============================================================================


@dataclass(frozen=True)
class Admin:
    """A reviewer account."""

    id: str
    name: str
    email: str
    is_active: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Admin":
        return cls(
            id=data["id"],
            name=data["name"],
            email=data["email"],
            is_active=data.get("is_active", True),
        )


@dataclass(frozen=True)
class AdminFeedback:
    """A message from an admin to the author of a submission."""

    id: str
    submission_id: str
    admin_id: str
    content: str
    status: FeedbackStatus
    created_at: datetime
    admin_name: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "submission_id": self.submission_id,
            "admin_id": self.admin_id,
            "content": self.content,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "admin_name": self.admin_name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AdminFeedback":
        return cls(
            id=data["id"],
            submission_id=data["submission_id"],
            admin_id=data["admin_id"],
            content=data["content"],
            status=FeedbackStatus(data["status"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            admin_name=data["admin_name"],
        )


@dataclass(frozen=True)
class SubmissionReview:
    """One review decision. A submission accumulates one per review cycle."""

    id: str
    submission_id: str
    admin_id: str
    status: ReviewStatus
    reviewed_at: datetime
    admin_name: str
    review_notes: Optional[str] = None
    rejection_reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "submission_id": self.submission_id,
            "admin_id": self.admin_id,
            "status": self.status.value,
            "review_notes": self.review_notes,
            "rejection_reason": self.rejection_reason,
            "reviewed_at": self.reviewed_at.isoformat(),
            "admin_name": self.admin_name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SubmissionReview":
        return cls(
            id=data["id"],
            submission_id=data["submission_id"],
            admin_id=data["admin_id"],
            status=ReviewStatus(data["status"]),
            reviewed_at=datetime.fromisoformat(data["reviewed_at"]),
            admin_name=data["admin_name"],
            review_notes=data.get("review_notes"),
            rejection_reason=data.get("rejection_reason"),
        )


@dataclass(frozen=True)
class AdminActionLog:
    """Append-only audit entry written at the end of every admin mutation."""

    id: str
    admin_id: str
    action: str
    target_type: str
    target_id: str
    details: dict[str, Any]
    timestamp: datetime

    @classmethod
    def create(
        cls,
        admin_id: str,
        action: str,
        target_type: str,
        target_id: str,
        details: Optional[dict[str, Any]] = None,
    ) -> "AdminActionLog":
        return cls(
            id=generate_id(),
            admin_id=admin_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details or {},
            timestamp=utc_now(),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "admin_id": self.admin_id,
            "action": self.action,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AdminActionLog":
        return cls(
            id=data["id"],
            admin_id=data["admin_id"],
            action=data["action"],
            target_type=data["target_type"],
            target_id=data["target_id"],
            details=dict(data.get("details") or {}),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


# =============================================================================
# File Upload
# =============================================================================


@dataclass(frozen=True)
class FileUpload:
    """
    Record of a file stored with the media provider.

    Contains metadata only - the bytes live with the provider, referenced
    by provider_id.
    """

    id: str
    submission_id: str
    original_name: str
    provider_id: str
    url: str
    secure_url: str
    format: str
    resource_type: ResourceType
    size: int
    uploaded_by: str  # author email
    uploaded_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "submission_id": self.submission_id,
            "original_name": self.original_name,
            "provider_id": self.provider_id,
            "url": self.url,
            "secure_url": self.secure_url,
            "format": self.format,
            "resource_type": self.resource_type.value,
            "size": self.size,
            "uploaded_by": self.uploaded_by,
            "uploaded_at": self.uploaded_at.isoformat(),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FileUpload":
        return cls(
            id=data["id"],
            submission_id=data["submission_id"],
            original_name=data["original_name"],
            provider_id=data["provider_id"],
            url=data["url"],
            secure_url=data["secure_url"],
            format=data["format"],
            resource_type=ResourceType(data["resource_type"]),
            size=data["size"],
            uploaded_by=data["uploaded_by"],
            uploaded_at=datetime.fromisoformat(data["uploaded_at"]),
            metadata=dict(data.get("metadata") or {}),
        )


# =============================================================================
# Search Filters
# =============================================================================


@dataclass(frozen=True)
class SubmissionFilters:
    """
    AND-combined filters for admin submission listing.

    Every field is optional; an empty filter matches everything.
    """

    status: tuple[SubmissionStatus, ...] = ()
    category: tuple[str, ...] = ()
    author_email: Optional[str] = None  # substring, case-insensitive
    admin_id: Optional[str] = None  # reviewed_by
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    search: Optional[str] = None  # substring over title/author_name/content
    expiring_days: Optional[int] = None
    has_files: Optional[bool] = None

    def to_dict(self) -> dict:
        return {
            "status": [s.value for s in self.status],
            "category": list(self.category),
            "author_email": self.author_email,
            "admin_id": self.admin_id,
            "date_from": _iso(self.date_from),
            "date_to": _iso(self.date_to),
            "search": self.search,
            "expiring_days": self.expiring_days,
            "has_files": self.has_files,
        }
