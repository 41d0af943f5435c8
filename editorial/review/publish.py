"""
Publish and Bulk Action Types

Publishing never raises: it returns one of two tagged results so the
direct and bulk paths handle outcomes the same way.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Final, Optional, Union

# Maximum submissions a single bulk request may touch
BULK_ACTION_LIMIT: Final[int] = 50

# Days added to expires_at by the extend_expiry bulk action
BULK_EXTEND_DAYS: Final[int] = 30


# =============================================================================
# Publish
# =============================================================================


@dataclass(frozen=True)
class PublishRequest:
    """Optional adjustments applied when an approved submission goes live."""

    publish_notes: Optional[str] = None
    category_override: Optional[str] = None
    keywords_override: Optional[tuple[str, ...]] = None


@dataclass(frozen=True)
class PublishSuccess:
    """Returned when the submission is now PUBLISHED."""

    submission_id: str
    slug: str
    article_url: str
    published_at: str

    success: bool = True

    def to_dict(self) -> dict:
        return {
            "success": True,
            "submission_id": self.submission_id,
            "slug": self.slug,
            "article_url": self.article_url,
            "published_at": self.published_at,
        }


@dataclass(frozen=True)
class PublishFailure:
    """Returned when publishing was refused or failed; nothing was changed."""

    submission_id: str
    error: str

    success: bool = False

    def to_dict(self) -> dict:
        return {"success": False, "submission_id": self.submission_id, "error": self.error}


PublishResult = Union[PublishSuccess, PublishFailure]


# =============================================================================
# Bulk Actions
# =============================================================================


class BulkActionType(Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"
    EXTEND_EXPIRY = "extend_expiry"


@dataclass(frozen=True)
class BulkAction:
    """One action applied to many submissions."""

    submission_ids: tuple[str, ...]
    action: BulkActionType
    reason: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class BulkFailure:
    id: str
    error: str

    def to_dict(self) -> dict:
        return {"id": self.id, "error": self.error}


@dataclass(frozen=True)
class BulkActionResult:
    """Per-id outcome of a bulk action. Order follows the request."""

    successful: list[str] = field(default_factory=list)
    failed: list[BulkFailure] = field(default_factory=list)

    @property
    def summary(self) -> dict[str, int]:
        return {
            "total": len(self.successful) + len(self.failed),
            "successful": len(self.successful),
            "failed": len(self.failed),
        }

    def to_dict(self) -> dict:
        return {
            "successful": list(self.successful),
            "failed": [f.to_dict() for f in self.failed],
            "summary": self.summary,
        }
