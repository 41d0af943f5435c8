"""
Editorial Portal - Admin Review

Listing, search, review decisions, feedback, publishing, bulk actions,
the dashboard and the admin audit trail.
"""

from editorial.review.publish import (
    PublishRequest,
    PublishSuccess,
    PublishFailure,
    PublishResult,
    BulkActionType,
    BulkAction,
    BulkFailure,
    BulkActionResult,
    BULK_ACTION_LIMIT,
)
from editorial.review.engine import (
    AdminReviewEngine,
    SubmissionQuery,
    PaginatedSubmissions,
    ActionLogFilters,
    ActionLogPage,
    sanitize_sort,
)
from editorial.review.dashboard import build_dashboard

__all__ = [
    "PublishRequest",
    "PublishSuccess",
    "PublishFailure",
    "PublishResult",
    "BulkActionType",
    "BulkAction",
    "BulkFailure",
    "BulkActionResult",
    "BULK_ACTION_LIMIT",
    "AdminReviewEngine",
    "SubmissionQuery",
    "PaginatedSubmissions",
    "ActionLogFilters",
    "ActionLogPage",
    "sanitize_sort",
    "build_dashboard",
]
