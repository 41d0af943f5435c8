"""
Editorial Portal - Author Submission Module

Anonymous article submissions reached through time-limited access tokens.
No accounts, no passwords.

Principles:
1. The access token is the only way an author reaches a submission
2. Status changes go through the lifecycle guards
3. Content changes leave a hash-chained version trail
4. Every collaborator is reached through a port
"""

from editorial.submission.schema import (
    Submission,
    SubmissionStatus,
    ReviewStatus,
    FeedbackStatus,
    ResourceType,
    Admin,
    AdminFeedback,
    SubmissionReview,
    AdminActionLog,
    FileUpload,
    SubmissionFilters,
    CATEGORIES,
    MAX_ATTACHMENTS,
    MAX_FILE_SIZE_BYTES,
    TOKEN_EXPIRY_DAYS,
    generate_id,
    utc_now,
)
from editorial.submission.lifecycle import (
    LifecycleEvent,
    TRANSITIONS,
    allowed_statuses,
    can_transition,
    ensure_transition,
    ensure_editable,
    next_status,
)
from editorial.submission.versions import (
    SubmissionVersion,
    compute_version_hash,
    verify_version_chain,
)
from editorial.submission.ports import (
    SubmissionStore,
    NotificationKind,
    NotificationPort,
    NotificationReceipt,
    MediaStoragePort,
    MediaUploadOptions,
    MediaUploadResult,
)
from editorial.submission.repository import InMemorySubmissionStore
from editorial.submission.tokens import (
    TokenService,
    TokenIssue,
    TokenInfo,
    TokenValidation,
    EmailValidation,
    Reactivation,
    CleanupResult,
    generate_token_value,
    is_well_formed_token,
    TOKEN_BYTES,
)
from editorial.submission.validation import (
    SubmissionValidationResult,
    CompletenessReport,
    validate_submission_data,
    check_completeness,
    is_valid_email,
)
from editorial.submission.service import (
    SubmissionService,
    SubmissionView,
    AutoSaveResult,
    process_content_for_preview,
)

__all__ = [
    # Schema
    "Submission",
    "SubmissionStatus",
    "ReviewStatus",
    "FeedbackStatus",
    "ResourceType",
    "Admin",
    "AdminFeedback",
    "SubmissionReview",
    "AdminActionLog",
    "FileUpload",
    "SubmissionFilters",
    "CATEGORIES",
    "MAX_ATTACHMENTS",
    "MAX_FILE_SIZE_BYTES",
    "TOKEN_EXPIRY_DAYS",
    "generate_id",
    "utc_now",
    # Lifecycle
    "LifecycleEvent",
    "TRANSITIONS",
    "allowed_statuses",
    "can_transition",
    "ensure_transition",
    "ensure_editable",
    "next_status",
    # Versions
    "SubmissionVersion",
    "compute_version_hash",
    "verify_version_chain",
    # Ports
    "SubmissionStore",
    "NotificationKind",
    "NotificationPort",
    "NotificationReceipt",
    "MediaStoragePort",
    "MediaUploadOptions",
    "MediaUploadResult",
    "InMemorySubmissionStore",
    # Tokens
    "TokenService",
    "TokenIssue",
    "TokenInfo",
    "TokenValidation",
    "EmailValidation",
    "Reactivation",
    "CleanupResult",
    "generate_token_value",
    "is_well_formed_token",
    "TOKEN_BYTES",
    # Validation
    "SubmissionValidationResult",
    "CompletenessReport",
    "validate_submission_data",
    "check_completeness",
    "is_valid_email",
    # Author service
    "SubmissionService",
    "SubmissionView",
    "AutoSaveResult",
    "process_content_for_preview",
]
