"""
Collaborator interfaces for the submission core.

The store, the notification sender and the media provider are reached
only through these contracts. Every method is a coroutine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Sequence, Union

from editorial.submission.schema import (
    Admin,
    AdminActionLog,
    AdminFeedback,
    FileUpload,
    ResourceType,
    Submission,
    SubmissionFilters,
    SubmissionReview,
)
from editorial.submission.versions import SubmissionVersion


# =============================================================================
# Submission Store
# =============================================================================


class SubmissionStore(ABC):
    """Persistence contract for submissions and their satellite records."""

    # --- submissions ---------------------------------------------------------

    @abstractmethod
    async def get_submission(self, submission_id: str) -> Optional[Submission]:
        """Find a submission by id, or None."""
        pass

    @abstractmethod
    async def get_submission_by_token(self, token: str) -> Optional[Submission]:
        """Find the submission currently holding a token, or None."""
        pass

    @abstractmethod
    async def insert_submission(self, submission: Submission) -> Submission:
        """
        Persist a new submission.

        Raises:
            ValueError: If the id or token is already taken
        """
        pass

    @abstractmethod
    async def update_submission(self, submission_id: str, **fields: Any) -> Optional[Submission]:
        """
        Apply a partial update and return the updated row.

        Returns:
            Updated Submission, or None if not found
        """
        pass

    @abstractmethod
    async def list_submissions(self) -> list[Submission]:
        """All submissions, for aggregate reads."""
        pass

    @abstractmethod
    async def search_submissions(
        self,
        filters: SubmissionFilters,
        sort_by: str,
        sort_order: str,
        offset: int,
        limit: int,
    ) -> tuple[list[Submission], int]:
        """
        Filtered, sorted, paginated listing.

        sort_by and sort_order are already sanitised by the caller.

        Returns:
            (page of rows, total matching count)
        """
        pass

    # --- versions / feedback / reviews ---------------------------------------

    @abstractmethod
    async def insert_version(self, version: SubmissionVersion) -> None:
        pass

    @abstractmethod
    async def list_versions(self, submission_id: str) -> list[SubmissionVersion]:
        """Versions of a submission, oldest first."""
        pass

    @abstractmethod
    async def insert_feedback(self, feedback: AdminFeedback) -> None:
        pass

    @abstractmethod
    async def list_feedback(self, submission_id: str) -> list[AdminFeedback]:
        """Feedback for a submission, newest first."""
        pass

    @abstractmethod
    async def insert_review(self, review: SubmissionReview) -> None:
        pass

    @abstractmethod
    async def list_reviews(self, submission_id: Optional[str] = None) -> list[SubmissionReview]:
        """Reviews, newest first, optionally for one submission."""
        pass

    # --- audit log -----------------------------------------------------------

    @abstractmethod
    async def insert_action_log(self, entry: AdminActionLog) -> None:
        pass

    @abstractmethod
    async def query_action_logs(
        self,
        admin_id: str,
        action: Optional[str] = None,
        target_type: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[AdminActionLog], int]:
        """
        Audit entries for one admin, newest first.

        Returns:
            (page of entries, total matching count)
        """
        pass

    # --- file uploads --------------------------------------------------------

    @abstractmethod
    async def insert_file(self, upload: FileUpload) -> FileUpload:
        pass

    @abstractmethod
    async def get_file(self, file_id: str) -> Optional[FileUpload]:
        pass

    @abstractmethod
    async def list_files(self, submission_id: Optional[str] = None) -> list[FileUpload]:
        """Uploads, newest first, optionally for one submission."""
        pass

    @abstractmethod
    async def count_files(self, submission_id: str) -> int:
        pass

    @abstractmethod
    async def delete_file(self, file_id: str) -> bool:
        pass

    # --- admins --------------------------------------------------------------

    @abstractmethod
    async def add_admin(self, admin: Admin) -> Admin:
        """Register or replace a reviewer account."""
        pass

    @abstractmethod
    async def get_admin(self, admin_id: str) -> Optional[Admin]:
        pass

    @abstractmethod
    async def list_active_admins(self) -> list[Admin]:
        pass


# =============================================================================
# Notifications
# =============================================================================


class NotificationKind(Enum):
    """Template kinds understood by the notification sender."""

    SUBMISSION_TOKEN = "submission-token-issued"
    FEEDBACK_TO_AUTHOR = "feedback-to-author"
    AUTHOR_APPROVAL = "author-approval"
    EXPIRATION_WARNING = "expiration-warning"
    TOKEN_EXPIRED = "token-expired-notice"
    ADMIN_NEW_SUBMISSION = "admin-new-submission"
    DAILY_SUMMARY = "daily-summary"
    SECURITY_ALERT = "security-alert"


@dataclass(frozen=True)
class NotificationReceipt:
    """Acknowledgement from the sender. message_id is None when delivery is disabled."""

    message_id: Optional[str]
    recipients: tuple[str, ...] = ()


class NotificationPort(ABC):
    """Sends templated notifications."""

    @abstractmethod
    async def send(
        self,
        kind: NotificationKind,
        recipients: Union[str, Sequence[str]],
        payload: dict[str, Any],
    ) -> NotificationReceipt:
        """
        Render and send a notification.

        Raises:
            Any delivery failure, unmodified
        """
        pass


# =============================================================================
# Media Storage
# =============================================================================


@dataclass(frozen=True)
class MediaUploadOptions:
    """Provider-neutral upload options."""

    public_id: str
    folder: str
    resource_type: ResourceType
    format: str
    tags: tuple[str, ...] = ()
    context: dict[str, str] = field(default_factory=dict)
    overwrite: bool = False


@dataclass(frozen=True)
class MediaUploadResult:
    provider_id: str
    url: str
    secure_url: str
    bytes: int
    format: str


class MediaStoragePort(ABC):
    """External object storage used by the upload gateway."""

    @abstractmethod
    async def upload(self, data: bytes, options: MediaUploadOptions) -> MediaUploadResult:
        pass

    @abstractmethod
    async def destroy(self, provider_id: str, resource_type: ResourceType) -> bool:
        """
        Remove a stored object.

        Returns:
            True if the provider reports the object was removed
        """
        pass

    @abstractmethod
    async def signed_url(
        self,
        provider_id: str,
        resource_type: ResourceType,
        ttl_minutes: int = 60,
    ) -> str:
        """Time-limited download URL for a stored object."""
        pass
