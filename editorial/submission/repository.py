"""
Submission Repository - In-Memory Store for Editorial Submissions

Implements the SubmissionStore contract with in-memory dictionaries and
optional JSON file persistence. Suitable for development and tests;
production deployments plug a database-backed store into the same
interface.

Rows are handed out as deep copies, so callers never mutate stored state
except through update_submission.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

from editorial.submission.ports import SubmissionStore
from editorial.submission.schema import (
    Admin,
    AdminActionLog,
    AdminFeedback,
    FileUpload,
    Submission,
    SubmissionFilters,
    SubmissionReview,
    SubmissionStatus,
    utc_now,
)
from editorial.submission.versions import SubmissionVersion

logger = logging.getLogger(__name__)

# Fields the store accepts in a partial update
UPDATABLE_FIELDS = frozenset(
    {
        "token",
        "status",
        "title",
        "summary",
        "content",
        "keywords",
        "category",
        "attachments",
        "metadata",
        "author_institution",
        "reviewed_by",
        "review_notes",
        "rejection_reason",
        "reviewed_at",
        "updated_at",
        "expires_at",
        "submitted_at",
    }
)


# =============================================================================
# Repository
# =============================================================================


class InMemorySubmissionStore(SubmissionStore):
    """
    In-memory SubmissionStore with optional file persistence.

    Provides the full store contract: submissions, versions, feedback,
    reviews, audit log, file uploads and admins.
    """

    def __init__(self, persist_path: Optional[str] = None):
        """
        Initialise repository.

        Args:
            persist_path: Optional path to persist data to JSON file
        """
        self._submissions: dict[str, Submission] = {}
        self._token_index: dict[str, str] = {}  # token -> submission id
        self._versions: dict[str, list[SubmissionVersion]] = {}
        self._feedback: list[AdminFeedback] = []
        self._reviews: list[SubmissionReview] = []
        self._action_logs: list[AdminActionLog] = []
        self._files: dict[str, FileUpload] = {}
        self._admins: dict[str, Admin] = {}
        self._persist_path = Path(persist_path) if persist_path else None
        self._persist_lock = asyncio.Lock()

        if self._persist_path and self._persist_path.exists():
            self._load_from_file()

    async def _save_to_file(self) -> None:
        """
        Persist data to file.

        The snapshot is taken on the event loop; the write runs in a worker
        thread. The lock keeps writes in mutation order.
        """
        if not self._persist_path:
            return

        async with self._persist_lock:
            text = json.dumps(self._snapshot(), indent=2, ensure_ascii=False)
            await asyncio.to_thread(self._write_file, text)

    def _snapshot(self) -> dict[str, Any]:
        return {
            "submissions": {sid: s.to_dict() for sid, s in self._submissions.items()},
            "versions": {
                sid: [v.to_dict() for v in versions]
                for sid, versions in self._versions.items()
            },
            "feedback": [f.to_dict() for f in self._feedback],
            "reviews": [r.to_dict() for r in self._reviews],
            "action_logs": [e.to_dict() for e in self._action_logs],
            "files": {fid: f.to_dict() for fid, f in self._files.items()},
            "admins": {aid: a.to_dict() for aid, a in self._admins.items()},
            "saved_at": utc_now().isoformat(),
        }

    def _write_file(self, text: str) -> None:
        self._persist_path.parent.mkdir(parents=True, exist_ok=True)
        self._persist_path.write_text(text)

    def _load_from_file(self) -> None:
        """Load data from file."""
        if not self._persist_path or not self._persist_path.exists():
            return

        try:
            data = json.loads(self._persist_path.read_text())
            for sid, row in data.get("submissions", {}).items():
                submission = Submission.from_dict(row)
                self._submissions[sid] = submission
                self._token_index[submission.token] = sid
            for sid, rows in data.get("versions", {}).items():
                self._versions[sid] = [SubmissionVersion.from_dict(r) for r in rows]
            self._feedback = [AdminFeedback.from_dict(r) for r in data.get("feedback", [])]
            self._reviews = [SubmissionReview.from_dict(r) for r in data.get("reviews", [])]
            self._action_logs = [
                AdminActionLog.from_dict(r) for r in data.get("action_logs", [])
            ]
            for fid, row in data.get("files", {}).items():
                self._files[fid] = FileUpload.from_dict(row)
            for aid, row in data.get("admins", {}).items():
                self._admins[aid] = Admin.from_dict(row)
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            # Start fresh rather than refuse to boot
            logger.warning("Could not load repository data from %s: %s", self._persist_path, e)

    # =========================================================================
    # Submissions
    # =========================================================================

    async def get_submission(self, submission_id: str) -> Optional[Submission]:
        return copy.deepcopy(self._submissions.get(submission_id))

    async def get_submission_by_token(self, token: str) -> Optional[Submission]:
        submission_id = self._token_index.get(token)
        if submission_id:
            return copy.deepcopy(self._submissions.get(submission_id))
        return None

    async def insert_submission(self, submission: Submission) -> Submission:
        if submission.id in self._submissions:
            raise ValueError(f"Submission {submission.id} already exists")
        if submission.token in self._token_index:
            raise ValueError("Token already in use")

        self._submissions[submission.id] = copy.deepcopy(submission)
        self._token_index[submission.token] = submission.id
        await self._save_to_file()
        return copy.deepcopy(submission)

    async def update_submission(self, submission_id: str, **fields: Any) -> Optional[Submission]:
        submission = self._submissions.get(submission_id)
        if not submission:
            return None

        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        new_token = fields.get("token")
        if new_token and new_token != submission.token:
            if new_token in self._token_index:
                raise ValueError("Token already in use")
            del self._token_index[submission.token]
            self._token_index[new_token] = submission_id

        for name, value in fields.items():
            setattr(submission, name, copy.deepcopy(value))

        await self._save_to_file()
        return copy.deepcopy(submission)

    async def list_submissions(self) -> list[Submission]:
        return [copy.deepcopy(s) for s in self._submissions.values()]

    async def search_submissions(
        self,
        filters: SubmissionFilters,
        sort_by: str,
        sort_order: str,
        offset: int,
        limit: int,
    ) -> tuple[list[Submission], int]:
        rows = [s for s in self._submissions.values() if self._matches(s, filters)]

        def sort_key(submission: Submission):
            value = getattr(submission, sort_by)
            if isinstance(value, SubmissionStatus):
                return value.value
            if isinstance(value, str):
                return value.lower()
            return value

        rows.sort(key=sort_key, reverse=sort_order == "desc")
        page = rows[offset:offset + limit]
        return [copy.deepcopy(s) for s in page], len(rows)

    def _matches(self, submission: Submission, filters: SubmissionFilters) -> bool:
        """Apply every non-empty filter (AND)."""
        if filters.status and submission.status not in filters.status:
            return False
        if filters.category and submission.category not in filters.category:
            return False
        if filters.author_email:
            if filters.author_email.lower() not in submission.author_email.lower():
                return False
        if filters.admin_id and submission.reviewed_by != filters.admin_id:
            return False
        if filters.date_from and submission.created_at < filters.date_from:
            return False
        if filters.date_to and submission.created_at > filters.date_to:
            return False
        if filters.search:
            needle = filters.search.lower()
            haystacks = (submission.title, submission.author_name, submission.content or "")
            if not any(needle in h.lower() for h in haystacks):
                return False
        if filters.expiring_days is not None:
            horizon = utc_now() + timedelta(days=filters.expiring_days)
            if submission.expires_at > horizon:
                return False
        if filters.has_files is not None:
            has_files = any(f.submission_id == submission.id for f in self._files.values())
            if has_files != filters.has_files:
                return False
        return True

    # =========================================================================
    # Versions, Feedback, Reviews
    # =========================================================================

    async def insert_version(self, version: SubmissionVersion) -> None:
        self._versions.setdefault(version.submission_id, []).append(version)
        await self._save_to_file()

    async def list_versions(self, submission_id: str) -> list[SubmissionVersion]:
        return sorted(self._versions.get(submission_id, []), key=lambda v: v.version_number)

    async def insert_feedback(self, feedback: AdminFeedback) -> None:
        self._feedback.append(feedback)
        await self._save_to_file()

    async def list_feedback(self, submission_id: str) -> list[AdminFeedback]:
        return sorted(
            (f for f in self._feedback if f.submission_id == submission_id),
            key=lambda f: f.created_at,
            reverse=True,
        )

    async def insert_review(self, review: SubmissionReview) -> None:
        self._reviews.append(review)
        await self._save_to_file()

    async def list_reviews(self, submission_id: Optional[str] = None) -> list[SubmissionReview]:
        reviews = [
            r for r in self._reviews
            if submission_id is None or r.submission_id == submission_id
        ]
        return sorted(reviews, key=lambda r: r.reviewed_at, reverse=True)

    # =========================================================================
    # Audit Log
    # =========================================================================

    async def insert_action_log(self, entry: AdminActionLog) -> None:
        self._action_logs.append(entry)
        await self._save_to_file()

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
        entries = [
            e for e in self._action_logs
            if e.admin_id == admin_id
            and (action is None or e.action == action)
            and (target_type is None or e.target_type == target_type)
            and (date_from is None or e.timestamp >= date_from)
            and (date_to is None or e.timestamp <= date_to)
        ]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries[offset:offset + limit], len(entries)

    # =========================================================================
    # File Uploads
    # =========================================================================

    async def insert_file(self, upload: FileUpload) -> FileUpload:
        self._files[upload.id] = upload
        await self._save_to_file()
        return upload

    async def get_file(self, file_id: str) -> Optional[FileUpload]:
        return self._files.get(file_id)

    async def list_files(self, submission_id: Optional[str] = None) -> list[FileUpload]:
        files = [
            f for f in self._files.values()
            if submission_id is None or f.submission_id == submission_id
        ]
        return sorted(files, key=lambda f: f.uploaded_at, reverse=True)

    async def count_files(self, submission_id: str) -> int:
        return sum(1 for f in self._files.values() if f.submission_id == submission_id)

    async def delete_file(self, file_id: str) -> bool:
        if file_id in self._files:
            del self._files[file_id]
            await self._save_to_file()
            return True
        return False

    # =========================================================================
    # Admins
    # =========================================================================

    async def add_admin(self, admin: Admin) -> Admin:
        """Register a reviewer account (seeding and tests)."""
        self._admins[admin.id] = admin
        await self._save_to_file()
        return admin

    async def get_admin(self, admin_id: str) -> Optional[Admin]:
        return self._admins.get(admin_id)

    async def list_active_admins(self) -> list[Admin]:
        return [a for a in self._admins.values() if a.is_active]
