"""
Submission Versions - Append-only Content Snapshots

A snapshot is written when a submission is created, when the author makes a
significant edit, and when it is sent for review.

Hash Chain Properties:
- Each version carries a SHA-256 hash of its content
- Each version references the hash of the previous version
- Hash computation is deterministic (sorted keys, compact separators)
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from editorial.submission.schema import Submission, utc_now


def _serialize_for_hash(data: dict[str, Any]) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def compute_version_hash(
    submission_id: str,
    version_number: int,
    title: str,
    summary: Optional[str],
    content: str,
    metadata: dict[str, Any],
    created_at: datetime,
    previous_version_hash: Optional[str],
) -> str:
    """Compute SHA-256 hash covering every snapshot field and the chain link."""
    hashable_content = {
        "submission_id": submission_id,
        "version_number": version_number,
        "title": title,
        "summary": summary,
        "content": content,
        "metadata": metadata,
        "created_at": created_at.isoformat(),
        "previous_version_hash": previous_version_hash,
    }
    serialized = _serialize_for_hash(hashable_content)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class SubmissionVersion:
    """Immutable snapshot of a submission's content."""

    submission_id: str
    version_number: int
    title: str
    summary: Optional[str]
    content: str
    created_by: str
    change_summary: str
    created_at: datetime
    version_hash: str
    previous_version_hash: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        submission: Submission,
        version_number: int,
        change_summary: str,
        created_by: str = "system",
        previous: Optional["SubmissionVersion"] = None,
    ) -> "SubmissionVersion":
        """Snapshot the current content of a submission."""
        created_at = utc_now()
        previous_hash = previous.version_hash if previous else None
        metadata = dict(submission.metadata)
        return cls(
            submission_id=submission.id,
            version_number=version_number,
            title=submission.title,
            summary=submission.summary,
            content=submission.content,
            created_by=created_by,
            change_summary=change_summary,
            created_at=created_at,
            version_hash=compute_version_hash(
                submission_id=submission.id,
                version_number=version_number,
                title=submission.title,
                summary=submission.summary,
                content=submission.content,
                metadata=metadata,
                created_at=created_at,
                previous_version_hash=previous_hash,
            ),
            previous_version_hash=previous_hash,
            metadata=metadata,
        )

    def to_dict(self) -> dict:
        return {
            "submission_id": self.submission_id,
            "version_number": self.version_number,
            "title": self.title,
            "summary": self.summary,
            "content": self.content,
            "metadata": self.metadata,
            "created_by": self.created_by,
            "change_summary": self.change_summary,
            "created_at": self.created_at.isoformat(),
            "version_hash": self.version_hash,
            "previous_version_hash": self.previous_version_hash,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SubmissionVersion":
        return cls(
            submission_id=data["submission_id"],
            version_number=data["version_number"],
            title=data["title"],
            summary=data.get("summary"),
            content=data.get("content") or "",
            created_by=data.get("created_by", "system"),
            change_summary=data.get("change_summary", ""),
            created_at=datetime.fromisoformat(data["created_at"]),
            version_hash=data["version_hash"],
            previous_version_hash=data.get("previous_version_hash"),
            metadata=dict(data.get("metadata") or {}),
        )


def verify_version_chain(versions: list[SubmissionVersion]) -> dict[str, Any]:
    """
    Verify the integrity of a submission's version chain.

    Returns:
        dict with valid, broken_at (version number or None) and error
    """
    previous: Optional[SubmissionVersion] = None
    for version in sorted(versions, key=lambda v: v.version_number):
        expected_previous = previous.version_hash if previous else None
        if version.previous_version_hash != expected_previous:
            return {
                "valid": False,
                "broken_at": version.version_number,
                "error": f"Chain broken at version {version.version_number}",
            }

        expected_hash = compute_version_hash(
            submission_id=version.submission_id,
            version_number=version.version_number,
            title=version.title,
            summary=version.summary,
            content=version.content,
            metadata=version.metadata,
            created_at=version.created_at,
            previous_version_hash=version.previous_version_hash,
        )
        if version.version_hash != expected_hash:
            return {
                "valid": False,
                "broken_at": version.version_number,
                "error": f"Hash mismatch at version {version.version_number}",
            }
        previous = version

    return {"valid": True, "broken_at": None, "error": None}
