"""
Upload Gateway - Validated Attachment Uploads for Submissions

Validates, stores and records files an author attaches to a submission.
The bytes go to the media provider; the store keeps a FileUpload record.

Principles:
- Only the submission's author may attach or delete files
- Extension, size and emptiness are checked before anything is stored
- At most MAX_ATTACHMENTS files per submission
"""

from __future__ import annotations

import logging
import secrets
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Final, Optional, Sequence

from editorial.exceptions import (
    AttachmentLimitException,
    FileNotFoundException,
    InvalidFileTypeException,
    SubmissionNotFoundException,
    TokenExpiredException,
    UnauthorizedException,
)
from editorial.submission.lifecycle import ensure_editable
from editorial.submission.ports import MediaStoragePort, MediaUploadOptions, SubmissionStore
from editorial.submission.schema import (
    ALLOWED_DOCUMENT_EXTENSIONS,
    ALLOWED_IMAGE_EXTENSIONS,
    MAX_ATTACHMENTS,
    MAX_FILE_SIZE_BYTES,
    FileUpload,
    ResourceType,
    Submission,
    SubmissionStatus,
    generate_id,
    utc_now,
)
from editorial.submission.tokens import EMAIL_VALID, SUBMISSION_NOT_FOUND, TokenService
from utils.logging_setup import log_audit_event

logger = logging.getLogger(__name__)

RECENT_UPLOADS_LIMIT: Final[int] = 10

_ALLOWED: Final[dict[ResourceType, tuple[str, ...]]] = {
    ResourceType.IMAGE: ALLOWED_IMAGE_EXTENSIONS,
    ResourceType.DOCUMENT: ALLOWED_DOCUMENT_EXTENSIONS,
}


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class UploadedFile:
    """Raw file handed to upload_multiple."""

    filename: str
    data: bytes


@dataclass(frozen=True)
class BulkUploadResult:
    successful: list[FileUpload] = field(default_factory=list)
    failed: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "successful": [f.to_dict() for f in self.successful],
            "failed": list(self.failed),
            "summary": {
                "total": len(self.successful) + len(self.failed),
                "successful": len(self.successful),
                "failed": len(self.failed),
            },
        }


@dataclass(frozen=True)
class OrphanCleanupResult:
    deleted: int
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"deleted": self.deleted, "errors": list(self.errors)}


# =============================================================================
# Helpers
# =============================================================================


def file_extension(filename: str) -> str:
    """Lowercase extension without the dot ('' if none)."""
    return PurePath(filename).suffix.lstrip(".").lower()


def resource_type_for(filename: str) -> ResourceType:
    """Images by extension; everything else is treated as a document."""
    if file_extension(filename) in ALLOWED_IMAGE_EXTENSIONS:
        return ResourceType.IMAGE
    return ResourceType.DOCUMENT


def validate_file(data: bytes, filename: str, resource_type: ResourceType) -> list[str]:
    """
    Validate a file before upload.

    Returns:
        List of error messages (empty when valid)
    """
    errors: list[str] = []
    if len(data) > MAX_FILE_SIZE_BYTES:
        errors.append(f"Arquivo muito grande. Máximo: {MAX_FILE_SIZE_BYTES // (1024 * 1024)}MB")
    if len(data) == 0:
        errors.append("Arquivo vazio")
    allowed = _ALLOWED[resource_type]
    if file_extension(filename) not in allowed:
        errors.append(f"Formato não permitido. Permitidos: {', '.join(allowed)}")
    return errors


def generate_public_id(filename: str, submission_id: str) -> str:
    """{submission_id}/{name}_{millis}_{8 hex chars}"""
    name = PurePath(filename).stem
    millis = int(time.time() * 1000)
    return f"{submission_id}/{name}_{millis}_{secrets.token_hex(4)}"


# =============================================================================
# Gateway
# =============================================================================


class UploadGateway:
    """Author-facing attachment uploads."""

    def __init__(
        self,
        store: SubmissionStore,
        tokens: TokenService,
        media: MediaStoragePort,
        max_attachments: int = MAX_ATTACHMENTS,
    ):
        self._store = store
        self._tokens = tokens
        self._media = media
        self.max_attachments = max_attachments

    async def _require_owner(self, submission_id: str, author_email: str) -> Submission:
        """
        Load a submission the caller may attach files to.

        Raises:
            SubmissionNotFoundException: Unknown submission
            UnauthorizedException: Email does not match the author
            TokenExpiredException: Access has expired
            InvalidStatusException: Submission is not editable
        """
        check = await self._tokens.validate_author_email(submission_id, author_email)
        if check.reason == SUBMISSION_NOT_FOUND:
            raise SubmissionNotFoundException()
        if check.reason != EMAIL_VALID:
            raise UnauthorizedException(
                "Você não tem permissão para enviar arquivos para esta submissão"
            )

        submission = await self._store.get_submission(submission_id)
        if not submission:
            raise SubmissionNotFoundException()
        if submission.is_expired or submission.status is SubmissionStatus.EXPIRED:
            raise TokenExpiredException(submission=submission.snapshot())
        ensure_editable(submission.status)
        return submission

    async def _upload(
        self,
        data: bytes,
        filename: str,
        submission_id: str,
        author_email: str,
        resource_type: ResourceType,
    ) -> FileUpload:
        errors = validate_file(data, filename, resource_type)
        if errors:
            raise InvalidFileTypeException(
                f"Arquivo inválido: {', '.join(errors)}",
                validation_errors=errors,
                allowed_types=_ALLOWED[resource_type],
            )

        submission = await self._require_owner(submission_id, author_email)

        # Read-then-act: concurrent uploads may briefly exceed the cap
        if await self._store.count_files(submission_id) >= self.max_attachments:
            raise AttachmentLimitException(self.max_attachments)

        folder = f"submissions/{submission_id}"
        if resource_type is ResourceType.DOCUMENT:
            folder += "/documents"

        result = await self._media.upload(
            data,
            MediaUploadOptions(
                public_id=generate_public_id(filename, submission_id),
                folder=folder,
                resource_type=resource_type,
                format=file_extension(filename),
                tags=("submission", submission_id, resource_type.value),
                context={
                    "submission_id": submission_id,
                    "author_email": submission.author_email,
                    "original_name": filename,
                },
            ),
        )

        upload = FileUpload(
            id=generate_id(),
            submission_id=submission_id,
            original_name=filename,
            provider_id=result.provider_id,
            url=result.url,
            secure_url=result.secure_url,
            format=result.format,
            resource_type=resource_type,
            size=result.bytes,
            uploaded_by=submission.author_email,
            uploaded_at=utc_now(),
        )
        await self._store.insert_file(upload)
        await self._store.update_submission(
            submission_id,
            attachments=[*submission.attachments, upload.id],
            updated_at=utc_now(),
        )

        log_audit_event(
            "File uploaded",
            file_id=upload.id,
            submission_id=submission_id,
            resource_type=resource_type.value,
            size=upload.size,
        )
        return upload

    async def upload_image(
        self,
        data: bytes,
        filename: str,
        submission_id: str,
        author_email: str,
    ) -> FileUpload:
        """
        Validate and store an image attachment.

        Raises:
            InvalidFileTypeException: Wrong extension, empty or too large
            AttachmentLimitException: Submission already has the maximum
            UnauthorizedException: Caller is not the author
        """
        return await self._upload(data, filename, submission_id, author_email, ResourceType.IMAGE)

    async def upload_document(
        self,
        data: bytes,
        filename: str,
        submission_id: str,
        author_email: str,
    ) -> FileUpload:
        """Validate and store a document attachment (pdf, doc, docx, txt)."""
        return await self._upload(
            data, filename, submission_id, author_email, ResourceType.DOCUMENT
        )

    async def upload_multiple(
        self,
        files: Sequence[UploadedFile],
        submission_id: str,
        author_email: str,
    ) -> BulkUploadResult:
        """Upload files one by one; a failure affects only its own file."""
        result = BulkUploadResult()
        for item in files:
            try:
                upload = await self._upload(
                    item.data,
                    item.filename,
                    submission_id,
                    author_email,
                    resource_type_for(item.filename),
                )
                result.successful.append(upload)
            except Exception as e:
                logger.warning("Upload of %s failed: %s", item.filename, e)
                result.failed.append({"filename": item.filename, "error": str(e)})
        return result

    async def delete(self, file_id: str, author_email: str) -> bool:
        """
        Delete an attachment from the provider and the store.

        Raises:
            FileNotFoundException: Unknown file id
            UnauthorizedException: Caller did not upload the file
        """
        upload = await self._store.get_file(file_id)
        if not upload:
            raise FileNotFoundException()
        if upload.uploaded_by.lower() != (author_email or "").strip().lower():
            raise UnauthorizedException("Você não tem permissão para deletar este arquivo")

        await self._media.destroy(upload.provider_id, upload.resource_type)
        deleted = await self._store.delete_file(file_id)

        submission = await self._store.get_submission(upload.submission_id)
        if submission and file_id in submission.attachments:
            await self._store.update_submission(
                submission.id,
                attachments=[a for a in submission.attachments if a != file_id],
                updated_at=utc_now(),
            )

        log_audit_event("File deleted", file_id=file_id, submission_id=upload.submission_id)
        return deleted

    async def signed_url(self, file_id: str, ttl_minutes: int = 60) -> str:
        """Time-limited download link for an attachment."""
        upload = await self._store.get_file(file_id)
        if not upload:
            raise FileNotFoundException()
        return await self._media.signed_url(upload.provider_id, upload.resource_type, ttl_minutes)

    async def cleanup_orphaned(self) -> OrphanCleanupResult:
        """
        Remove uploads whose submission no longer exists.

        Per-file failures are collected, not fatal to the sweep.
        """
        deleted = 0
        errors: list[str] = []
        for upload in await self._store.list_files():
            if await self._store.get_submission(upload.submission_id):
                continue
            try:
                await self._media.destroy(upload.provider_id, upload.resource_type)
                await self._store.delete_file(upload.id)
                deleted += 1
            except Exception as e:
                errors.append(f"Failed to delete {upload.original_name}: {e}")

        if deleted or errors:
            logger.info("Orphan cleanup: %d deleted, %d errors", deleted, len(errors))
        return OrphanCleanupResult(deleted=deleted, errors=errors)

    async def upload_stats(self, submission_id: Optional[str] = None) -> dict[str, Any]:
        """Counts and bytes by type and format, plus the latest uploads."""
        files = await self._store.list_files(submission_id)
        by_type = Counter(f.resource_type.value for f in files)
        by_format = Counter(f.format for f in files)
        images = sum(f.size for f in files if f.resource_type is ResourceType.IMAGE)
        documents = sum(f.size for f in files if f.resource_type is ResourceType.DOCUMENT)
        return {
            "total_uploads": len(files),
            "total_size": images + documents,
            "by_type": dict(by_type),
            "by_format": dict(by_format),
            "recent_uploads": [f.to_dict() for f in files[:RECENT_UPLOADS_LIMIT]],
            "storage_used": {
                "images": images,
                "documents": documents,
                "total": images + documents,
            },
        }
