"""
Author Submission Routes - Web API for Anonymous Authors

Authors have no accounts. Reads go through the access token; writes
additionally require the author's email, which must match the submission.

Routes:
- POST   /submissions                         - Create a draft
- GET    /submissions/access/{token}          - Read through the access token
- PUT    /submissions/{id}                    - Edit while editable
- POST   /submissions/{id}/auto-save          - Edit, reporting instead of failing
- POST   /submissions/{id}/submit             - Send for review
- POST   /submissions/{id}/renew              - Extend the access link
- GET    /submissions/{id}/preview            - Article-shaped preview
- GET    /submissions/{id}/stats              - Content and completeness stats
- POST   /submissions/{id}/files              - Upload one attachment
- POST   /submissions/{id}/files/batch        - Upload several attachments
- DELETE /submissions/files/{file_id}         - Delete an attachment
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from editorial.submission import ResourceType, SubmissionService, TOKEN_EXPIRY_DAYS
from editorial.upload import UploadedFile, UploadGateway, resource_type_for


# =============================================================================
# Router Setup
# =============================================================================

router = APIRouter(prefix="/submissions", tags=["submissions"])


def get_submission_service(request: Request) -> SubmissionService:
    return request.app.state.submissions


def get_upload_gateway(request: Request) -> UploadGateway:
    return request.app.state.uploads


# =============================================================================
# Request Models
# =============================================================================


class SubmissionCreateRequest(BaseModel):
    """Field rules are enforced by the service, not here."""

    author_name: Optional[str] = None
    author_email: Optional[str] = None
    author_institution: Optional[str] = None
    title: Optional[str] = None
    summary: Optional[str] = None
    content: Optional[str] = None
    keywords: Optional[list[str]] = None
    category: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class SubmissionUpdateRequest(BaseModel):
    author_email: str
    title: Optional[str] = None
    summary: Optional[str] = None
    content: Optional[str] = None
    keywords: Optional[list[str]] = None
    category: Optional[str] = None
    author_institution: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"author_email"})


class AuthorRequest(BaseModel):
    author_email: str


class RenewRequest(BaseModel):
    author_email: str
    additional_days: int = Field(default=TOKEN_EXPIRY_DAYS)


# =============================================================================
# Create / Read
# =============================================================================


@router.post("", status_code=201)
async def create_submission(
    body: SubmissionCreateRequest,
    service: SubmissionService = Depends(get_submission_service),
):
    """Create a DRAFT and email the access link to the author."""
    submission = await service.create_submission(body.model_dump(exclude_none=True))
    return {
        "success": True,
        "submission": submission.to_dict(),
        "message": "Submissão criada. O link de acesso foi enviado por email.",
    }


@router.get("/access/{token}")
async def get_submission_by_token(
    token: str,
    include_versions: bool = Query(False),
    service: SubmissionService = Depends(get_submission_service),
):
    view = await service.get_submission_by_token(token, include_versions=include_versions)
    return {"success": True, "submission": view.to_dict()}


# =============================================================================
# Edit / Submit
# =============================================================================


@router.put("/{submission_id}")
async def update_submission(
    submission_id: str,
    body: SubmissionUpdateRequest,
    service: SubmissionService = Depends(get_submission_service),
):
    submission = await service.update_submission(
        submission_id, body.changes(), body.author_email
    )
    return {"success": True, "submission": submission.to_dict()}


@router.post("/{submission_id}/auto-save")
async def auto_save(
    submission_id: str,
    body: SubmissionUpdateRequest,
    service: SubmissionService = Depends(get_submission_service),
):
    """Always 200; the body says whether the save happened."""
    result = await service.auto_save(submission_id, body.changes(), body.author_email)
    return result.to_dict()


@router.post("/{submission_id}/submit")
async def submit_for_review(
    submission_id: str,
    body: AuthorRequest,
    service: SubmissionService = Depends(get_submission_service),
):
    submission = await service.submit_for_review(submission_id, body.author_email)
    return {
        "success": True,
        "submission": submission.to_dict(),
        "message": "Submissão enviada para revisão",
    }


@router.post("/{submission_id}/renew")
async def renew_access(
    submission_id: str,
    body: RenewRequest,
    service: SubmissionService = Depends(get_submission_service),
):
    expires_at = await service.renew_access(
        submission_id, body.author_email, body.additional_days
    )
    return {"success": True, "expires_at": expires_at.isoformat()}


# =============================================================================
# Preview / Stats
# =============================================================================


@router.get("/{submission_id}/preview")
async def preview(
    submission_id: str,
    service: SubmissionService = Depends(get_submission_service),
):
    return {"success": True, "preview": await service.generate_preview(submission_id)}


@router.get("/{submission_id}/stats")
async def stats(
    submission_id: str,
    service: SubmissionService = Depends(get_submission_service),
):
    return {"success": True, "stats": await service.get_submission_stats(submission_id)}


# =============================================================================
# Attachments
# =============================================================================


@router.post("/{submission_id}/files", status_code=201)
async def upload_file(
    submission_id: str,
    author_email: str = Form(...),
    file: UploadFile = File(...),
    gateway: UploadGateway = Depends(get_upload_gateway),
):
    """Upload one attachment; images and documents are told apart by extension."""
    filename = file.filename or "arquivo"
    data = await file.read()
    if resource_type_for(filename) is ResourceType.IMAGE:
        upload = await gateway.upload_image(data, filename, submission_id, author_email)
    else:
        upload = await gateway.upload_document(data, filename, submission_id, author_email)
    return {"success": True, "file": upload.to_dict()}


@router.post("/{submission_id}/files/batch")
async def upload_files(
    submission_id: str,
    author_email: str = Form(...),
    files: list[UploadFile] = File(...),
    gateway: UploadGateway = Depends(get_upload_gateway),
):
    items = [UploadedFile(filename=f.filename or "arquivo", data=await f.read()) for f in files]
    result = await gateway.upload_multiple(items, submission_id, author_email)
    status_code = 201 if result.successful else 400
    return JSONResponse(
        {"success": bool(result.successful), **result.to_dict()},
        status_code=status_code,
    )


@router.delete("/files/{file_id}")
async def delete_file(
    file_id: str,
    author_email: str = Query(...),
    gateway: UploadGateway = Depends(get_upload_gateway),
):
    deleted = await gateway.delete(file_id, author_email)
    return {"success": deleted, "file_id": file_id}
