"""
Admin Routes - Editorial Review API

All routes under /admin/* except login require an admin session.
Non-authenticated users receive 403 Forbidden.

Routes:
- POST /admin/login                         - Sign in (sets session cookie)
- POST /admin/logout                        - Sign out
- GET  /admin/me                            - Current reviewer
- GET  /admin/dashboard                     - Aggregate dashboard
- GET  /admin/submissions                   - Filtered, paginated listing
- GET  /admin/submissions/search            - Ranked free-text search
- POST /admin/submissions/bulk              - Bulk review / expiry extension
- POST /admin/submissions/{id}/review       - Record a review decision
- POST /admin/submissions/{id}/feedback     - Request changes from the author
- POST /admin/submissions/{id}/publish      - Publish an approved submission
- POST /admin/submissions/{id}/reactivate   - Recover an expired submission
- GET  /admin/action-log                    - The reviewer's own audit trail
- GET  /admin/tokens/stats                  - Token expiry statistics
- GET  /admin/files/stats                   - Upload statistics
- GET  /admin/files/{file_id}/url           - Signed download link
- POST /admin/files/cleanup                 - Remove orphaned uploads
- GET  /admin/jobs                          - Job status
- POST /admin/jobs/token-cleanup            - Expire lapsed submissions
- POST /admin/jobs/notifications/{kind}     - Run a reminder job
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from editorial.exceptions import AdminNotFoundException
from editorial.jobs import EmailNotificationJob, TokenCleanupJob
from editorial.review import (
    ActionLogFilters,
    AdminReviewEngine,
    BulkAction,
    BulkActionType,
    PublishRequest,
    PublishSuccess,
    SubmissionQuery,
)
from editorial.submission import (
    ReviewStatus,
    SubmissionFilters,
    SubmissionStatus,
    TokenService,
)
from editorial.upload import UploadGateway
from web.admin_auth import (
    AdminSession,
    authenticate_admin,
    clear_session_cookie,
    get_current_admin,
    is_admin_configured,
    set_session_cookie,
)


# =============================================================================
# Router Setup
# =============================================================================

router = APIRouter(prefix="/admin", tags=["admin"])


def get_engine(request: Request) -> AdminReviewEngine:
    return request.app.state.review


def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens


def get_uploads(request: Request) -> UploadGateway:
    return request.app.state.uploads


# =============================================================================
# Authentication Dependency
# =============================================================================


def require_admin(request: Request) -> AdminSession:
    """
    Dependency that requires a valid admin session.

    Raises HTTPException(403) if not authenticated.
    """
    session = get_current_admin(request)
    if not session:
        raise HTTPException(
            status_code=403,
            detail="Admin authentication required",
        )
    return session


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """Query datetimes without an offset are taken as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# Request Models
# =============================================================================


class ReviewRequest(BaseModel):
    status: ReviewStatus
    notes: Optional[str] = None
    rejection_reason: Optional[str] = None


class FeedbackRequest(BaseModel):
    content: str


class PublishBody(BaseModel):
    publish_notes: Optional[str] = None
    category_override: Optional[str] = None
    keywords_override: Optional[list[str]] = None


class BulkActionRequest(BaseModel):
    submission_ids: list[str] = Field(min_length=1)
    action: BulkActionType
    reason: Optional[str] = None
    notes: Optional[str] = None


class ReactivateRequest(BaseModel):
    expiry_days: Optional[int] = Field(default=None, ge=1, le=90)


# =============================================================================
# Login/Logout Routes
# =============================================================================


@router.post("/login")
async def process_login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
):
    """Process admin login form submission."""
    session = await authenticate_admin(request.app.state.store, email, password)

    if not session:
        return JSONResponse(
            {
                "success": False,
                "error": "UNAUTHORIZED",
                "message": "Email ou senha inválidos",
                "is_configured": is_admin_configured(),
            },
            status_code=401,
        )

    response = JSONResponse(
        {"success": True, "admin": {"id": session.admin_id, "name": session.name}}
    )
    set_session_cookie(response, session, secure=not request.app.state.config.debug)
    return response


@router.post("/logout")
async def logout():
    """Log out the current admin user."""
    response = JSONResponse({"success": True})
    clear_session_cookie(response)
    return response


@router.get("/me")
async def current_admin(request: Request, session: AdminSession = Depends(require_admin)):
    admin = await request.app.state.store.get_admin(session.admin_id)
    if admin is None:
        raise AdminNotFoundException()
    return {"success": True, "admin": admin.to_dict()}


# =============================================================================
# Dashboard and Listing
# =============================================================================


@router.get("/dashboard")
async def dashboard(
    session: AdminSession = Depends(require_admin),
    engine: AdminReviewEngine = Depends(get_engine),
):
    return {"success": True, "dashboard": await engine.get_dashboard(session.admin_id)}


@router.get("/submissions")
async def list_submissions(
    status: list[SubmissionStatus] = Query(default=[]),
    category: list[str] = Query(default=[]),
    author_email: Optional[str] = None,
    admin_id: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    search: Optional[str] = None,
    expiring_days: Optional[int] = None,
    has_files: Optional[bool] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    session: AdminSession = Depends(require_admin),
    engine: AdminReviewEngine = Depends(get_engine),
):
    """Filtered listing; unknown sort fields fall back to updated_at desc."""
    query = SubmissionQuery(
        filters=SubmissionFilters(
            status=tuple(status),
            category=tuple(category),
            author_email=author_email,
            admin_id=admin_id,
            date_from=_aware(date_from),
            date_to=_aware(date_to),
            search=search,
            expiring_days=expiring_days,
            has_files=has_files,
        ),
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    result = await engine.get_submissions(query, session.admin_id)
    return {"success": True, **result.to_dict()}


@router.get("/submissions/search")
async def search_submissions(
    q: str = Query(...),
    status: list[SubmissionStatus] = Query(default=[]),
    category: list[str] = Query(default=[]),
    session: AdminSession = Depends(require_admin),
    engine: AdminReviewEngine = Depends(get_engine),
):
    filters = SubmissionFilters(status=tuple(status), category=tuple(category))
    results = await engine.search_submissions(q, session.admin_id, filters)
    return {"success": True, "results": results, "total": len(results)}


# =============================================================================
# Review, Feedback, Publish
# =============================================================================


@router.post("/submissions/bulk")
async def bulk_action(
    body: BulkActionRequest,
    session: AdminSession = Depends(require_admin),
    engine: AdminReviewEngine = Depends(get_engine),
):
    action = BulkAction(
        submission_ids=tuple(body.submission_ids),
        action=body.action,
        reason=body.reason,
        notes=body.notes,
    )
    result = await engine.perform_bulk_action(action, session.admin_id)
    return {"success": True, **result.to_dict()}


@router.post("/submissions/{submission_id}/review")
async def review_submission(
    submission_id: str,
    body: ReviewRequest,
    session: AdminSession = Depends(require_admin),
    engine: AdminReviewEngine = Depends(get_engine),
):
    review = await engine.review_submission(
        submission_id,
        session.admin_id,
        body.status,
        notes=body.notes,
        rejection_reason=body.rejection_reason,
    )
    return {"success": True, "review": review.to_dict()}


@router.post("/submissions/{submission_id}/feedback", status_code=201)
async def send_feedback(
    submission_id: str,
    body: FeedbackRequest,
    session: AdminSession = Depends(require_admin),
    engine: AdminReviewEngine = Depends(get_engine),
):
    feedback = await engine.send_feedback(submission_id, session.admin_id, body.content)
    return {"success": True, "feedback": feedback.to_dict()}


@router.post("/submissions/{submission_id}/publish")
async def publish_submission(
    submission_id: str,
    body: Optional[PublishBody] = None,
    session: AdminSession = Depends(require_admin),
    engine: AdminReviewEngine = Depends(get_engine),
):
    body = body or PublishBody()
    keywords = tuple(body.keywords_override) if body.keywords_override is not None else None
    result = await engine.publish_submission(
        submission_id,
        session.admin_id,
        PublishRequest(
            publish_notes=body.publish_notes,
            category_override=body.category_override,
            keywords_override=keywords,
        ),
    )
    if isinstance(result, PublishSuccess):
        return result.to_dict()
    return JSONResponse(result.to_dict(), status_code=400)


@router.post("/submissions/{submission_id}/reactivate")
async def reactivate_submission(
    submission_id: str,
    body: Optional[ReactivateRequest] = None,
    session: AdminSession = Depends(require_admin),
    engine: AdminReviewEngine = Depends(get_engine),
):
    expiry_days = body.expiry_days if body else None
    reactivation = await engine.reactivate_submission(submission_id, session.admin_id, expiry_days)
    return {"success": True, **reactivation.to_dict()}


# =============================================================================
# Audit Trail and Statistics
# =============================================================================


@router.get("/action-log")
async def action_log(
    action: Optional[str] = None,
    target_type: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    session: AdminSession = Depends(require_admin),
    engine: AdminReviewEngine = Depends(get_engine),
):
    filters = ActionLogFilters(
        action=action,
        target_type=target_type,
        date_from=_aware(date_from),
        date_to=_aware(date_to),
        page=page,
        limit=limit,
    )
    result = await engine.get_admin_action_log(session.admin_id, filters)
    return {"success": True, **result.to_dict()}


@router.get("/tokens/stats")
async def token_stats(
    session: AdminSession = Depends(require_admin),
    tokens: TokenService = Depends(get_tokens),
):
    return {"success": True, "stats": await tokens.token_stats()}


@router.get("/files/stats")
async def upload_stats(
    submission_id: Optional[str] = None,
    session: AdminSession = Depends(require_admin),
    uploads: UploadGateway = Depends(get_uploads),
):
    return {"success": True, "stats": await uploads.upload_stats(submission_id)}


@router.get("/files/{file_id}/url")
async def signed_file_url(
    file_id: str,
    ttl_minutes: int = Query(60, ge=1, le=1440),
    session: AdminSession = Depends(require_admin),
    uploads: UploadGateway = Depends(get_uploads),
):
    return {"success": True, "url": await uploads.signed_url(file_id, ttl_minutes)}


@router.post("/files/cleanup")
async def cleanup_orphaned_files(
    session: AdminSession = Depends(require_admin),
    uploads: UploadGateway = Depends(get_uploads),
):
    result = await uploads.cleanup_orphaned()
    return {"success": True, **result.to_dict()}


# =============================================================================
# Jobs
# =============================================================================


@router.get("/jobs")
async def job_status(request: Request, session: AdminSession = Depends(require_admin)):
    cleanup: TokenCleanupJob = request.app.state.cleanup_job
    email: EmailNotificationJob = request.app.state.email_job
    return {"success": True, "jobs": [cleanup.status(), email.status()]}


@router.post("/jobs/token-cleanup")
async def run_token_cleanup(request: Request, session: AdminSession = Depends(require_admin)):
    job: TokenCleanupJob = request.app.state.cleanup_job
    result = await job.run()
    return {"success": True, **result.to_dict()}


@router.post("/jobs/notifications/{kind}")
async def run_notification_job(
    kind: str,
    request: Request,
    session: AdminSession = Depends(require_admin),
):
    job: EmailNotificationJob = request.app.state.email_job
    return await job.run_manual(kind)
