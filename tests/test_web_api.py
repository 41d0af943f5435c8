"""
Tests for the HTTP API

Tests covering:
1. Author flow over HTTP: create, access by token, edit, submit
2. Typed errors map to JSON bodies with their status codes
3. Admin login, session cookie and the 403 guard
4. Admin review, publish, bulk and job endpoints
5. Attachment upload and delete
"""

from __future__ import annotations

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from conftest import ADMIN_EMAIL, AUTHOR_EMAIL, COMPLETE_DATA
from editorial.submission.schema import Admin, SubmissionStatus
from utils.config import Config
from web.admin_auth import SESSION_COOKIE_NAME, admin_id_for, hash_password
from web.app import create_app

PASSWORD = "senha-editorial"


@pytest.fixture
def config(tmp_path):
    return Config(
        debug=True,
        data_dir=str(tmp_path),
        frontend_url="https://revista.test",
        admin_emails=(ADMIN_EMAIL,),
        allowed_origins=(),
    )


@pytest.fixture
def app(config, store, notifier, media):
    return create_app(config, store=store, notifier=notifier, media=media)


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture
async def admin_client(client, store, monkeypatch):
    monkeypatch.setenv("ADMIN_PASSWORD_HASH", hash_password(PASSWORD))
    await store.add_admin(Admin(id=admin_id_for(ADMIN_EMAIL), name="Editora", email=ADMIN_EMAIL))
    response = await client.post("/admin/login", data={"email": ADMIN_EMAIL, "password": PASSWORD})
    assert response.status_code == 200
    return client


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# =============================================================================
# Author API
# =============================================================================


class TestAuthorApi:
    @pytest.mark.asyncio
    async def test_create_access_edit_submit(self, client):
        created = await client.post("/submissions", json=COMPLETE_DATA)
        assert created.status_code == 201
        submission = created.json()["submission"]
        token = submission["token"]

        access = await client.get(f"/submissions/access/{token}", params={"include_versions": True})
        assert access.status_code == 200
        assert len(access.json()["submission"]["versions"]) == 1

        edited = await client.put(
            f"/submissions/{submission['id']}",
            json={"author_email": AUTHOR_EMAIL, "title": "Café e Cidade"},
        )
        assert edited.json()["submission"]["title"] == "Café e Cidade"

        submitted = await client.post(
            f"/submissions/{submission['id']}/submit", json={"author_email": AUTHOR_EMAIL}
        )
        assert submitted.status_code == 200
        assert submitted.json()["submission"]["status"] == "UNDER_REVIEW"

    @pytest.mark.asyncio
    async def test_validation_error_body(self, client):
        response = await client.post("/submissions", json={"author_name": "M"})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_expired_token_is_410(self, client, make_submission):
        submission = await make_submission(expires_in=timedelta(minutes=-1))

        response = await client.get(f"/submissions/access/{submission.token}")

        assert response.status_code == 410
        assert response.json()["details"]["can_recover"] is True

    @pytest.mark.asyncio
    async def test_unknown_token_is_403(self, client):
        response = await client.get(f"/submissions/access/{'0' * 64}")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_auto_save_never_fails(self, client, make_submission):
        submission = await make_submission(status=SubmissionStatus.PUBLISHED)

        response = await client.post(
            f"/submissions/{submission.id}/auto-save",
            json={"author_email": AUTHOR_EMAIL, "content": "x"},
        )

        assert response.status_code == 200
        assert response.json()["auto_saved"] is False

    @pytest.mark.asyncio
    async def test_incomplete_submit_is_400(self, client):
        created = await client.post(
            "/submissions",
            json={"author_name": "Maria", "author_email": AUTHOR_EMAIL, "title": "Rascunho curto"},
        )
        submission_id = created.json()["submission"]["id"]

        response = await client.post(
            f"/submissions/{submission_id}/submit", json={"author_email": AUTHOR_EMAIL}
        )

        assert response.status_code == 400
        assert "summary" in response.json()["details"]["missing_fields"]

    @pytest.mark.asyncio
    async def test_renew_and_stats(self, client, make_submission):
        submission = await make_submission(expires_in=timedelta(days=2))

        renewed = await client.post(
            f"/submissions/{submission.id}/renew",
            json={"author_email": AUTHOR_EMAIL, "additional_days": 10},
        )
        stats = await client.get(f"/submissions/{submission.id}/stats")

        assert renewed.status_code == 200
        assert stats.json()["stats"]["days_to_expiry"] == 10

    @pytest.mark.asyncio
    async def test_unknown_submission_preview_is_404(self, client):
        response = await client.get("/submissions/missing/preview")
        assert response.status_code == 404
        assert response.json()["error"] == "SUBMISSION_NOT_FOUND"


class TestAttachmentApi:
    @pytest.mark.asyncio
    async def test_upload_and_delete(self, client, make_submission):
        submission = await make_submission()

        uploaded = await client.post(
            f"/submissions/{submission.id}/files",
            data={"author_email": AUTHOR_EMAIL},
            files={"file": ("capa.png", b"\x89PNG\r\n\x1a\n", "image/png")},
        )
        assert uploaded.status_code == 201
        file_id = uploaded.json()["file"]["id"]

        deleted = await client.delete(
            f"/submissions/files/{file_id}", params={"author_email": AUTHOR_EMAIL}
        )
        assert deleted.json() == {"success": True, "file_id": file_id}

    @pytest.mark.asyncio
    async def test_batch_with_nothing_valid_is_400(self, client, make_submission):
        submission = await make_submission()

        response = await client.post(
            f"/submissions/{submission.id}/files/batch",
            data={"author_email": AUTHOR_EMAIL},
            files=[("files", ("virus.exe", b"MZ", "application/octet-stream"))],
        )

        assert response.status_code == 400
        assert response.json()["summary"]["failed"] == 1

    @pytest.mark.asyncio
    async def test_wrong_author_is_401(self, client, make_submission):
        submission = await make_submission()

        response = await client.post(
            f"/submissions/{submission.id}/files",
            data={"author_email": "intruso@example.com"},
            files={"file": ("capa.png", b"\x89PNG", "image/png")},
        )

        assert response.status_code == 401


# =============================================================================
# Admin API
# =============================================================================


class TestAdminAuth:
    @pytest.mark.asyncio
    async def test_routes_require_session(self, client):
        response = await client.get("/admin/dashboard")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_login_without_configured_password(self, client, monkeypatch):
        monkeypatch.delenv("ADMIN_PASSWORD_HASH", raising=False)

        response = await client.post("/admin/login", data={"email": ADMIN_EMAIL, "password": "x"})

        assert response.status_code == 401
        assert response.json()["is_configured"] is False

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, store, monkeypatch):
        monkeypatch.setenv("ADMIN_PASSWORD_HASH", hash_password(PASSWORD))
        await store.add_admin(Admin(id="a-1", name="Editora", email=ADMIN_EMAIL))

        response = await client.post("/admin/login", data={"email": ADMIN_EMAIL, "password": "errada"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_me_logout(self, admin_client):
        assert SESSION_COOKIE_NAME in admin_client.cookies

        me = await admin_client.get("/admin/me")
        assert me.json()["admin"]["email"] == ADMIN_EMAIL

        await admin_client.post("/admin/logout")
        admin_client.cookies.clear()
        assert (await admin_client.get("/admin/me")).status_code == 403

    @pytest.mark.asyncio
    async def test_tampered_cookie_is_rejected(self, admin_client):
        token = admin_client.cookies[SESSION_COOKIE_NAME]
        admin_client.cookies.set(SESSION_COOKIE_NAME, token[:-4] + "0000")
        assert (await admin_client.get("/admin/dashboard")).status_code == 403


class TestAdminReviewApi:
    @pytest.mark.asyncio
    async def test_review_then_publish(self, admin_client, store, make_submission):
        submission = await make_submission(
            status=SubmissionStatus.UNDER_REVIEW, title="Café & Filosofia!"
        )

        reviewed = await admin_client.post(
            f"/admin/submissions/{submission.id}/review", json={"status": "approved"}
        )
        assert reviewed.status_code == 200
        assert reviewed.json()["review"]["admin_name"] == "Editora"

        published = await admin_client.post(f"/admin/submissions/{submission.id}/publish")
        assert published.status_code == 200
        assert published.json()["article_url"] == "https://revista.test/articles/cafe-filosofia"

        log = await admin_client.get("/admin/action-log")
        assert log.json()["total"] == 2

    @pytest.mark.asyncio
    async def test_publish_not_approved_is_400(self, admin_client, make_submission):
        submission = await make_submission(status=SubmissionStatus.UNDER_REVIEW)

        response = await admin_client.post(f"/admin/submissions/{submission.id}/publish")

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_illegal_review_is_400(self, admin_client, make_submission):
        submission = await make_submission(status=SubmissionStatus.PUBLISHED)

        response = await admin_client.post(
            f"/admin/submissions/{submission.id}/review", json={"status": "rejected"}
        )

        assert response.status_code == 400
        assert response.json()["details"]["current_status"] == "PUBLISHED"

    @pytest.mark.asyncio
    async def test_feedback(self, admin_client, make_submission):
        submission = await make_submission(status=SubmissionStatus.UNDER_REVIEW)

        response = await admin_client.post(
            f"/admin/submissions/{submission.id}/feedback", json={"content": "Revise a introdução"}
        )

        assert response.status_code == 201
        assert response.json()["feedback"]["content"] == "Revise a introdução"

    @pytest.mark.asyncio
    async def test_bulk(self, admin_client, make_submission):
        submission = await make_submission(status=SubmissionStatus.UNDER_REVIEW)

        response = await admin_client.post(
            "/admin/submissions/bulk",
            json={"submission_ids": [submission.id, "missing"], "action": "approve"},
        )

        assert response.json()["summary"] == {"total": 2, "successful": 1, "failed": 1}

    @pytest.mark.asyncio
    async def test_listing_and_search(self, admin_client, make_submission):
        await make_submission(status=SubmissionStatus.UNDER_REVIEW, title="Memória e cidade")
        await make_submission(status=SubmissionStatus.DRAFT)

        listing = await admin_client.get(
            "/admin/submissions", params={"status": "UNDER_REVIEW", "sort_by": "nope"}
        )
        search = await admin_client.get("/admin/submissions/search", params={"q": "memoria"})
        short = await admin_client.get("/admin/submissions/search", params={"q": "m"})

        assert listing.json()["pagination"]["total_items"] == 1
        assert search.json()["total"] == 1
        assert short.status_code == 400

    @pytest.mark.asyncio
    async def test_reactivate(self, admin_client, make_submission):
        submission = await make_submission(
            status=SubmissionStatus.EXPIRED, expires_in=timedelta(days=-1)
        )

        response = await admin_client.post(
            f"/admin/submissions/{submission.id}/reactivate", json={"expiry_days": 7}
        )

        assert response.json()["status"] == "DRAFT"

    @pytest.mark.asyncio
    async def test_dashboard_and_stats(self, admin_client, make_submission):
        await make_submission()

        dashboard = await admin_client.get("/admin/dashboard")
        tokens = await admin_client.get("/admin/tokens/stats")
        files = await admin_client.get("/admin/files/stats")

        assert dashboard.json()["dashboard"]["summary"]["total"] == 1
        assert tokens.json()["stats"]["DRAFT"]["total"] == 1
        assert files.json()["stats"]["total_uploads"] == 0


class TestJobApi:
    @pytest.mark.asyncio
    async def test_token_cleanup(self, admin_client, make_submission):
        await make_submission(expires_in=timedelta(hours=-1))

        response = await admin_client.post("/admin/jobs/token-cleanup")
        status = await admin_client.get("/admin/jobs")

        assert response.json()["expired_count"] == 1
        assert status.json()["jobs"][0]["last_result"]["expired_count"] == 1

    @pytest.mark.asyncio
    async def test_notification_job(self, admin_client):
        response = await admin_client.post("/admin/jobs/notifications/daily_summary")
        assert response.json()["result"]["sent"] is False

    @pytest.mark.asyncio
    async def test_unknown_job_is_400(self, admin_client):
        response = await admin_client.post("/admin/jobs/notifications/weekly")
        assert response.status_code == 400
