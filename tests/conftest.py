"""
Shared fixtures: in-memory store, recording notifier, in-memory media
storage and ready-made submissions in each lifecycle status.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional, Sequence, Union

import pytest
import pytest_asyncio

from editorial.review import AdminReviewEngine
from editorial.submission import (
    Admin,
    InMemorySubmissionStore,
    MediaStoragePort,
    MediaUploadOptions,
    MediaUploadResult,
    NotificationKind,
    NotificationPort,
    NotificationReceipt,
    ResourceType,
    Submission,
    SubmissionService,
    SubmissionStatus,
    TokenService,
    generate_id,
    generate_token_value,
    utc_now,
)
from editorial.upload import UploadGateway


AUTHOR_EMAIL = "autora@example.com"
ADMIN_ID = "admin-1"
ADMIN_EMAIL = "editora@example.com"

COMPLETE_DATA = {
    "author_name": "Maria Silva",
    "author_email": AUTHOR_EMAIL,
    "title": "Café & Filosofia!",
    "summary": "Um ensaio sobre o café como lugar de encontro e de pensamento filosófico.",
    "content": "O café sempre foi um espaço de conversa. " * 5,
    "category": "Filosofia",
    "keywords": ["café", "filosofia"],
}


# =============================================================================
# Fakes
# =============================================================================


class RecordingNotifier(NotificationPort):
    """Keeps every send in memory."""

    def __init__(self):
        self.sent: list[tuple[NotificationKind, tuple[str, ...], dict[str, Any]]] = []

    async def send(
        self,
        kind: NotificationKind,
        recipients: Union[str, Sequence[str]],
        payload: dict[str, Any],
    ) -> NotificationReceipt:
        to = (recipients,) if isinstance(recipients, str) else tuple(recipients)
        self.sent.append((kind, to, dict(payload)))
        return NotificationReceipt(message_id=f"msg-{len(self.sent)}", recipients=to)

    def of_kind(self, kind: NotificationKind) -> list[tuple[tuple[str, ...], dict[str, Any]]]:
        return [(to, payload) for k, to, payload in self.sent if k is kind]


class FailingNotifier(NotificationPort):
    """Every send fails."""

    def __init__(self):
        self.attempts = 0

    async def send(self, kind, recipients, payload) -> NotificationReceipt:
        self.attempts += 1
        raise ConnectionError("mail provider unavailable")


class InMemoryMediaStorage(MediaStoragePort):
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.destroyed: list[str] = []

    async def upload(self, data: bytes, options: MediaUploadOptions) -> MediaUploadResult:
        provider_id = f"{options.folder}/{options.public_id}"
        self.objects[provider_id] = data
        url = f"http://media.test/{provider_id}.{options.format}"
        return MediaUploadResult(
            provider_id=provider_id,
            url=url,
            secure_url=url.replace("http://", "https://"),
            bytes=len(data),
            format=options.format,
        )

    async def destroy(self, provider_id: str, resource_type: ResourceType) -> bool:
        self.destroyed.append(provider_id)
        return self.objects.pop(provider_id, None) is not None

    async def signed_url(self, provider_id: str, resource_type: ResourceType, ttl_minutes: int = 60) -> str:
        return f"https://media.test/{provider_id}?ttl={ttl_minutes}"


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store():
    return InMemorySubmissionStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def media():
    return InMemoryMediaStorage()


@pytest.fixture
def tokens(store, notifier):
    return TokenService(store, notifier, alert_recipients=(ADMIN_EMAIL,))


@pytest.fixture
def service(store, tokens, notifier):
    return SubmissionService(store, tokens, notifier)


@pytest.fixture
def engine(store, tokens, notifier):
    return AdminReviewEngine(store, tokens, notifier, frontend_url="https://revista.test")


@pytest.fixture
def gateway(store, tokens, media):
    return UploadGateway(store, tokens, media)


@pytest_asyncio.fixture
async def admin(store):
    return await store.add_admin(Admin(id=ADMIN_ID, name="Editora Chefe", email=ADMIN_EMAIL))


@pytest.fixture
def make_submission(store):
    """Insert a submission directly, bypassing the service."""

    async def _make(
        status: SubmissionStatus = SubmissionStatus.DRAFT,
        expires_in: timedelta = timedelta(days=30),
        author_email: str = AUTHOR_EMAIL,
        title: str = "Ensaio sobre o tempo",
        **overrides: Any,
    ) -> Submission:
        now = utc_now()
        data = dict(
            id=generate_id(),
            token=generate_token_value(),
            author_name="Maria Silva",
            author_email=author_email,
            title=title,
            status=status,
            summary=COMPLETE_DATA["summary"],
            content=COMPLETE_DATA["content"],
            category="Filosofia",
            keywords=["tempo"],
            expires_at=now + expires_in,
            created_at=now,
            updated_at=now,
        )
        data.update(overrides)
        return await store.insert_submission(Submission(**data))

    return _make


def latest(notifier: RecordingNotifier, kind: NotificationKind) -> Optional[dict[str, Any]]:
    sent = notifier.of_kind(kind)
    return sent[-1][1] if sent else None
