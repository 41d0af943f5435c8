"""
Admin Authentication - Password-Based Sign-In for Editors

Implements:
- Password check against a single environment-configured hash
- Session management via HMAC-signed cookies
- Reviewer accounts resolved from the submission store

Security:
- Passwords hashed with PBKDF2-HMAC-SHA256
- Sessions signed with a secret key
- CSRF protection via same-site cookies
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Final, Iterable, Optional

from fastapi import Request, Response

from editorial.submission.ports import SubmissionStore
from editorial.submission.schema import Admin, utc_now
from utils.logging_setup import log_audit_event, log_security_event


# =============================================================================
# Configuration
# =============================================================================

# Fallback for development; sessions do not survive a restart
_EPHEMERAL_SECRET: Final[str] = secrets.token_hex(32)


# Admin password from environment (single password for all admins)
# Must be set in production
def get_admin_password_hash() -> Optional[str]:
    """Get pre-hashed admin password from environment."""
    return os.getenv("ADMIN_PASSWORD_HASH")


def get_session_secret() -> str:
    """Get session secret key from environment."""
    return os.getenv("SESSION_SECRET") or _EPHEMERAL_SECRET


SESSION_COOKIE_NAME: Final[str] = "editorial_admin_session"
SESSION_DURATION_HOURS: Final[int] = 8

PBKDF2_ITERATIONS: Final[int] = 100_000


# =============================================================================
# Password Hashing
# =============================================================================


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """
    Hash a password using PBKDF2-HMAC-SHA256.

    Returns: salt$hash (both hex-encoded)
    """
    if salt is None:
        salt = secrets.token_hex(16)

    hash_bytes = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        PBKDF2_ITERATIONS,
    )
    return f"{salt}${hash_bytes.hex()}"


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify a password against a stored hash."""
    try:
        salt, _ = stored_hash.split("$", 1)
        return hmac.compare_digest(hash_password(password, salt), stored_hash)
    except (ValueError, AttributeError):
        return False


# =============================================================================
# Session Token Management
# =============================================================================


@dataclass(frozen=True)
class AdminSession:
    """An authenticated reviewer. admin_id is what the review engine records."""

    admin_id: str
    name: str
    email: str
    created_at: datetime
    expires_at: datetime
    session_id: str

    @property
    def is_expired(self) -> bool:
        return utc_now() > self.expires_at

    def to_dict(self) -> dict:
        return {
            "admin_id": self.admin_id,
            "name": self.name,
            "email": self.email,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "session_id": self.session_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AdminSession":
        return cls(
            admin_id=data["admin_id"],
            name=data["name"],
            email=data["email"],
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            session_id=data["session_id"],
        )


def create_session(admin: Admin) -> AdminSession:
    """Create a new admin session."""
    now = utc_now()
    return AdminSession(
        admin_id=admin.id,
        name=admin.name,
        email=admin.email,
        created_at=now,
        expires_at=now + timedelta(hours=SESSION_DURATION_HOURS),
        session_id=secrets.token_hex(16),
    )


def _signature(payload_b64: str, secret: str) -> str:
    return hmac.new(secret.encode(), payload_b64.encode(), hashlib.sha256).hexdigest()


def sign_session(session: AdminSession, secret: str) -> str:
    """
    Sign and encode a session for cookie storage.

    Format: base64(json_payload).signature
    """
    payload = json.dumps(session.to_dict(), separators=(",", ":"))
    payload_b64 = base64.urlsafe_b64encode(payload.encode()).decode()
    return f"{payload_b64}.{_signature(payload_b64, secret)}"


def verify_session(token: str, secret: str) -> Optional[AdminSession]:
    """
    Verify and decode a signed session token.

    Returns AdminSession if valid and not expired, None otherwise.
    """
    try:
        payload_b64, signature = token.rsplit(".", 1)
        if not hmac.compare_digest(signature, _signature(payload_b64, secret)):
            return None

        payload = base64.urlsafe_b64decode(payload_b64.encode()).decode()
        session = AdminSession.from_dict(json.loads(payload))
        if session.is_expired:
            return None
        return session

    except (ValueError, KeyError, json.JSONDecodeError):
        return None


# =============================================================================
# Reviewer Accounts
# =============================================================================


def admin_id_for(email: str) -> str:
    """Stable reviewer id derived from the email, so seeding is idempotent."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"mailto:{email.strip().lower()}"))


async def seed_admins(store: SubmissionStore, emails: Iterable[str]) -> list[Admin]:
    """Make sure every configured admin email has an active reviewer account."""
    seeded = []
    for email in emails:
        email = email.strip().lower()
        admin_id = admin_id_for(email)
        admin = await store.get_admin(admin_id)
        if admin is None:
            admin = await store.add_admin(
                Admin(id=admin_id, name=email.split("@")[0], email=email)
            )
        seeded.append(admin)
    return seeded


async def find_admin_by_email(store: SubmissionStore, email: str) -> Optional[Admin]:
    email = email.strip().lower()
    for admin in await store.list_active_admins():
        if admin.email.lower() == email:
            return admin
    return None


# =============================================================================
# Authentication Functions
# =============================================================================


async def authenticate_admin(
    store: SubmissionStore,
    email: str,
    password: str,
) -> Optional[AdminSession]:
    """
    Authenticate an admin user.

    Args:
        store: Store holding reviewer accounts
        email: Admin email address
        password: Plain text password

    Returns:
        AdminSession if authentication successful, None otherwise
    """
    stored_hash = get_admin_password_hash()
    if not stored_hash:
        # No password configured - reject all
        return None

    admin = await find_admin_by_email(store, email)
    if admin is None or not verify_password(password, stored_hash):
        log_security_event("Admin login failed", email=email)
        return None

    log_audit_event("Admin login", admin_id=admin.id)
    return create_session(admin)


def get_current_admin(request: Request) -> Optional[AdminSession]:
    """
    Get the current admin session from request cookies.

    Returns:
        AdminSession if valid session exists, None otherwise
    """
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None

    return verify_session(token, get_session_secret())


def set_session_cookie(response: Response, session: AdminSession, secure: bool = False) -> None:
    """Set the session cookie on a response."""
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=sign_session(session, get_session_secret()),
        max_age=SESSION_DURATION_HOURS * 3600,
        httponly=True,
        secure=secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    """Clear the session cookie on a response."""
    response.delete_cookie(key=SESSION_COOKIE_NAME)


def generate_password_hash(password: str) -> str:
    """
    Generate a password hash for environment variable setup.

    Usage:
        python -c "from web.admin_auth import generate_password_hash; print(generate_password_hash('your-password'))"

    Then set: ADMIN_PASSWORD_HASH=<output>
    """
    return hash_password(password)


def is_admin_configured() -> bool:
    """Check if admin authentication is properly configured."""
    return bool(get_admin_password_hash())
