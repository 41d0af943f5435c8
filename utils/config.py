"""
Configuration management.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _mask(value: Optional[str]) -> Optional[str]:
    return "***" if value else None


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    allowed_origins: tuple[str, ...] = field(
        default_factory=lambda: _csv(os.getenv("ALLOWED_ORIGINS", ""))
    )

    # Data
    data_dir: str = field(default_factory=lambda: os.getenv("DATA_DIR", "./data"))
    frontend_url: Optional[str] = field(default_factory=lambda: os.getenv("FRONTEND_URL"))

    # Tokens
    token_expiry_days: int = field(
        default_factory=lambda: int(os.getenv("TOKEN_EXPIRY_DAYS", "30"))
    )
    token_warning_days: int = field(
        default_factory=lambda: int(os.getenv("TOKEN_WARNING_DAYS", "5"))
    )

    # Uploads
    max_attachments: int = field(default_factory=lambda: int(os.getenv("MAX_ATTACHMENTS", "5")))
    media_storage_dir: str = field(
        default_factory=lambda: os.getenv("MEDIA_STORAGE_DIR", "./data/media")
    )
    media_base_url: str = field(
        default_factory=lambda: os.getenv("MEDIA_BASE_URL", "http://127.0.0.1:8000/media")
    )
    media_signing_secret: Optional[str] = field(
        default_factory=lambda: os.getenv("MEDIA_SIGNING_SECRET")
    )

    # Email
    resend_api_key: Optional[str] = field(default_factory=lambda: os.getenv("RESEND_API_KEY"))
    email_from: str = field(
        default_factory=lambda: os.getenv("EMAIL_FROM", "Revista <noreply@example.com>")
    )
    admin_emails: tuple[str, ...] = field(
        default_factory=lambda: _csv(os.getenv("ADMIN_EMAILS", ""))
    )

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    @property
    def store_path(self) -> str:
        return os.path.join(self.data_dir, "editorial.json")

    def to_dict(self) -> dict:
        """Convert config to dictionary. Secrets are masked."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "log_level": self.log_level,
            "allowed_origins": list(self.allowed_origins),
            "data_dir": self.data_dir,
            "frontend_url": self.frontend_url,
            "token_expiry_days": self.token_expiry_days,
            "token_warning_days": self.token_warning_days,
            "max_attachments": self.max_attachments,
            "media_storage_dir": self.media_storage_dir,
            "media_base_url": self.media_base_url,
            "media_signing_secret": _mask(self.media_signing_secret),
            "resend_api_key": _mask(self.resend_api_key),
            "email_from": self.email_from,
            "admin_emails": list(self.admin_emails),
        }
