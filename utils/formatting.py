"""
Formatting utilities.
"""

import re
import unicodedata
from typing import Optional

SLUG_MAX_LENGTH = 100
DEFAULT_SITE_URL = "https://example.com"


def generate_slug(title: str) -> str:
    """
    Build a URL slug from an article title.

    Args:
        title: Article title, may contain accents and punctuation.

    Returns:
        Lowercase ASCII slug, at most 100 characters.
    """
    text = unicodedata.normalize("NFD", title.lower())
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    text = re.sub(r"[^a-z0-9\s-]", "", text).strip()
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text[:SLUG_MAX_LENGTH]


def build_article_url(slug: str, frontend_url: Optional[str] = None) -> str:
    """Public URL of a published article."""
    base = (frontend_url or DEFAULT_SITE_URL).rstrip("/")
    return f"{base}/articles/{slug}"

