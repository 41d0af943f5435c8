"""
Utility modules for the editorial portal.
"""

from .formatting import build_article_url, generate_slug
from .config import Config

__all__ = ["build_article_url", "generate_slug", "Config"]
