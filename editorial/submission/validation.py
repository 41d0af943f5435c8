"""
Submission Validation - Field Rules and Completeness

Field-level validation for author input and the completeness check that
gates submit-for-review. Error messages are written in Portuguese for
author-facing display.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Final, Optional

from editorial.submission.schema import (
    AUTHOR_NAME_MIN,
    CATEGORIES,
    CONTENT_MAX,
    KEYWORDS_MAX,
    SUMMARY_MAX,
    TITLE_MAX,
    TITLE_MIN,
    Submission,
)

EMAIL_PATTERN: Final = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Minimums for submit-for-review
COMPLETE_TITLE_MIN: Final[int] = 5
COMPLETE_SUMMARY_MIN: Final[int] = 50
COMPLETE_CONTENT_MIN: Final[int] = 100

COMPLETENESS_FIELDS: Final[tuple[str, ...]] = (
    "title",
    "summary",
    "content",
    "category",
    "keywords",
)

# Edits to these fields produce a new version snapshot
SIGNIFICANT_FIELDS: Final[tuple[str, ...]] = ("title", "summary", "content", "category")


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class SubmissionValidationResult:
    """Outcome of validating author input."""

    valid: bool
    errors: tuple[str, ...]

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": list(self.errors)}


@dataclass(frozen=True)
class CompletenessReport:
    """How far a submission is from being ready for review."""

    is_complete: bool
    missing_fields: tuple[str, ...]
    completed_fields: int
    total_fields: int

    @property
    def completeness_percentage(self) -> int:
        return round(self.completed_fields / self.total_fields * 100)

    def to_dict(self) -> dict:
        return {
            "is_complete": self.is_complete,
            "missing_fields": list(self.missing_fields),
            "completeness_percentage": self.completeness_percentage,
            "completed_fields": self.completed_fields,
            "total_fields": self.total_fields,
        }


# =============================================================================
# Validation Functions
# =============================================================================


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and EMAIL_PATTERN.match(email.strip()) is not None


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def validate_submission_data(
    data: dict[str, Any],
    require_all: bool = True,
) -> SubmissionValidationResult:
    """
    Validate author-supplied submission data.

    Args:
        data: Raw field dictionary
        require_all: True on creation; False for partial updates, where only
            the fields present are checked

    Returns:
        SubmissionValidationResult listing every failed rule
    """
    errors: list[str] = []

    def present(name: str) -> bool:
        return require_all or name in data

    if present("author_name") and len(_text(data.get("author_name"))) < AUTHOR_NAME_MIN:
        errors.append(f"Nome do autor deve ter pelo menos {AUTHOR_NAME_MIN} caracteres")

    if present("author_email") and not is_valid_email(data.get("author_email")):
        errors.append("Email do autor é obrigatório e deve ser válido")

    if present("title"):
        title = _text(data.get("title"))
        if len(title) < TITLE_MIN:
            errors.append(f"Título deve ter pelo menos {TITLE_MIN} caracteres")
        elif len(title) > TITLE_MAX:
            errors.append(f"Título muito longo (máx. {TITLE_MAX} caracteres)")

    summary = data.get("summary")
    if summary and len(str(summary)) > SUMMARY_MAX:
        errors.append(f"Resumo muito longo (máx. {SUMMARY_MAX} caracteres)")

    content = data.get("content")
    if content and len(str(content)) > CONTENT_MAX:
        errors.append(f"Conteúdo muito longo (máx. {CONTENT_MAX} caracteres)")

    keywords = data.get("keywords")
    if keywords is not None:
        if not isinstance(keywords, (list, tuple)):
            errors.append("Palavras-chave devem ser uma lista")
        elif len(keywords) > KEYWORDS_MAX:
            errors.append(f"Máximo {KEYWORDS_MAX} palavras-chave permitidas")

    category = data.get("category")
    if category and category not in CATEGORIES:
        errors.append(f"Categoria inválida. Permitidas: {', '.join(CATEGORIES)}")

    return SubmissionValidationResult(valid=not errors, errors=tuple(errors))


def check_completeness(submission: Submission) -> CompletenessReport:
    """
    Check the minimums a submission must meet before review.

    Title >= 5 chars, summary >= 50, content >= 100, a category and at
    least one keyword.
    """
    checks = {
        "title": len(_text(submission.title)) >= COMPLETE_TITLE_MIN,
        "summary": len(_text(submission.summary)) >= COMPLETE_SUMMARY_MIN,
        "content": len(_text(submission.content)) >= COMPLETE_CONTENT_MIN,
        "category": bool(_text(submission.category)),
        "keywords": len(submission.keywords) >= 1,
    }
    missing = tuple(name for name in COMPLETENESS_FIELDS if not checks[name])
    return CompletenessReport(
        is_complete=not missing,
        missing_fields=missing,
        completed_fields=len(COMPLETENESS_FIELDS) - len(missing),
        total_fields=len(COMPLETENESS_FIELDS),
    )


def has_significant_changes(submission: Submission, changes: dict[str, Any]) -> bool:
    """Check whether an edit touches a field that warrants a new version."""
    return any(
        name in changes and changes[name] != getattr(submission, name)
        for name in SIGNIFICANT_FIELDS
    )


def normalize_keywords(keywords: Optional[list[Any]]) -> list[str]:
    """Strip whitespace and drop empty keywords, keeping order."""
    return [str(k).strip() for k in keywords or [] if str(k).strip()]
