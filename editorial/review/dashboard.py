"""
Admin Dashboard Aggregations

Pure functions over a list of submissions. Each section is computed
independently from the same snapshot; the dashboard is a best-effort read,
not a transactionally consistent report.
"""

from __future__ import annotations

import calendar
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Any, Final, Iterable, Mapping

from editorial.submission.schema import (
    NO_CATEGORY_LABEL,
    TERMINAL_STATUSES,
    Admin,
    Submission,
    SubmissionStatus,
)

EXPIRING_SOON_DAYS: Final[int] = 5
RECENT_ACTIVITY_LIMIT: Final[int] = 10
TOP_CATEGORIES_LIMIT: Final[int] = 10
TOP_AUTHORS_LIMIT: Final[int] = 10
TREND_MONTHS: Final[int] = 12

ACTIVITY_DESCRIPTIONS: Final[dict[SubmissionStatus, str]] = {
    SubmissionStatus.DRAFT: "Nova submissão criada",
    SubmissionStatus.UNDER_REVIEW: "Submissão em revisão",
    SubmissionStatus.CHANGES_REQUESTED: "Correções solicitadas",
    SubmissionStatus.APPROVED: "Submissão aprovada",
    SubmissionStatus.PUBLISHED: "Artigo publicado",
    SubmissionStatus.REJECTED: "Submissão rejeitada",
}
UNKNOWN_ACTIVITY: Final[str] = "Atividade desconhecida"


def _percent(part: int, whole: int) -> float:
    return round(part * 100.0 / whole, 2) if whole else 0.0


def _hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def summary(submissions: list[Submission], now: datetime) -> dict[str, int]:
    counts = Counter(s.status for s in submissions)
    horizon = now + timedelta(days=EXPIRING_SOON_DAYS)
    return {
        "total": len(submissions),
        "pending_review": counts[SubmissionStatus.UNDER_REVIEW],
        "changes_requested": counts[SubmissionStatus.CHANGES_REQUESTED],
        "approved": counts[SubmissionStatus.APPROVED],
        "published": counts[SubmissionStatus.PUBLISHED],
        "rejected": counts[SubmissionStatus.REJECTED],
        "expiring_soon": sum(
            1 for s in submissions
            if s.status not in TERMINAL_STATUSES and s.expires_at < horizon
        ),
    }


def recent_activity(submissions: list[Submission]) -> list[dict[str, Any]]:
    """The most recently touched submissions, typed by what happened last."""
    latest = sorted(submissions, key=lambda s: s.last_activity, reverse=True)
    activity = []
    for s in latest[:RECENT_ACTIVITY_LIMIT]:
        if s.status is SubmissionStatus.PUBLISHED:
            kind = "publish"
        elif s.reviewed_at is not None:
            kind = "review"
        else:
            kind = "submission"
        activity.append(
            {
                "id": s.id,
                "type": kind,
                "description": ACTIVITY_DESCRIPTIONS.get(s.status, UNKNOWN_ACTIVITY),
                "submission_title": s.title,
                "author_name": s.author_name,
                "status": s.status.value,
                "timestamp": s.last_activity.isoformat(),
            }
        )
    return activity


def status_counts(submissions: list[Submission]) -> list[dict[str, Any]]:
    counts = Counter(s.status.value for s in submissions)
    total = len(submissions)
    return [
        {"status": status, "count": count, "percentage": _percent(count, total)}
        for status, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]


def category_counts(submissions: list[Submission]) -> list[dict[str, Any]]:
    counts = Counter(s.category or NO_CATEGORY_LABEL for s in submissions)
    total = len(submissions)
    return [
        {"category": category, "count": count, "percentage": _percent(count, total)}
        for category, count in counts.most_common(TOP_CATEGORIES_LIMIT)
    ]


def monthly_submissions(submissions: list[Submission], now: datetime) -> list[dict[str, Any]]:
    """Submissions created in the last 12 months, grouped by calendar month."""
    since = now - timedelta(days=365)
    buckets: dict[tuple[int, int], list[Submission]] = defaultdict(list)
    for s in submissions:
        if s.created_at >= since:
            buckets[(s.created_at.year, s.created_at.month)].append(s)

    return [
        {
            "month": calendar.month_name[month],
            "year": year,
            "count": len(rows),
            "published": sum(1 for s in rows if s.status is SubmissionStatus.PUBLISHED),
        }
        for (year, month), rows in sorted(buckets.items())
    ]


def top_authors(submissions: list[Submission]) -> list[dict[str, Any]]:
    """Authors with more than one submission, ranked by published then total."""
    by_author: dict[tuple[str, str], list[Submission]] = defaultdict(list)
    for s in submissions:
        by_author[(s.author_name, s.author_email)].append(s)

    ranked = []
    for (name, email), rows in by_author.items():
        if len(rows) <= 1:
            continue
        published = sum(1 for s in rows if s.status is SubmissionStatus.PUBLISHED)
        ranked.append(
            {
                "author_name": name,
                "author_email": email,
                "submission_count": len(rows),
                "published_count": published,
                "success_rate": _percent(published, len(rows)),
            }
        )
    ranked.sort(key=lambda a: (-a["published_count"], -a["submission_count"]))
    return ranked[:TOP_AUTHORS_LIMIT]


def review_stats(
    submissions: list[Submission],
    admins: Mapping[str, Admin],
    now: datetime,
) -> dict[str, Any]:
    """Review turnaround in hours (reviewed_at minus created_at)."""
    reviewed = [s for s in submissions if s.reviewed_at is not None]
    durations = [_hours(s.created_at, s.reviewed_at) for s in reviewed]
    month_ago = now - timedelta(days=30)

    per_admin: dict[str, list[Submission]] = defaultdict(list)
    for s in reviewed:
        if s.reviewed_by and s.reviewed_by in admins:
            per_admin[s.reviewed_by].append(s)

    by_admin = []
    for admin_id, rows in per_admin.items():
        approved = sum(1 for s in rows if s.status is SubmissionStatus.APPROVED)
        by_admin.append(
            {
                "admin_id": admin_id,
                "admin_name": admins[admin_id].name,
                "review_count": len(rows),
                "avg_review_time": _mean(_hours(s.created_at, s.reviewed_at) for s in rows),
                "approval_rate": _percent(approved, len(rows)),
            }
        )
    by_admin.sort(key=lambda a: -a["review_count"])

    return {
        "total_reviews": len(reviewed),
        "reviews_this_month": sum(1 for s in reviewed if s.reviewed_at >= month_ago),
        "avg_review_time": _mean(durations),
        "fastest_review": min(durations, default=0.0),
        "slowest_review": max(durations, default=0.0),
        "by_admin": by_admin,
    }


def _mean(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def build_dashboard(
    submissions: list[Submission],
    admins: Mapping[str, Admin],
    now: datetime,
) -> dict[str, Any]:
    """Assemble every dashboard section from one snapshot of submissions."""
    return {
        "summary": summary(submissions, now),
        "recent_activity": recent_activity(submissions),
        "statistics": {
            "by_status": status_counts(submissions),
            "by_category": category_counts(submissions),
            "monthly_submissions": monthly_submissions(submissions, now),
            "top_authors": top_authors(submissions),
            "review_stats": review_stats(submissions, admins, now),
        },
        "generated_at": now.isoformat(),
    }
