"""
Submission Lifecycle - Status State Machine

The single owner of status rules: which events are legal from which
statuses, what status each event produces, and how review outcomes map to
submission statuses (and back).

    DRAFT ──submit──▶ UNDER_REVIEW ──review──▶ APPROVED ──publish──▶ PUBLISHED
      │                    │                      │
      └──review/feedback──▶ CHANGES_REQUESTED ◀───┘ (feedback)
                                                   review(rejected) ──▶ REJECTED
    any non-terminal ──expire──▶ EXPIRED ──reactivate──▶ DRAFT | CHANGES_REQUESTED

PUBLISHED and REJECTED are terminal.
"""

from __future__ import annotations

from enum import Enum
from typing import Final, Optional

from editorial.exceptions import InvalidStatusException
from editorial.submission.schema import (
    EDITABLE_STATUSES,
    ReviewStatus,
    SubmissionStatus,
)


class LifecycleEvent(Enum):
    """Events that move a submission between statuses."""

    SUBMIT_FOR_REVIEW = "submit_for_review"
    REVIEW = "review"
    PUBLISH = "publish"
    SEND_FEEDBACK = "send_feedback"
    EXPIRE = "expire"
    REACTIVATE = "reactivate"


_S = SubmissionStatus

# Legal source statuses for each event (ordered for diagnostics)
TRANSITIONS: Final[dict[LifecycleEvent, tuple[SubmissionStatus, ...]]] = {
    LifecycleEvent.SUBMIT_FOR_REVIEW: (_S.DRAFT, _S.CHANGES_REQUESTED),
    LifecycleEvent.REVIEW: (_S.DRAFT, _S.UNDER_REVIEW, _S.CHANGES_REQUESTED),
    LifecycleEvent.PUBLISH: (_S.APPROVED,),
    LifecycleEvent.SEND_FEEDBACK: (
        _S.DRAFT,
        _S.UNDER_REVIEW,
        _S.CHANGES_REQUESTED,
        _S.APPROVED,
    ),
    LifecycleEvent.EXPIRE: (_S.DRAFT, _S.UNDER_REVIEW, _S.CHANGES_REQUESTED, _S.APPROVED),
    LifecycleEvent.REACTIVATE: (_S.EXPIRED,),
}

_EVENT_LABELS: Final[dict[LifecycleEvent, str]] = {
    LifecycleEvent.SUBMIT_FOR_REVIEW: "enviada para revisão",
    LifecycleEvent.REVIEW: "revisada",
    LifecycleEvent.PUBLISH: "publicada",
    LifecycleEvent.SEND_FEEDBACK: "receber feedback",
    LifecycleEvent.EXPIRE: "expirada",
    LifecycleEvent.REACTIVATE: "reativada",
}


# =============================================================================
# Review <-> Submission Status Mapping
# =============================================================================

REVIEW_TO_SUBMISSION_STATUS: Final[dict[ReviewStatus, SubmissionStatus]] = {
    ReviewStatus.APPROVED: _S.APPROVED,
    ReviewStatus.REJECTED: _S.REJECTED,
    ReviewStatus.CHANGES_REQUESTED: _S.CHANGES_REQUESTED,
    ReviewStatus.PENDING: _S.UNDER_REVIEW,
}

SUBMISSION_TO_REVIEW_STATUS: Final[dict[SubmissionStatus, ReviewStatus]] = {
    submission_status: review_status
    for review_status, submission_status in REVIEW_TO_SUBMISSION_STATUS.items()
}


def review_to_submission_status(review_status: ReviewStatus) -> SubmissionStatus:
    """Submission status produced by a review outcome."""
    return REVIEW_TO_SUBMISSION_STATUS[review_status]


def submission_to_review_status(status: SubmissionStatus) -> ReviewStatus:
    """Review outcome implied by a submission status; anything unmapped is pending."""
    return SUBMISSION_TO_REVIEW_STATUS.get(status, ReviewStatus.PENDING)


# =============================================================================
# Guards
# =============================================================================


def allowed_statuses(event: LifecycleEvent) -> tuple[SubmissionStatus, ...]:
    """Statuses from which an event is legal."""
    return TRANSITIONS[event]


def can_transition(current: SubmissionStatus, event: LifecycleEvent) -> bool:
    return current in TRANSITIONS[event]


def ensure_transition(current: SubmissionStatus, event: LifecycleEvent) -> None:
    """
    Reject an event that is not legal from the current status.

    Raises:
        InvalidStatusException: carrying current and allowed statuses
    """
    allowed = TRANSITIONS[event]
    if current not in allowed:
        raise InvalidStatusException(
            f"Submissão não pode ser {_EVENT_LABELS[event]} no status atual: {current.value}",
            current_status=current.value,
            required_statuses=[s.value for s in allowed],
        )


def ensure_editable(current: SubmissionStatus) -> None:
    """Author edits are only allowed while DRAFT or CHANGES_REQUESTED."""
    if current not in EDITABLE_STATUSES:
        raise InvalidStatusException(
            f"Submissão não pode ser editada no status: {current.value}",
            current_status=current.value,
            required_statuses=[s.value for s in EDITABLE_STATUSES],
        )


# =============================================================================
# Transition
# =============================================================================


def next_status(
    current: SubmissionStatus,
    event: LifecycleEvent,
    review_status: Optional[ReviewStatus] = None,
    has_feedback: bool = False,
) -> SubmissionStatus:
    """
    Compute the status an event produces from the current status.

    Args:
        current: Current submission status
        event: Lifecycle event
        review_status: Outcome, required for REVIEW
        has_feedback: Whether the author has received change requests;
            guards resubmission from CHANGES_REQUESTED and picks the
            reactivation target

    Returns:
        Resulting SubmissionStatus

    Raises:
        InvalidStatusException: If the event is illegal from current
        ValueError: If REVIEW is requested without a review_status
    """
    ensure_transition(current, event)

    if event is LifecycleEvent.SUBMIT_FOR_REVIEW:
        if current is _S.CHANGES_REQUESTED and not has_feedback:
            raise InvalidStatusException(
                "Submissão com correções solicitadas não possui feedback registrado",
                current_status=current.value,
                required_statuses=[_S.DRAFT.value],
            )
        return _S.UNDER_REVIEW

    if event is LifecycleEvent.REVIEW:
        if review_status is None:
            raise ValueError("review_status is required for a review transition")
        return review_to_submission_status(review_status)

    if event is LifecycleEvent.PUBLISH:
        return _S.PUBLISHED

    if event is LifecycleEvent.SEND_FEEDBACK:
        return _S.CHANGES_REQUESTED

    if event is LifecycleEvent.EXPIRE:
        return _S.EXPIRED

    # REACTIVATE
    return _S.CHANGES_REQUESTED if has_feedback else _S.DRAFT
