"""State machine for review session transitions."""

from __future__ import annotations

from reagent.errors import AlreadyFinalized, InvalidRequest
from reagent.models import TERMINAL_STATUSES, ReviewStatus

VALID_TRANSITIONS: dict[ReviewStatus, set[ReviewStatus]] = {
    ReviewStatus.PENDING: {
        ReviewStatus.APPROVED,
        ReviewStatus.CHANGES_REQUESTED,
        ReviewStatus.CANCELLED,
    },
    # Terminal states are absorbing.
    ReviewStatus.APPROVED: set(),
    ReviewStatus.CHANGES_REQUESTED: set(),
    ReviewStatus.CANCELLED: set(),
}


def is_terminal(status: ReviewStatus) -> bool:
    return status in TERMINAL_STATUSES


def validate_transition(current: ReviewStatus, target: ReviewStatus) -> None:
    """Validate a state transition.

    Raises AlreadyFinalized when ``current`` is terminal and InvalidRequest for
    any other target that is not reachable from ``current``.
    """
    allowed = VALID_TRANSITIONS.get(current)
    if allowed is None:
        raise InvalidRequest(f"Unknown state: {current}")
    if is_terminal(current):
        raise AlreadyFinalized(str(current))
    if target not in allowed:
        raise InvalidRequest(
            f"Invalid transition: {current} -> {target}. "
            f"Valid targets from {current}: {sorted(allowed)}"
        )
