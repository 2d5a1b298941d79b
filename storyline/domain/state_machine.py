"""Story status workflow.

The editorial workflow is a directed graph over ``StoryStatus``. Every
status-changing update must follow an edge of this graph; ``DELETED`` is
reachable only through soft delete and ``ARCHIVED`` is terminal.

Usage:
    from storyline.domain.state_machine import ensure_transition

    ensure_transition(StoryStatus.SUBMITTED, StoryStatus.ASSIGNED)
"""

from typing import Dict, FrozenSet, List, Union

from storyline.errors import InvalidStatusTransition

from .story import StoryStatus

ALLOWED_TRANSITIONS: Dict[StoryStatus, FrozenSet[StoryStatus]] = {
    StoryStatus.DRAFT: frozenset({StoryStatus.SUBMITTED, StoryStatus.DRAFT}),
    StoryStatus.SUBMITTED: frozenset(
        {StoryStatus.ASSIGNED, StoryStatus.DRAFT, StoryStatus.REJECTED}
    ),
    StoryStatus.ASSIGNED: frozenset(
        {StoryStatus.IN_PROGRESS, StoryStatus.SUBMITTED}
    ),
    StoryStatus.IN_PROGRESS: frozenset(
        {StoryStatus.FOR_REVIEW_SE, StoryStatus.ASSIGNED}
    ),
    StoryStatus.FOR_REVIEW_SE: frozenset(
        {
            StoryStatus.APPROVED,
            StoryStatus.IN_PROGRESS,
            StoryStatus.REJECTED,
        }
    ),
    StoryStatus.APPROVED: frozenset({StoryStatus.PUBLISHED}),
    StoryStatus.PUBLISHED: frozenset({StoryStatus.ARCHIVED}),
    StoryStatus.REJECTED: frozenset({StoryStatus.DRAFT}),
    StoryStatus.ARCHIVED: frozenset(),
}


def _parse(status: Union[StoryStatus, str]) -> StoryStatus:
    return status if isinstance(status, StoryStatus) else StoryStatus(status)


def allowed_transitions(current: Union[StoryStatus, str]) -> List[StoryStatus]:
    """Return the statuses reachable from ``current`` in a stable order."""
    targets = ALLOWED_TRANSITIONS.get(_parse(current), frozenset())
    return [status for status in StoryStatus if status in targets]


def can_transition(
    current: Union[StoryStatus, str], requested: Union[StoryStatus, str]
) -> bool:
    try:
        current_status = _parse(current)
        requested_status = _parse(requested)
    except ValueError:
        return False
    return requested_status in ALLOWED_TRANSITIONS.get(
        current_status, frozenset()
    )


def ensure_transition(
    current: Union[StoryStatus, str], requested: Union[StoryStatus, str]
) -> None:
    """Raise InvalidStatusTransition unless the transition is allowed."""
    if not can_transition(current, requested):
        current_value = getattr(current, "value", current)
        requested_value = getattr(requested, "value", requested)
        allowed: List[str] = []
        if str(current_value) in {s.value for s in StoryStatus}:
            allowed = [s.value for s in allowed_transitions(current)]
        raise InvalidStatusTransition(
            str(current_value), str(requested_value), allowed
        )
