"""
Deciding-State Resolver

Reduces every owner review that applies to an ACL into one deciding state,
and classifies that state as fresh or stale.

Strength ordering:
    PENDING(1) < DISMISSED(3) < COMMENTED(5) < STALE(6) < APPROVED = CHANGES_REQUESTED(10)

Approvals and change requests always dominate comments and dismissals.
Among candidates of equal strength the most recent one wins.
"""

import logging
from typing import FrozenSet, Iterable, Optional

from ..errors import InvariantError, UnreachableError
from ..models.acl import OwnerAcl
from ..models.review import DecidingState, ReviewState, RuleSignal
from .signals import candidate_events


logger = logging.getLogger(__name__)


PENDING_STRENGTH = 1
STALE_STRENGTH = 6

STATE_STRENGTHS = {
    ReviewState.PENDING: PENDING_STRENGTH,
    ReviewState.DISMISSED: 3,
    ReviewState.COMMENTED: 5,
    ReviewState.APPROVED: 10,
    ReviewState.CHANGES_REQUESTED: 10,
}


def signal_strength(state: ReviewState, stale_known: bool = False) -> int:
    """
    Strength of a review state.

    Args:
        state: Review state
        stale_known: Whether the review is already known to be stale

    Returns:
        Integer strength; STALE strength only replaces hard signals
    """
    if state not in STATE_STRENGTHS:
        raise UnreachableError(state)
    if stale_known and state.is_hard_signal:
        return STALE_STRENGTH
    return STATE_STRENGTHS[state]


def is_stale(at_position: Optional[int], latest_position: Optional[int]) -> bool:
    """A review is stale when the ACL matched a commit added after it."""
    if at_position is None or latest_position is None:
        return False
    return latest_position > at_position


def latest_matching_position(signals: Iterable[RuleSignal]) -> Optional[int]:
    """Highest position among commits that changed a path the ACL governs."""
    positions = [s.position for s in signals if s.has_match]
    return max(positions) if positions else None


def _matched_paths(signals: Iterable[RuleSignal]) -> FrozenSet[str]:
    paths = set()
    for signal in signals:
        paths.update(signal.matched_paths)
    return frozenset(paths)


def resolve_deciding_state(acl: OwnerAcl, signals: Iterable[RuleSignal]) -> DecidingState:
    """
    Resolve the deciding state for one ACL.

    Candidates are walked from the most recent commit back to the earliest,
    carrying (best, best_strength) from (PENDING, 1). A candidate replaces the
    current best only when it is strictly stronger, so the first visited, most
    recent candidate keeps ties.

    Raises:
        InvariantError: If the ACL has no owners
    """
    if not acl.owners:
        raise InvariantError(f"ACL {acl.name} matched a change but has no owners")

    signal_list = list(signals)
    latest = latest_matching_position(signal_list)
    paths = _matched_paths(signal_list)

    best = None
    best_strength = PENDING_STRENGTH
    for position, event in reversed(candidate_events(signal_list)):
        strength = signal_strength(event.state, stale_known=is_stale(position, latest))
        if strength > best_strength:
            best = (position, event)
            best_strength = strength

    if best is None:
        logger.debug(f"ACL {acl.name}: no owner reviews, PENDING")
        return DecidingState(
            acl_name=acl.name,
            status=ReviewState.PENDING,
            latest_position=latest,
            matched_paths=paths,
        )

    position, event = best
    state = DecidingState(
        acl_name=acl.name,
        status=event.state,
        reviewer=event.reviewer,
        at_position=position,
        url=event.url or None,
        is_stale=is_stale(position, latest),
        latest_position=latest,
        matched_paths=paths,
    )
    logger.debug(
        f"ACL {acl.name}: {state.status.value} by {state.reviewer} at {position}"
        f"{' (stale)' if state.is_stale else ''}"
    )
    return state
