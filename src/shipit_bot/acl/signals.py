"""
Review Signal Extractor

Correlates an ACL's owners with the review history of a pull request,
producing one RuleSignal per (ACL, commit) pair.
"""

import logging
from typing import Dict, Iterable, List, Tuple

from ..models.acl import OwnerAcl
from ..models.change import ChangeRecord
from ..models.review import ReviewEvent, RuleSignal
from .matcher import matched_paths


logger = logging.getLogger(__name__)


def extract_signals(
    acl: OwnerAcl,
    changes: Iterable[ChangeRecord],
    reviews: Iterable[ReviewEvent],
) -> List[RuleSignal]:
    """
    Build the signals for one ACL.

    A signal is produced for every change record the ACL matches and for
    every change record one of its owners reviewed. All owner reviews are
    kept; reduction happens in the resolver.

    Args:
        acl: Owner ACL
        changes: Change history in chronological order
        reviews: Review events in submission order

    Returns:
        RuleSignals in chronological order
    """
    history = list(changes)
    known_ids = {c.id for c in history}

    events_by_change: Dict[str, List[ReviewEvent]] = {}
    for event in reviews:
        if not acl.is_owner(event.reviewer):
            continue
        if event.at_change_id not in known_ids:
            logger.debug(
                f"Ignoring review by {event.reviewer} on unknown commit {event.at_change_id[:6]}"
            )
            continue
        events_by_change.setdefault(event.at_change_id, []).append(event)

    signals = []
    for change in history:
        paths = matched_paths(acl, change.changed_paths)
        events = events_by_change.get(change.id, [])
        if not paths and not events:
            continue
        signals.append(RuleSignal(
            acl_name=acl.name,
            change_id=change.id,
            position=change.position,
            matched_paths=paths,
            events=tuple(events),
        ))

    return signals


def candidate_events(signals: Iterable[RuleSignal]) -> List[Tuple[int, ReviewEvent]]:
    """Flatten signals into (position, event) pairs, oldest first."""
    candidates = []
    for signal in sorted(signals, key=lambda s: s.position):
        for event in signal.events:
            candidates.append((signal.position, event))
    return candidates
