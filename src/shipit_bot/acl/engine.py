"""
Evaluation Engine

Runs the ACL approval resolution for one pull request snapshot:
match -> extract signals -> resolve deciding state -> present -> override.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from ..models.acl import Acl, AclKind, OwnerAcl, owner_acls
from ..models.change import ChangeRecord, validate_change_history
from ..models.presentation import CheckPresentation
from ..models.review import DecidingState, ReviewEvent
from .matcher import match_rules_per_change
from .overrides import apply_aggregate_override, apply_overrides, describe_override
from .resolver import resolve_deciding_state
from .signals import extract_signals
from .status import present_aggregate, present_state


logger = logging.getLogger(__name__)


@dataclass
class AclEvaluation:
    """한 번의 ACL 평가 결과"""
    applicable: Dict[str, OwnerAcl]
    states: Dict[str, DecidingState]
    presentations: Dict[str, CheckPresentation]
    aggregate: CheckPresentation
    override_detected: bool = False
    override_token: Optional[str] = None
    head_change_id: Optional[str] = None
    ignored_release_acls: List[str] = field(default_factory=list)

    @property
    def is_passing(self) -> bool:
        """전체 결과가 머지를 막지 않는지 여부"""
        return self.aggregate.is_success or self.aggregate.is_overridden


def evaluate(
    acls: Iterable[Acl],
    changes: Iterable[ChangeRecord],
    reviews: Iterable[ReviewEvent],
    override_detected: bool = False,
    details_url_for: Optional[Callable[[str], Optional[str]]] = None,
    override_token: Optional[str] = None,
) -> AclEvaluation:
    """
    Evaluate every ACL against a pull request.

    Args:
        acls: Parsed ACLs (release-owner ACLs are filtered out)
        changes: Commits of the pull request, oldest first
        reviews: Review events, in submission order
        override_detected: Whether the override marker was found
        details_url_for: Maps an ACL name to a link shown on its check
        override_token: The override token found, if any; implies override_detected

    Returns:
        AclEvaluation

    Raises:
        InvariantError: Out-of-order history, or a matched ACL without owners
    """
    history = validate_change_history(changes)
    review_list = list(reviews)
    acl_list = list(acls)
    owners_only = owner_acls(acl_list)
    ignored = [a.name for a in acl_list if a.kind is not AclKind.OWNER]

    per_change = match_rules_per_change(owners_only, history)
    applicable: Dict[str, OwnerAcl] = {}
    for acl in owners_only:
        if any(acl in matched for matched in per_change.values()):
            applicable[acl.name] = acl

    logger.info(
        f"Evaluating {len(applicable)} of {len(owners_only)} ACLs over "
        f"{len(history)} commits and {len(review_list)} reviews"
    )

    states: Dict[str, DecidingState] = {}
    presentations: Dict[str, CheckPresentation] = {}
    for name, acl in applicable.items():
        signals = extract_signals(acl, history, review_list)
        states[name] = resolve_deciding_state(acl, signals)
        url = details_url_for(name) if details_url_for else None
        presentations[name] = present_state(acl, states[name], details_url=url)

    override_detected = override_detected or override_token is not None
    presentations = apply_overrides(presentations, override_detected)
    aggregate = apply_aggregate_override(
        present_aggregate(states, presentations, details_url_for),
        override_detected,
        description=describe_override(override_token) if override_token else None,
    )

    return AclEvaluation(
        applicable=applicable,
        states=states,
        presentations=presentations,
        aggregate=aggregate,
        override_detected=override_detected,
        override_token=override_token,
        head_change_id=history[-1].id if history else None,
        ignored_release_acls=ignored,
    )
