"""
Rule Matcher

Maps changed file paths to the ACLs whose path patterns apply.
"""

import logging
from typing import Dict, FrozenSet, Iterable, List

from ..models.acl import OwnerAcl
from ..models.change import ChangeRecord


logger = logging.getLogger(__name__)


def matched_paths(acl: OwnerAcl, changed_paths: Iterable[str]) -> FrozenSet[str]:
    """Changed paths governed by the ACL (path match, not excluded)."""
    return frozenset(p for p in changed_paths if acl.applies_to_file(p))


def match_rules(acls: Iterable[OwnerAcl], changed_paths: Iterable[str]) -> List[OwnerAcl]:
    """
    Find the ACLs that apply to a set of changed paths.

    An ACL matches when at least one path satisfies one of its ``paths``
    patterns and none of its ``exclude_paths`` patterns.

    Args:
        acls: Owner ACLs to test
        changed_paths: Paths changed by a single commit

    Returns:
        Matching ACLs, in input order
    """
    paths = list(changed_paths)
    return [acl for acl in acls if matched_paths(acl, paths)]


def match_rules_per_change(
    acls: Iterable[OwnerAcl],
    changes: Iterable[ChangeRecord],
) -> Dict[str, List[OwnerAcl]]:
    """Applicable ACLs for each change record, keyed by change id."""
    acl_list = list(acls)
    result = {}
    for change in changes:
        result[change.id] = match_rules(acl_list, change.changed_paths)
        logger.debug(f"Change {change.id[:6]} matched {len(result[change.id])} ACLs")
    return result
