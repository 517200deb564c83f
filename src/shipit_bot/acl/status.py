"""
Status Presenter

Turns deciding states into GitHub check run presentations, one per ACL
plus an aggregate across all ACLs that apply to the pull request.
"""

import logging
from typing import Callable, Dict, List, Mapping, Optional

from ..errors import UnreachableError
from ..models.acl import OwnerAcl
from ..models.presentation import CheckPresentation, Conclusion
from ..models.review import DecidingState, ReviewState


logger = logging.getLogger(__name__)


AGGREGATE_CHECK_NAME = "ACLs"
MAX_LISTED_FILES = 20


def check_name(acl_name: str) -> str:
    return f"ACL: {acl_name}"


def items_with_count(item_name: str, n: int) -> str:
    """'No ACLs', '1 ACL', '3 ACLs'"""
    if n == 0:
        return f"No {item_name}s"
    if n == 1:
        return f"1 {item_name}"
    return f"{n} {item_name}s"


def _verb(n: int, singular: str, plural: str) -> str:
    return singular if n == 1 else plural


def _title_for_state(state: DecidingState) -> str:
    reviewer = f"@{state.reviewer}" if state.reviewer else None
    if state.status is ReviewState.PENDING:
        return "Needs review from an owner"
    if state.status is ReviewState.APPROVED:
        if state.is_stale:
            return f"Approval by {reviewer} is stale, re-approval needed"
        return f"Approved by {reviewer}"
    if state.status is ReviewState.CHANGES_REQUESTED:
        return f"{reviewer} requested changes"
    if state.status is ReviewState.COMMENTED:
        return f"{reviewer} commented, approval still needed"
    if state.status is ReviewState.DISMISSED:
        return f"Review by {reviewer} was dismissed, approval still needed"
    raise UnreachableError(state.status)


def _summary_for_state(acl: OwnerAcl, state: DecidingState) -> str:
    lines = []
    if acl.description:
        lines.extend([acl.description, ""])
    if acl.block_message and not state.is_fresh_approval:
        lines.extend([f"> {acl.block_message}", ""])

    lines.append(f"**Owners:** {', '.join(f'@{o}' for o in acl.owners)}")
    if acl.team:
        lines.append(f"**Team:** {acl.team.owners}")

    if state.status is not ReviewState.PENDING:
        review = f"[{state.status.value.lower().replace('_', ' ')}]({state.url})" if state.url else state.status.value.lower()
        lines.append(f"**Deciding review:** {review} by @{state.reviewer} at commit #{state.at_position + 1}")
    if state.is_stale:
        lines.append(
            f"Commit #{state.latest_position + 1} changed files governed by this ACL after the approval."
        )

    files = sorted(state.matched_paths)
    if files:
        lines.extend(["", "**Files:**"])
        lines.extend(f"- `{f}`" for f in files[:MAX_LISTED_FILES])
        if len(files) > MAX_LISTED_FILES:
            lines.append(f"- ...and {len(files) - MAX_LISTED_FILES} more")
    return "\n".join(lines)


def present_state(
    acl: OwnerAcl,
    state: DecidingState,
    details_url: Optional[str] = None,
) -> CheckPresentation:
    """
    Build the check run presentation for one ACL.

    Args:
        acl: The ACL
        state: Its deciding state
        details_url: Link to the ACL file, if known

    Returns:
        CheckPresentation
    """
    if state.status is ReviewState.APPROVED:
        conclusion = Conclusion.ACTION_REQUIRED if state.is_stale else Conclusion.SUCCESS
    elif state.status is ReviewState.CHANGES_REQUESTED:
        conclusion = Conclusion.FAILURE
    elif state.status in (ReviewState.PENDING, ReviewState.COMMENTED, ReviewState.DISMISSED):
        conclusion = None
    else:
        raise UnreachableError(state.status)

    url = details_url or state.url
    return CheckPresentation(
        name=check_name(acl.name),
        title=_title_for_state(state),
        summary=_summary_for_state(acl, state),
        conclusion=conclusion,
        details_url=url,
        in_progress=conclusion is None,
    )


def summarize_states(
    states: Mapping[str, DecidingState],
    presentations: Mapping[str, CheckPresentation],
) -> Dict[str, List[str]]:
    """Group ACL names by terminal state for the aggregate check."""
    groups = {
        'changes_requested': [],
        'reapproval': [],
        'review': [],
        'overridden': [],
        'approved': [],
    }
    for name, state in states.items():
        presentation = presentations.get(name)
        if presentation is not None and presentation.is_overridden:
            groups['overridden'].append(name)
        elif state.is_fresh_approval:
            groups['approved'].append(name)
        elif state.status is ReviewState.CHANGES_REQUESTED:
            groups['changes_requested'].append(name)
        elif state.needs_reapproval:
            groups['reapproval'].append(name)
        else:
            groups['review'].append(name)
    return groups


def aggregate_title(groups: Mapping[str, List[str]]) -> str:
    """
    Compose the aggregate title from group counts.

    e.g. "2 ACLs approved!", "1 ACL requested changes, 2 ACLs need review"
    """
    total = sum(len(names) for names in groups.values())
    if total == 0:
        return "No ACLs apply to this pull request"

    approved = len(groups['approved'])
    if approved == total:
        return f"{items_with_count('ACL', approved)} approved!"

    parts = []
    n = len(groups['changes_requested'])
    if n:
        parts.append(f"{items_with_count('ACL', n)} requested changes")
    n = len(groups['reapproval'])
    if n:
        parts.append(f"{items_with_count('ACL', n)} {_verb(n, 'needs', 'need')} re-approval")
    n = len(groups['review'])
    if n:
        parts.append(f"{items_with_count('ACL', n)} {_verb(n, 'needs', 'need')} review")
    n = len(groups['overridden'])
    if n:
        parts.append(f"{items_with_count('ACL', n)} overridden")
    if approved:
        parts.append(f"{items_with_count('ACL', approved)} approved")
    return ", ".join(parts)


def present_aggregate(
    states: Mapping[str, DecidingState],
    presentations: Mapping[str, CheckPresentation],
    details_url_for: Optional[Callable[[str], Optional[str]]] = None,
) -> CheckPresentation:
    """
    Build the aggregate presentation across all ACLs.

    Failure wins over action-required, which wins over pending; a mix of
    successes and neutral outcomes is neutral.
    """
    groups = summarize_states(states, presentations)
    title = aggregate_title(groups)

    conclusions = [p.conclusion for p in presentations.values()]
    in_progress = False
    if Conclusion.FAILURE in conclusions:
        conclusion = Conclusion.FAILURE
    elif Conclusion.ACTION_REQUIRED in conclusions:
        conclusion = Conclusion.ACTION_REQUIRED
    elif any(p.in_progress for p in presentations.values()):
        conclusion = None
        in_progress = True
    elif Conclusion.NEUTRAL in conclusions:
        conclusion = Conclusion.NEUTRAL
    else:
        conclusion = Conclusion.SUCCESS

    labels = {
        'changes_requested': "Changes requested",
        'reapproval': "Needs re-approval",
        'review': "Needs review",
        'overridden': "Overridden",
        'approved': "Approved",
    }
    lines = []
    for key, label in labels.items():
        for name in sorted(groups[key]):
            url = details_url_for(name) if details_url_for else None
            shown = f"[`{name}`]({url})" if url else f"`{name}`"
            lines.append(f"- {label}: {shown}")

    details_url = None
    if conclusion is Conclusion.ACTION_REQUIRED:
        details_url = next(
            (p.details_url for p in presentations.values()
             if p.conclusion is Conclusion.ACTION_REQUIRED and p.details_url),
            None,
        )

    return CheckPresentation(
        name=AGGREGATE_CHECK_NAME,
        title=title,
        summary="\n".join(lines) or "No ACLs apply to the files changed in this pull request.",
        conclusion=conclusion,
        details_url=details_url,
        in_progress=in_progress,
    )
