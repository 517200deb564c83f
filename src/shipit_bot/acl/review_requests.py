"""
Review Request Planner

Selects reviewers for the ACLs that have neither a review nor a pending
review request from one of their owners.
"""

import logging
import random
from typing import Iterable, List, Optional, Sequence

from ..errors import UserInputError
from ..models.acl import OwnerAcl
from ..models.plans import ReviewRequestPlan, TeamRef
from .reconciler import find_team, missing_team_error


logger = logging.getLogger(__name__)


def needs_review_request(
    acl: OwnerAcl,
    existing_reviewers: Iterable[str],
    requested_users: Iterable[str],
    requested_teams: Iterable[str],
) -> bool:
    """
    Whether an ACL still needs someone asked for a review.

    False when an owner already reviewed, an owner is already requested,
    or the ACL's primary or proxy team is already requested.
    """
    if any(acl.is_owner(r) for r in existing_reviewers):
        return False
    if any(acl.is_owner(u) for u in requested_users):
        return False
    if acl.team is not None:
        team_names = {acl.team.owners.lower()}
        if acl.team.proxy:
            team_names.add(acl.team.proxy.lower())
        if any(t.lower() in team_names for t in requested_teams):
            return False
    return True


def choose_reviewer(acl: OwnerAcl, author: str, rng: Optional[random.Random] = None) -> str:
    """
    Pick an individual owner uniformly at random, excluding the author.

    Raises:
        UserInputError: No owners, or the author is the only owner
    """
    if not acl.owners:
        raise UserInputError(
            f"ACL {acl.name} has no owners listed. Please add two or more owners",
            acl_name=acl.name,
        )
    eligible = [o for o in dict.fromkeys(acl.owners) if o.lower() != author.lower()]
    if not eligible:
        raise UserInputError(
            f"ACL {acl.name} only has the author of this pull request, {author} as an owner.\n"
            "Authors cannot approve their own code. Please add additional reviewers to the ACL",
            acl_name=acl.name,
        )
    return (rng or random).choice(eligible)


def plan_review_requests(
    acls: Iterable[OwnerAcl],
    author: str,
    existing_reviewers: Iterable[str] = (),
    requested_users: Iterable[str] = (),
    requested_teams: Iterable[str] = (),
    rng: Optional[random.Random] = None,
    teams: Optional[Sequence[TeamRef]] = None,
    org: Optional[str] = None,
) -> ReviewRequestPlan:
    """
    Plan review requests for the ACLs that apply to a pull request.

    ACLs bound to a team get a team request (proxy team preferred);
    otherwise one eligible owner is chosen at random. User-input errors
    are collected on the plan and the offending ACL is skipped.

    When the organization's teams are given, team requests use the team
    slug and a binding that names no existing team is reported instead
    of requested.

    Args:
        acls: Owner ACLs that apply to the pull request
        author: Login of the pull request author
        existing_reviewers: Logins that already reviewed
        requested_users: Logins with a pending review request
        requested_teams: Team names or slugs with a pending review request
        rng: Random source for reviewer selection
        teams: All teams of the organization
        org: Organization name for error messages

    Returns:
        ReviewRequestPlan
    """
    reviewers: List[str] = list(existing_reviewers)
    users: List[str] = list(requested_users)
    pending_teams: List[str] = list(requested_teams)
    plan = ReviewRequestPlan()

    for acl in acls:
        if not needs_review_request(acl, reviewers, users, pending_teams):
            logger.debug(f"ACL {acl.name} already has a review or review request")
            continue

        if acl.team is not None:
            target = acl.team.request_target
            if teams is not None:
                team = find_team(teams, target)
                if team is None:
                    plan.errors.append(missing_team_error(acl, target, org))
                    continue
                plan.add_team(team.slug)
                pending_teams.extend([team.name, team.slug])
            else:
                plan.add_team(target)
                pending_teams.append(target)
            continue

        try:
            chosen = choose_reviewer(acl, author, rng)
            plan.add_reviewer(chosen)
            # a request made for one ACL also covers later ACLs with the same owner
            users.append(chosen)
        except UserInputError as e:
            logger.debug(f"Cannot request review for ACL {acl.name}")
            plan.errors.append(e)

    logger.info(
        f"Planned review requests: {len(plan.reviewers)} users, {len(plan.team_reviewers)} teams"
    )
    return plan
