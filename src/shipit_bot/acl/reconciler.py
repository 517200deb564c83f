"""
Ownership Reconciler

Diffs an ACL's declared owners against the membership of its bound GitHub
team. A proxy team, when bound, is kept free of direct members: it only
exists as a routing alias for review requests.
"""

import logging
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from ..errors import ErrorReport, UserInputError
from ..models.acl import OwnerAcl
from ..models.plans import ReconciliationPlan, TeamRef


logger = logging.getLogger(__name__)


def find_team(teams: Iterable[TeamRef], team_name: str) -> Optional[TeamRef]:
    return next((t for t in teams if t.matches(team_name)), None)


def missing_team_error(acl: OwnerAcl, team_name: str, org: Optional[str]) -> UserInputError:
    where = f" in org {org}" if org else ""
    hint = f"\nPlease check [{org}'s list of teams](https://github.com/orgs/{org}/teams) and" if org else "\nPlease check"
    return UserInputError(
        f"No team {team_name} was found{where}.{hint} the `{acl.name}` ACL file",
        acl_name=acl.name,
    )


def resolve_team_binding(
    acl: OwnerAcl,
    teams: Sequence[TeamRef],
    org: Optional[str] = None,
) -> Tuple[TeamRef, Optional[TeamRef]]:
    """
    Find the team records named by an ACL's team binding.

    Raises:
        UserInputError: If the primary or proxy team does not exist
    """
    if acl.team is None:
        raise ValueError(f"ACL {acl.name} has no team binding")

    team = find_team(teams, acl.team.owners)
    if team is None:
        raise missing_team_error(acl, acl.team.owners, org)

    proxy = None
    if acl.team.proxy:
        proxy = find_team(teams, acl.team.proxy)
        if proxy is None:
            raise missing_team_error(acl, acl.team.proxy, org)
    return team, proxy


def reconcile(
    acl: OwnerAcl,
    team_members: Iterable[str],
    org_members: Iterable[str],
    teams: Sequence[TeamRef],
    proxy_members: Iterable[str] = (),
    org: Optional[str] = None,
) -> ReconciliationPlan:
    """
    Compute the membership changes that bring a team in line with an ACL.

    Logins are compared case-insensitively; added logins keep the ACL's
    spelling and removed logins keep the team's.

    Args:
        acl: Owner ACL with a team binding
        team_members: Current (and invited) members of the primary team
        org_members: Members of the organization
        teams: All teams of the organization
        proxy_members: Current members of the proxy team
        org: Organization name for error messages

    Returns:
        ReconciliationPlan

    Raises:
        UserInputError: Unknown team, or owners outside the organization
    """
    team, proxy = resolve_team_binding(acl, teams, org)

    org_logins = {m.lower() for m in org_members}
    not_in_org = sorted({o.lower() for o in acl.owners} - org_logins)
    if not_in_org:
        org_name = org or "organization"
        raise UserInputError(
            f"ACL `{acl.name}` lists owners that do not belong to the {org_name} org.\n\n"
            f"Please compare the list of {org_name}'s members to the ACL file's listed `owners`.\n\n"
            "Non-org-members found on ACL:\n" + "\n".join(f"  - {o}" for o in not_in_org),
            acl_name=acl.name,
        )

    members = list(dict.fromkeys(team_members))
    member_logins = {m.lower() for m in members}
    owner_logins = {o.lower() for o in acl.owners}

    to_add = frozenset(o for o in acl.owners if o.lower() not in member_logins)
    to_remove = frozenset(m for m in members if m.lower() not in owner_logins)
    proxy_to_remove = frozenset(proxy_members) if proxy else frozenset()

    plan = ReconciliationPlan(
        acl_name=acl.name,
        team=team,
        to_add=to_add,
        to_remove=to_remove,
        proxy_team=proxy,
        proxy_to_remove=proxy_to_remove,
    )
    if plan.is_in_sync:
        logger.info(f"Team {team.name} and ACL {acl.name} are already in sync")
    else:
        logger.info(
            f"Team {team.name} / ACL {acl.name}: +{sorted(to_add)} -{sorted(to_remove)}"
            f"{f' proxy -{sorted(proxy_to_remove)}' if proxy_to_remove else ''}"
        )
    return plan


def reconcile_all(
    acls: Iterable[OwnerAcl],
    org_members: Iterable[str],
    teams: Sequence[TeamRef],
    members_for: Callable[[TeamRef], Iterable[str]],
    org: Optional[str] = None,
) -> Tuple[List[ReconciliationPlan], ErrorReport]:
    """
    Reconcile every ACL that has a team binding.

    Each ACL is reconciled independently; a user-input error skips only
    the ACL that caused it.

    Args:
        acls: Owner ACLs
        org_members: Members of the organization
        teams: All teams of the organization
        members_for: Returns the current members of a team
        org: Organization name for error messages

    Returns:
        Tuple of (plans, error report)
    """
    org_member_list = list(org_members)
    plans = []
    report = ErrorReport()

    for acl in acls:
        if acl.team is None:
            continue
        try:
            team, proxy = resolve_team_binding(acl, teams, org)
            plans.append(reconcile(
                acl,
                team_members=members_for(team),
                org_members=org_member_list,
                teams=teams,
                proxy_members=members_for(proxy) if proxy else (),
                org=org,
            ))
        except UserInputError as e:
            report.add(e)

    return plans, report
