"""
Main ACL Review API

Main interface that orchestrates an ACL evaluation for a pull request,
from GitHub data collection to check runs, team sync and review requests.
"""

import logging
import asyncio
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar
from datetime import datetime
from dataclasses import dataclass, field

from .acl.engine import AclEvaluation, evaluate
from .acl.loader import load_acls
from .acl.overrides import describe_override, find_override, notifies
from .acl.reconciler import reconcile_all
from .acl.review_requests import plan_review_requests
from .config import AppConfig
from .errors import ErrorReport, InvariantError
from .github.client import GitHubClient, GitHubAPIError
from .github.parser import GitHubPayloadParser, short_commit
from .models.acl import Acl, OwnerAcl, owner_acls
from .models.plans import ReconciliationPlan, ReviewRequestPlan, TeamRef


logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class EvaluationReport:
    """Result of one pull request evaluation."""
    evaluation_id: str
    repository: str
    pr_number: int
    status: str
    head_sha: Optional[str]
    processing_time: float
    created_at: datetime
    evaluation: Optional[AclEvaluation] = None
    reconciliation_plans: List[ReconciliationPlan] = field(default_factory=list)
    review_request_plan: Optional[ReviewRequestPlan] = None
    errors: List[str] = field(default_factory=list)


class AclReviewAPI:
    """
    Main ACL Review API interface.

    Orchestrates the complete evaluation:
    1. Collect ACLs, commits, reviews, review requests and comments
    2. Fetch per-commit file changes (throttled fan-out)
    3. Resolve the deciding state of every applicable ACL
    4. Write check runs, sync teams, request reviews, report problems
    """

    def __init__(self, config: Optional[AppConfig] = None, client: Optional[GitHubClient] = None):
        """
        Initialize ACL Review API.

        Args:
            config: Optional configuration object
            client: Optional pre-built GitHub client
        """
        self.config = config or AppConfig.from_env()

        logger.info("Initializing ACL Review API components...")

        self.client = client or GitHubClient(
            self.config.github.token,
            base_url=self.config.github.api_base_url,
            timeout=self.config.github.timeout_seconds,
        )
        self.parser = GitHubPayloadParser()

        logger.info("ACL Review API initialized successfully")

    async def _call(self, fn: Callable[..., T], *args) -> T:
        """Run a blocking client call in a worker thread."""
        return await asyncio.to_thread(fn, *args)

    async def _attempt(self, step: str, work: Awaitable[T], failures: List[str]) -> Optional[T]:
        """Run a publishing step; a GitHub failure is recorded and the remaining steps still run."""
        try:
            return await work
        except GitHubAPIError as e:
            logger.error(f"{step} failed: {e}")
            failures.append(f"{step} failed: {e}")
            return None

    async def evaluate_pull_request(self, owner: str, repo: str, pr_number: int) -> EvaluationReport:
        """
        Evaluate the ACLs of a pull request and publish the results.

        Args:
            owner: Repository owner (organization)
            repo: Repository name
            pr_number: Pull request number

        Returns:
            EvaluationReport

        Raises:
            InvariantError: When the data violates an engine invariant
        """
        start_time = datetime.now()
        evaluation_id = f"{owner}/{repo}_{pr_number}_{int(start_time.timestamp())}"
        repository = f"{owner}/{repo}"

        logger.info(f"Starting ACL evaluation: {evaluation_id}")

        head_sha = None
        try:
            pr_data = await self._call(self.client.get_pull_request, owner, repo, pr_number)
            head_sha = pr_data['head']['sha']
            author = pr_data['user']['login']

            # Step 1: independent reads
            (acls, report), commits, reviews_data, requests_data, comments = await asyncio.gather(
                self.load_acls(owner, repo),
                self._call(self.client.list_pull_request_commits, owner, repo, pr_number),
                self._call(self.client.list_reviews, owner, repo, pr_number),
                self._call(self.client.list_review_requests, owner, repo, pr_number),
                self._call(self.client.list_issue_comments, owner, repo, pr_number),
            )

            # Step 2: per-commit file changes
            commit_details = await self._fetch_commit_details(owner, repo, [c['sha'] for c in commits])

            # Step 3: resolve
            changes = self.parser.parse_change_history(commits, commit_details)
            reviews = self.parser.parse_reviews(reviews_data)
            bodies = self.parser.parse_comment_bodies(comments)
            override_token = find_override(bodies, tokens=self.config.acl.override_tokens)
            evaluation = evaluate(
                acls,
                changes,
                reviews,
                details_url_for=lambda name: self.acl_url(owner, repo, name),
                override_token=override_token,
            )

            # Step 4: publish
            await self._write_check_runs(owner, repo, head_sha, evaluation)

            failures: List[str] = []
            bound = [acl for acl in owner_acls(acls) if acl.team is not None]
            teams = None
            if bound and (self.config.acl.sync_teams or self.config.acl.request_reviews):
                teams = await self._attempt("Team lookup", self._org_teams(owner), failures)

            plans: List[ReconciliationPlan] = []
            if self.config.acl.sync_teams and teams is not None:
                plans = await self._attempt(
                    "Team sync", self.sync_teams(owner, repo, bound, report, teams=teams), failures
                ) or []

            request_plan = None
            if self.config.acl.request_reviews:
                users, requested_teams = self.parser.parse_review_requests(requests_data)
                request_plan = plan_review_requests(
                    evaluation.applicable.values(),
                    author,
                    existing_reviewers=[r.reviewer for r in reviews],
                    requested_users=users,
                    requested_teams=requested_teams,
                    teams=teams,
                    org=owner,
                )
                for error in request_plan.errors:
                    report.add(error)
                if not request_plan.is_empty:
                    await self._attempt("Review request", self._call(
                        self.client.create_review_request,
                        owner, repo, pr_number,
                        request_plan.reviewers, request_plan.team_reviewers,
                    ), failures)

            if override_token and notifies(override_token, [self.config.acl.silent_override_token]):
                notice = describe_override(override_token)
                if not any(notice in body for body in bodies):
                    await self._attempt("Override notice", self._call(
                        self.client.create_issue_comment, owner, repo, pr_number, notice
                    ), failures)

            if report:
                await self._attempt("Error comment", self._call(
                    self.client.create_issue_comment, owner, repo, pr_number, report.render()
                ), failures)

            processing_time = (datetime.now() - start_time).total_seconds()
            logger.info(
                f"ACL evaluation completed: {evaluation_id} -> {evaluation.aggregate.title} "
                f"({processing_time:.2f}s)"
            )
            return EvaluationReport(
                evaluation_id=evaluation_id,
                repository=repository,
                pr_number=pr_number,
                status="partial" if failures else "completed",
                head_sha=head_sha,
                processing_time=processing_time,
                created_at=start_time,
                evaluation=evaluation,
                reconciliation_plans=plans,
                review_request_plan=request_plan,
                errors=report.messages + failures,
            )

        except InvariantError:
            logger.exception(f"ACL evaluation aborted: {evaluation_id}")
            raise
        except GitHubAPIError as e:
            logger.error(f"ACL evaluation failed: {evaluation_id} - {e}")

            processing_time = (datetime.now() - start_time).total_seconds()
            return EvaluationReport(
                evaluation_id=evaluation_id,
                repository=repository,
                pr_number=pr_number,
                status="failed",
                head_sha=head_sha,
                processing_time=processing_time,
                created_at=start_time,
                errors=[str(e)],
            )

    async def load_acls(self, owner: str, repo: str) -> Tuple[List[Acl], ErrorReport]:
        """Fetch and parse the repository's ACL files."""
        files = await self._call(
            self.client.get_text_files, owner, repo, self.config.acl.directory, self.config.acl.ref
        )
        return load_acls(files)

    async def _fetch_commit_details(self, owner: str, repo: str, shas: List[str]) -> Dict[str, Dict]:
        """Fetch every commit, at most ``max_concurrent_requests`` at a time."""
        semaphore = asyncio.Semaphore(self.config.github.max_concurrent_requests)

        async def fetch(sha: str) -> Tuple[str, Dict]:
            async with semaphore:
                return sha, await self._call(self.client.get_commit, owner, repo, sha)

        results = await asyncio.gather(*(fetch(sha) for sha in shas))
        logger.info(f"Fetched file changes for {len(results)} commits")
        return dict(results)

    async def _write_check_runs(self, owner: str, repo: str, head_sha: str, evaluation: AclEvaluation) -> None:
        payloads = [p.to_check_run_payload(head_sha) for p in evaluation.presentations.values()]
        payloads.append(evaluation.aggregate.to_check_run_payload(head_sha))

        await asyncio.gather(*(
            self._call(self.client.create_check_run, owner, repo, payload) for payload in payloads
        ))
        logger.info(f"Wrote {len(payloads)} check runs on {short_commit(head_sha)}")

    async def sync_teams(
        self,
        org: str,
        repo: str,
        acls: List[OwnerAcl],
        report: ErrorReport,
        teams: Optional[List[TeamRef]] = None,
    ) -> List[ReconciliationPlan]:
        """
        Bring every ACL-bound team in line with the ACL's owners.

        User-input errors are added to ``report`` and the ACL is skipped.
        The organization's teams are fetched unless given.
        """
        bound = [acl for acl in acls if acl.team is not None]
        if not bound:
            return []

        if teams is None:
            members_data, teams = await asyncio.gather(
                self._call(self.client.list_org_members, org),
                self._org_teams(org),
            )
        else:
            members_data = await self._call(self.client.list_org_members, org)
        org_members = self.parser.parse_logins(members_data)

        # membership of every team that could be referenced, fetched up front
        wanted = {t for t in teams if any(
            t.matches(acl.team.owners) or (acl.team.proxy and t.matches(acl.team.proxy)) for acl in bound
        )}
        memberships = dict(await asyncio.gather(*(self._team_members(org, t) for t in wanted)))

        plans, sync_report = reconcile_all(
            bound,
            org_members,
            teams,
            members_for=lambda team: memberships.get(team.slug, []),
            org=org,
        )
        report.extend(sync_report)

        await asyncio.gather(*(self._apply_plan(org, repo, plan) for plan in plans))
        return plans

    async def _org_teams(self, org: str) -> List[TeamRef]:
        return self.parser.parse_teams(await self._call(self.client.list_teams, org))

    async def _team_members(self, org: str, team: TeamRef) -> Tuple[str, List[str]]:
        members, invitations = await asyncio.gather(
            self._call(self.client.list_team_members, org, team.slug),
            self._call(self.client.list_team_invitations, org, team.slug),
        )
        return team.slug, self.parser.parse_logins(members) + self.parser.parse_logins(invitations)

    async def _apply_plan(self, org: str, repo: str, plan: ReconciliationPlan) -> None:
        """Apply a reconciliation plan. Every write is safe to repeat."""
        writes = [self._call(self.client.add_team_repo, org, plan.team.slug, org, repo)]
        if plan.proxy_team:
            writes.append(self._call(self.client.add_team_repo, org, plan.proxy_team.slug, org, repo))
            writes.extend(
                self._call(self.client.remove_team_membership, org, plan.proxy_team.slug, user)
                for user in sorted(plan.proxy_to_remove)
            )
        writes.extend(
            self._call(self.client.add_team_membership, org, plan.team.slug, user)
            for user in sorted(plan.to_add)
        )
        writes.extend(
            self._call(self.client.remove_team_membership, org, plan.team.slug, user)
            for user in sorted(plan.to_remove)
        )
        await asyncio.gather(*writes)

    def acl_url(self, owner: str, repo: str, acl_name: str) -> str:
        """Link to an ACL file on GitHub."""
        directory = self.config.acl.directory.strip('/')
        return f"https://github.com/{owner}/{repo}/blob/{self.config.acl.ref}/{directory}/{acl_name}"

    def get_system_health(self) -> Dict:
        """Get system health status."""
        health = {
            'status': 'healthy',
            'components': {},
            'timestamp': datetime.now().isoformat()
        }

        rate = self.client.get_rate_limit_status().get('rate', {})
        health['components']['github'] = {
            'status': 'healthy' if rate.get('remaining', 0) > 10 else 'degraded',
            'rate_limit_remaining': rate.get('remaining'),
        }

        component_statuses = [comp['status'] for comp in health['components'].values()]
        if 'unhealthy' in component_statuses:
            health['status'] = 'unhealthy'
        elif 'degraded' in component_statuses:
            health['status'] = 'degraded'

        return health
