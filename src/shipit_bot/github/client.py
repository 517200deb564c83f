"""
GitHub API Client

Handles GitHub API authentication, rate limiting, and communication.
Provides the reads the ACL evaluation needs (commits, reviews, ACL files,
teams) and the writes it issues (check runs, team membership, review
requests, comments).
"""

import base64
import time
import logging
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


logger = logging.getLogger(__name__)


class GitHubAPIError(Exception):
    """GitHub API related errors"""
    def __init__(self, message: str, status_code: Optional[int] = None, response_data: Optional[Dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class RateLimitExceeded(GitHubAPIError):
    """GitHub API rate limit exceeded"""
    def __init__(self, reset_time: datetime):
        super().__init__(f"Rate limit exceeded. Resets at {reset_time}", status_code=429)
        self.reset_time = reset_time


class GitHubClient:
    """
    GitHub API client with authentication, rate limiting, and error handling.

    Provides methods for:
    - Pull request commits, per-commit file changes, reviews and comments
    - ACL file retrieval from the repository
    - Organization members, teams and team membership management
    - Check runs and review requests
    """

    PER_PAGE = 100

    def __init__(self, token: str, base_url: str = "https://api.github.com", timeout: int = 30):
        """
        Initialize GitHub client.

        Args:
            token: GitHub personal access or installation token
            base_url: GitHub API base URL (default: https://api.github.com)
            timeout: Request timeout in seconds
        """
        if not token:
            raise ValueError("GitHub token is required")
        self.token = token
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = self._create_session()
        self.rate_limit_remaining = 5000
        self.rate_limit_reset = datetime.now()

    def _create_session(self) -> requests.Session:
        """Create requests session with retry strategy and authentication."""
        session = requests.Session()

        # Configure retry strategy
        retry_strategy = Retry(
            total=3,
            backoff_factor=1,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["GET", "PUT", "DELETE"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        # Set authentication headers
        session.headers.update({
            'Authorization': f'token {self.token}',
            'Accept': 'application/vnd.github.v3+json',
            'User-Agent': 'shipit-bot/1.0'
        })

        return session

    def _check_rate_limit(self) -> None:
        """Check and handle GitHub API rate limits."""
        if self.rate_limit_remaining <= 10 and datetime.now() < self.rate_limit_reset:
            wait_time = (self.rate_limit_reset - datetime.now()).total_seconds()
            if wait_time > 0:
                logger.warning(f"Rate limit low ({self.rate_limit_remaining}), resets in {wait_time:.1f}s")
                raise RateLimitExceeded(self.rate_limit_reset)

    def _update_rate_limit(self, response: requests.Response) -> None:
        """Update rate limit information from response headers."""
        if 'X-RateLimit-Remaining' in response.headers:
            self.rate_limit_remaining = int(response.headers['X-RateLimit-Remaining'])

        if 'X-RateLimit-Reset' in response.headers:
            reset_timestamp = int(response.headers['X-RateLimit-Reset'])
            self.rate_limit_reset = datetime.fromtimestamp(reset_timestamp)

    def _make_request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """
        Make authenticated request to GitHub API with rate limiting.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (without base URL)
            **kwargs: Additional arguments for requests

        Returns:
            Response object

        Raises:
            GitHubAPIError: For API errors
            RateLimitExceeded: When rate limit is exceeded
        """
        self._check_rate_limit()

        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        kwargs.setdefault('timeout', self.timeout)

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Request failed: {e}")
            raise GitHubAPIError(f"Request failed: {str(e)}")

        self._update_rate_limit(response)

        if response.status_code == 429:
            reset_time = datetime.fromtimestamp(int(response.headers.get('X-RateLimit-Reset', time.time() + 3600)))
            raise RateLimitExceeded(reset_time)

        if not response.ok:
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                error_data = {}
            raise GitHubAPIError(
                f"GitHub API error: {response.status_code} - {error_data.get('message', 'Unknown error')}",
                status_code=response.status_code,
                response_data=error_data
            )

        return response

    def _get_paginated(self, endpoint: str, params: Optional[Dict] = None) -> List[Dict]:
        """Collect every page of a list endpoint."""
        items = []
        page = 1

        while True:
            page_params = dict(params or {})
            page_params.update({'page': page, 'per_page': self.PER_PAGE})
            response = self._make_request('GET', endpoint, params=page_params)

            page_items = response.json()
            if not page_items:
                break

            items.extend(page_items)

            if len(page_items) < self.PER_PAGE:
                break

            page += 1

        return items

    # Pull requests

    def get_pull_request(self, owner: str, repo: str, pr_number: int) -> Dict:
        """
        Get pull request information.

        Args:
            owner: Repository owner
            repo: Repository name
            pr_number: Pull request number

        Returns:
            Pull request data
        """
        logger.info(f"Fetching PR {owner}/{repo}#{pr_number}")

        response = self._make_request('GET', f'/repos/{owner}/{repo}/pulls/{pr_number}')
        return response.json()

    def list_pull_request_commits(self, owner: str, repo: str, pr_number: int) -> List[Dict]:
        """Commits of a pull request, oldest first."""
        commits = self._get_paginated(f'/repos/{owner}/{repo}/pulls/{pr_number}/commits')
        logger.info(f"Found {len(commits)} commits on {owner}/{repo}#{pr_number}")
        return commits

    def get_commit(self, owner: str, repo: str, sha: str) -> Dict:
        """
        Get a single commit, including the files it changed.

        Args:
            owner: Repository owner
            repo: Repository name
            sha: Commit SHA

        Returns:
            Commit data with a ``files`` list
        """
        logger.debug(f"Fetching commit {owner}/{repo}@{sha[:6]}")

        response = self._make_request('GET', f'/repos/{owner}/{repo}/commits/{sha}')
        return response.json()

    def list_reviews(self, owner: str, repo: str, pr_number: int) -> List[Dict]:
        """Reviews submitted on a pull request, in submission order."""
        return self._get_paginated(f'/repos/{owner}/{repo}/pulls/{pr_number}/reviews')

    def list_review_requests(self, owner: str, repo: str, pr_number: int) -> Dict:
        """Pending review requests (``users`` and ``teams``)."""
        response = self._make_request('GET', f'/repos/{owner}/{repo}/pulls/{pr_number}/requested_reviewers')
        return response.json()

    def create_review_request(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        reviewers: List[str],
        team_reviewers: List[str],
    ) -> Dict:
        """Request reviews from users and teams in a single call."""
        logger.info(f"Requesting review on {owner}/{repo}#{pr_number}: users={reviewers} teams={team_reviewers}")

        response = self._make_request(
            'POST',
            f'/repos/{owner}/{repo}/pulls/{pr_number}/requested_reviewers',
            json={'reviewers': reviewers, 'team_reviewers': team_reviewers},
        )
        return response.json()

    # Issues

    def list_issue_comments(self, owner: str, repo: str, issue_number: int) -> List[Dict]:
        """Discussion comments on a pull request."""
        return self._get_paginated(f'/repos/{owner}/{repo}/issues/{issue_number}/comments')

    def create_issue_comment(self, owner: str, repo: str, issue_number: int, body: str) -> Dict:
        """Post a comment on a pull request."""
        logger.info(f"Commenting on {owner}/{repo}#{issue_number}")

        response = self._make_request(
            'POST',
            f'/repos/{owner}/{repo}/issues/{issue_number}/comments',
            json={'body': body},
        )
        return response.json()

    # Repository contents

    def list_directory(self, owner: str, repo: str, path: str, ref: str) -> List[Dict]:
        """
        List the entries of a repository directory.

        Returns:
            Directory entries, or an empty list when the directory is missing
        """
        try:
            response = self._make_request(
                'GET',
                f'/repos/{owner}/{repo}/contents/{path.strip("/")}',
                params={'ref': ref},
            )
        except GitHubAPIError as e:
            if e.status_code == 404:
                logger.warning(f"No {path} directory found in {owner}/{repo}@{ref}")
                return []
            raise

        entries = response.json()
        return entries if isinstance(entries, list) else []

    def get_file_text(self, owner: str, repo: str, path: str, ref: str) -> str:
        """Decoded text of a repository file."""
        response = self._make_request(
            'GET',
            f'/repos/{owner}/{repo}/contents/{path.strip("/")}',
            params={'ref': ref},
        )
        data = response.json()
        if data.get('encoding') == 'base64':
            return base64.b64decode(data.get('content', '')).decode('utf-8')
        return data.get('content', '')

    def get_text_files(self, owner: str, repo: str, path: str, ref: str) -> List[Tuple[str, str]]:
        """
        Get the name and text of every file in a directory.

        Args:
            owner: Repository owner
            repo: Repository name
            path: Directory path
            ref: Branch, tag or commit

        Returns:
            List of (file name, text) pairs
        """
        logger.info(f"Fetching files in {owner}/{repo}@{ref}:{path}")

        files = []
        for entry in self.list_directory(owner, repo, path, ref):
            if entry.get('type') != 'file':
                continue
            files.append((entry['name'], self.get_file_text(owner, repo, entry['path'], ref)))
        return files

    # Checks

    def create_check_run(self, owner: str, repo: str, payload: Dict[str, Any]) -> Dict:
        """Create (or supersede) a check run for a commit."""
        logger.debug(f"Creating check run {payload.get('name')} on {owner}/{repo}")

        response = self._make_request('POST', f'/repos/{owner}/{repo}/check-runs', json=payload)
        return response.json()

    # Organizations and teams

    def list_org_members(self, org: str) -> List[Dict]:
        return self._get_paginated(f'/orgs/{org}/members')

    def list_teams(self, org: str) -> List[Dict]:
        return self._get_paginated(f'/orgs/{org}/teams')

    def list_team_members(self, org: str, team_slug: str) -> List[Dict]:
        return self._get_paginated(f'/orgs/{org}/teams/{team_slug}/members')

    def list_team_invitations(self, org: str, team_slug: str) -> List[Dict]:
        """Pending invitations to a team."""
        return self._get_paginated(f'/orgs/{org}/teams/{team_slug}/invitations')

    def add_team_membership(self, org: str, team_slug: str, username: str) -> Dict:
        """Add a user to a team. Adding an existing member is a no-op."""
        logger.info(f"Adding {username} to team {org}/{team_slug}")

        response = self._make_request('PUT', f'/orgs/{org}/teams/{team_slug}/memberships/{username}')
        return response.json()

    def remove_team_membership(self, org: str, team_slug: str, username: str) -> bool:
        """
        Remove a user from a team.

        Returns:
            True if removed, False if the user was not a member
        """
        logger.info(f"Removing {username} from team {org}/{team_slug}")

        try:
            self._make_request('DELETE', f'/orgs/{org}/teams/{team_slug}/memberships/{username}')
        except GitHubAPIError as e:
            if e.status_code == 404:
                return False
            raise
        return True

    def add_team_repo(self, org: str, team_slug: str, owner: str, repo: str, permission: str = 'push') -> None:
        """Grant a team access to a repository."""
        self._make_request(
            'PUT',
            f'/orgs/{org}/teams/{team_slug}/repos/{owner}/{repo}',
            json={'permission': permission},
        )

    def test_authentication(self) -> Tuple[bool, Dict]:
        """
        Test GitHub API authentication.

        Returns:
            Tuple of (success, user_info)
        """
        try:
            response = self._make_request('GET', '/user')
            user_data = response.json()
            logger.info(f"Authentication successful for user: {user_data.get('login')}")
            return True, user_data
        except GitHubAPIError as e:
            logger.error(f"Authentication failed: {e}")
            return False, {}

    def get_rate_limit_status(self) -> Dict:
        """
        Get current rate limit status.

        Returns:
            Rate limit information
        """
        try:
            response = self._make_request('GET', '/rate_limit')
            return response.json()
        except GitHubAPIError as e:
            logger.error(f"Failed to get rate limit status: {e}")
            return {
                'rate': {
                    'remaining': self.rate_limit_remaining,
                    'reset': int(self.rate_limit_reset.timestamp())
                }
            }
