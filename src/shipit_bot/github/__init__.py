"""
GitHub Integration Layer

This module provides GitHub API access for pull request history, reviews,
ACL files and team membership, and parsing of the API payloads.
"""

from .client import GitHubClient, GitHubAPIError, RateLimitExceeded
from .parser import GitHubPayloadParser, short_commit

__all__ = ['GitHubClient', 'GitHubAPIError', 'RateLimitExceeded', 'GitHubPayloadParser', 'short_commit']
