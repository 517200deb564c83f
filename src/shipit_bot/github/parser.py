"""
GitHub Payload Parser

Converts GitHub API responses into the structures the ACL engine consumes:
ordered change records, review events, review requests and team records.
"""

import logging
from typing import Dict, List, Mapping, Tuple
from datetime import datetime

from ..errors import UnreachableError
from ..models.change import ChangedFile, ChangeRecord
from ..models.plans import TeamRef
from ..models.review import ReviewEvent, ReviewState


logger = logging.getLogger(__name__)


def short_commit(sha: str) -> str:
    """Short display form of a commit SHA."""
    return sha[:6]


class GitHubPayloadParser:
    """
    Parser for GitHub API payloads.

    GitHub review states map onto ReviewState; "PENDING" reviews (drafts
    not yet submitted) are skipped since they carry no decision.
    """

    REVIEW_STATE_MAPPING = {
        'APPROVED': ReviewState.APPROVED,
        'CHANGES_REQUESTED': ReviewState.CHANGES_REQUESTED,
        'COMMENTED': ReviewState.COMMENTED,
        'DISMISSED': ReviewState.DISMISSED,
    }

    FILE_STATUS_MAPPING = {
        'added': 'added',
        'removed': 'removed',
        'modified': 'modified',
        'renamed': 'renamed',
        'copied': 'added',
        'changed': 'modified',
        'unchanged': 'modified',
    }

    def parse_changed_file(self, file_data: Dict) -> ChangedFile:
        """
        Parse one entry of a commit's ``files`` list.

        Args:
            file_data: File data from the GitHub commit API

        Returns:
            ChangedFile
        """
        return ChangedFile(
            filename=file_data['filename'],
            status=self.FILE_STATUS_MAPPING.get(file_data.get('status', 'modified'), 'modified'),
            additions=file_data.get('additions', 0),
            deletions=file_data.get('deletions', 0),
            changes=file_data.get('changes', 0),
        )

    def parse_change_history(self, commits: List[Dict], commit_details: Mapping[str, Dict]) -> List[ChangeRecord]:
        """
        Build the ordered change history of a pull request.

        Args:
            commits: Pull request commit list (oldest first)
            commit_details: Full commit payloads keyed by SHA

        Returns:
            ChangeRecords with 0-based positions
        """
        records = []
        for position, commit in enumerate(commits):
            sha = commit['sha']
            detail = commit_details.get(sha, {})
            files = [self.parse_changed_file(f) for f in detail.get('files', [])]
            paths = {f.filename for f in files}
            # a rename also touches the old path
            paths.update(
                f['previous_filename'] for f in detail.get('files', []) if f.get('previous_filename')
            )
            records.append(ChangeRecord(
                id=sha,
                position=position,
                changed_paths=frozenset(paths),
            ))
            logger.debug(f"Commit {short_commit(sha)} at {position}: {len(files)} files")

        logger.info(f"Parsed change history: {len(records)} commits")
        return records

    def parse_review_state(self, state: str) -> ReviewState:
        if state not in self.REVIEW_STATE_MAPPING:
            raise UnreachableError(state, f"Unknown review state: {state}")
        return self.REVIEW_STATE_MAPPING[state]

    def parse_reviews(self, reviews: List[Dict]) -> List[ReviewEvent]:
        """
        Parse submitted reviews into review events.

        Args:
            reviews: Reviews from the GitHub pull request reviews API

        Returns:
            ReviewEvents in submission order
        """
        events = []
        for review in reviews:
            if review.get('state') == 'PENDING':
                continue
            user = review.get('user') or {}
            if not user.get('login') or not review.get('commit_id'):
                logger.debug(f"Skipping review {review.get('id')} without author or commit")
                continue

            submitted_at = None
            if review.get('submitted_at'):
                submitted_at = datetime.fromisoformat(review['submitted_at'].replace('Z', '+00:00'))

            events.append(ReviewEvent(
                reviewer=user['login'],
                at_change_id=review['commit_id'],
                state=self.parse_review_state(review['state']),
                url=review.get('html_url', ''),
                submitted_at=submitted_at,
            ))
        return events

    def parse_review_requests(self, data: Dict) -> Tuple[List[str], List[str]]:
        """
        Returns:
            Tuple of (requested user logins, requested team names and slugs)
        """
        users = [u['login'] for u in data.get('users', [])]
        teams = []
        for team in data.get('teams', []):
            teams.extend([team['name'], team['slug']])
        return users, list(dict.fromkeys(teams))

    def parse_logins(self, members: List[Dict]) -> List[str]:
        return [m['login'] for m in members if m.get('login')]

    def parse_teams(self, teams: List[Dict]) -> List[TeamRef]:
        return [TeamRef(id=t['id'], name=t['name'], slug=t['slug']) for t in teams]

    def parse_comment_bodies(self, comments: List[Dict]) -> List[str]:
        return [c.get('body') or '' for c in comments]
