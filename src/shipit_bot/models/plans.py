"""
Plan Data Models

팀 동기화 및 리뷰 요청 계획 모델
"""

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from ..errors import UserInputError


@dataclass(frozen=True)
class TeamRef:
    """조직의 GitHub 팀"""
    id: int
    name: str
    slug: str

    def matches(self, team_name: str) -> bool:
        """대소문자 구분 없는 이름 또는 slug 비교"""
        return team_name.lower() in (self.name.lower(), self.slug.lower())


@dataclass(frozen=True)
class ReconciliationPlan:
    """ACL owners와 팀 멤버십 동기화 계획"""
    acl_name: str
    team: TeamRef
    to_add: FrozenSet[str] = frozenset()
    to_remove: FrozenSet[str] = frozenset()
    proxy_team: Optional[TeamRef] = None
    proxy_to_remove: FrozenSet[str] = frozenset()

    @property
    def is_in_sync(self) -> bool:
        return not (self.to_add or self.to_remove or self.proxy_to_remove)


@dataclass
class ReviewRequestPlan:
    """리뷰 요청 대상 목록"""
    team_reviewers: List[str] = field(default_factory=list)
    reviewers: List[str] = field(default_factory=list)
    errors: List[UserInputError] = field(default_factory=list)

    def add_team(self, team_name: str) -> None:
        if team_name not in self.team_reviewers:
            self.team_reviewers.append(team_name)

    def add_reviewer(self, login: str) -> None:
        if login not in self.reviewers:
            self.reviewers.append(login)

    @property
    def is_empty(self) -> bool:
        return not (self.team_reviewers or self.reviewers)

    def to_request_payload(self) -> dict:
        """GitHub requested_reviewers API 요청 본문"""
        return {
            'reviewers': list(self.reviewers),
            'team_reviewers': list(self.team_reviewers),
        }
