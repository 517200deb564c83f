"""
Review Data Models

리뷰 이벤트와 ACL 승인 상태 데이터 모델
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple


class ReviewState(str, Enum):
    """리뷰 상태"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    COMMENTED = "COMMENTED"
    DISMISSED = "DISMISSED"

    @property
    def is_hard_signal(self) -> bool:
        """승인 또는 변경 요청 여부"""
        return self in (ReviewState.APPROVED, ReviewState.CHANGES_REQUESTED)


@dataclass(frozen=True)
class ReviewEvent:
    """특정 커밋에 대해 작성된 리뷰"""
    reviewer: str
    at_change_id: str
    state: ReviewState
    url: str = ""
    submitted_at: Optional[datetime] = None

    def __post_init__(self):
        """데이터 검증"""
        if not self.reviewer:
            raise ValueError("Reviewer cannot be empty")
        if not self.at_change_id:
            raise ValueError("Review must reference a change id")
        if self.state is ReviewState.PENDING:
            raise ValueError("A submitted review cannot be PENDING")


@dataclass(frozen=True)
class RuleSignal:
    """ACL과 커밋 한 쌍에 대한 리뷰 신호"""
    acl_name: str
    change_id: str
    position: int
    matched_paths: FrozenSet[str] = frozenset()
    events: Tuple[ReviewEvent, ...] = ()

    @property
    def has_match(self) -> bool:
        return bool(self.matched_paths)


@dataclass(frozen=True)
class DecidingState:
    """ACL별 최종 승인 상태"""
    acl_name: str
    status: ReviewState
    reviewer: Optional[str] = None
    at_position: Optional[int] = None
    url: Optional[str] = None
    is_stale: bool = False
    latest_position: Optional[int] = None
    matched_paths: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        """데이터 검증"""
        if self.status is ReviewState.PENDING:
            if self.reviewer is not None or self.at_position is not None:
                raise ValueError("PENDING state cannot reference a review")
            if self.is_stale:
                raise ValueError("PENDING state cannot be stale")
        elif self.reviewer is None or self.at_position is None:
            raise ValueError(f"{self.status.value} state must reference a review")

    @property
    def is_fresh_approval(self) -> bool:
        """유효한(최신) 승인 여부"""
        return self.status is ReviewState.APPROVED and not self.is_stale

    @property
    def needs_reapproval(self) -> bool:
        return self.status is ReviewState.APPROVED and self.is_stale


def review_states() -> List[ReviewState]:
    """제출 가능한 리뷰 상태 목록"""
    return [s for s in ReviewState if s is not ReviewState.PENDING]
