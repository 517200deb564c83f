"""
Change Data Models

Pull Request 커밋 및 변경 파일 데이터 모델
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, List

from ..errors import InvariantError


@dataclass(frozen=True)
class ChangedFile:
    """커밋에서 변경된 파일"""
    filename: str
    status: str  # 'added', 'removed', 'modified', 'renamed'
    additions: int = 0
    deletions: int = 0
    changes: int = 0

    def __post_init__(self):
        """데이터 검증"""
        valid_statuses = {'added', 'removed', 'modified', 'renamed'}
        if self.status not in valid_statuses:
            raise ValueError(f"Invalid status: {self.status}")
        if self.additions < 0 or self.deletions < 0 or self.changes < 0:
            raise ValueError("Change counts must be non-negative")


@dataclass(frozen=True)
class ChangeRecord:
    """Pull Request의 개별 커밋과 변경 경로"""
    id: str
    position: int
    changed_paths: FrozenSet[str]

    def __post_init__(self):
        """데이터 검증"""
        if not self.id:
            raise ValueError("Change id cannot be empty")
        if self.position < 0:
            raise ValueError("Position must be non-negative")
        object.__setattr__(self, 'changed_paths', frozenset(self.changed_paths))


def validate_change_history(changes: Iterable[ChangeRecord]) -> List[ChangeRecord]:
    """
    커밋 순서 검증

    Positions must strictly increase and ids must be unique; the last record
    is the head of the pull request.
    """
    history = list(changes)
    seen_ids = set()
    previous = -1
    for change in history:
        if change.position <= previous:
            raise InvariantError(
                f"Change history out of order: {change.id} at position {change.position} "
                f"follows position {previous}"
            )
        if change.id in seen_ids:
            raise InvariantError(f"Duplicate change id in history: {change.id}")
        seen_ids.add(change.id)
        previous = change.position
    return history
