"""
Presentation Data Models

GitHub check run으로 표시되는 ACL 상태 모델
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional


class Conclusion(str, Enum):
    """check run 결론"""
    SUCCESS = "success"
    FAILURE = "failure"
    NEUTRAL = "neutral"
    CANCELLED = "cancelled"
    ACTION_REQUIRED = "action_required"


OVERRIDE_PREFIX = "[OVERRIDE] "


@dataclass(frozen=True)
class CheckPresentation:
    """ACL 하나 또는 전체에 대한 표시 정보"""
    name: str
    title: str
    summary: str
    conclusion: Optional[Conclusion] = None
    details_url: Optional[str] = None
    in_progress: bool = False

    def __post_init__(self):
        """데이터 검증"""
        if not self.title.strip():
            raise ValueError("Title cannot be empty")
        if self.in_progress and self.conclusion is not None:
            raise ValueError("An in-progress check cannot have a conclusion")
        if not self.in_progress and self.conclusion is None:
            raise ValueError("A completed check must have a conclusion")

    @property
    def is_success(self) -> bool:
        return self.conclusion is Conclusion.SUCCESS

    @property
    def is_overridden(self) -> bool:
        return self.conclusion is Conclusion.NEUTRAL and self.title.startswith(OVERRIDE_PREFIX)

    def with_override(self) -> "CheckPresentation":
        """override 표시로 변환"""
        title = self.title if self.title.startswith(OVERRIDE_PREFIX) else OVERRIDE_PREFIX + self.title
        return replace(self, title=title, conclusion=Conclusion.NEUTRAL, in_progress=False)

    def to_check_run_payload(self, head_sha: str) -> Dict[str, Any]:
        """GitHub check run API 요청 본문 생성"""
        payload: Dict[str, Any] = {
            'name': self.name,
            'head_sha': head_sha,
            'output': {
                'title': self.title,
                'summary': self.summary,
            },
        }
        if self.in_progress:
            payload['status'] = 'in_progress'
        else:
            payload['status'] = 'completed'
            payload['conclusion'] = self.conclusion.value
        if self.details_url:
            payload['details_url'] = self.details_url
        return payload
