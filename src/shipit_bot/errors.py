"""
Error Types

ACL 평가 과정에서 발생하는 오류 정의
"""

import logging
from typing import List, Optional


logger = logging.getLogger(__name__)


class ShipitError(Exception):
    """shipit-bot 기본 예외"""


class UserInputError(ShipitError):
    """
    사용자가 고칠 수 있는 입력 오류

    Reported back on the pull request; the affected ACL or operation is
    skipped while the rest of the evaluation continues.
    """

    def __init__(self, message: str, acl_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.acl_name = acl_name


class AclParseError(UserInputError):
    """ACL 파일 파싱 오류"""


class InvariantError(ShipitError):
    """
    데이터 무결성 오류

    Aborts the evaluation: continuing would produce a wrong policy decision.
    """


class UnreachableError(InvariantError):
    """도달할 수 없는 상태 값"""

    def __init__(self, value, message: Optional[str] = None):
        super().__init__(message or f"Unreachable value encountered: {value!r}")
        self.value = value


class ErrorReport:
    """
    Collects user-input errors for a single evaluation.

    Messages are deduplicated (first occurrence wins) and rendered into one
    Markdown comment for the pull request.
    """

    def __init__(self):
        self._errors: List[UserInputError] = []
        self._seen = set()

    def add(self, error: UserInputError) -> None:
        if self._record(error):
            logger.warning(f"User input error{f' in ACL {error.acl_name}' if error.acl_name else ''}: {error.message}")

    def extend(self, other: "ErrorReport") -> None:
        """Merge another report; its errors were logged when first added."""
        for error in other.errors:
            self._record(error)

    def _record(self, error: UserInputError) -> bool:
        if error.message in self._seen:
            return False
        self._seen.add(error.message)
        self._errors.append(error)
        return True

    @property
    def errors(self) -> List[UserInputError]:
        return list(self._errors)

    @property
    def messages(self) -> List[str]:
        return [e.message for e in self._errors]

    def __len__(self) -> int:
        return len(self._errors)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def render(self) -> str:
        """Render all collected errors as a single Markdown comment."""
        if not self._errors:
            return ""
        lines = ["### :warning: ACL configuration problems", ""]
        if len(self._errors) == 1:
            lines.append(self._errors[0].message)
        else:
            for error in self._errors:
                lines.append(f"- {error.message}")
        return "\n".join(lines)
