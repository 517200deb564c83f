"""
Data Models

shipit-bot ACL 평가 시스템의 핵심 데이터 모델들
"""

from .acl import AclKind, TeamBinding, OwnerAcl, ReleaseOwnerAcl, Acl, AclFileSchema, owner_acls
from .change import ChangedFile, ChangeRecord, validate_change_history
from .review import ReviewState, ReviewEvent, RuleSignal, DecidingState
from .presentation import Conclusion, CheckPresentation
from .plans import TeamRef, ReconciliationPlan, ReviewRequestPlan

__all__ = [
    "AclKind",
    "TeamBinding",
    "OwnerAcl",
    "ReleaseOwnerAcl",
    "Acl",
    "AclFileSchema",
    "owner_acls",
    "ChangedFile",
    "ChangeRecord",
    "validate_change_history",
    "ReviewState",
    "ReviewEvent",
    "RuleSignal",
    "DecidingState",
    "Conclusion",
    "CheckPresentation",
    "TeamRef",
    "ReconciliationPlan",
    "ReviewRequestPlan",
]
