"""
shipit-bot

Pull Request ACL(코드 소유권 규칙) 승인 상태를 평가하는 GitHub 봇
"""

__version__ = "1.0.0"

from .api import AclReviewAPI

__all__ = ["AclReviewAPI"]
