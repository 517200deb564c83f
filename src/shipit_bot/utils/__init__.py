"""
Utilities
"""

from .debounce import PullRequestDebouncer

__all__ = ['PullRequestDebouncer']
