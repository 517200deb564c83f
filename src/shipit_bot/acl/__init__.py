"""
ACL Approval Resolution Engine

This module provides ACL file loading, rule matching, deciding-state
resolution, override handling, team reconciliation and review request
planning.
"""

from .loader import parse_acl, load_acls
from .matcher import match_rules, match_rules_per_change
from .signals import extract_signals
from .resolver import resolve_deciding_state, signal_strength, is_stale
from .overrides import detect_override, find_override, apply_override
from .reconciler import reconcile, reconcile_all
from .review_requests import plan_review_requests
from .engine import AclEvaluation, evaluate

__all__ = [
    'parse_acl',
    'load_acls',
    'match_rules',
    'match_rules_per_change',
    'extract_signals',
    'resolve_deciding_state',
    'signal_strength',
    'is_stale',
    'detect_override',
    'find_override',
    'apply_override',
    'reconcile',
    'reconcile_all',
    'plan_review_requests',
    'AclEvaluation',
    'evaluate',
]
