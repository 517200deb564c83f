"""
Override Interpreter

An override marker in the pull request discussion turns failing or pending
ACL outcomes into a neutral, non-blocking "override acknowledged" outcome.

Two markers exist: ``ACLOVERRIDE`` announces itself on the pull request,
``ACL_OVERRIDE_HASH`` overrides without a notification comment.
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, Optional, Sequence

from ..models.presentation import CheckPresentation


logger = logging.getLogger(__name__)


DEFAULT_OVERRIDE_TOKEN = "ACLOVERRIDE"
SILENT_OVERRIDE_TOKEN = "ACL_OVERRIDE_HASH"

OVERRIDE_DESCRIPTIONS = {
    DEFAULT_OVERRIDE_TOKEN: (
        "ACLOVERRIDE prevents the changes in this pull request from being held back by their ACL checks."
    ),
    SILENT_OVERRIDE_TOKEN: "Overrides the source code ACL check without notifications.",
}


def find_override(
    comment_bodies: Iterable[str],
    tokens: Sequence[str] = (DEFAULT_OVERRIDE_TOKEN, SILENT_OVERRIDE_TOKEN),
) -> Optional[str]:
    """
    Find the first override token used in the pull request discussion.

    Args:
        comment_bodies: Discussion comment bodies, oldest first
        tokens: Recognized override tokens, in order of precedence

    Returns:
        The matched token, or None
    """
    token_list = [t for t in tokens if t]
    for body in comment_bodies:
        if not body:
            continue
        for token in token_list:
            if token in body:
                logger.info(f"Override token {token} found in pull request discussion")
                return token
    return None


def detect_override(comment_bodies: Iterable[str], token: str = DEFAULT_OVERRIDE_TOKEN) -> bool:
    """Whether any discussion comment contains the override token."""
    return find_override(comment_bodies, (token,)) is not None


def describe_override(token: str) -> str:
    """Markdown notice naming the override and what it does."""
    description = OVERRIDE_DESCRIPTIONS.get(token, f"{token} overrides the ACL checks of this pull request.")
    return f"This pull request triggered a {token}, which does the following:\n> {description}"


def notifies(token: str, silent_tokens: Iterable[str] = (SILENT_OVERRIDE_TOKEN,)) -> bool:
    """Whether an override should be announced with a pull request comment."""
    return token not in set(silent_tokens)


def apply_override(presentation: CheckPresentation, override_detected: bool) -> CheckPresentation:
    """
    Neutralize a non-successful presentation when an override was detected.

    Successful outcomes are returned untouched; applying this twice gives
    the same result as applying it once.
    """
    if not override_detected or presentation.is_success:
        return presentation
    return presentation.with_override()


def apply_overrides(
    presentations: Dict[str, CheckPresentation],
    override_detected: bool,
) -> Dict[str, CheckPresentation]:
    return {name: apply_override(p, override_detected) for name, p in presentations.items()}


def apply_aggregate_override(
    aggregate: CheckPresentation,
    override_detected: bool,
    description: Optional[str] = None,
) -> CheckPresentation:
    """
    Aggregate outcome becomes neutral rather than failing under override.

    The override description, when given, is appended to the summary once.
    """
    overridden = apply_override(aggregate, override_detected)
    if overridden is aggregate or not description or description in overridden.summary:
        return overridden
    return replace(overridden, summary=f"{overridden.summary}\n\n{description}")
