"""
Unit tests for ACL matching, deciding-state resolution and presentation.
"""

import pytest

from shipit_bot.acl.engine import evaluate
from shipit_bot.acl.matcher import match_rules, match_rules_per_change
from shipit_bot.acl.overrides import (
    SILENT_OVERRIDE_TOKEN,
    apply_aggregate_override,
    apply_override,
    apply_overrides,
    describe_override,
    detect_override,
    find_override,
    notifies,
)
from shipit_bot.acl.resolver import (
    STALE_STRENGTH,
    is_stale,
    latest_matching_position,
    resolve_deciding_state,
    signal_strength,
)
from shipit_bot.acl.signals import candidate_events, extract_signals
from shipit_bot.acl.status import (
    aggregate_title,
    check_name,
    items_with_count,
    present_aggregate,
    present_state,
)
from shipit_bot.errors import InvariantError
from shipit_bot.models.acl import OwnerAcl, ReleaseOwnerAcl, TeamBinding
from shipit_bot.models.change import ChangeRecord
from shipit_bot.models.presentation import Conclusion
from shipit_bot.models.review import DecidingState, ReviewEvent, ReviewState


def change(sha, position, *paths):
    return ChangeRecord(id=sha, position=position, changed_paths=frozenset(paths))


def review(reviewer, sha, state, url=""):
    return ReviewEvent(reviewer=reviewer, at_change_id=sha, state=state, url=url)


@pytest.fixture
def docs_acl():
    return OwnerAcl(name="docs", paths=["docs/*"], owners=["alice", "bob"])


@pytest.fixture
def api_acl():
    return OwnerAcl(name="api", paths=["^api/"], owners=["alice", "bob"])


class TestRuleMatcher:
    """Unit tests for rule matching."""

    def test_regex_patterns(self, docs_acl, api_acl):
        assert match_rules([docs_acl, api_acl], ["docs/readme.md"]) == [docs_acl]
        assert match_rules([docs_acl, api_acl], ["api/v1.py", "docs/a.md"]) == [docs_acl, api_acl]
        assert match_rules([api_acl], ["src/api/v1.py"]) == []

    def test_exclude_paths(self):
        acl = OwnerAcl(name="src", paths=["src/"], exclude_paths=[r"\.md$"], owners=["alice"])

        assert match_rules([acl], ["src/README.md"]) == []
        assert match_rules([acl], ["src/README.md", "src/main.py"]) == [acl]

    def test_no_changed_paths(self, docs_acl):
        assert match_rules([docs_acl], []) == []

    def test_per_change(self, docs_acl, api_acl):
        history = [change("c1", 0, "docs/a.md"), change("c2", 1, "api/x.py")]

        result = match_rules_per_change([docs_acl, api_acl], history)

        assert result == {"c1": [docs_acl], "c2": [api_acl]}


class TestSignalExtraction:
    """Unit tests for review signal extraction."""

    def test_only_owner_reviews_count(self, docs_acl):
        history = [change("c1", 0, "docs/a.md")]
        reviews = [
            review("mallory", "c1", ReviewState.APPROVED),
            review("Alice", "c1", ReviewState.COMMENTED),
        ]

        signals = extract_signals(docs_acl, history, reviews)

        assert len(signals) == 1
        assert [e.reviewer for e in signals[0].events] == ["Alice"]
        assert signals[0].matched_paths == frozenset({"docs/a.md"})

    def test_reviews_on_unknown_commits_are_ignored(self, docs_acl):
        history = [change("c1", 0, "docs/a.md")]

        signals = extract_signals(docs_acl, history, [review("alice", "gone", ReviewState.APPROVED)])

        assert signals[0].events == ()

    def test_review_on_unmatched_commit_is_kept(self, docs_acl):
        history = [change("c1", 0, "docs/a.md"), change("c2", 1, "src/main.py")]

        signals = extract_signals(docs_acl, history, [review("bob", "c2", ReviewState.APPROVED)])

        assert [s.change_id for s in signals] == ["c1", "c2"]
        assert not signals[1].has_match
        assert latest_matching_position(signals) == 0

    def test_candidate_events_are_chronological(self, docs_acl):
        history = [change("c1", 0, "docs/a.md"), change("c2", 1, "docs/b.md")]
        reviews = [
            review("bob", "c2", ReviewState.COMMENTED),
            review("alice", "c1", ReviewState.APPROVED),
        ]

        candidates = candidate_events(extract_signals(docs_acl, history, reviews))

        assert [(p, e.reviewer) for p, e in candidates] == [(0, "alice"), (1, "bob")]


class TestResolver:
    """Unit tests for deciding-state resolution."""

    def test_strengths(self):
        assert signal_strength(ReviewState.PENDING) < signal_strength(ReviewState.DISMISSED)
        assert signal_strength(ReviewState.DISMISSED) < signal_strength(ReviewState.COMMENTED)
        assert signal_strength(ReviewState.COMMENTED) < STALE_STRENGTH
        assert STALE_STRENGTH < signal_strength(ReviewState.APPROVED)
        assert signal_strength(ReviewState.APPROVED) == signal_strength(ReviewState.CHANGES_REQUESTED)
        assert signal_strength(ReviewState.APPROVED, stale_known=True) == STALE_STRENGTH
        assert signal_strength(ReviewState.COMMENTED, stale_known=True) == signal_strength(ReviewState.COMMENTED)

    def test_is_stale(self):
        assert is_stale(0, 1)
        assert not is_stale(1, 1)
        assert not is_stale(2, 1)
        assert not is_stale(None, 1)
        assert not is_stale(0, None)

    def test_no_reviews_is_pending(self, docs_acl):
        signals = extract_signals(docs_acl, [change("c1", 0, "docs/a.md")], [])

        state = resolve_deciding_state(docs_acl, signals)

        assert state.status is ReviewState.PENDING
        assert state.reviewer is None
        assert not state.is_stale
        assert state.latest_position == 0

    def test_fresh_approval(self, docs_acl):
        history = [change("c1", 0, "docs/readme.md")]
        signals = extract_signals(docs_acl, history, [review("alice", "c1", ReviewState.APPROVED)])

        state = resolve_deciding_state(docs_acl, signals)

        assert state.status is ReviewState.APPROVED
        assert state.reviewer == "alice"
        assert state.at_position == 0
        assert not state.is_stale

    def test_approval_goes_stale_after_new_matching_commit(self, docs_acl):
        history = [change("c1", 0, "docs/readme.md"), change("c2", 1, "docs/readme.md")]
        signals = extract_signals(docs_acl, history, [review("alice", "c1", ReviewState.APPROVED)])

        state = resolve_deciding_state(docs_acl, signals)

        assert state.status is ReviewState.APPROVED
        assert state.is_stale
        assert state.needs_reapproval

    def test_unrelated_commit_does_not_stale_approval(self, docs_acl):
        history = [change("c1", 0, "docs/readme.md"), change("c2", 1, "src/main.py")]
        signals = extract_signals(docs_acl, history, [review("alice", "c1", ReviewState.APPROVED)])

        state = resolve_deciding_state(docs_acl, signals)

        assert state.is_fresh_approval

    def test_hard_signal_beats_more_recent_comment(self, api_acl):
        history = [
            change("c0", 0, "api/a.py"),
            change("c1", 1, "api/b.py"),
            change("c2", 2, "README.md"),
        ]
        reviews = [
            review("alice", "c1", ReviewState.APPROVED),
            review("bob", "c2", ReviewState.COMMENTED),
        ]

        state = resolve_deciding_state(api_acl, extract_signals(api_acl, history, reviews))

        assert state.status is ReviewState.APPROVED
        assert state.reviewer == "alice"
        assert state.at_position == 1

    def test_stale_approval_beats_fresh_comment(self, api_acl):
        history = [change("c0", 0, "api/a.py"), change("c1", 1, "api/b.py")]
        reviews = [
            review("alice", "c0", ReviewState.APPROVED),
            review("bob", "c1", ReviewState.COMMENTED),
        ]

        state = resolve_deciding_state(api_acl, extract_signals(api_acl, history, reviews))

        assert state.status is ReviewState.APPROVED
        assert state.is_stale

    def test_fresh_changes_request_beats_stale_approval(self, api_acl):
        history = [change("c0", 0, "api/a.py"), change("c1", 1, "api/b.py")]
        reviews = [
            review("alice", "c0", ReviewState.APPROVED),
            review("bob", "c1", ReviewState.CHANGES_REQUESTED),
        ]

        state = resolve_deciding_state(api_acl, extract_signals(api_acl, history, reviews))

        assert state.status is ReviewState.CHANGES_REQUESTED
        assert state.reviewer == "bob"

    def test_most_recent_wins_ties(self, api_acl):
        history = [change("c0", 0, "api/a.py"), change("c1", 1, "README.md")]
        reviews = [
            review("bob", "c0", ReviewState.CHANGES_REQUESTED),
            review("alice", "c1", ReviewState.APPROVED),
        ]

        state = resolve_deciding_state(api_acl, extract_signals(api_acl, history, reviews))

        assert state.status is ReviewState.APPROVED
        assert state.reviewer == "alice"

    def test_later_review_on_same_commit_wins_tie(self, api_acl):
        history = [change("c0", 0, "api/a.py")]
        reviews = [
            review("bob", "c0", ReviewState.CHANGES_REQUESTED),
            review("bob", "c0", ReviewState.APPROVED, url="https://github.com/r/2"),
        ]

        state = resolve_deciding_state(api_acl, extract_signals(api_acl, history, reviews))

        assert state.status is ReviewState.APPROVED
        assert state.url == "https://github.com/r/2"

    def test_zero_owners_is_an_invariant_violation(self):
        acl = OwnerAcl(name="orphan", paths=["."], owners=[])

        with pytest.raises(InvariantError):
            resolve_deciding_state(acl, [])


class TestOverrides:
    """Unit tests for the override interpreter."""

    def test_detect_override(self):
        assert detect_override(["lgtm", "ACLOVERRIDE: hotfix"])
        assert not detect_override(["lgtm", ""])
        assert detect_override(["SKIPACL please"], token="SKIPACL")

    def test_find_override_recognizes_both_tokens(self):
        assert find_override(["lgtm", "ACLOVERRIDE: hotfix"]) == "ACLOVERRIDE"
        assert find_override(["ACL_OVERRIDE_HASH"]) == SILENT_OVERRIDE_TOKEN
        assert find_override(["lgtm", None, ""]) is None
        assert find_override(["SKIPACL"], tokens=("ACLOVERRIDE", "")) is None

    def test_find_override_takes_earliest_comment(self):
        assert find_override(["ACL_OVERRIDE_HASH", "ACLOVERRIDE"]) == "ACL_OVERRIDE_HASH"

    def test_silent_override_does_not_notify(self):
        assert notifies("ACLOVERRIDE")
        assert not notifies("ACL_OVERRIDE_HASH")
        assert notifies("ACL_OVERRIDE_HASH", silent_tokens=["QUIETACL"])

    def test_describe_override(self):
        assert describe_override("ACL_OVERRIDE_HASH") == (
            "This pull request triggered a ACL_OVERRIDE_HASH, which does the following:\n"
            "> Overrides the source code ACL check without notifications."
        )
        assert "SKIPACL overrides the ACL checks" in describe_override("SKIPACL")

    def test_aggregate_description_added_once(self, docs_acl):
        presentation = present_state(docs_acl, DecidingState(acl_name="docs", status=ReviewState.PENDING))
        notice = describe_override("ACLOVERRIDE")

        once = apply_aggregate_override(presentation, True, description=notice)
        twice = apply_aggregate_override(once, True, description=notice)

        assert once.summary.endswith(notice)
        assert once == twice
        assert apply_aggregate_override(presentation, False, description=notice) is presentation

    def test_override_neutralizes_changes_requested(self, docs_acl):
        state = DecidingState(
            acl_name="docs", status=ReviewState.CHANGES_REQUESTED, reviewer="bob", at_position=0
        )
        presentation = present_state(docs_acl, state)

        overridden = apply_override(presentation, True)

        assert presentation.conclusion is Conclusion.FAILURE
        assert overridden.conclusion is Conclusion.NEUTRAL
        assert overridden.title == "[OVERRIDE] @bob requested changes"

    def test_override_neutralizes_pending(self, docs_acl):
        presentation = present_state(docs_acl, DecidingState(acl_name="docs", status=ReviewState.PENDING))

        overridden = apply_override(presentation, True)

        assert presentation.in_progress
        assert not overridden.in_progress
        assert overridden.conclusion is Conclusion.NEUTRAL

    def test_override_keeps_success(self, docs_acl):
        state = DecidingState(acl_name="docs", status=ReviewState.APPROVED, reviewer="alice", at_position=0)
        presentation = present_state(docs_acl, state)

        assert apply_override(presentation, True) is presentation

    def test_no_override_is_identity(self, docs_acl):
        presentation = present_state(docs_acl, DecidingState(acl_name="docs", status=ReviewState.PENDING))

        assert apply_overrides({"docs": presentation}, False) == {"docs": presentation}


class TestStatusPresenter:
    """Unit tests for check run presentations."""

    def test_items_with_count(self):
        assert items_with_count("ACL", 0) == "No ACLs"
        assert items_with_count("ACL", 1) == "1 ACL"
        assert items_with_count("ACL", 3) == "3 ACLs"

    def test_state_titles_and_conclusions(self, docs_acl):
        cases = [
            (DecidingState(acl_name="docs", status=ReviewState.PENDING),
             "Needs review from an owner", None),
            (DecidingState(acl_name="docs", status=ReviewState.APPROVED, reviewer="alice", at_position=0),
             "Approved by @alice", Conclusion.SUCCESS),
            (DecidingState(acl_name="docs", status=ReviewState.APPROVED, reviewer="alice", at_position=0,
                           is_stale=True, latest_position=1),
             "Approval by @alice is stale, re-approval needed", Conclusion.ACTION_REQUIRED),
            (DecidingState(acl_name="docs", status=ReviewState.CHANGES_REQUESTED, reviewer="bob", at_position=0),
             "@bob requested changes", Conclusion.FAILURE),
            (DecidingState(acl_name="docs", status=ReviewState.COMMENTED, reviewer="bob", at_position=0),
             "@bob commented, approval still needed", None),
            (DecidingState(acl_name="docs", status=ReviewState.DISMISSED, reviewer="bob", at_position=0),
             "Review by @bob was dismissed, approval still needed", None),
        ]

        for state, title, conclusion in cases:
            presentation = present_state(docs_acl, state)
            assert presentation.name == check_name("docs") == "ACL: docs"
            assert presentation.title == title
            assert presentation.conclusion is conclusion
            assert presentation.in_progress == (conclusion is None)

    def test_summary_content(self):
        acl = OwnerAcl(
            name="docs",
            paths=["docs/"],
            owners=["alice", "bob"],
            description="Documentation",
            block_message="Ask #docs before merging",
            team=TeamBinding(owners="docs-owners"),
        )
        state = DecidingState(
            acl_name="docs", status=ReviewState.APPROVED, reviewer="alice", at_position=0,
            is_stale=True, latest_position=1, matched_paths=frozenset({"docs/a.md"}),
        )

        summary = present_state(acl, state, details_url="https://github.com/o/r/blob/master/acls/docs").summary

        assert "Documentation" in summary
        assert "> Ask #docs before merging" in summary
        assert "**Owners:** @alice, @bob" in summary
        assert "**Team:** docs-owners" in summary
        assert "Commit #2 changed files governed by this ACL" in summary
        assert "- `docs/a.md`" in summary

    def test_block_message_hidden_once_approved(self):
        acl = OwnerAcl(name="docs", paths=["docs/"], owners=["alice"], block_message="Blocked")
        state = DecidingState(acl_name="docs", status=ReviewState.APPROVED, reviewer="alice", at_position=0)

        assert "Blocked" not in present_state(acl, state).summary

    def test_aggregate_titles(self):
        empty = {'changes_requested': [], 'reapproval': [], 'review': [], 'overridden': [], 'approved': []}

        assert aggregate_title(empty) == "No ACLs apply to this pull request"
        assert aggregate_title({**empty, 'approved': ["a", "b"]}) == "2 ACLs approved!"
        assert aggregate_title({**empty, 'changes_requested': ["a"], 'review': ["b", "c"]}) == (
            "1 ACL requested changes, 2 ACLs need review"
        )
        assert aggregate_title({**empty, 'reapproval': ["a"], 'approved': ["b"]}) == (
            "1 ACL needs re-approval, 1 ACL approved"
        )

    def test_aggregate_conclusion_precedence(self, docs_acl, api_acl):
        states = {
            "docs": DecidingState(acl_name="docs", status=ReviewState.PENDING),
            "api": DecidingState(acl_name="api", status=ReviewState.CHANGES_REQUESTED, reviewer="bob", at_position=0),
        }
        presentations = {
            "docs": present_state(docs_acl, states["docs"]),
            "api": present_state(api_acl, states["api"]),
        }

        aggregate = present_aggregate(states, presentations)

        assert aggregate.name == "ACLs"
        assert aggregate.conclusion is Conclusion.FAILURE
        assert aggregate.title == "1 ACL requested changes, 1 ACL needs review"

    def test_aggregate_pending_is_in_progress(self, docs_acl):
        states = {"docs": DecidingState(acl_name="docs", status=ReviewState.PENDING)}
        presentations = {"docs": present_state(docs_acl, states["docs"])}

        aggregate = present_aggregate(states, presentations, details_url_for=lambda n: f"https://x/{n}")

        assert aggregate.in_progress
        assert aggregate.conclusion is None
        assert "- Needs review: [`docs`](https://x/docs)" in aggregate.summary

    def test_aggregate_action_required_links_stale_acl(self, docs_acl):
        states = {
            "docs": DecidingState(acl_name="docs", status=ReviewState.APPROVED, reviewer="alice",
                                  at_position=0, is_stale=True, latest_position=1),
        }
        presentations = {"docs": present_state(docs_acl, states["docs"], details_url="https://x/docs")}

        aggregate = present_aggregate(states, presentations)

        assert aggregate.conclusion is Conclusion.ACTION_REQUIRED
        assert aggregate.details_url == "https://x/docs"


class TestEvaluate:
    """Unit tests for a full evaluation."""

    def test_approved_then_stale(self, docs_acl):
        first = [change("c1", 0, "docs/readme.md")]
        reviews = [review("alice", "c1", ReviewState.APPROVED)]

        result = evaluate([docs_acl], first, reviews)

        assert result.states["docs"].is_fresh_approval
        assert result.presentations["docs"].conclusion is Conclusion.SUCCESS
        assert result.aggregate.title == "1 ACL approved!"
        assert result.is_passing
        assert result.head_change_id == "c1"

        second = first + [change("c2", 1, "docs/readme.md")]
        result = evaluate([docs_acl], second, reviews)

        assert result.states["docs"].needs_reapproval
        assert result.presentations["docs"].conclusion is Conclusion.ACTION_REQUIRED
        assert result.aggregate.conclusion is Conclusion.ACTION_REQUIRED
        assert not result.is_passing

    def test_override_neutralizes_rule_and_aggregate(self, docs_acl):
        history = [change("c1", 0, "docs/readme.md")]
        reviews = [review("bob", "c1", ReviewState.CHANGES_REQUESTED)]

        result = evaluate([docs_acl], history, reviews, override_detected=True)

        assert result.states["docs"].status is ReviewState.CHANGES_REQUESTED
        assert result.presentations["docs"].conclusion is Conclusion.NEUTRAL
        assert result.presentations["docs"].title.startswith("[OVERRIDE] ")
        assert result.aggregate.conclusion is Conclusion.NEUTRAL
        assert result.aggregate.title == "[OVERRIDE] 1 ACL overridden"
        assert result.is_passing

    def test_override_token_is_described_in_aggregate(self, docs_acl):
        history = [change("c1", 0, "docs/readme.md")]

        result = evaluate([docs_acl], history, [], override_token="ACL_OVERRIDE_HASH")

        assert result.override_detected
        assert result.override_token == "ACL_OVERRIDE_HASH"
        assert result.aggregate.conclusion is Conclusion.NEUTRAL
        assert "Overrides the source code ACL check without notifications." in result.aggregate.summary
        assert "ACL_OVERRIDE_HASH" not in result.presentations["docs"].summary

    def test_only_applicable_acls_are_evaluated(self, docs_acl, api_acl):
        result = evaluate([docs_acl, api_acl], [change("c1", 0, "api/v1.py")], [])

        assert list(result.applicable) == ["api"]
        assert list(result.presentations) == ["api"]

    def test_release_owner_acls_are_ignored(self, docs_acl):
        release = ReleaseOwnerAcl(name="release", paths=["docs/"], release_owners=["carol"])

        result = evaluate([docs_acl, release], [change("c1", 0, "docs/a.md")], [])

        assert list(result.applicable) == ["docs"]
        assert result.ignored_release_acls == ["release"]

    def test_no_applicable_acls(self, docs_acl):
        result = evaluate([docs_acl], [change("c1", 0, "src/main.py")], [])

        assert result.states == {}
        assert result.aggregate.conclusion is Conclusion.SUCCESS
        assert result.aggregate.title == "No ACLs apply to this pull request"

    def test_matched_acl_without_owners_aborts(self):
        orphan = OwnerAcl(name="orphan", paths=["."], owners=[])

        with pytest.raises(InvariantError):
            evaluate([orphan], [change("c1", 0, "a.py")], [])

    def test_out_of_order_history_aborts(self, docs_acl):
        with pytest.raises(InvariantError):
            evaluate([docs_acl], [change("c2", 1, "docs/a"), change("c1", 0, "docs/b")], [])

    def test_details_url_for(self, docs_acl):
        result = evaluate(
            [docs_acl],
            [change("c1", 0, "docs/a.md")],
            [],
            details_url_for=lambda name: f"https://github.com/o/r/blob/master/acls/{name}",
        )

        assert result.presentations["docs"].details_url == "https://github.com/o/r/blob/master/acls/docs"
