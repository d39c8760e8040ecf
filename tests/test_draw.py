"""Tests for services/draw.py."""

import random

import pytest

from conftest import couples, person
from giftexchange.errors import InfeasibleError, ValidationError
from giftexchange.services import draw
from giftexchange.services.history import normalize


def _assert_valid(assignments, participants, exclusions):
    names = {normalize(p.name) for p in participants}
    givers = [normalize(a.giver.name) for a in assignments]
    receivers = [normalize(a.receiver.name) for a in assignments]
    assert sorted(givers) == sorted(names)
    assert sorted(receivers) == sorted(names)
    for g, r in zip(givers, receivers):
        assert r not in exclusions[g]


def test_exclusion_sets_include_self_spouse_and_history():
    participants = [person("Alice", spouse="Bob"), person("Bob", spouse="Alice"), person("Carol")]
    exclusions = draw.build_exclusion_sets(participants, {"alice": {"carol"}, "zed": {"alice"}})
    assert exclusions == {
        "alice": {"alice", "bob", "carol"},
        "bob": {"bob", "alice"},
        "carol": {"carol"},
    }


def test_exclusion_sets_normalize_names():
    participants = [person("  Dana ", spouse=" EVE")]
    assert draw.build_exclusion_sets(participants, {}) == {"dana": {"dana", "eve"}}


def test_spouse_exclusion_goes_both_ways():
    participants = [person("Ann", spouse="Bo"), person("Bo"), person("Cy")]
    exclusions = draw.build_exclusion_sets(participants, {})
    assert "ann" in exclusions["bo"]
    assert exclusions["cy"] == {"cy"}
    for seed in range(30):
        result = draw.generate_assignments(participants + [person("Di")], rng=random.Random(seed))
        gives = {a.giver.name: a.receiver.name for a in result}
        assert gives["Bo"] != "Ann"
        assert gives["Ann"] != "Bo"


def test_search_returns_valid_bijection():
    participants = [person(n) for n in "ABCDEFG"]
    exclusions = draw.build_exclusion_sets(participants, {})
    result = draw.find_secret_santa_assignment(participants, exclusions, rng=random.Random(3))
    assert result is not None
    _assert_valid(result, participants, exclusions)


def test_spouses_never_draw_each_other():
    participants = couples(("A", "B"), ("C", "D"))
    exclusions = draw.build_exclusion_sets(participants, {})
    for seed in range(50):
        result = draw.find_secret_santa_assignment(
            participants, exclusions, allow_reciprocal=True, rng=random.Random(seed)
        )
        pairs = {(a.giver.name, a.receiver.name) for a in result}
        assert not pairs & {("A", "B"), ("B", "A"), ("C", "D"), ("D", "C")}
        _assert_valid(result, participants, exclusions)


def test_reciprocal_swaps_allowed_when_enabled():
    participants = couples(("A", "B"), ("C", "D"))
    exclusions = draw.build_exclusion_sets(participants, {})
    seen_swap = False
    for seed in range(100):
        result = draw.find_secret_santa_assignment(
            participants, exclusions, allow_reciprocal=True, rng=random.Random(seed)
        )
        gives = {a.giver.name: a.receiver.name for a in result}
        if any(gives[gives[g]] == g for g in gives):
            seen_swap = True
            break
    assert seen_swap


def test_reciprocal_swaps_blocked_by_default():
    participants = [person(n) for n in "ABCDE"]
    exclusions = draw.build_exclusion_sets(participants, {})
    for seed in range(50):
        result = draw.find_secret_santa_assignment(participants, exclusions, rng=random.Random(seed))
        gives = {a.giver.name: a.receiver.name for a in result}
        for giver, receiver in gives.items():
            assert gives[receiver] != giver


def test_precheck_skips_search_when_someone_has_no_candidates(monkeypatch):
    calls = []
    monkeypatch.setattr(draw, "_backtrack", lambda *args: calls.append(args))
    participants = [person("A"), person("B"), person("C")]
    exclusions = {"a": {"a", "b", "c"}, "b": {"b"}, "c": {"c"}}

    assert draw.find_secret_santa_assignment(participants, exclusions) is None
    assert calls == []


def test_precheck_skips_search_when_nobody_may_draw_someone(monkeypatch):
    calls = []
    monkeypatch.setattr(draw, "_backtrack", lambda *args: calls.append(args))
    participants = [person("A"), person("B"), person("C")]
    exclusions = {"a": {"a", "c"}, "b": {"b", "c"}, "c": {"c"}}

    assert draw.find_secret_santa_assignment(participants, exclusions) is None
    assert calls == []


def test_precheck_catches_two_givers_sharing_one_receiver():
    # A and B may only draw C.
    with pytest.raises(InfeasibleError) as info:
        draw.check_feasibility(["a", "b", "c"], [[2], [2], [0, 1]])
    assert info.value.reason == "no-matching"


def test_precheck_accepts_a_perfect_matching():
    draw.check_feasibility(["a", "b", "c", "d"], [[1], [2, 3], [3], [0, 1]])


def test_budget_spent_attempts_are_retried(monkeypatch):
    calls = []

    def too_slow(*args):
        calls.append(args)
        raise draw._BudgetSpent()

    monkeypatch.setattr(draw, "_backtrack", too_slow)
    participants = [person(n) for n in "ABCD"]
    exclusions = draw.build_exclusion_sets(participants, {})

    assert draw.find_secret_santa_assignment(participants, exclusions, max_tries=7) is None
    assert len(calls) == 7


def test_exhausted_search_is_not_repeated(monkeypatch):
    calls = []

    def dead_end(*args):
        calls.append(args)
        return None

    monkeypatch.setattr(draw, "_backtrack", dead_end)
    participants = [person(n) for n in "ABCD"]
    exclusions = draw.build_exclusion_sets(participants, {})

    assert draw.find_secret_santa_assignment(participants, exclusions, max_tries=7) is None
    assert len(calls) == 1


def test_most_constrained_giver_goes_first():
    candidates = [[1, 2, 3], [0], [0, 1], [0, 1, 2]]
    for seed in range(20):
        order = draw._giver_order(candidates, random.Random(seed))
        assert order[0] == 1
        assert order[1] == 2
        assert sorted(order[2:]) == [0, 3]


def test_backtracking_recovers_from_early_dead_end():
    # Without swaps only the two 3-cycles are valid.
    candidates = [[1, 2], [0, 2], [0, 1]]
    for seed in range(30):
        order = [0, 1, 2]
        receivers = draw._backtrack(order, candidates, False, random.Random(seed))
        assert receivers is not None
        assert sorted(receivers) == [0, 1, 2]
        assert all(g != r for g, r in zip(order, receivers))


def test_backtrack_reports_dead_end():
    # Both givers can only draw index 2.
    assert draw._backtrack([0, 1, 2], [[2], [2], [0, 1]], True, random.Random(0)) is None


def test_backtrack_stops_at_node_budget():
    candidates = [[1, 2, 3], [0, 2, 3], [0, 1, 3], [0, 1, 2]]
    with pytest.raises(draw._BudgetSpent):
        draw._backtrack([0, 1, 2, 3], candidates, True, random.Random(0), node_budget=2)
    assert draw._backtrack([0, 1, 2, 3], candidates, True, random.Random(0), node_budget=100) is not None


def test_search_does_not_mutate_participants():
    participants = couples(("A", "B"), ("C", "D"))
    snapshot = list(participants)
    exclusions = draw.build_exclusion_sets(participants, {})
    draw.find_secret_santa_assignment(participants, exclusions, rng=random.Random(1))
    assert participants == snapshot


def test_search_handles_large_group():
    participants = [person(f"P{i}") for i in range(200)]
    exclusions = draw.build_exclusion_sets(participants, {})
    result = draw.find_secret_santa_assignment(participants, exclusions, rng=random.Random(11))
    _assert_valid(result, participants, exclusions)


def test_ten_people_with_spouses_never_infeasible():
    participants = couples(("A", "B"), ("C", "D"), ("E", "F"), ("G", "H"), ("I", "J"))
    for _ in range(150):
        result = draw.generate_assignments(participants)
        assert len(result) == 10


def test_verify_assignments_detects_missing_and_excluded():
    participants = [person("A"), person("B"), person("C")]
    exclusions = draw.build_exclusion_sets(participants, {})
    bad = [draw.Assignment(participants[0], participants[0])]
    with pytest.raises(ValueError, match="verification failed"):
        draw.verify_assignments(bad, participants, exclusions)


# ---- driver ----

def test_driver_requires_three_participants(monkeypatch):
    monkeypatch.setattr(draw, "find_secret_santa_assignment", pytest.fail)
    with pytest.raises(ValidationError, match="at least 3"):
        draw.generate_assignments([person("A"), person("B")])


def test_driver_rejects_blank_name(monkeypatch):
    monkeypatch.setattr(draw, "find_secret_santa_assignment", pytest.fail)
    with pytest.raises(ValidationError, match="need a name"):
        draw.generate_assignments([person("A"), person("B"), person("   ", email="x@example.com")])


def test_driver_rejects_duplicate_names():
    with pytest.raises(ValidationError, match="unique"):
        draw.generate_assignments([person("Ann"), person("ann", email="a2@example.com"), person("Bo")])


def test_driver_reports_giver_without_candidates():
    participants = [person("A"), person("B"), person("C")]
    with pytest.raises(InfeasibleError) as info:
        draw.generate_assignments(participants, ["a > b, a > c"])
    assert info.value.reason == "no-candidates"
    assert info.value.giver == "a"


def test_driver_reports_no_matching_when_two_must_share_a_receiver():
    # A and B must both draw C.
    participants = [person("A", spouse="B"), person("B", spouse="A"), person("C")]
    with pytest.raises(InfeasibleError) as info:
        draw.generate_assignments(participants, max_tries=5)
    assert info.value.reason == "no-matching"
    assert info.value.attempts == 0


def _counting_backtrack(monkeypatch):
    calls = []
    real = draw._backtrack

    def counted(*args):
        calls.append(args)
        return real(*args)

    monkeypatch.setattr(draw, "_backtrack", counted)
    return calls


@pytest.mark.parametrize("size", [8, 9, 10])
def test_driver_fails_fast_when_everyone_excludes_one_person(monkeypatch, size):
    calls = _counting_backtrack(monkeypatch)
    participants = [person(f"P{i}") for i in range(size - 1)] + [person("Zed")]
    year1 = ", ".join(f"P{i} > Zed" for i in range(size - 1))

    with pytest.raises(InfeasibleError) as info:
        draw.generate_assignments(participants, [year1])
    assert info.value.reason == "no-candidates"
    assert info.value.receiver == "zed"
    assert info.value.giver is None
    assert "zed" in str(info.value)
    assert calls == []


def test_driver_stops_after_one_exhausted_search_at_default_bound(monkeypatch):
    # Each side of both couples may only draw the other, which is a swap.
    calls = _counting_backtrack(monkeypatch)
    participants = [person("A"), person("B"), person("C"), person("D")]
    history = "A > C, A > D, B > C, B > D, C > A, C > B, D > A, D > B"

    with pytest.raises(InfeasibleError) as info:
        draw.generate_assignments(participants, [history])
    assert info.value.reason == "exhausted"
    assert info.value.attempts == 1
    assert len(calls) == 1

    result = draw.generate_assignments(participants, [history], allow_reciprocal=True)
    gives = {a.giver.name: a.receiver.name for a in result}
    assert gives == {"A": "B", "B": "A", "C": "D", "D": "C"}


def test_driver_gives_up_after_max_tries_when_every_attempt_runs_out(monkeypatch):
    def too_slow(*args):
        raise draw._BudgetSpent()

    monkeypatch.setattr(draw, "_backtrack", too_slow)
    with pytest.raises(InfeasibleError) as info:
        draw.generate_assignments([person(n) for n in "ABCD"], max_tries=5)
    assert info.value.reason == "exhausted"
    assert info.value.attempts == 5


def test_driver_applies_history():
    participants = [person(n) for n in ["Alice", "Bob", "Carol", "Dana"]]
    for seed in range(30):
        result = draw.generate_assignments(
            participants, ["Alice → Bob, Carol-Dana", "Bob > Carol"], rng=random.Random(seed)
        )
        gives = {a.giver.name: a.receiver.name for a in result}
        assert gives["Alice"] != "Bob"
        assert gives["Carol"] != "Dana"
        assert gives["Bob"] != "Carol"


def test_driver_strict_history_raises_validation():
    participants = [person(n) for n in "ABCD"]
    with pytest.raises(ValidationError):
        draw.generate_assignments(participants, ["A ??? B"], strict_history=True)


def test_driver_seeded_runs_are_repeatable():
    participants = [person(n) for n in "ABCDEF"]
    first = draw.generate_assignments(participants, rng=random.Random(42))
    second = draw.generate_assignments(participants, rng=random.Random(42))
    assert first == second


def test_driver_produces_variety():
    participants = [person(n) for n in "ABCDE"]
    seen = set()
    for seed in range(50):
        result = draw.generate_assignments(participants, rng=random.Random(seed))
        seen.add(tuple(sorted((a.giver.name, a.receiver.name) for a in result)))
        if len(seen) >= 2:
            break
    assert len(seen) >= 2
