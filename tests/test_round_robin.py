"""
Tests for circle-method round robin pairings.

Tests:
- Four-team schedule (round 1 = A-D, B-C with A fixed)
- Completeness: every unordered pair exactly once, disjoint rounds
- Determinism
- Orientation alternates between odd and even rounds
- Invalid team counts and round numbers
"""

from itertools import combinations

import pytest

from stage_engine.services.errors import InvalidInput
from stage_engine.services.round_robin import (
    generate_round_robin_rounds,
    round_count,
    round_pairings,
    round_robin_match_count,
)


class TestFourTeams:
    def test_round_one_pairs_first_with_last(self):
        rounds = generate_round_robin_rounds(["A", "B", "C", "D"])
        assert len(rounds) == 3
        assert set(rounds[0]) == {("A", "D"), ("B", "C")}

    def test_full_schedule(self):
        rounds = generate_round_robin_rounds(["A", "B", "C", "D"])
        assert rounds == [
            [("A", "D"), ("B", "C")],
            [("C", "A"), ("B", "D")],
            [("A", "B"), ("C", "D")],
        ]

    def test_all_six_pairs_once(self):
        rounds = generate_round_robin_rounds(["A", "B", "C", "D"])
        pairs = [frozenset(p) for r in rounds for p in r]
        assert len(pairs) == 6
        assert set(pairs) == {frozenset(c) for c in combinations("ABCD", 2)}


class TestCompleteness:
    @pytest.mark.parametrize("n", [2, 4, 6, 8, 10, 16])
    def test_every_pair_exactly_once(self, n):
        teams = [f"t{i}" for i in range(n)]
        rounds = generate_round_robin_rounds(teams)

        assert len(rounds) == round_count(n) == n - 1
        pairs = [frozenset(p) for r in rounds for p in r]
        assert len(pairs) == round_robin_match_count(n)
        assert len(set(pairs)) == len(pairs)
        assert set(pairs) == {frozenset(c) for c in combinations(teams, 2)}

    @pytest.mark.parametrize("n", [4, 6, 8, 12])
    def test_each_round_is_disjoint(self, n):
        teams = [f"t{i}" for i in range(n)]
        for pairings in generate_round_robin_rounds(teams):
            assert len(pairings) == n // 2
            seen = [team for pair in pairings for team in pair]
            assert sorted(seen) == sorted(teams)

    def test_two_teams_single_round(self):
        assert generate_round_robin_rounds(["x", "y"]) == [[("x", "y")]]


class TestDeterminism:
    def test_same_input_same_schedule(self):
        teams = ["g", "c", "a", "f", "e", "b"]
        assert generate_round_robin_rounds(teams) == generate_round_robin_rounds(list(teams))

    def test_input_not_mutated(self):
        teams = ["A", "B", "C", "D"]
        generate_round_robin_rounds(teams)
        assert teams == ["A", "B", "C", "D"]

    def test_round_pairings_matches_full_schedule(self):
        teams = [f"t{i}" for i in range(8)]
        rounds = generate_round_robin_rounds(teams)
        for r in range(1, 8):
            assert round_pairings(teams, r) == rounds[r - 1]


class TestOrientation:
    def test_fixed_team_alternates_sides(self):
        rounds = generate_round_robin_rounds(["A", "B", "C", "D", "E", "F"])
        sides = []
        for pairings in rounds:
            pair = next(p for p in pairings if "A" in p)
            sides.append(pair.index("A"))
        assert sides == [0, 1, 0, 1, 0]


class TestInvalidInput:
    @pytest.mark.parametrize("teams", [[], ["A"], ["A", "B", "C"], ["A", "B", "C", "D", "E"]])
    def test_rejects_odd_or_too_small(self, teams):
        with pytest.raises(InvalidInput):
            generate_round_robin_rounds(teams)

    @pytest.mark.parametrize("round_number", [0, 4, -1])
    def test_round_out_of_range(self, round_number):
        with pytest.raises(InvalidInput) as exc:
            round_pairings(["A", "B", "C", "D"], round_number)
        assert exc.value.context["team_count"] == 4
