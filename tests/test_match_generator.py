"""
Tests for matchday generation.

Tests:
- One matchday creates round r of every group, with derived match numbers
- Generating the same matchday twice is rejected and creates nothing
- Matchday range and stage state guards
- A conflicting insert rolls the whole matchday back
- Generate-all covers the full round robin and resumes after interruption
"""

import random
from itertools import combinations

import pytest
from sqlmodel import Session

from stage_engine.models.match import Match
from stage_engine.services.errors import DuplicateGeneration, InvalidInput, InvalidStageState
from stage_engine.services.match_generator import (
    generate_all_matchdays,
    generate_matchday,
    group_match_number,
    list_stage_matches,
)
from stage_engine.services.round_robin import round_pairings
from stage_engine.services.stage_config import GroupsStageState
from stage_engine.services.stage_initializer import initialize_groups_stage, reveal_next_team
from tests.factories import create_tournament, get_stage, stage_matches


def _active_tournament(session: Session, **kwargs):
    tournament = create_tournament(session, **kwargs)
    initialize_groups_stage(session, tournament.id, "groups", rng=random.Random(13))
    return tournament


def _groups(session: Session, tournament_id: int):
    return GroupsStageState.model_validate(get_stage(session, tournament_id, "groups").state_json).groups


def test_group_match_numbers():
    assert group_match_number(1, 0, 0) == 110001
    assert group_match_number(1, 1, 1) == 110102
    assert group_match_number(3, 25, 98) == 132599
    assert group_match_number(2, 0, 0) > group_match_number(1, 25, 98)


class TestGenerateMatchday:
    def test_creates_round_for_every_group(self, session: Session):
        tournament = _active_tournament(session)

        matches = generate_matchday(session, tournament.id, "groups", 1)

        assert len(matches) == 4
        groups = _groups(session, tournament.id)
        for group_index, group in enumerate(groups):
            group_matches = [m for m in matches if m.group_id == group.id]
            assert [(m.team1_id, m.team2_id) for m in group_matches] == round_pairings(group.teams, 1)
            assert [m.match_number for m in group_matches] == [
                group_match_number(1, group_index, 0),
                group_match_number(1, group_index, 1),
            ]

    def test_match_defaults(self, session: Session):
        tournament = _active_tournament(session, match_format="BO3")

        matches = generate_matchday(session, tournament.id, "groups", 2)

        for m in matches:
            assert m.id is not None
            assert m.matchday == 2
            assert m.round == 2
            assert m.stage_id == "groups"
            assert m.stage_type == "groups_round_robin"
            assert m.match_format == "BO3"
            assert (m.team1_score, m.team2_score) == (0, 0)
            assert m.is_complete is False
            assert m.winner_id is None
            assert m.match_state == "scheduled"

    def test_second_generation_rejected(self, session: Session):
        tournament = _active_tournament(session)
        generate_matchday(session, tournament.id, "groups", 1)

        with pytest.raises(DuplicateGeneration) as exc:
            generate_matchday(session, tournament.id, "groups", 1)

        assert exc.value.context["matchday"] == 1
        assert exc.value.benign_on_retry is True
        assert len(stage_matches(session, tournament.id, "groups")) == 4

    @pytest.mark.parametrize("matchday", [0, 4, -2])
    def test_matchday_out_of_range(self, session: Session, matchday):
        tournament = _active_tournament(session)

        with pytest.raises(InvalidInput) as exc:
            generate_matchday(session, tournament.id, "groups", matchday)

        assert exc.value.context["matchday"] == matchday
        assert stage_matches(session, tournament.id, "groups") == []

    def test_stage_not_initialized(self, session: Session):
        tournament = create_tournament(session)

        with pytest.raises(InvalidStageState):
            generate_matchday(session, tournament.id, "groups", 1)

    def test_stage_still_drawing(self, session: Session):
        tournament = create_tournament(session, use_live_draw=True)
        initialize_groups_stage(session, tournament.id, "groups", rng=random.Random(1))
        for _ in range(3):
            reveal_next_team(session, tournament.id, "groups")

        with pytest.raises(InvalidStageState):
            generate_matchday(session, tournament.id, "groups", 1)

        assert stage_matches(session, tournament.id, "groups") == []

    def test_number_taken_by_other_stage_rolls_back_whole_matchday(self, session: Session):
        tournament = _active_tournament(session)
        # Occupies the number of group B's second pairing, without tagging matchday 1
        session.add(
            Match(
                tournament_id=tournament.id,
                stage_id="exhibition",
                stage_type="groups_round_robin",
                match_number=group_match_number(1, 1, 1),
            )
        )
        session.commit()

        # Not reported as "already generated": nothing of matchday 1 exists
        with pytest.raises(InvalidStageState) as exc:
            generate_matchday(session, tournament.id, "groups", 1)

        assert not isinstance(exc.value, DuplicateGeneration)
        assert exc.value.benign_on_retry is False
        assert exc.value.context["matchday"] == 1
        assert stage_matches(session, tournament.id, "groups") == []

        with pytest.raises(InvalidStageState):
            generate_all_matchdays(session, tournament.id, "groups")

        # The rest of the schedule is unaffected
        assert len(generate_matchday(session, tournament.id, "groups", 2)) == 4


class TestGenerateAll:
    def test_full_round_robin(self, session: Session):
        tournament = _active_tournament(session)

        result = generate_all_matchdays(session, tournament.id, "groups")

        assert result.created_matchdays == [1, 2, 3]
        assert result.skipped_matchdays == []
        assert result.matches_created == 12

        matches = stage_matches(session, tournament.id, "groups")
        assert len({m.match_number for m in matches}) == len(matches) == 12
        for group in _groups(session, tournament.id):
            pairs = [frozenset((m.team1_id, m.team2_id)) for m in matches if m.group_id == group.id]
            assert sorted(pairs, key=sorted) == sorted(
                (frozenset(c) for c in combinations(group.teams, 2)), key=sorted
            )

    def test_resumes_after_interruption(self, session: Session):
        tournament = _active_tournament(session)
        generate_matchday(session, tournament.id, "groups", 2)

        result = generate_all_matchdays(session, tournament.id, "groups")

        assert result.created_matchdays == [1, 3]
        assert result.skipped_matchdays == [2]
        assert result.matches_created == 8
        assert len(stage_matches(session, tournament.id, "groups")) == 12

    def test_rerun_is_noop(self, session: Session):
        tournament = _active_tournament(session)
        generate_all_matchdays(session, tournament.id, "groups")

        result = generate_all_matchdays(session, tournament.id, "groups")

        assert result.to_dict() == {"created_matchdays": [], "skipped_matchdays": [1, 2, 3], "matches_created": 0}

    def test_listing_order(self, session: Session):
        tournament = _active_tournament(session, group_count=3, teams_per_group=6, teams_advance_per_group=1)
        generate_all_matchdays(session, tournament.id, "groups")

        matches = list_stage_matches(session, tournament.id, "groups")

        assert len(matches) == 3 * 15
        keys = [(m.matchday, m.match_number) for m in matches]
        assert keys == sorted(keys)
