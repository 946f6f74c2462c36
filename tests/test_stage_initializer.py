"""
Tests for group stage initialization and the live draw.

Tests:
- Instant mode partitions registered teams into full groups, status active
- Injected rng makes the draw reproducible
- Team count, status, duplicate and re-initialization guards
- Live draw reveals fill groups in cursor order and activate on the last reveal
- Manual (non auto-assign) draw queues reveals and stays drawing
"""

import random

import pytest
from sqlmodel import Session

from stage_engine.models.tournament import STATUS_DRAFT, STATUS_GROUP_STAGE, STATUS_REGISTRATION_CLOSED
from stage_engine.services.errors import (
    AlreadyInitialized,
    InvalidInput,
    InvalidStageState,
    StageNotFound,
    TeamCountMismatch,
    TournamentNotFound,
)
from stage_engine.services.stage_config import GroupsStageState
from stage_engine.services.stage_initializer import initialize_groups_stage, reveal_next_team, shuffle_team_ids
from tests.factories import create_tournament, get_stage, make_team_ids


class TestInstantAssignment:
    def test_groups_partition_registered_teams(self, session: Session):
        tournament = create_tournament(session)

        state = initialize_groups_stage(session, tournament.id, "groups", rng=random.Random(7))

        assert state.status == "active"
        assert state.draw is None
        assert [g.id for g in state.groups] == ["group-A", "group-B"]
        assert all(len(g.teams) == 4 for g in state.groups)
        assigned = [t for g in state.groups for t in g.teams]
        assert sorted(assigned) == sorted(tournament.registered_team_ids)

    def test_state_and_tournament_status_persisted(self, session: Session):
        tournament = create_tournament(session)

        state = initialize_groups_stage(session, tournament.id, "groups", rng=random.Random(7))

        stage = get_stage(session, tournament.id, "groups")
        assert GroupsStageState.model_validate(stage.state_json) == state
        session.refresh(tournament)
        assert tournament.status == STATUS_GROUP_STAGE

    def test_same_seed_same_groups(self, session: Session):
        first = create_tournament(session)
        second = create_tournament(session)

        state_1 = initialize_groups_stage(session, first.id, "groups", rng=random.Random(42))
        state_2 = initialize_groups_stage(session, second.id, "groups", rng=random.Random(42))

        assert [g.teams for g in state_1.groups] == [g.teams for g in state_2.groups]

    def test_contiguous_chunks_of_the_shuffle(self, session: Session):
        tournament = create_tournament(session, group_count=3, teams_per_group=2, teams_advance_per_group=1)
        expected = shuffle_team_ids(tournament.registered_team_ids, random.Random(3))

        state = initialize_groups_stage(session, tournament.id, "groups", rng=random.Random(3))

        assert [g.teams for g in state.groups] == [expected[0:2], expected[2:4], expected[4:6]]


class TestGuards:
    def test_team_count_mismatch(self, session: Session):
        tournament = create_tournament(session, registered_team_ids=make_team_ids(7))

        with pytest.raises(TeamCountMismatch) as exc:
            initialize_groups_stage(session, tournament.id, "groups")

        assert exc.value.context["expected"] == 8
        assert exc.value.context["actual"] == 7
        assert get_stage(session, tournament.id, "groups").state_json is None

    def test_already_initialized(self, session: Session):
        tournament = create_tournament(session)
        initialize_groups_stage(session, tournament.id, "groups", rng=random.Random(1))
        before = get_stage(session, tournament.id, "groups").state_json

        with pytest.raises(AlreadyInitialized):
            initialize_groups_stage(session, tournament.id, "groups", rng=random.Random(2))

        assert get_stage(session, tournament.id, "groups").state_json == before

    def test_registration_must_be_closed(self, session: Session):
        tournament = create_tournament(session, status=STATUS_DRAFT)

        with pytest.raises(InvalidStageState) as exc:
            initialize_groups_stage(session, tournament.id, "groups")

        assert exc.value.context["stage_id"] == "groups"

        session.refresh(tournament)
        assert tournament.status == STATUS_DRAFT

    def test_duplicate_registered_team_rejected(self, session: Session):
        team_ids = make_team_ids(7) + ["team-01"]
        tournament = create_tournament(session, registered_team_ids=team_ids)

        with pytest.raises(InvalidInput):
            initialize_groups_stage(session, tournament.id, "groups")

    def test_playoffs_stage_cannot_be_initialized_as_groups(self, session: Session):
        tournament = create_tournament(session)

        with pytest.raises(InvalidStageState):
            initialize_groups_stage(session, tournament.id, "playoffs")

    def test_unknown_stage(self, session: Session):
        tournament = create_tournament(session)

        with pytest.raises(StageNotFound):
            initialize_groups_stage(session, tournament.id, "swiss")

    def test_unknown_tournament(self, session: Session):
        with pytest.raises(TournamentNotFound):
            initialize_groups_stage(session, 999, "groups")


class TestLiveDraw:
    def test_initialize_starts_drawing_with_full_pool(self, session: Session):
        tournament = create_tournament(session, use_live_draw=True)

        state = initialize_groups_stage(session, tournament.id, "groups", rng=random.Random(5))

        assert state.status == "drawing"
        assert sorted(state.draw.remaining_team_ids) == sorted(tournament.registered_team_ids)
        assert state.draw.cursor.group_index == 0
        assert state.draw.cursor.slot_index == 0
        assert state.draw.auto_assign is True
        assert all(g.teams == [] for g in state.groups)
        session.refresh(tournament)
        assert tournament.status == STATUS_GROUP_STAGE

    def test_reveals_fill_groups_in_cursor_order(self, session: Session):
        tournament = create_tournament(session, use_live_draw=True)
        pool = list(initialize_groups_stage(session, tournament.id, "groups", rng=random.Random(5)).draw.remaining_team_ids)

        for i, team_id in enumerate(pool):
            state = reveal_next_team(session, tournament.id, "groups")
            assert state.draw.revealed_team_id == team_id
            assert state.draw.revealed_at is not None
            assert len(state.draw.remaining_team_ids) == len(pool) - i - 1
            if i < len(pool) - 1:
                assert state.status == "drawing"

        assert state.status == "active"
        assert state.groups[0].teams == pool[:4]
        assert state.groups[1].teams == pool[4:]

    def test_each_reveal_is_persisted(self, session: Session):
        tournament = create_tournament(session, use_live_draw=True)
        initialize_groups_stage(session, tournament.id, "groups", rng=random.Random(5))

        state = reveal_next_team(session, tournament.id, "groups")

        stored = GroupsStageState.model_validate(get_stage(session, tournament.id, "groups").state_json)
        assert stored.groups[0].teams == [state.draw.revealed_team_id]
        assert stored.draw.cursor.slot_index == 1

    def test_cursor_moves_to_next_group(self, session: Session):
        tournament = create_tournament(session, use_live_draw=True)
        initialize_groups_stage(session, tournament.id, "groups", rng=random.Random(5))

        for _ in range(5):
            state = reveal_next_team(session, tournament.id, "groups")

        assert len(state.groups[0].teams) == 4
        assert len(state.groups[1].teams) == 1
        assert (state.draw.cursor.group_index, state.draw.cursor.slot_index) == (1, 1)

    def test_reveal_after_draw_finished(self, session: Session):
        tournament = create_tournament(session, use_live_draw=True)
        initialize_groups_stage(session, tournament.id, "groups", rng=random.Random(5))
        for _ in range(8):
            reveal_next_team(session, tournament.id, "groups")

        with pytest.raises(InvalidStageState):
            reveal_next_team(session, tournament.id, "groups")

    def test_reveal_on_instant_stage(self, session: Session):
        tournament = create_tournament(session)
        initialize_groups_stage(session, tournament.id, "groups")

        with pytest.raises(InvalidStageState):
            reveal_next_team(session, tournament.id, "groups")

    def test_reveal_before_initialize(self, session: Session):
        tournament = create_tournament(session, use_live_draw=True)

        with pytest.raises(InvalidStageState):
            reveal_next_team(session, tournament.id, "groups")

    def test_manual_draw_queues_reveals(self, session: Session):
        tournament = create_tournament(session, use_live_draw=True)
        pool = list(
            initialize_groups_stage(
                session, tournament.id, "groups", rng=random.Random(9), auto_assign=False
            ).draw.remaining_team_ids
        )

        for _ in pool:
            state = reveal_next_team(session, tournament.id, "groups")

        assert state.draw.pending_team_ids == pool
        assert state.draw.remaining_team_ids == []
        assert all(g.teams == [] for g in state.groups)
        assert state.status == "drawing"

        with pytest.raises(InvalidStageState):
            reveal_next_team(session, tournament.id, "groups")

    def test_instant_mode_ignores_registered_order(self, session: Session):
        tournament = create_tournament(session, status=STATUS_REGISTRATION_CLOSED)
        state = initialize_groups_stage(session, tournament.id, "groups", rng=random.Random(11))
        assigned = [t for g in state.groups for t in g.teams]
        assert assigned == shuffle_team_ids(tournament.registered_team_ids, random.Random(11))
