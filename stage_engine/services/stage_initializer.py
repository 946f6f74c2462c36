"""
Stage Initializer: registration closed → active group stage.

Two population modes share one runtime state shape (GroupsStageState):
- instant: shuffle once, slice into contiguous groups, status "active"
- live draw: shuffle into a pool, status "drawing"; each reveal_next_team()
  call is its own commit and the stage becomes "active" only when the pool
  is empty and every group is full

Readers (match generation, standings, UI) only ever look at status + groups,
so an "active" stage looks the same however it was populated.
"""

import logging
import random
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from stage_engine.models.stage import TournamentStage
from stage_engine.models.tournament import STATUS_GROUP_STAGE, STATUS_REGISTRATION_CLOSED, Tournament
from stage_engine.services.errors import AlreadyInitialized, InvalidInput, InvalidStageState, TeamCountMismatch
from stage_engine.services.stage_config import (
    DrawState,
    GroupsStageState,
    advance_group_status,
    create_empty_groups,
    dump_state,
    load_groups_config,
    load_groups_state,
    require_groups_state,
)
from stage_engine.utils.stage_guards import get_stage_or_raise, get_tournament_or_raise, require_tournament_status

logger = logging.getLogger(__name__)


def shuffle_team_ids(team_ids: Sequence[str], rng: Optional[random.Random] = None) -> List[str]:
    """Unbiased (Fisher-Yates) shuffle of a copy of team_ids."""
    shuffled = list(team_ids)
    (rng or random.Random()).shuffle(shuffled)
    return shuffled


def initialize_groups_stage(
    session: Session,
    tournament_id: int,
    stage_id: str = "groups",
    rng: Optional[random.Random] = None,
    auto_assign: bool = True,
) -> GroupsStageState:
    """
    Assign registered teams into groups and build the initial runtime state.

    Preconditions:
    - stage is a groups_round_robin stage that has not been initialized
      (AlreadyInitialized otherwise)
    - tournament status is registration-closed
    - registered teams are distinct and number group_count * teams_per_group
      (TeamCountMismatch otherwise)

    Writes the stage state and moves the tournament to group-stage in a
    single commit.

    Args:
        session: Database session
        tournament_id: Tournament ID
        stage_id: Groups stage key
        rng: Randomness source (injectable for reproducible draws)
        auto_assign: Live draw only; False queues reveals for manual placement

    Returns:
        The new GroupsStageState
    """
    tournament = get_tournament_or_raise(session, tournament_id)
    stage = get_stage_or_raise(session, tournament_id, stage_id)
    config = load_groups_config(stage)

    existing = load_groups_state(stage)
    if existing is not None and existing.status != "not_started":
        raise AlreadyInitialized(
            f"Groups stage {stage_id} is already initialized (status: {existing.status})",
            tournament_id=tournament_id,
            stage_id=stage_id,
        )

    require_tournament_status(tournament, [STATUS_REGISTRATION_CLOSED], "initialize groups", stage_id=stage_id)

    registered = list(tournament.registered_team_ids or [])
    if len(set(registered)) != len(registered):
        raise InvalidInput(
            "Registered team list contains duplicate team ids",
            tournament_id=tournament_id,
            stage_id=stage_id,
        )
    if len(registered) != config.expected_team_count:
        raise TeamCountMismatch(
            f"Expected {config.expected_team_count} teams, got {len(registered)}",
            tournament_id=tournament_id,
            stage_id=stage_id,
            expected=config.expected_team_count,
            actual=len(registered),
        )

    state = GroupsStageState(status="not_started", groups=create_empty_groups(config.group_count))

    if config.use_live_draw:
        state.draw = DrawState(
            remaining_team_ids=shuffle_team_ids(registered, rng),
            revealed_team_id=None,
            revealed_at=datetime.utcnow(),
            auto_assign=auto_assign,
        )
        advance_group_status(stage, state, "drawing")
    else:
        shuffled = shuffle_team_ids(registered, rng)
        size = config.teams_per_group
        for i, group in enumerate(state.groups):
            group.teams = shuffled[i * size : (i + 1) * size]
        advance_group_status(stage, state, "active")

    stage.state_json = dump_state(state)
    tournament.status = STATUS_GROUP_STAGE
    _commit(session, stage, tournament)

    logger.info(
        "Initialized groups stage %s for tournament %s: %d groups, mode=%s, status=%s",
        stage_id,
        tournament_id,
        config.group_count,
        "live_draw" if config.use_live_draw else "instant",
        state.status,
    )
    return state


def reveal_next_team(session: Session, tournament_id: int, stage_id: str = "groups") -> GroupsStageState:
    """
    One live-draw step: pop the next team from the pool and reveal it.

    With auto_assign the team goes to the cursor slot and the cursor moves on
    (slot index fastest, then the next group). Without it the team is queued
    in pending_team_ids; placing queued teams is not defined yet, so a manual
    draw stays in "drawing".

    Each call commits on its own. The stage turns "active" on the reveal that
    empties the pool and fills the last group.
    """
    stage = get_stage_or_raise(session, tournament_id, stage_id)
    config = load_groups_config(stage)
    state = require_groups_state(stage)

    if state.status != "drawing" or state.draw is None:
        raise InvalidStageState(
            f"Groups stage {stage_id} is not drawing (status: {state.status})",
            tournament_id=tournament_id,
            stage_id=stage_id,
        )

    draw = state.draw
    if not draw.remaining_team_ids:
        raise InvalidStageState(
            "Draw pool is empty; nothing left to reveal",
            tournament_id=tournament_id,
            stage_id=stage_id,
        )

    team_id = draw.remaining_team_ids.pop(0)
    draw.revealed_team_id = team_id
    draw.revealed_at = datetime.utcnow()

    if draw.auto_assign:
        _assign_at_cursor(stage, state, team_id, config.teams_per_group)
    else:
        draw.pending_team_ids.append(team_id)

    if not draw.remaining_team_ids and state.is_fully_assigned(config.teams_per_group):
        advance_group_status(stage, state, "active")

    stage.state_json = dump_state(state)
    _commit(session, stage)

    logger.info(
        "Draw reveal for tournament %s stage %s: team=%s remaining=%d status=%s",
        tournament_id,
        stage_id,
        team_id,
        len(draw.remaining_team_ids),
        state.status,
    )
    return state


def _assign_at_cursor(stage: TournamentStage, state: GroupsStageState, team_id: str, teams_per_group: int) -> None:
    cursor = state.draw.cursor
    if cursor.group_index >= len(state.groups):
        raise InvalidStageState(
            "Draw cursor is past the last group",
            tournament_id=stage.tournament_id,
            stage_id=stage.stage_key,
        )
    group = state.groups[cursor.group_index]
    if len(group.teams) != cursor.slot_index:
        raise InvalidStageState(
            f"Draw cursor slot {cursor.slot_index} does not match {group.name} size {len(group.teams)}",
            tournament_id=stage.tournament_id,
            stage_id=stage.stage_key,
            group_id=group.id,
        )

    group.teams.append(team_id)

    cursor.slot_index += 1
    if cursor.slot_index >= teams_per_group:
        cursor.group_index += 1
        cursor.slot_index = 0


def _commit(session: Session, *rows) -> None:
    for row in rows:
        if isinstance(row, Tournament):
            row.updated_at = datetime.utcnow()
        session.add(row)
    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Stage state update failed, transaction rolled back")
        raise
    for row in rows:
        session.refresh(row)
