"""
Match Generator: one matchday of group play at a time.

A matchday r is round r of the circle-method schedule of every group,
materialized as Match rows in a single transaction. A matchday is generated
at most once: a pre-check rejects repeats, and the derived match_number plus
the (tournament_id, match_number) unique constraint reject a concurrent
second writer that slipped past the pre-check.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from stage_engine.models.match import Match
from stage_engine.models.stage import STAGE_TYPE_GROUPS_ROUND_ROBIN, TournamentStage
from stage_engine.services.errors import DuplicateGeneration, InvalidInput, InvalidStageState
from stage_engine.services.round_robin import round_pairings
from stage_engine.services.stage_config import (
    GroupsRoundRobinConfig,
    GroupsStageState,
    load_groups_config,
    require_groups_state,
)
from stage_engine.utils.stage_guards import get_stage_or_raise

logger = logging.getLogger(__name__)

# Group matches live above the playoff range (playoff numbers start at 1)
MATCH_NUMBER_BASE = 100000
MATCHDAY_STRIDE = 10000
GROUP_STRIDE = 100


def group_match_number(matchday: int, group_index: int, pair_index: int) -> int:
    """
    Deterministic match number for a group match.

    Unique without a central counter as long as group_index < 100 and
    pair_index < 99, which stage config validation guarantees (<= 26 groups,
    <= 99 pairs per round).
    """
    return MATCH_NUMBER_BASE + matchday * MATCHDAY_STRIDE + group_index * GROUP_STRIDE + pair_index + 1


def build_matchday_matches(
    tournament_id: int,
    stage_id: str,
    config: GroupsRoundRobinConfig,
    state: GroupsStageState,
    matchday: int,
) -> List[Match]:
    """Build (but do not persist) every group's matches for one matchday."""
    matches: List[Match] = []
    for group_index, group in enumerate(state.groups):
        for pair_index, (team1_id, team2_id) in enumerate(round_pairings(group.teams, matchday)):
            matches.append(
                Match(
                    tournament_id=tournament_id,
                    stage_id=stage_id,
                    stage_type=STAGE_TYPE_GROUPS_ROUND_ROBIN,
                    group_id=group.id,
                    matchday=matchday,
                    round=matchday,
                    match_number=group_match_number(matchday, group_index, pair_index),
                    match_format=config.match_format,
                    team1_id=team1_id,
                    team2_id=team2_id,
                    team1_score=0,
                    team2_score=0,
                    winner_id=None,
                    is_complete=False,
                    match_state="scheduled",
                )
            )
    return matches


def matchday_exists(session: Session, tournament_id: int, stage_id: str, matchday: int) -> bool:
    existing = session.exec(
        select(Match.id)
        .where(
            Match.tournament_id == tournament_id,
            Match.stage_id == stage_id,
            Match.matchday == matchday,
        )
        .limit(1)
    ).first()
    return existing is not None


def generate_matchday(session: Session, tournament_id: int, stage_id: str, matchday: int) -> List[Match]:
    """
    Create all matches for one matchday across every group, atomically.

    Raises:
        InvalidStageState: stage not active, or a group is not full
        InvalidInput: matchday outside 1..teams_per_group-1
        DuplicateGeneration: matches for (stage_id, matchday) already exist

    Returns:
        The created matches, ordered by match_number
    """
    stage = get_stage_or_raise(session, tournament_id, stage_id)
    config = load_groups_config(stage)
    state = require_groups_state(stage)

    _require_schedulable(stage, config, state)

    if matchday < 1 or matchday > config.matchdays:
        raise InvalidInput(
            f"Invalid matchday {matchday}. Expected 1..{config.matchdays}",
            tournament_id=tournament_id,
            stage_id=stage_id,
            matchday=matchday,
        )

    if matchday_exists(session, tournament_id, stage_id, matchday):
        raise DuplicateGeneration(
            f"Matches already exist for stage {stage_id} matchday {matchday}",
            tournament_id=tournament_id,
            stage_id=stage_id,
            matchday=matchday,
        )

    matches = build_matchday_matches(tournament_id, stage_id, config, state, matchday)

    try:
        session.add_all(matches)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        if matchday_exists(session, tournament_id, stage_id, matchday):
            # A concurrent writer generated this matchday first
            raise DuplicateGeneration(
                f"Matches already exist for stage {stage_id} matchday {matchday}",
                tournament_id=tournament_id,
                stage_id=stage_id,
                matchday=matchday,
            ) from e
        logger.error(
            "Match number collision outside stage %s (tournament=%s matchday=%s), transaction rolled back",
            stage_id,
            tournament_id,
            matchday,
        )
        raise InvalidStageState(
            f"Match numbers for stage {stage_id} matchday {matchday} are already used by another stage",
            tournament_id=tournament_id,
            stage_id=stage_id,
            matchday=matchday,
        ) from e
    except SQLAlchemyError:
        session.rollback()
        logger.exception(
            "Matchday generation failed, transaction rolled back (tournament=%s stage=%s matchday=%s)",
            tournament_id,
            stage_id,
            matchday,
        )
        raise

    for match in matches:
        session.refresh(match)

    logger.info(
        "Generated matchday %d for tournament %s stage %s: %d matches across %d groups",
        matchday,
        tournament_id,
        stage_id,
        len(matches),
        len(state.groups),
    )
    return matches


@dataclass
class GenerateAllResult:
    created_matchdays: List[int] = field(default_factory=list)
    skipped_matchdays: List[int] = field(default_factory=list)
    matches_created: int = 0

    def to_dict(self):
        return {
            "created_matchdays": self.created_matchdays,
            "skipped_matchdays": self.skipped_matchdays,
            "matches_created": self.matches_created,
        }


def generate_all_matchdays(session: Session, tournament_id: int, stage_id: str) -> GenerateAllResult:
    """
    Generate every matchday in increasing order.

    Sequential on purpose; each matchday is its own transaction and already
    generated matchdays are skipped, so re-running after an interruption only
    fills in what is missing.
    """
    stage = get_stage_or_raise(session, tournament_id, stage_id)
    config = load_groups_config(stage)

    result = GenerateAllResult()
    for matchday in range(1, config.matchdays + 1):
        try:
            created = generate_matchday(session, tournament_id, stage_id, matchday)
        except DuplicateGeneration:
            logger.warning(
                "Matchday %d already generated for tournament %s stage %s; skipping",
                matchday,
                tournament_id,
                stage_id,
            )
            result.skipped_matchdays.append(matchday)
            continue
        result.created_matchdays.append(matchday)
        result.matches_created += len(created)

    return result


def list_stage_matches(session: Session, tournament_id: int, stage_id: str) -> List[Match]:
    """Stable order: matchday, then match_number."""
    return list(
        session.exec(
            select(Match)
            .where(Match.tournament_id == tournament_id, Match.stage_id == stage_id)
            .order_by(Match.matchday, Match.match_number)
        ).all()
    )


def _require_schedulable(stage: TournamentStage, config: GroupsRoundRobinConfig, state: GroupsStageState) -> None:
    if state.status != "active":
        raise InvalidStageState(
            f"Groups stage {stage.stage_key} must be active to generate matches (status: {state.status})",
            tournament_id=stage.tournament_id,
            stage_id=stage.stage_key,
        )
    for group in state.groups:
        if len(group.teams) != config.teams_per_group:
            raise InvalidStageState(
                f"{group.name} is not fully assigned yet ({len(group.teams)}/{config.teams_per_group})",
                tournament_id=stage.tournament_id,
                stage_id=stage.stage_key,
                group_id=group.id,
            )
