"""
Bracket Seeder: completed groups stage → seeded playoffs.

Seed-mirroring contract with the bracket generator (see bracket_generator):
the generator's first round pairs seed k with seed N+1-k. To make template
matchup i (0-based, declared order) come out as a first-round match, its
first team is placed at seed i+1 and its opponent at seed N-i:

    seeds[i]         = matchup[i].team_a     (seed i+1)
    seeds[N - 1 - i] = matchup[i].team_b     (seed N-i)

Example, N=4, template [A1 vs B2, B1 vs A2]:
    seeds = [A1, B1, A2, B2]  → round 1: A1 vs B2, B1 vs A2

No partial bracket: any mapping error aborts before anything is written, and
the stage transition plus the generated bracket are committed together.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session

from stage_engine.models.match import Match
from stage_engine.models.tournament import STATUS_IN_PROGRESS
from stage_engine.services.bracket_generator import BracketGenerator, create_first_round_matches
from stage_engine.services.errors import (
    AlreadyInitialized,
    DuplicateTeamInBracket,
    InvalidPairingMapping,
    InvalidStageState,
    StageNotComplete,
)
from stage_engine.services.stage_config import (
    FixedPlayoffPairing,
    GroupsStageState,
    PlayoffsStageState,
    advance_group_status,
    dump_state,
    load_groups_config,
    load_playoffs_config,
    load_playoffs_state,
    require_groups_state,
)
from stage_engine.services.standings import StandingsResult, compute_group_standings
from stage_engine.utils.stage_guards import get_stage_or_raise, get_tournament_or_raise

logger = logging.getLogger(__name__)


@dataclass
class SeedingResult:
    seeded_team_ids: List[str]
    matchups: List[Tuple[str, str]]
    bracket_match_ids: List[int] = field(default_factory=list)

    def to_dict(self):
        return {
            "seeded_team_ids": self.seeded_team_ids,
            "matchups": [list(m) for m in self.matchups],
            "bracket_match_ids": self.bracket_match_ids,
        }


def advancing_placements(
    state: GroupsStageState,
    standings: StandingsResult,
    teams_advance_per_group: int,
    tournament_id: Optional[int] = None,
    stage_id: Optional[str] = None,
) -> Dict[str, List[str]]:
    """Group letter → advancing team ids in finishing order (index 0 = 1st place)."""
    placements: Dict[str, List[str]] = {}
    for group in state.groups:
        rows = standings.standings_by_group_id.get(group.id) or []
        if len(rows) < teams_advance_per_group:
            raise InvalidStageState(
                f"Cannot determine advancing teams for {group.name}",
                tournament_id=tournament_id,
                stage_id=stage_id,
                group_id=group.id,
            )
        placements[group.letter] = [row.team_id for row in rows[:teams_advance_per_group]]
    return placements


def resolve_round1_matchups(
    pairings: Sequence[FixedPlayoffPairing],
    placements: Dict[str, List[str]],
    team_count: int,
    tournament_id: Optional[int] = None,
    stage_id: Optional[str] = None,
) -> List[Tuple[str, str]]:
    """Turn the fixed template into concrete (team_a, team_b) matchups, in declared order."""
    if len(pairings) != team_count // 2:
        raise InvalidPairingMapping(
            f"Expected {team_count // 2} round-1 matchups, got {len(pairings)}",
            tournament_id=tournament_id,
            stage_id=stage_id,
        )

    def lookup(letter: str, place: int) -> Optional[str]:
        teams = placements.get(letter)
        if teams is None or place < 1 or place > len(teams):
            return None
        return teams[place - 1]

    matchups: List[Tuple[str, str]] = []
    for index, p in enumerate(pairings):
        a = lookup(p.group_a, p.place_a)
        b = lookup(p.group_b, p.place_b)
        if not a or not b:
            raise InvalidPairingMapping(
                f"Invalid playoff pairing mapping: {p.label()}",
                tournament_id=tournament_id,
                stage_id=stage_id,
                pairing_index=index,
            )
        matchups.append((a, b))
    return matchups


def build_seed_array(
    matchups: Sequence[Tuple[str, str]],
    team_count: int,
    tournament_id: Optional[int] = None,
    stage_id: Optional[str] = None,
) -> List[str]:
    """Mirror matchups into seeds: matchup i → seed i+1 vs seed N-i."""
    seeds: List[Optional[str]] = [None] * team_count
    used = set()
    for i, (team_a, team_b) in enumerate(matchups):
        for team_id in (team_a, team_b):
            if team_id in used:
                raise DuplicateTeamInBracket(
                    f"Team {team_id} appears more than once in playoff round-1 mapping",
                    tournament_id=tournament_id,
                    stage_id=stage_id,
                    team_id=team_id,
                    pairing_index=i,
                )
            used.add(team_id)
        seeds[i] = team_a
        seeds[team_count - 1 - i] = team_b

    if any(team_id is None for team_id in seeds):
        raise InvalidPairingMapping(
            "Failed to construct playoff seeding array: empty seed slot",
            tournament_id=tournament_id,
            stage_id=stage_id,
        )
    return seeds


def seed_playoffs_from_groups(
    session: Session,
    tournament_id: int,
    groups_stage_id: str = "groups",
    playoffs_stage_id: str = "playoffs",
    bracket_generator: Optional[BracketGenerator] = None,
) -> SeedingResult:
    """
    Close the groups stage and start the playoffs from its final standings.

    Steps:
    0. Validate stages, playoffs not yet started, groups stage active
    1. Standings must be complete (StageNotComplete otherwise)
    2. Take each group's top teams_advance_per_group
    3. Resolve the fixed round-1 template (InvalidPairingMapping)
    4. Mirror into a seed array (DuplicateTeamInBracket)
    5. Single commit: groups completed, playoffs active with the seed array,
       tournament in-progress, bracket generator output

    Args:
        session: Database session
        tournament_id: Tournament ID
        groups_stage_id: Groups stage key
        playoffs_stage_id: Playoffs stage key
        bracket_generator: Consumer of the seed array; defaults to
            create_first_round_matches

    Returns:
        SeedingResult with the seed array and resolved matchups
    """
    generator = bracket_generator or create_first_round_matches

    tournament = get_tournament_or_raise(session, tournament_id)
    groups_stage = get_stage_or_raise(session, tournament_id, groups_stage_id)
    playoffs_stage = get_stage_or_raise(session, tournament_id, playoffs_stage_id)
    groups_config = load_groups_config(groups_stage)
    playoffs_config = load_playoffs_config(playoffs_stage)

    existing = load_playoffs_state(playoffs_stage)
    if existing is not None and existing.status != "not_started":
        raise AlreadyInitialized(
            f"Playoffs stage {playoffs_stage_id} already started (status: {existing.status})",
            tournament_id=tournament_id,
            stage_id=playoffs_stage_id,
        )

    groups_state = require_groups_state(groups_stage)
    if groups_state.status != "active":
        raise InvalidStageState(
            f"Groups stage {groups_stage_id} must be active to seed playoffs (status: {groups_state.status})",
            tournament_id=tournament_id,
            stage_id=groups_stage_id,
        )

    standings = compute_group_standings(session, tournament_id, groups_stage_id)
    if not standings.is_complete:
        incomplete = sorted(
            group_id
            for group_id, count in standings.completed_by_group_id.items()
            if count != standings.expected_matches_per_group
        )
        raise StageNotComplete(
            "Group stage is not complete. All group matches must be completed before starting playoffs.",
            tournament_id=tournament_id,
            stage_id=groups_stage_id,
            incomplete_groups=incomplete,
        )

    placements = advancing_placements(
        groups_state, standings, groups_config.teams_advance_per_group, tournament_id, groups_stage_id
    )
    matchups = resolve_round1_matchups(
        playoffs_config.fixed_round1_pairings,
        placements,
        playoffs_config.team_count,
        tournament_id,
        playoffs_stage_id,
    )
    seeds = build_seed_array(matchups, playoffs_config.team_count, tournament_id, playoffs_stage_id)

    try:
        advance_group_status(groups_stage, groups_state, "completed")
        groups_stage.state_json = dump_state(groups_state)
        playoffs_stage.state_json = dump_state(PlayoffsStageState(status="active", advancing_team_ids=list(seeds)))
        tournament.status = STATUS_IN_PROGRESS
        tournament.updated_at = datetime.utcnow()
        session.add(groups_stage)
        session.add(playoffs_stage)
        session.add(tournament)

        bracket_matches: List[Match] = generator(session, tournament, playoffs_stage, list(seeds))
        session.add_all(bracket_matches)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception(
            "Playoff seeding failed, transaction rolled back (tournament=%s groups=%s playoffs=%s)",
            tournament_id,
            groups_stage_id,
            playoffs_stage_id,
        )
        raise

    for match in bracket_matches:
        session.refresh(match)

    logger.info(
        "Seeded playoffs stage %s for tournament %s with %d teams; groups stage %s completed",
        playoffs_stage_id,
        tournament_id,
        len(seeds),
        groups_stage_id,
    )
    return SeedingResult(
        seeded_team_ids=list(seeds),
        matchups=matchups,
        bracket_match_ids=[m.id for m in bracket_matches],
    )
