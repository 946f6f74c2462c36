"""
Bracket Generator boundary.

The seeder hands a seeded team array (index 0 = seed 1) to a bracket
generator and treats it as a black box. Contract:

- seeded_team_ids has exactly team_count distinct ids
- the generator's first round pairs seed k with seed N+1-k
  (1 vs N, 2 vs N-1, ...), so first-round match i (0-based) is
  seeded_team_ids[i] vs seeded_team_ids[N-1-i]
- the generator returns new Match rows and does NOT commit; the seeder
  commits them together with the stage transition

The default generator below only materializes the winners' first round,
which is all the engine itself needs to guarantee. Anything deeper (later
rounds, losers' bracket, rendering) belongs to the bracket subsystem.
"""

from typing import Callable, List, Sequence, Tuple

from sqlmodel import Session

from stage_engine.models.match import Match
from stage_engine.models.stage import STAGE_TYPE_PLAYOFFS_DOUBLE_ELIM, TournamentStage
from stage_engine.models.tournament import Tournament
from stage_engine.services.errors import InvalidInput
from stage_engine.services.stage_config import load_playoffs_config

BracketGenerator = Callable[[Session, Tournament, TournamentStage, List[str]], List[Match]]


def seeded_first_round(seeded_team_ids: Sequence[str]) -> List[Tuple[str, str]]:
    """Standard seeding pattern: seed 1 vs seed N, seed 2 vs seed N-1, etc."""
    n = len(seeded_team_ids)
    return [(seeded_team_ids[i], seeded_team_ids[n - 1 - i]) for i in range(n // 2)]


def create_first_round_matches(
    session: Session,
    tournament: Tournament,
    stage: TournamentStage,
    seeded_team_ids: List[str],
) -> List[Match]:
    """Default generator: winners round 1 of the playoffs stage, match numbers 1..N/2."""
    config = load_playoffs_config(stage)
    if len(seeded_team_ids) != config.team_count:
        raise InvalidInput(
            f"Expected {config.team_count} seeded teams, got {len(seeded_team_ids)}",
            tournament_id=tournament.id,
            stage_id=stage.stage_key,
        )

    matches = []
    for idx, (team1_id, team2_id) in enumerate(seeded_first_round(seeded_team_ids)):
        match = Match(
            tournament_id=tournament.id,
            stage_id=stage.stage_key,
            stage_type=STAGE_TYPE_PLAYOFFS_DOUBLE_ELIM,
            round=1,
            bracket_type="winners",
            match_number=idx + 1,
            match_format=config.match_format,
            team1_id=team1_id,
            team2_id=team2_id,
            team1_score=0,
            team2_score=0,
            is_complete=False,
            match_state="scheduled",
        )
        session.add(match)
        matches.append(match)
    return matches
