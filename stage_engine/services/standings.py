"""
Standings Calculator: ranked group tables, recomputed from match rows.

Standings are never stored. Every call rebuilds them from the completed
matches tagged with the stage, so repeated calls over the same committed data
return the same table and there is no counter to drift out of sync.

Ranking applies the configured tiebreakers in order, cluster by cluster:
rows tied on every rule so far are split by the next rule only among
themselves. head_to_head therefore compares just the teams still tied at that
point. Whatever is still tied after the last rule is ordered by team id, so
the output is a strict total order.
"""

from dataclasses import asdict, dataclass, field
from itertools import groupby
from typing import Callable, Dict, Iterable, List, Sequence, Tuple

from sqlmodel import Session, select

from stage_engine.models.match import Match
from stage_engine.services.errors import InvalidStageState
from stage_engine.services.round_robin import round_robin_match_count
from stage_engine.services.stage_config import (
    GroupsRoundRobinConfig,
    GroupsStageState,
    load_groups_config,
    require_groups_state,
)
from stage_engine.utils.stage_guards import get_stage_or_raise


@dataclass
class StandingRow:
    team_id: str
    played: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    points: int = 0
    rounds_for: int = 0
    rounds_against: int = 0
    round_diff: int = 0

    def to_dict(self):
        return asdict(self)


@dataclass
class StandingsResult:
    standings_by_group_id: Dict[str, List[StandingRow]]
    is_complete: bool
    completed_by_group_id: Dict[str, int] = field(default_factory=dict)
    expected_matches_per_group: int = 0

    def to_dict(self):
        return {
            "standings_by_group_id": {
                group_id: [row.to_dict() for row in rows] for group_id, rows in self.standings_by_group_id.items()
            },
            "is_complete": self.is_complete,
            "completed_by_group_id": self.completed_by_group_id,
            "expected_matches_per_group": self.expected_matches_per_group,
        }


def is_countable(match: Match) -> bool:
    """A match counts toward standings once complete with both teams and integer scores."""
    if not match.group_id or not match.is_complete:
        return False
    if not match.team1_id or not match.team2_id:
        return False
    return _is_score(match.team1_score) and _is_score(match.team2_score)


def _is_score(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _apply_result(a: StandingRow, b: StandingRow, score_a: int, score_b: int, config: GroupsRoundRobinConfig) -> None:
    a.played += 1
    b.played += 1
    a.rounds_for += score_a
    a.rounds_against += score_b
    b.rounds_for += score_b
    b.rounds_against += score_a

    if score_a > score_b:
        a.wins += 1
        b.losses += 1
        a.points += config.points_per_win
        b.points += config.points_per_loss
    elif score_b > score_a:
        b.wins += 1
        a.losses += 1
        b.points += config.points_per_win
        a.points += config.points_per_loss
    else:
        a.draws += 1
        b.draws += 1
        a.points += config.points_per_draw
        b.points += config.points_per_draw


# =============================================================================
# Ranking
# =============================================================================

RankKey = Callable[[StandingRow], Tuple[int, ...]]


def _head_to_head_key(
    tied: Sequence[StandingRow], matches: Iterable[Match], config: GroupsRoundRobinConfig
) -> RankKey:
    """Mini-table over matches played only between the tied teams: points, then round diff."""
    mini = {row.team_id: StandingRow(team_id=row.team_id) for row in tied}
    for m in matches:
        a = mini.get(m.team1_id)
        b = mini.get(m.team2_id)
        if a is None or b is None:
            continue
        _apply_result(a, b, m.team1_score, m.team2_score, config)
    for row in mini.values():
        row.round_diff = row.rounds_for - row.rounds_against
    return lambda row: (mini[row.team_id].points, mini[row.team_id].round_diff)


def _rule_key(rule: str, tied: Sequence[StandingRow], matches: Sequence[Match], config: GroupsRoundRobinConfig) -> RankKey:
    if rule == "points":
        return lambda row: (row.points,)
    if rule == "round_diff":
        return lambda row: (row.round_diff,)
    if rule == "rounds_won":
        return lambda row: (row.rounds_for,)
    if rule == "head_to_head":
        return _head_to_head_key(tied, matches, config)
    # Config validation rejects unknown rules; reaching here is a programming error
    raise ValueError(f"Unsupported tiebreaker: {rule}")


def rank_rows(
    rows: Sequence[StandingRow],
    tiebreakers: Sequence[str],
    matches: Sequence[Match],
    config: GroupsRoundRobinConfig,
) -> List[StandingRow]:
    """Order rows by the tiebreaker list (all descending), then team_id ascending."""
    if len(rows) <= 1 or not tiebreakers:
        return sorted(rows, key=lambda row: row.team_id)

    key = _rule_key(tiebreakers[0], rows, matches, config)
    ordered = sorted(rows, key=key, reverse=True)

    result: List[StandingRow] = []
    for _, cluster in groupby(ordered, key=key):
        result.extend(rank_rows(list(cluster), tiebreakers[1:], matches, config))
    return result


# =============================================================================
# Standings
# =============================================================================


def build_standings(
    state: GroupsStageState, matches: Iterable[Match], config: GroupsRoundRobinConfig
) -> StandingsResult:
    """
    Pure standings computation.

    Only matches whose two teams both belong to the tagged group are counted,
    so for every group sum(played) == 2 * completed matches and
    sum(rounds_for) == sum(rounds_against).
    """
    rows_by_group: Dict[str, Dict[str, StandingRow]] = {}
    for group in state.groups:
        rows_by_group[group.id] = {team_id: StandingRow(team_id=team_id) for team_id in group.teams}

    counted_by_group: Dict[str, List[Match]] = {group.id: [] for group in state.groups}

    for m in matches:
        if not is_countable(m):
            continue
        group_rows = rows_by_group.get(m.group_id)
        if group_rows is None:
            continue
        a = group_rows.get(m.team1_id)
        b = group_rows.get(m.team2_id)
        if a is None or b is None or a is b:
            continue
        _apply_result(a, b, m.team1_score, m.team2_score, config)
        counted_by_group[m.group_id].append(m)

    expected = round_robin_match_count(config.teams_per_group)
    standings: Dict[str, List[StandingRow]] = {}
    all_complete = True

    for group in state.groups:
        rows = list(rows_by_group[group.id].values())
        for row in rows:
            row.round_diff = row.rounds_for - row.rounds_against
        group_matches = counted_by_group[group.id]
        standings[group.id] = rank_rows(rows, config.tiebreakers, group_matches, config)
        if len(group_matches) != expected:
            all_complete = False

    return StandingsResult(
        standings_by_group_id=standings,
        is_complete=all_complete,
        completed_by_group_id={group_id: len(ms) for group_id, ms in counted_by_group.items()},
        expected_matches_per_group=expected,
    )


def compute_group_standings(session: Session, tournament_id: int, stage_id: str = "groups") -> StandingsResult:
    """
    Standings for every group of a groups stage, from committed match rows.

    Read-only: never writes, safe to call as often as needed.

    Raises:
        InvalidStageState: stage not initialized or a group is not full
    """
    stage = get_stage_or_raise(session, tournament_id, stage_id)
    config = load_groups_config(stage)
    state = require_groups_state(stage)

    for group in state.groups:
        if len(group.teams) != config.teams_per_group:
            raise InvalidStageState(
                f"{group.name} is not fully assigned",
                tournament_id=tournament_id,
                stage_id=stage_id,
                group_id=group.id,
            )

    matches = session.exec(
        select(Match)
        .where(Match.tournament_id == tournament_id, Match.stage_id == stage_id)
        .order_by(Match.match_number)
    ).all()

    return build_standings(state, matches, config)
