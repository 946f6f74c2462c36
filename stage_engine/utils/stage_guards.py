"""
Stage Lookup Guards

Reusable loaders that fail with engine errors instead of returning None:
- Tournament existence
- Stage ownership (stage_key within tournament)
- Tournament status preconditions
"""

from typing import Iterable, Optional

from sqlmodel import Session, select

from stage_engine.models.stage import TournamentStage
from stage_engine.models.tournament import Tournament
from stage_engine.services.errors import InvalidStageState, StageNotFound, TournamentNotFound


def get_tournament_or_raise(session: Session, tournament_id: int) -> Tournament:
    """
    Get a tournament or raise TournamentNotFound.

    Args:
        session: Database session
        tournament_id: Tournament ID

    Returns:
        Tournament
    """
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise TournamentNotFound(f"Tournament {tournament_id} not found", tournament_id=tournament_id)
    return tournament


def get_stage_or_raise(session: Session, tournament_id: int, stage_id: str) -> TournamentStage:
    """
    Get a stage by its stage key within a tournament, or raise StageNotFound.

    Args:
        session: Database session
        tournament_id: Tournament ID
        stage_id: Stage key (e.g. "groups")

    Returns:
        TournamentStage
    """
    stage = session.exec(
        select(TournamentStage).where(
            TournamentStage.tournament_id == tournament_id,
            TournamentStage.stage_key == stage_id,
        )
    ).first()
    if not stage:
        raise StageNotFound(f"Stage not found: {stage_id}", tournament_id=tournament_id, stage_id=stage_id)
    return stage


def require_tournament_status(
    tournament: Tournament, allowed: Iterable[str], action: str, stage_id: Optional[str] = None
) -> None:
    allowed = tuple(allowed)
    if tournament.status not in allowed:
        raise InvalidStageState(
            f"Tournament must be {' or '.join(allowed)} to {action} (status: {tournament.status})",
            tournament_id=tournament.id,
            stage_id=stage_id,
        )
