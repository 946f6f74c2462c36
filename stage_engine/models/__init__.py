from stage_engine.models.match import Match
from stage_engine.models.stage import TournamentStage
from stage_engine.models.tournament import Tournament

__all__ = [
    "Tournament",
    "TournamentStage",
    "Match",
]
