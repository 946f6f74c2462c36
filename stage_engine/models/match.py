from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from stage_engine.models.tournament import Tournament


class Match(SQLModel, table=True):
    # match_number is derived from (matchday, group, pair) for group play, so this
    # constraint also rejects a second generation of the same matchday.
    __table_args__ = (SAUniqueConstraint("tournament_id", "match_number", name="uq_match_tournament_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    stage_id: str = Field(index=True)  # TournamentStage.stage_key
    stage_type: str  # "groups_round_robin" | "playoffs_double_elim"
    group_id: Optional[str] = Field(default=None, index=True)  # "group-A"; None outside group play
    matchday: Optional[int] = Field(default=None, index=True)  # round-robin round (1..n-1)
    round: int = Field(default=1)
    bracket_type: Optional[str] = Field(default=None)  # "winners" | "losers" | "grand_final"
    match_number: int
    match_format: str = Field(default="BO1")

    team1_id: Optional[str] = Field(default=None)
    team2_id: Optional[str] = Field(default=None)
    team1_score: Optional[int] = Field(default=0)
    team2_score: Optional[int] = Field(default=0)
    winner_id: Optional[str] = Field(default=None)
    is_complete: bool = Field(default=False)

    # Owned by the match-play subsystem (ready-up, map bans, scoring)
    match_state: str = Field(default="scheduled")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = Field(default=None)

    tournament: "Tournament" = Relationship(back_populates="matches")
