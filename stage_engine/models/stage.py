from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from stage_engine.models.tournament import Tournament


STAGE_TYPE_GROUPS_ROUND_ROBIN = "groups_round_robin"
STAGE_TYPE_PLAYOFFS_DOUBLE_ELIM = "playoffs_double_elim"


class TournamentStage(SQLModel, table=True):
    """One stage definition of a tournament plus its runtime state.

    config_json is fixed once the tournament is published. state_json is
    None until the stage is initialized and is always replaced wholesale,
    never mutated in place (JSON columns do not track nested changes).
    """

    __table_args__ = (SAUniqueConstraint("tournament_id", "stage_key", name="uq_tournament_stage_key"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    stage_key: str  # stable id within the tournament, e.g. "groups", "playoffs"
    name: str
    stage_type: str  # "groups_round_robin" | "playoffs_double_elim"
    stage_order: int
    config_json: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    state_json: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    tournament: "Tournament" = Relationship(back_populates="stages")
