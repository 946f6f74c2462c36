from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from stage_engine.models.match import Match
    from stage_engine.models.stage import TournamentStage


# Tournament lifecycle as seen by the stage engine
STATUS_DRAFT = "draft"
STATUS_REGISTRATION_OPEN = "registration-open"
STATUS_REGISTRATION_CLOSED = "registration-closed"
STATUS_GROUP_STAGE = "group-stage"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    status: str = Field(default=STATUS_DRAFT)
    # Opaque team ids owned by the registration system, in registration order
    registered_team_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    stages: List["TournamentStage"] = Relationship(back_populates="tournament")
    matches: List["Match"] = Relationship(back_populates="tournament")
