from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy import func, text
from sqlmodel import Session, select

from stage_engine.database import get_session
from stage_engine.models.stage import TournamentStage
from stage_engine.models.tournament import (
    STATUS_DRAFT,
    STATUS_REGISTRATION_CLOSED,
    STATUS_REGISTRATION_OPEN,
    Tournament,
)
from stage_engine.services.stage_config import StageDefinition, validate_stage_set

router = APIRouter()

_OPEN_STATUSES = (STATUS_DRAFT, STATUS_REGISTRATION_OPEN)


def _validate_team_ids(v: List[str]) -> List[str]:
    cleaned = [t.strip() for t in v]
    if any(not t for t in cleaned):
        raise ValueError("team ids cannot be empty")
    if len(set(cleaned)) != len(cleaned):
        raise ValueError("team ids must be unique")
    return cleaned


class TournamentCreate(BaseModel):
    name: str
    status: Literal["draft", "registration-open", "registration-closed"] = STATUS_DRAFT
    registered_team_ids: List[str] = []
    stages: List[StageDefinition] = []

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name cannot be empty")
        return v.strip()

    @field_validator("registered_team_ids")
    @classmethod
    def validate_team_ids(cls, v):
        return _validate_team_ids(v)

    @model_validator(mode="after")
    def validate_stages(self):
        validate_stage_set(self.stages)
        return self


class TeamRegistrationUpdate(BaseModel):
    registered_team_ids: List[str]

    @field_validator("registered_team_ids")
    @classmethod
    def validate_team_ids(cls, v):
        return _validate_team_ids(v)


class StageSummary(BaseModel):
    id: str
    name: str
    type: str
    order: int
    config: Dict[str, Any]
    state: Optional[Dict[str, Any]] = None


class TournamentResponse(BaseModel):
    id: int
    name: str
    status: str
    registered_team_ids: List[str]
    stages: List[StageSummary]
    created_at: datetime
    updated_at: datetime


def stage_summary(stage: TournamentStage) -> StageSummary:
    return StageSummary(
        id=stage.stage_key,
        name=stage.name,
        type=stage.stage_type,
        order=stage.stage_order,
        config=stage.config_json,
        state=stage.state_json,
    )


def _tournament_response(session: Session, tournament: Tournament) -> TournamentResponse:
    stages = session.exec(
        select(TournamentStage)
        .where(TournamentStage.tournament_id == tournament.id)
        .order_by(TournamentStage.stage_order)
    ).all()
    return TournamentResponse(
        id=tournament.id,
        name=tournament.name,
        status=tournament.status,
        registered_team_ids=list(tournament.registered_team_ids or []),
        stages=[stage_summary(s) for s in stages],
        created_at=tournament.created_at,
        updated_at=tournament.updated_at,
    )


def _get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    tournaments = session.exec(select(Tournament).order_by(Tournament.id)).all()
    return [_tournament_response(session, t) for t in tournaments]


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a tournament together with its (immutable) stage definitions"""
    tournament = Tournament(
        name=tournament_data.name,
        status=tournament_data.status,
        registered_team_ids=list(tournament_data.registered_team_ids),
    )
    try:
        session.add(tournament)
        session.flush()  # Get the ID

        for definition in tournament_data.stages:
            session.add(
                TournamentStage(
                    tournament_id=tournament.id,
                    stage_key=definition.id,
                    name=definition.name,
                    stage_type=definition.type,
                    stage_order=definition.order,
                    config_json=definition.config,
                )
            )
        session.commit()
    except Exception as e:
        session.rollback()
        raise HTTPException(status_code=400, detail=f"Failed to create tournament: {str(e)}")

    session.refresh(tournament)
    return _tournament_response(session, tournament)


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID"""
    tournament = _get_tournament_or_404(session, tournament_id)
    return _tournament_response(session, tournament)


@router.put("/tournaments/{tournament_id}/teams", response_model=TournamentResponse)
def update_registered_teams(
    tournament_id: int, payload: TeamRegistrationUpdate, session: Session = Depends(get_session)
):
    """Replace the registered team list. Only while registration is still open."""
    tournament = _get_tournament_or_404(session, tournament_id)
    if tournament.status not in _OPEN_STATUSES:
        raise HTTPException(
            status_code=409,
            detail=f"REGISTRATION_CLOSED: Cannot change teams with tournament status '{tournament.status}'",
        )

    tournament.registered_team_ids = list(payload.registered_team_ids)
    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return _tournament_response(session, tournament)


@router.post("/tournaments/{tournament_id}/close-registration", response_model=TournamentResponse)
def close_registration(tournament_id: int, session: Session = Depends(get_session)):
    """Close registration so the groups stage can be initialized"""
    tournament = _get_tournament_or_404(session, tournament_id)
    if tournament.status == STATUS_REGISTRATION_CLOSED:
        return _tournament_response(session, tournament)
    if tournament.status not in _OPEN_STATUSES:
        raise HTTPException(
            status_code=409,
            detail=f"Cannot close registration with tournament status '{tournament.status}'",
        )

    tournament.status = STATUS_REGISTRATION_CLOSED
    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return _tournament_response(session, tournament)


@router.delete("/tournaments/{tournament_id}", status_code=204)
def delete_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Delete a tournament with its stages and matches"""
    try:
        tournament_exists = session.exec(select(func.count(Tournament.id)).where(Tournament.id == tournament_id)).one()
        if tournament_exists == 0:
            raise HTTPException(status_code=404, detail="Tournament not found")

        # Children before parent
        params = {"tournament_id": tournament_id}
        session.execute(text("DELETE FROM match WHERE tournament_id = :tournament_id"), params)
        session.execute(text("DELETE FROM tournamentstage WHERE tournament_id = :tournament_id"), params)
        session.execute(text("DELETE FROM tournament WHERE id = :tournament_id"), params)
        session.commit()

        return Response(status_code=204)
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to delete tournament: {str(e)}")
