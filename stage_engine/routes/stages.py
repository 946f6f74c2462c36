import random
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session

from stage_engine.database import get_session
from stage_engine.routes.tournaments import StageSummary, stage_summary
from stage_engine.services.bracket_seeder import seed_playoffs_from_groups
from stage_engine.services.errors import StageEngineError
from stage_engine.services.match_generator import generate_all_matchdays, generate_matchday, list_stage_matches
from stage_engine.services.stage_initializer import initialize_groups_stage, reveal_next_team
from stage_engine.services.standings import compute_group_standings
from stage_engine.utils.http_errors import already_done_response, to_http_exception
from stage_engine.utils.stage_guards import get_stage_or_raise


router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class InitializeStageRequest(BaseModel):
    seed: Optional[int] = None  # reproducible shuffle
    auto_assign: bool = True  # live draw only


class SeedPlayoffsRequest(BaseModel):
    groups_stage_id: str = "groups"
    playoffs_stage_id: str = "playoffs"


class MatchResponse(BaseModel):
    id: int
    tournament_id: int
    stage_id: str
    stage_type: str
    group_id: Optional[str] = None
    matchday: Optional[int] = None
    round: Optional[int] = None
    bracket_type: Optional[str] = None
    match_number: int
    match_format: str
    team1_id: Optional[str] = None
    team2_id: Optional[str] = None
    team1_score: Optional[int] = None
    team2_score: Optional[int] = None
    winner_id: Optional[str] = None
    is_complete: bool
    match_state: str
    created_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StageStateResponse(BaseModel):
    stage: StageSummary
    state: Optional[Dict[str, Any]] = None


def _stage_state_response(session: Session, tournament_id: int, stage_id: str) -> StageStateResponse:
    stage = get_stage_or_raise(session, tournament_id, stage_id)
    return StageStateResponse(stage=stage_summary(stage), state=stage.state_json)


# ============================================================================
# Stage State
# ============================================================================


@router.get("/tournaments/{tournament_id}/stages/{stage_id}", response_model=StageStateResponse)
def get_stage(tournament_id: int, stage_id: str, session: Session = Depends(get_session)):
    """Stage definition plus its current runtime state"""
    try:
        return _stage_state_response(session, tournament_id, stage_id)
    except StageEngineError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/stages/{stage_id}/initialize")
def initialize_stage(
    tournament_id: int,
    stage_id: str,
    payload: Optional[InitializeStageRequest] = None,
    retry: bool = Query(False, description="Treat an already-initialized stage as success"),
    session: Session = Depends(get_session),
):
    """
    Populate the groups stage from the registered teams.

    Instant mode returns an active stage; live-draw mode returns a drawing
    stage whose teams are revealed through /draw/reveal.
    """
    payload = payload or InitializeStageRequest()
    rng = random.Random(payload.seed) if payload.seed is not None else None
    try:
        initialize_groups_stage(session, tournament_id, stage_id, rng=rng, auto_assign=payload.auto_assign)
    except StageEngineError as e:
        if retry and e.benign_on_retry:
            return already_done_response(e)
        raise to_http_exception(e)

    return _stage_state_response(session, tournament_id, stage_id)


@router.post("/tournaments/{tournament_id}/stages/{stage_id}/draw/reveal", response_model=StageStateResponse)
def reveal_team(tournament_id: int, stage_id: str, session: Session = Depends(get_session)):
    """Reveal the next team of a live draw"""
    try:
        reveal_next_team(session, tournament_id, stage_id)
    except StageEngineError as e:
        raise to_http_exception(e)

    return _stage_state_response(session, tournament_id, stage_id)


# ============================================================================
# Matches
# ============================================================================


@router.post("/tournaments/{tournament_id}/stages/{stage_id}/matchdays/{matchday}/generate")
def generate_stage_matchday(
    tournament_id: int,
    stage_id: str,
    matchday: int,
    retry: bool = Query(False, description="Treat an already-generated matchday as success"),
    session: Session = Depends(get_session),
):
    """Create one matchday of group matches across every group"""
    try:
        matches = generate_matchday(session, tournament_id, stage_id, matchday)
    except StageEngineError as e:
        if retry and e.benign_on_retry:
            return already_done_response(e)
        raise to_http_exception(e)

    return {
        "status": "created",
        "matchday": matchday,
        "matches": [MatchResponse.model_validate(m).model_dump(mode="json") for m in matches],
    }


@router.post("/tournaments/{tournament_id}/stages/{stage_id}/matchdays/generate-all")
def generate_stage_all_matchdays(tournament_id: int, stage_id: str, session: Session = Depends(get_session)):
    """Generate every missing matchday, in order"""
    try:
        result = generate_all_matchdays(session, tournament_id, stage_id)
    except StageEngineError as e:
        raise to_http_exception(e)
    return result.to_dict()


@router.get("/tournaments/{tournament_id}/stages/{stage_id}/matches", response_model=List[MatchResponse])
def get_stage_matches(tournament_id: int, stage_id: str, session: Session = Depends(get_session)):
    """All matches of a stage, ordered by matchday then match number"""
    try:
        get_stage_or_raise(session, tournament_id, stage_id)
    except StageEngineError as e:
        raise to_http_exception(e)
    return list_stage_matches(session, tournament_id, stage_id)


@router.get("/tournaments/{tournament_id}/stages/{stage_id}/standings")
def get_stage_standings(tournament_id: int, stage_id: str, session: Session = Depends(get_session)):
    """Current (possibly provisional) group standings"""
    try:
        result = compute_group_standings(session, tournament_id, stage_id)
    except StageEngineError as e:
        raise to_http_exception(e)
    return result.to_dict()


# ============================================================================
# Playoffs
# ============================================================================


@router.post("/tournaments/{tournament_id}/playoffs/seed")
def seed_playoffs(
    tournament_id: int,
    payload: Optional[SeedPlayoffsRequest] = None,
    retry: bool = Query(False, description="Treat already-seeded playoffs as success"),
    session: Session = Depends(get_session),
):
    """Close the groups stage and seed the playoff bracket from final standings"""
    payload = payload or SeedPlayoffsRequest()
    try:
        result = seed_playoffs_from_groups(
            session,
            tournament_id,
            groups_stage_id=payload.groups_stage_id,
            playoffs_stage_id=payload.playoffs_stage_id,
        )
    except StageEngineError as e:
        if retry and e.benign_on_retry:
            return already_done_response(e)
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Playoff seeding failed: {str(e)}")

    return {"status": "seeded", **result.to_dict()}
