"""
Stage engine error → HTTPException translation for routers.

- 404: tournament or stage not found
- 409: state conflicts (already initialized, duplicate matchday, stage not
  complete, wrong stage/tournament status)
- 422: validation failures (bad input, team count, pairing template)
"""

from fastapi import HTTPException

from stage_engine.services.errors import (
    AlreadyInitialized,
    DuplicateGeneration,
    InvalidStageState,
    StageEngineError,
    StageNotComplete,
    StageNotFound,
    TournamentNotFound,
)

_STATUS_BY_ERROR = (
    ((TournamentNotFound, StageNotFound), 404),
    ((AlreadyInitialized, DuplicateGeneration, StageNotComplete, InvalidStageState), 409),
)


def status_code_for(error: StageEngineError) -> int:
    for error_types, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_types):
            return status_code
    return 422


def to_http_exception(error: StageEngineError) -> HTTPException:
    return HTTPException(status_code=status_code_for(error), detail=error.to_detail())


def already_done_response(error: StageEngineError) -> dict:
    """Body returned to automated retriers for a step that already ran."""
    return {"status": "already_done", **error.to_detail()}
