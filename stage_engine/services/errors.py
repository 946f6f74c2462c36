"""
Stage engine errors.

Every error carries the identifiers needed to locate the inconsistent part
of the schedule (tournament, stage, group, matchday). Routers translate them
to HTTP responses via to_detail().

AlreadyInitialized and DuplicateGeneration mean "this step already ran".
Automated retriers may treat them as no-ops; interactive callers should
surface them as operator mistakes.
"""

from typing import Any, Dict, Optional


class StageEngineError(Exception):
    """Base class for stage engine failures"""

    code = "STAGE_ENGINE_ERROR"
    benign_on_retry = False

    def __init__(
        self,
        message: str,
        *,
        tournament_id: Optional[int] = None,
        stage_id: Optional[str] = None,
        group_id: Optional[str] = None,
        matchday: Optional[int] = None,
        **extra: Any,
    ):
        super().__init__(message)
        self.message = message
        context: Dict[str, Any] = {
            "tournament_id": tournament_id,
            "stage_id": stage_id,
            "group_id": group_id,
            "matchday": matchday,
        }
        context.update(extra)
        self.context = {k: v for k, v in context.items() if v is not None}

    def to_detail(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.context}

    def __str__(self) -> str:
        if not self.context:
            return f"{self.code}: {self.message}"
        where = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.code}: {self.message} ({where})"


class InvalidInput(StageEngineError):
    code = "INVALID_INPUT"


class TeamCountMismatch(StageEngineError):
    code = "TEAM_COUNT_MISMATCH"


class AlreadyInitialized(StageEngineError):
    code = "ALREADY_INITIALIZED"
    benign_on_retry = True


class DuplicateGeneration(StageEngineError):
    code = "DUPLICATE_GENERATION"
    benign_on_retry = True


class StageNotComplete(StageEngineError):
    code = "STAGE_NOT_COMPLETE"


class InvalidPairingMapping(StageEngineError):
    code = "INVALID_PAIRING_MAPPING"


class DuplicateTeamInBracket(StageEngineError):
    code = "DUPLICATE_TEAM_IN_BRACKET"


class InvalidStageState(StageEngineError):
    """Operation not allowed in the stage's (or tournament's) current state"""

    code = "INVALID_STAGE_STATE"


class TournamentNotFound(StageEngineError):
    code = "TOURNAMENT_NOT_FOUND"


class StageNotFound(StageEngineError):
    code = "STAGE_NOT_FOUND"
