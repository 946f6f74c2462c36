"""
Stage Config: typed stage definitions and runtime state shapes.

Stage definitions arrive as JSON from tournament setup and are stored on
TournamentStage.config_json; runtime state is stored on
TournamentStage.state_json. This module is the only place that turns those
dicts into typed objects and back.

Validation here is what keeps the rest of the engine simple:
- teams_per_group is even (circle method has no BYE)
- group_count <= 26 (groups are lettered A..Z)
- teams_per_group / 2 < 100 and group_count <= 26 keep group match numbers
  collision-free (see match_generator.group_match_number)
- unknown tiebreakers are rejected instead of silently ignored
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from stage_engine.models.stage import (
    STAGE_TYPE_GROUPS_ROUND_ROBIN,
    STAGE_TYPE_PLAYOFFS_DOUBLE_ELIM,
    TournamentStage,
)
from stage_engine.services.errors import InvalidInput, InvalidStageState

MatchFormat = Literal["BO1", "BO3", "BO5", "BO7"]
TiebreakRule = Literal["points", "round_diff", "rounds_won", "head_to_head"]
StageType = Literal["groups_round_robin", "playoffs_double_elim"]

MAX_GROUPS = 26
MAX_PAIRS_PER_ROUND = 99
DEFAULT_TIEBREAKERS: List[str] = ["points"]


# =============================================================================
# Stage Configs
# =============================================================================


class GroupsRoundRobinConfig(BaseModel):
    group_count: int
    teams_per_group: int
    teams_advance_per_group: int
    match_format: MatchFormat = "BO1"
    points_per_win: int = 1
    points_per_draw: int = 0  # only reachable with tied final scores
    points_per_loss: int = 0
    tiebreakers: List[TiebreakRule] = Field(default_factory=lambda: ["points", "round_diff", "rounds_won"])
    use_live_draw: bool = False

    @field_validator("group_count")
    @classmethod
    def validate_group_count(cls, v):
        if v < 1 or v > MAX_GROUPS:
            raise ValueError(f"group_count must be in 1..{MAX_GROUPS}, got {v}")
        return v

    @field_validator("teams_per_group")
    @classmethod
    def validate_teams_per_group(cls, v):
        if v < 2:
            raise ValueError("teams_per_group must be >= 2")
        if v % 2 != 0:
            raise ValueError(f"teams_per_group must be even for round robin, got {v}")
        if v // 2 > MAX_PAIRS_PER_ROUND:
            raise ValueError(f"teams_per_group must be <= {MAX_PAIRS_PER_ROUND * 2}, got {v}")
        return v

    @field_validator("tiebreakers")
    @classmethod
    def validate_tiebreakers(cls, v):
        if not v:
            return list(DEFAULT_TIEBREAKERS)
        if len(set(v)) != len(v):
            raise ValueError(f"tiebreakers must not repeat a rule: {v}")
        return v

    @model_validator(mode="after")
    def validate_advance_count(self):
        if self.teams_advance_per_group < 1 or self.teams_advance_per_group > self.teams_per_group:
            raise ValueError(
                f"teams_advance_per_group must be in 1..{self.teams_per_group}, got {self.teams_advance_per_group}"
            )
        return self

    @property
    def expected_team_count(self) -> int:
        return self.group_count * self.teams_per_group

    @property
    def matchdays(self) -> int:
        return self.teams_per_group - 1


class FixedPlayoffPairing(BaseModel):
    group_a: str  # group letter, e.g. "A"
    place_a: int  # 1 = group winner, 2 = runner-up, ...
    group_b: str
    place_b: int

    @field_validator("group_a", "group_b")
    @classmethod
    def normalize_letter(cls, v):
        if not v or not v.strip():
            raise ValueError("group letter cannot be empty")
        return v.strip().upper()

    def label(self) -> str:
        return f"{self.group_a}{self.place_a} vs {self.group_b}{self.place_b}"


class PlayoffsConfig(BaseModel):
    team_count: int
    match_format: MatchFormat = "BO1"
    finals_match_format: Optional[MatchFormat] = None
    fixed_round1_pairings: List[FixedPlayoffPairing] = Field(default_factory=list)

    @field_validator("team_count")
    @classmethod
    def validate_team_count(cls, v):
        if v < 2 or v & (v - 1) != 0:
            raise ValueError(f"team_count must be a power of two >= 2, got {v}")
        return v


class StageDefinition(BaseModel):
    id: str
    name: str
    type: StageType
    order: int
    config: Dict[str, Any]

    @field_validator("id", "name")
    @classmethod
    def validate_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("order")
    @classmethod
    def validate_order(cls, v):
        if v < 1:
            raise ValueError("order must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_for_type(self):
        # Normalize through the typed model so stored config is always complete
        config_model = CONFIG_MODELS[self.type]
        try:
            self.config = config_model.model_validate(self.config).model_dump(mode="json")
        except ValidationError as e:
            messages = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
            raise ValueError(f"invalid {self.type} config for stage '{self.id}': {messages}")
        return self


CONFIG_MODELS = {
    STAGE_TYPE_GROUPS_ROUND_ROBIN: GroupsRoundRobinConfig,
    STAGE_TYPE_PLAYOFFS_DOUBLE_ELIM: PlayoffsConfig,
}


def validate_stage_set(stages: List[StageDefinition]) -> None:
    """
    Check a tournament's stage list as a whole.

    Match numbers are unique per tournament and derived without the stage
    (group play 100000+, playoffs 1..N/2), so at most one stage of each type.
    """
    ids = [s.id for s in stages]
    if len(set(ids)) != len(ids):
        raise ValueError(f"stage ids must be unique, got {ids}")
    orders = [s.order for s in stages]
    if len(set(orders)) != len(orders):
        raise ValueError(f"stage orders must be unique, got {orders}")
    types = [s.type for s in stages]
    repeated = sorted({t for t in types if types.count(t) > 1})
    if repeated:
        raise ValueError(f"at most one stage per type is supported, repeated: {repeated}")


def load_groups_config(stage: TournamentStage) -> GroupsRoundRobinConfig:
    require_stage_type(stage, STAGE_TYPE_GROUPS_ROUND_ROBIN)
    return _load_config(stage, GroupsRoundRobinConfig)


def load_playoffs_config(stage: TournamentStage) -> PlayoffsConfig:
    require_stage_type(stage, STAGE_TYPE_PLAYOFFS_DOUBLE_ELIM)
    return _load_config(stage, PlayoffsConfig)


def _load_config(stage: TournamentStage, model):
    try:
        return model.model_validate(stage.config_json or {})
    except ValidationError as e:
        raise InvalidInput(
            f"Stored config for stage {stage.stage_key} is invalid: {e.errors()}",
            tournament_id=stage.tournament_id,
            stage_id=stage.stage_key,
        ) from e


def require_stage_type(stage: TournamentStage, stage_type: str) -> None:
    if stage.stage_type != stage_type:
        raise InvalidStageState(
            f"Stage {stage.stage_key} is not a {stage_type} stage (type: {stage.stage_type})",
            tournament_id=stage.tournament_id,
            stage_id=stage.stage_key,
        )


# =============================================================================
# Runtime State
# =============================================================================

GroupsStatus = Literal["not_started", "drawing", "active", "completed"]

# Forward-only; "drawing" is skipped by instant assignment
GROUP_STATUS_TRANSITIONS: Dict[str, frozenset] = {
    "not_started": frozenset({"drawing", "active"}),
    "drawing": frozenset({"active"}),
    "active": frozenset({"completed"}),
    "completed": frozenset(),
}


class DrawCursor(BaseModel):
    group_index: int = 0
    slot_index: int = 0


class DrawState(BaseModel):
    remaining_team_ids: List[str]
    revealed_team_id: Optional[str] = None
    revealed_at: Optional[datetime] = None
    auto_assign: bool = True
    cursor: DrawCursor = Field(default_factory=DrawCursor)
    # Reveals waiting for manual placement (auto_assign=False)
    pending_team_ids: List[str] = Field(default_factory=list)


class GroupAssignment(BaseModel):
    id: str  # "group-A"
    name: str  # "Group A"
    letter: str  # "A"
    teams: List[str] = Field(default_factory=list)


class GroupsStageState(BaseModel):
    status: GroupsStatus = "not_started"
    groups: List[GroupAssignment] = Field(default_factory=list)
    draw: Optional[DrawState] = None

    def is_fully_assigned(self, teams_per_group: int) -> bool:
        return bool(self.groups) and all(len(g.teams) == teams_per_group for g in self.groups)


class PlayoffsStageState(BaseModel):
    status: Literal["not_started", "active", "completed"] = "not_started"
    advancing_team_ids: List[str] = Field(default_factory=list)


def group_letter(index: int) -> str:
    return chr(ord("A") + index)


def create_empty_groups(group_count: int) -> List[GroupAssignment]:
    groups = []
    for i in range(group_count):
        letter = group_letter(i)
        groups.append(GroupAssignment(id=f"group-{letter}", name=f"Group {letter}", letter=letter, teams=[]))
    return groups


def load_groups_state(stage: TournamentStage) -> Optional[GroupsStageState]:
    if stage.state_json is None:
        return None
    return GroupsStageState.model_validate(stage.state_json)


def require_groups_state(stage: TournamentStage) -> GroupsStageState:
    state = load_groups_state(stage)
    if state is None:
        raise InvalidStageState(
            f"Groups stage {stage.stage_key} is not initialized",
            tournament_id=stage.tournament_id,
            stage_id=stage.stage_key,
        )
    return state


def load_playoffs_state(stage: TournamentStage) -> Optional[PlayoffsStageState]:
    if stage.state_json is None:
        return None
    return PlayoffsStageState.model_validate(stage.state_json)


def dump_state(state: BaseModel) -> Dict[str, Any]:
    """Serialize state for a JSON column (always a fresh dict)."""
    return state.model_dump(mode="json")


def advance_group_status(stage: TournamentStage, state: GroupsStageState, new_status: str) -> None:
    """Move the groups stage forward one step, or raise InvalidStageState."""
    allowed = GROUP_STATUS_TRANSITIONS.get(state.status, frozenset())
    if new_status not in allowed:
        raise InvalidStageState(
            f"Groups stage cannot move from '{state.status}' to '{new_status}'",
            tournament_id=stage.tournament_id,
            stage_id=stage.stage_key,
        )
    state.status = new_status
