# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from stage_engine.models.match import Match  # noqa: F401
from stage_engine.models.stage import TournamentStage  # noqa: F401
from stage_engine.models.tournament import Tournament  # noqa: F401
