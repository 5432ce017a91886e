"""Engine and simulator configuration."""

from typing import Optional

from pydantic import BaseModel, Field

from sanctuary_engine.models.game import DEFAULT_MAX_TURNS


class EngineConfig(BaseModel):
    """Configuration for the simulation runner and its session store."""

    max_turns: int = Field(ge=1, default=DEFAULT_MAX_TURNS)
    session_ttl_seconds: int = 60 * 60 * 24 * 7
    db_path: str = ":memory:"
    seed: Optional[int] = None                  # Reproducible runs when set
    auto_check_endings: bool = True
