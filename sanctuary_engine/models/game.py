"""Game State: the root aggregate owned by the orchestrator between engine calls."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from sanctuary_engine.models.decision import ChoiceRecord, Decision
from sanctuary_engine.models.event import (
    ActiveEvents,
    CityEventTemplate,
    NeighborhoodEventTemplate,
)
from sanctuary_engine.models.pulse import (
    CityPulse,
    FamilyImpact,
    GlobalPulse,
    Layer,
    NeighborhoodPulse,
)

DEFAULT_MAX_TURNS = 80


class TurnPhase(str, Enum):
    PLAN = "plan"
    PULSE_UPDATE = "pulse_update"
    EVENT = "event"
    DECISION = "decision"
    CONSEQUENCE = "consequence"


class EndingType(str, Enum):
    VICTORY = "victory"
    FAILURE = "failure"


class VictoryType(str, Enum):
    SANCTUARY = "sanctuary"
    OUTLAST = "outlast"
    TRANSFORM = "transform"


class GameEnding(BaseModel):
    type: EndingType
    victory_type: Optional[VictoryType] = None   # Set for victories
    reason: Optional[str] = None                 # Set for failures
    turn: int


class NeighborhoodState(BaseModel):
    id: str
    name: str = ""
    archetype: str = ""
    pulse: NeighborhoodPulse


class CityState(BaseModel):
    id: str
    name: str = ""
    state: str = ""                          # Two-letter US state code
    pulse: CityPulse
    neighborhoods: List[NeighborhoodState]
    current_neighborhood_id: str

    def neighborhood(self, neighborhood_id: str) -> Optional[NeighborhoodState]:
        return next((n for n in self.neighborhoods if n.id == neighborhood_id), None)

    @property
    def current_neighborhood(self) -> Optional[NeighborhoodState]:
        return self.neighborhood(self.current_neighborhood_id)


class GameState(BaseModel):
    """
    Complete per-session state.

    Engine functions never mutate a GameState; each returns a new one built
    with ``model_copy(update=...)``. The record round-trips losslessly through
    ``model_dump(mode="json")`` and ``model_validate``.
    """

    session_id: str
    created_at: datetime
    updated_at: datetime

    # TURN TRACKING
    turn: int = 1
    phase: TurnPhase = TurnPhase.PLAN
    max_turns: int = DEFAULT_MAX_TURNS

    # WORLD
    global_pulse: GlobalPulse = GlobalPulse()
    city: CityState
    family: FamilyImpact = FamilyImpact()
    active_events: ActiveEvents = ActiveEvents()

    # PLAYER
    current_decision: Optional[Decision] = None
    choice_history: List[ChoiceRecord] = []
    rights_knowledge: List[str] = []

    ending: Optional[GameEnding] = None


class TurnContext(BaseModel):
    """Authored event pools supplied by the orchestrator on every call."""

    neighborhood_event_templates: List[NeighborhoodEventTemplate] = []
    city_event_templates: List[CityEventTemplate] = []


class NeighborhoodPulseEntry(BaseModel):
    id: str
    pulse: NeighborhoodPulse


class WorldPulses(BaseModel):
    """The four layers' pulses, as consumed by the pulse engine."""

    global_pulse: GlobalPulse
    city: CityPulse
    neighborhoods: List[NeighborhoodPulseEntry]
    family: FamilyImpact


class PulseUpdate(WorldPulses):
    """Output of a full pulse pass, plus which layers actually moved."""

    updated_layers: List[Layer] = Field(default_factory=list)
