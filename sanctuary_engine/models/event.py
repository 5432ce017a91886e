"""Events: discrete shocks that re-weight pulses, and the templates they come from."""

from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class GlobalEventType(str, Enum):
    EXECUTIVE = "Executive"
    JUDICIAL = "Judicial"
    MEDIA = "Media"
    SECURITY = "Security"


class CityEventCategory(str, Enum):
    POLICY = "Policy"
    BUDGET = "Budget"
    INFRASTRUCTURE = "Infrastructure"
    MEDIA = "Media"


class NeighborhoodEventType(str, Enum):
    AUDIT = "Audit"
    CHECKPOINT = "Checkpoint"
    RAID_RUMOR = "RaidRumor"
    MEETING = "Meeting"
    DETENTION = "Detention"


class EventTarget(str, Enum):
    FAMILY = "Family"
    EMPLOYER = "Employer"
    SCHOOL = "School"
    BLOCK = "Block"


# Partial map of pulse field name -> additive delta
Effects = Dict[str, float]

ImpactRadius = Union[Literal["All"], List[str]]


# --- Event instances ---

class GlobalEvent(BaseModel):
    """Rare, high-impact national event."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: GlobalEventType
    magnitude: int = Field(ge=1, le=5)
    duration_days: int
    title: str
    description: str
    start_turn: int
    effects: Effects = {}


class CityEvent(BaseModel):
    """City-level event. Re-weights neighborhoods, never targets the family."""

    model_config = ConfigDict(frozen=True)

    id: str
    category: CityEventCategory
    visibility: int                          # How much the player understands
    impact_radius: ImpactRadius = "All"
    title: str
    description: str
    start_turn: int
    duration_days: int
    effects: Effects = {}


class NeighborhoodEvent(BaseModel):
    """Frequent, player-facing event. Active only on its start turn."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: NeighborhoodEventType
    severity: int = Field(ge=1, le=5)
    target: EventTarget
    neighborhood_id: str
    title: str
    description: str
    start_turn: int
    effects: Effects = {}


class ActiveEvents(BaseModel):
    """Per-turn working set of events, pruned by expiry each event phase."""

    global_events: List[GlobalEvent] = []
    city: List[CityEvent] = []
    neighborhood: List[NeighborhoodEvent] = []


# --- Templates (authored content, read-only to the engine) ---

class EventTriggers(BaseModel):
    """
    Pulse thresholds gating a neighborhood template.

    Keys prefixed ``min_`` require ``pulse[field] >= threshold``; keys
    prefixed ``max_`` require ``pulse[field] <= threshold``. Unset keys
    impose nothing; unknown keys fail validation.
    """

    model_config = ConfigDict(extra="forbid")

    min_trust: Optional[float] = None
    max_trust: Optional[float] = None
    min_suspicion: Optional[float] = None
    max_suspicion: Optional[float] = None
    min_enforcement_visibility: Optional[float] = None
    max_enforcement_visibility: Optional[float] = None
    min_community_density: Optional[float] = None
    max_community_density: Optional[float] = None
    min_economic_precarity: Optional[float] = None
    max_economic_precarity: Optional[float] = None

    def thresholds(self) -> Dict[str, float]:
        """Only the thresholds that are actually set."""
        return self.model_dump(exclude_none=True)


class NeighborhoodEventTemplate(BaseModel):
    id: str
    type: NeighborhoodEventType
    severity_range: Tuple[int, int]
    targets: List[EventTarget]
    title: str
    description_template: str
    weight: float = Field(ge=0)              # Higher = more likely
    effects: Effects = {}
    triggers: Optional[EventTriggers] = None


class CityEventTemplate(BaseModel):
    id: str
    category: CityEventCategory
    title: str
    description_template: str
    visibility_range: Tuple[int, int]
    duration_range: Tuple[int, int]
    weight: float = Field(ge=0)
    effects: Effects = {}


class GlobalEventTemplate(BaseModel):
    """Built-in national event; effects are scaled by the rolled magnitude."""

    type: GlobalEventType
    title: str
    description: str
    effects: Effects
    weight: float = Field(ge=0)
