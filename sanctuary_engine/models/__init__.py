"""Sanctuary Engine data models."""

from sanctuary_engine.models.config import EngineConfig
from sanctuary_engine.models.decision import (
    Choice,
    ChoiceRecord,
    ChoiceUnlockConditions,
    Decision,
)
from sanctuary_engine.models.event import (
    ActiveEvents,
    CityEvent,
    CityEventCategory,
    CityEventTemplate,
    EventTarget,
    EventTriggers,
    GlobalEvent,
    GlobalEventTemplate,
    GlobalEventType,
    NeighborhoodEvent,
    NeighborhoodEventTemplate,
    NeighborhoodEventType,
)
from sanctuary_engine.models.game import (
    CityState,
    EndingType,
    GameEnding,
    GameState,
    NeighborhoodPulseEntry,
    NeighborhoodState,
    PulseUpdate,
    TurnContext,
    TurnPhase,
    VictoryType,
    WorldPulses,
)
from sanctuary_engine.models.pulse import (
    NEUTRAL_FAMILY,
    CityPulse,
    FamilyImpact,
    GlobalPulse,
    Layer,
    NeighborhoodPulse,
)
from sanctuary_engine.models.session import SessionMeta

__all__ = [
    "ActiveEvents",
    "Choice",
    "ChoiceRecord",
    "ChoiceUnlockConditions",
    "CityEvent",
    "CityEventCategory",
    "CityEventTemplate",
    "CityPulse",
    "CityState",
    "Decision",
    "EndingType",
    "EngineConfig",
    "EventTarget",
    "EventTriggers",
    "FamilyImpact",
    "GameEnding",
    "GameState",
    "GlobalEvent",
    "GlobalEventTemplate",
    "GlobalEventType",
    "GlobalPulse",
    "Layer",
    "NEUTRAL_FAMILY",
    "NeighborhoodEvent",
    "NeighborhoodEventTemplate",
    "NeighborhoodEventType",
    "NeighborhoodPulse",
    "NeighborhoodPulseEntry",
    "NeighborhoodState",
    "PulseUpdate",
    "SessionMeta",
    "TurnContext",
    "TurnPhase",
    "VictoryType",
    "WorldPulses",
]
