"""
Pulses: slow-moving indicator values at each world layer.

Each pulse record declares its layer kind and per-field bounds as class
metadata. Engine code clamps against BOUNDS after every mutation; direct
construction with an out-of-range value is rejected by validation.
"""

from enum import Enum
from typing import ClassVar, Dict, Tuple, TypeVar

from pydantic import BaseModel, Field


class Layer(str, Enum):
    GLOBAL = "global"
    CITY = "city"
    NEIGHBORHOOD = "neighborhood"
    FAMILY = "family"


Bounds = Tuple[float, float]

P = TypeVar("P", bound="PulseRecord")


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


class PulseRecord(BaseModel):
    """Base class for every layered pulse record."""

    LAYER: ClassVar[Layer]
    BOUNDS: ClassVar[Dict[str, Bounds]] = {}

    @classmethod
    def bounds_for(cls, field: str) -> Bounds:
        return cls.BOUNDS.get(field, (0.0, 100.0))

    def field_values(self) -> Dict[str, float]:
        """Plain field -> value mapping."""
        return {name: getattr(self, name) for name in self.BOUNDS}

    def clamped(self: P, **changes: float) -> P:
        """
        Copy with the given fields replaced, each clamped to its declared bound.
        Names that are not fields of this layer are ignored.
        """
        update = {}
        for name, value in changes.items():
            if name not in self.BOUNDS:
                continue
            low, high = self.BOUNDS[name]
            update[name] = clamp(value, low, high)
        return self.model_copy(update=update)


class GlobalPulse(PulseRecord):
    """
    National layer. Sets the political and media weather.
    Updates every 14-28 turns depending on volatility.
    """

    LAYER: ClassVar[Layer] = Layer.GLOBAL
    BOUNDS: ClassVar[Dict[str, Bounds]] = {
        "enforcement_climate": (0.0, 100.0),
        "media_narrative": (-100.0, 100.0),
        "judicial_alignment": (-50.0, 50.0),
        "political_volatility": (0.0, 100.0),
    }

    enforcement_climate: float = Field(ge=0, le=100, default=50)     # 0 lax .. 100 crisis
    media_narrative: float = Field(ge=-100, le=100, default=0)       # -100 sympathy .. +100 panic
    judicial_alignment: float = Field(ge=-50, le=50, default=0)      # -50 rights-expansive .. +50 deferential
    political_volatility: float = Field(ge=0, le=100, default=30)


class CityPulse(PulseRecord):
    """City layer. Interprets national pressure into local policy. Updates weekly."""

    LAYER: ClassVar[Layer] = Layer.CITY
    BOUNDS: ClassVar[Dict[str, Bounds]] = {
        "federal_cooperation": (0.0, 100.0),
        "data_density": (0.0, 100.0),
        "political_cover": (0.0, 100.0),
        "civil_society_capacity": (0.0, 100.0),
        "bureaucratic_inertia": (0.0, 100.0),
    }

    federal_cooperation: float = Field(ge=0, le=100, default=50)     # 0 resist .. 100 partner
    data_density: float = Field(ge=0, le=100, default=50)
    political_cover: float = Field(ge=0, le=100, default=50)
    civil_society_capacity: float = Field(ge=0, le=100, default=50)
    bureaucratic_inertia: float = Field(ge=0, le=100, default=50)


class NeighborhoodPulse(PulseRecord):
    """
    Neighborhood layer, the playable surface. Updates every turn.
    Trust and suspicion are independent; both can be high at once.
    """

    LAYER: ClassVar[Layer] = Layer.NEIGHBORHOOD
    BOUNDS: ClassVar[Dict[str, Bounds]] = {
        "trust": (0.0, 100.0),
        "suspicion": (0.0, 100.0),
        "enforcement_visibility": (0.0, 100.0),
        "community_density": (0.0, 100.0),
        "economic_precarity": (0.0, 100.0),
    }

    trust: float = Field(ge=0, le=100, default=50)
    suspicion: float = Field(ge=0, le=100, default=50)
    enforcement_visibility: float = Field(ge=0, le=100, default=50)  # presence, not severity
    community_density: float = Field(ge=0, le=100, default=50)       # connectedness, not population
    economic_precarity: float = Field(ge=0, le=100, default=50)


class FamilyImpact(PulseRecord):
    """Family variables. Modified by drift and by player choices."""

    LAYER: ClassVar[Layer] = Layer.FAMILY
    BOUNDS: ClassVar[Dict[str, Bounds]] = {
        "visibility": (0.0, 100.0),
        "stress": (0.0, 100.0),
        "cohesion": (0.0, 100.0),
        "trust_network_strength": (0.0, 100.0),
    }

    visibility: float = Field(ge=0, le=100, default=30)
    stress: float = Field(ge=0, le=100, default=20)
    cohesion: float = Field(ge=0, le=100, default=70)
    trust_network_strength: float = Field(ge=0, le=100, default=40)


# Stand-in family used when drifting neighborhoods the player is not in
NEUTRAL_FAMILY = FamilyImpact(
    visibility=0,
    stress=0,
    cohesion=50,
    trust_network_strength=0,
)
