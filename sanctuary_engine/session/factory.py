"""
Game factory: builds fresh GameState records from city options.

Partial pulse overrides are merged over the model defaults, so callers only
name the fields that differ.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from sanctuary_engine.models.game import (
    DEFAULT_MAX_TURNS,
    CityState,
    GameState,
    NeighborhoodState,
)
from sanctuary_engine.models.pulse import (
    CityPulse,
    FamilyImpact,
    GlobalPulse,
    NeighborhoodPulse,
)
from sanctuary_engine.randomness.source import IdGenerator, resolve_ids


class NeighborhoodOptions(BaseModel):
    name: str
    archetype: str = ""
    pulse: Dict[str, float] = {}


class CityOptions(BaseModel):
    name: str
    state: str = ""
    pulse: Dict[str, float] = {}
    neighborhoods: List[NeighborhoodOptions] = []


def create_neighborhood(
    options: NeighborhoodOptions, ids: Optional[IdGenerator] = None
) -> NeighborhoodState:
    ids = resolve_ids(ids)
    return NeighborhoodState(
        id=ids.next_id("nbhd"),
        name=options.name,
        archetype=options.archetype,
        pulse=NeighborhoodPulse(**options.pulse),
    )


def create_city(options: CityOptions, ids: Optional[IdGenerator] = None) -> CityState:
    """Build a city; the first neighborhood starts as current."""
    ids = resolve_ids(ids)
    if not options.neighborhoods:
        raise ValueError("City must have at least one neighborhood")

    neighborhoods = [create_neighborhood(n, ids) for n in options.neighborhoods]
    return CityState(
        id=ids.next_id("city"),
        name=options.name,
        state=options.state,
        pulse=CityPulse(**options.pulse),
        neighborhoods=neighborhoods,
        current_neighborhood_id=neighborhoods[0].id,
    )


def create_game_state(
    session_id: str,
    city: CityOptions,
    starting_neighborhood_index: int = 0,
    global_pulse: Optional[Dict[str, float]] = None,
    family: Optional[Dict[str, float]] = None,
    max_turns: int = DEFAULT_MAX_TURNS,
    clock: Optional[Callable[[], datetime]] = None,
    ids: Optional[IdGenerator] = None,
) -> GameState:
    """
    Create a new game at turn 1, phase plan, with no events and no history.

    Raises ValueError when the city has no neighborhoods or the starting
    index does not name one.
    """
    built = create_city(city, ids)
    if not 0 <= starting_neighborhood_index < len(built.neighborhoods):
        raise ValueError(
            f"Starting neighborhood index {starting_neighborhood_index} out of range"
        )
    built = built.model_copy(update={
        "current_neighborhood_id": built.neighborhoods[starting_neighborhood_index].id,
    })

    now = (clock or datetime.utcnow)()
    return GameState(
        session_id=session_id,
        created_at=now,
        updated_at=now,
        max_turns=max_turns,
        global_pulse=GlobalPulse(**(global_pulse or {})),
        city=built,
        family=FamilyImpact(**(family or {})),
    )


DEMO_CITY = CityOptions(
    name="Harbor City",
    state="CA",
    pulse={
        "federal_cooperation": 55,
        "data_density": 80,
        "political_cover": 35,
        "civil_society_capacity": 60,
        "bureaucratic_inertia": 70,
    },
    neighborhoods=[
        NeighborhoodOptions(
            name="El Centro",
            archetype="Dense immigrant enclave",
            pulse={
                "trust": 75,
                "suspicion": 40,
                "enforcement_visibility": 50,
                "community_density": 85,
                "economic_precarity": 65,
            },
        ),
        NeighborhoodOptions(
            name="Riverside Heights",
            archetype="Mixed suburb",
            pulse={
                "trust": 45,
                "suspicion": 25,
                "enforcement_visibility": 20,
                "community_density": 40,
                "economic_precarity": 35,
            },
        ),
        NeighborhoodOptions(
            name="Mission District",
            archetype="Gentrifying core",
            pulse={
                "trust": 50,
                "suspicion": 55,
                "enforcement_visibility": 60,
                "community_density": 70,
                "economic_precarity": 55,
            },
        ),
    ],
)

DEMO_GLOBAL_PULSE = {
    "enforcement_climate": 60,
    "media_narrative": 20,
    "judicial_alignment": 15,
    "political_volatility": 45,
}


def create_demo_game_state(
    session_id: str,
    max_turns: int = DEFAULT_MAX_TURNS,
    clock: Optional[Callable[[], datetime]] = None,
    ids: Optional[IdGenerator] = None,
) -> GameState:
    """Harbor City, CA: three neighborhoods, starting in El Centro."""
    return create_game_state(
        session_id,
        DEMO_CITY,
        global_pulse=DEMO_GLOBAL_PULSE,
        max_turns=max_turns,
        clock=clock,
        ids=ids,
    )
