"""
Pulse Engine: drift and cross-layer propagation for all four world layers.

Pulses drift slowly every turn; events (see the event engine) cause shocks.
Pressure propagates down easily and up slowly:

  Global  --(every 14-28 turns, faster when volatile)-->
  City    --(every 7 turns)-->
  Neighborhood --(every turn)--> Family --(damped)--> Neighborhood

Every function is pure: inputs are never mutated, new records are returned.
"""

import logging
from typing import List, Optional

from sanctuary_engine.models.game import (
    NeighborhoodPulseEntry,
    PulseUpdate,
    WorldPulses,
)
from sanctuary_engine.models.pulse import (
    NEUTRAL_FAMILY,
    Bounds,
    CityPulse,
    FamilyImpact,
    GlobalPulse,
    Layer,
    NeighborhoodPulse,
    clamp,
)
from sanctuary_engine.randomness.source import RandomSource, resolve_random

logger = logging.getLogger(__name__)

# Update cadence (turns)
CITY_UPDATE_INTERVAL = 7
GLOBAL_UPDATE_MIN_INTERVAL = 14
GLOBAL_UPDATE_MAX_INTERVAL = 28


def drift(
    current: float,
    spread: float,
    rng: RandomSource,
    bias: float = 0.0,
    bounds: Bounds = (0.0, 100.0),
) -> float:
    """Random walk step: ``current + (U - 0.5 + bias) * spread``, clamped."""
    change = (rng.random() - 0.5 + bias) * spread
    return clamp(current + change, *bounds)


# =============================================================================
# GLOBAL
# =============================================================================

def update_global_pulse(
    pulse: GlobalPulse, rng: Optional[RandomSource] = None
) -> GlobalPulse:
    """Drift the national pulse. Spread grows with political volatility (5-15)."""
    rng = resolve_random(rng)
    spread = 5 + (pulse.political_volatility / 100) * 10
    bounds = GlobalPulse.BOUNDS

    return GlobalPulse(
        enforcement_climate=drift(
            pulse.enforcement_climate, spread, rng,
            bounds=bounds["enforcement_climate"],
        ),
        media_narrative=drift(
            pulse.media_narrative, spread * 2, rng,
            bounds=bounds["media_narrative"],
        ),
        judicial_alignment=drift(
            pulse.judicial_alignment, spread, rng,
            bounds=bounds["judicial_alignment"],
        ),
        # Volatility itself moves slowly
        political_volatility=drift(
            pulse.political_volatility, 3, rng,
            bounds=bounds["political_volatility"],
        ),
    )


def global_update_interval(volatility: float) -> float:
    """28 turns at volatility 0, shrinking linearly to 14 at volatility 100."""
    span = GLOBAL_UPDATE_MAX_INTERVAL - GLOBAL_UPDATE_MIN_INTERVAL
    return GLOBAL_UPDATE_MAX_INTERVAL - (volatility / 100) * span


def should_update_global_pulse(turn: int, last_update: int, volatility: float) -> bool:
    return turn - last_update >= global_update_interval(volatility)


# =============================================================================
# CITY
# =============================================================================

def update_city_pulse(
    pulse: CityPulse, global_pulse: GlobalPulse, rng: Optional[RandomSource] = None
) -> CityPulse:
    """Drift the city pulse under national pressure."""
    rng = resolve_random(rng)

    # Enforcement climate pushes cooperation; a hostile narrative erodes cover
    cooperation_pressure = (global_pulse.enforcement_climate - 50) * 0.05
    cover_pressure = (global_pulse.media_narrative / 100) * -2

    return CityPulse(
        federal_cooperation=drift(pulse.federal_cooperation, 3, rng, cooperation_pressure),
        data_density=drift(pulse.data_density, 1, rng),
        political_cover=drift(pulse.political_cover, 3, rng, cover_pressure),
        civil_society_capacity=drift(pulse.civil_society_capacity, 2, rng),
        bureaucratic_inertia=drift(pulse.bureaucratic_inertia, 2, rng),
    )


def should_update_city_pulse(turn: int) -> bool:
    return turn % CITY_UPDATE_INTERVAL == 0


# =============================================================================
# NEIGHBORHOOD
# =============================================================================

def update_neighborhood_pulse(
    pulse: NeighborhoodPulse,
    city: CityPulse,
    global_pulse: GlobalPulse,
    family: FamilyImpact,
    rng: Optional[RandomSource] = None,
) -> NeighborhoodPulse:
    """
    Drift a neighborhood under city and national pressure.

    The family feeds back into trust and suspicion through a damped term
    (x0.15 / x0.1, then x0.1 again), the slow upward half of the coupling.
    """
    rng = resolve_random(rng)

    enforcement_pressure = (
        city.federal_cooperation * 0.2 + global_pulse.enforcement_climate * 0.1 - 30
    ) * 0.05
    trust_from_family = family.trust_network_strength * 0.15
    suspicion_from_family = family.visibility * 0.1

    return NeighborhoodPulse(
        trust=clamp(drift(pulse.trust, 2, rng) + trust_from_family * 0.1),
        suspicion=clamp(drift(pulse.suspicion, 2, rng) + suspicion_from_family * 0.1),
        enforcement_visibility=clamp(
            drift(pulse.enforcement_visibility, 2, rng) + enforcement_pressure
        ),
        community_density=drift(pulse.community_density, 1, rng),
        economic_precarity=drift(pulse.economic_precarity, 1.5, rng),
    )


# =============================================================================
# FAMILY
# =============================================================================

def update_family_impact(
    family: FamilyImpact,
    neighborhood: NeighborhoodPulse,
    rng: Optional[RandomSource] = None,
) -> FamilyImpact:
    """Stress accumulates under enforcement; cohesion decays once stress passes 60."""
    rng = resolve_random(rng)

    # More visible families feel enforcement more
    stress_pressure = (
        neighborhood.enforcement_visibility * 0.02
        + neighborhood.economic_precarity * 0.01
    ) * (family.visibility / 50)
    cohesion_bias = -0.5 if family.stress > 60 else 0.2
    network_bias = (neighborhood.community_density - 50) * 0.01

    return FamilyImpact(
        visibility=drift(family.visibility, 1, rng),
        stress=drift(family.stress, 1, rng, stress_pressure),
        cohesion=drift(family.cohesion, 1, rng, cohesion_bias),
        trust_network_strength=drift(family.trust_network_strength, 1, rng, network_bias),
    )


# =============================================================================
# AGGREGATE
# =============================================================================

def update_all_pulses(
    world: WorldPulses,
    turn: int,
    last_global_update: int,
    current_neighborhood_id: str,
    rng: Optional[RandomSource] = None,
) -> PulseUpdate:
    """
    Run one turn of pulse updates across every layer.

    Global and city only move when their cadence fires. Every neighborhood
    drifts every turn; only the player's current neighborhood feels the
    family, the rest see a neutral stand-in. The family then drifts from
    the current neighborhood's post-update pulse.
    """
    rng = resolve_random(rng)
    updated: List[Layer] = []

    global_pulse = world.global_pulse
    if should_update_global_pulse(
        turn, last_global_update, world.global_pulse.political_volatility
    ):
        global_pulse = update_global_pulse(world.global_pulse, rng)
        updated.append(Layer.GLOBAL)
        logger.debug("Global pulse updated on turn %d", turn)

    city = world.city
    if should_update_city_pulse(turn):
        city = update_city_pulse(world.city, global_pulse, rng)
        updated.append(Layer.CITY)
        logger.debug("City pulse updated on turn %d", turn)

    neighborhoods = []
    for entry in world.neighborhoods:
        family = world.family if entry.id == current_neighborhood_id else NEUTRAL_FAMILY
        neighborhoods.append(NeighborhoodPulseEntry(
            id=entry.id,
            pulse=update_neighborhood_pulse(entry.pulse, city, global_pulse, family, rng),
        ))
    updated.append(Layer.NEIGHBORHOOD)

    current = next((n for n in neighborhoods if n.id == current_neighborhood_id), None)
    if current is not None:
        family = update_family_impact(world.family, current.pulse, rng)
    else:
        logger.debug("Current neighborhood %s not found; family unchanged",
                     current_neighborhood_id)
        family = world.family
    updated.append(Layer.FAMILY)

    return PulseUpdate(
        global_pulse=global_pulse,
        city=city,
        neighborhoods=neighborhoods,
        family=family,
        updated_layers=updated,
    )
