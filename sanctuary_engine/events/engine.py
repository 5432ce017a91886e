"""
Event Engine: trigger rolls, weighted template selection, materialization,
effect application and expiry.

Behavioral Contract:
- One independent Bernoulli trigger roll per layer per turn.
- Selection is weighted random over eligible templates. An empty pool or a
  zero total weight yields None ("no event this layer, this turn"), never
  an exception.
- Effects are additive and clamped to the target pulse's declared bounds.
- Global and city events persist for their duration; neighborhood events
  are single-turn flashes.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple, TypeVar

from sanctuary_engine.models.event import (
    ActiveEvents,
    CityEvent,
    CityEventTemplate,
    Effects,
    EventTriggers,
    GlobalEvent,
    GlobalEventTemplate,
    GlobalEventType,
    NeighborhoodEvent,
    NeighborhoodEventTemplate,
    NeighborhoodEventType,
)
from sanctuary_engine.models.pulse import (
    CityPulse,
    GlobalPulse,
    NeighborhoodPulse,
    P,
)
from sanctuary_engine.randomness.source import (
    IdGenerator,
    RandomSource,
    resolve_ids,
    resolve_random,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

ENFORCEMENT_EVENT_TYPES = frozenset({
    NeighborhoodEventType.CHECKPOINT,
    NeighborhoodEventType.AUDIT,
    NeighborhoodEventType.RAID_RUMOR,
    NeighborhoodEventType.DETENTION,
})

# Built-in national pool. Not authored content: every city shares it.
GLOBAL_EVENT_TEMPLATES: List[GlobalEventTemplate] = [
    GlobalEventTemplate(
        type=GlobalEventType.EXECUTIVE,
        title="New Enforcement Directive",
        description="Federal agencies receive new guidance on enforcement priorities.",
        effects={"enforcement_climate": 15, "political_volatility": 10},
        weight=2,
    ),
    GlobalEventTemplate(
        type=GlobalEventType.JUDICIAL,
        title="Court Ruling",
        description="A significant court decision affects enforcement procedures.",
        effects={"judicial_alignment": 10},
        weight=2,
    ),
    GlobalEventTemplate(
        type=GlobalEventType.MEDIA,
        title="National News Coverage",
        description="A story about immigration dominates the news cycle.",
        effects={"media_narrative": 20, "political_volatility": 5},
        weight=3,
    ),
    GlobalEventTemplate(
        type=GlobalEventType.SECURITY,
        title="Security Incident",
        description="A national security event shifts public attention.",
        effects={"enforcement_climate": 10, "media_narrative": 15},
        weight=1,
    ),
]


# =============================================================================
# RANDOM SELECTION
# =============================================================================

def weighted_choice(
    items: Sequence[T], weights: Sequence[float], rng: RandomSource
) -> Optional[T]:
    """
    Pick one item with probability proportional to its weight.

    Walks the items in input order subtracting each weight from
    ``U * total``; the first item that brings the running value to <= 0 wins.
    """
    if not items:
        return None

    total = sum(weights)
    if total <= 0:
        return None

    remaining = rng.random() * total
    for item, weight in zip(items, weights):
        remaining -= weight
        if remaining <= 0:
            return item

    # Float rounding can leave a sliver
    return items[-1]


def random_severity(severity_range: Tuple[int, int], rng: RandomSource) -> int:
    """Uniform integer over the range, clamped to the 1-5 severity scale."""
    low, high = severity_range
    value = int(rng.random() * (high - low + 1)) + low
    return max(1, min(5, value))


def random_in_range(value_range: Tuple[int, int], rng: RandomSource) -> int:
    low, high = value_range
    return int(rng.random() * (high - low + 1)) + low


# =============================================================================
# EFFECT APPLICATION
# =============================================================================

def apply_effects(pulse: P, effects: Effects) -> P:
    """
    Add each delta to its field and clamp to that field's bound.
    Works for every layer, family included; unknown fields are ignored.
    """
    values = pulse.field_values()
    changes = {
        name: values[name] + delta
        for name, delta in effects.items()
        if name in values
    }
    return pulse.clamped(**changes)


def apply_global_event_effects(pulse: GlobalPulse, effects: Effects) -> GlobalPulse:
    return apply_effects(pulse, effects)


def apply_city_event_effects(pulse: CityPulse, effects: Effects) -> CityPulse:
    return apply_effects(pulse, effects)


def apply_neighborhood_event_effects(
    pulse: NeighborhoodPulse, effects: Effects
) -> NeighborhoodPulse:
    return apply_effects(pulse, effects)


# =============================================================================
# NEIGHBORHOOD EVENTS
# =============================================================================

def check_neighborhood_triggers(
    triggers: Optional[EventTriggers], pulse: NeighborhoodPulse
) -> bool:
    """A template is eligible iff every threshold it sets holds."""
    if triggers is None:
        return True

    values = pulse.field_values()
    for key, threshold in triggers.thresholds().items():
        prefix, _, field = key.partition("_")
        current = values.get(field)
        if current is None:
            continue
        if prefix == "min" and current < threshold:
            return False
        if prefix == "max" and current > threshold:
            return False
    return True


def adjust_neighborhood_event_weight(
    template: NeighborhoodEventTemplate, pulse: NeighborhoodPulse
) -> float:
    """Scale a template's weight by the neighborhood's current mood."""
    weight = template.weight

    if template.type in ENFORCEMENT_EVENT_TYPES:
        weight *= 1 + pulse.enforcement_visibility / 100

    if template.type == NeighborhoodEventType.MEETING:
        weight *= 1 + pulse.community_density / 100
    else:
        # Suspicion makes every negative event likelier
        weight *= 1 + pulse.suspicion / 200

    return weight


def neighborhood_trigger_probability(pulse: NeighborhoodPulse) -> float:
    return (
        0.3
        + pulse.enforcement_visibility * 0.002
        + pulse.suspicion * 0.001
        - pulse.trust * 0.001
    )


def should_trigger_neighborhood_event(
    pulse: NeighborhoodPulse, rng: Optional[RandomSource] = None
) -> bool:
    rng = resolve_random(rng)
    return rng.random() < neighborhood_trigger_probability(pulse)


def select_neighborhood_event(
    templates: Sequence[NeighborhoodEventTemplate],
    pulse: NeighborhoodPulse,
    neighborhood_id: str,
    turn: int,
    rng: Optional[RandomSource] = None,
    ids: Optional[IdGenerator] = None,
) -> Optional[NeighborhoodEvent]:
    """Filter by triggers, re-weight by pulse, then draw one template."""
    rng = resolve_random(rng)
    ids = resolve_ids(ids)

    eligible = [t for t in templates if check_neighborhood_triggers(t.triggers, pulse)]
    weights = [adjust_neighborhood_event_weight(t, pulse) for t in eligible]

    selected = weighted_choice(eligible, weights, rng)
    if selected is None or not selected.targets:
        return None

    target = selected.targets[int(rng.random() * len(selected.targets))]
    event = NeighborhoodEvent(
        id=ids.next_id("evt"),
        type=selected.type,
        severity=random_severity(selected.severity_range, rng),
        target=target,
        neighborhood_id=neighborhood_id,
        title=selected.title,
        description=selected.description_template,
        start_turn=turn,
        effects=dict(selected.effects),
    )
    logger.debug("Neighborhood event %s (%s) in %s on turn %d",
                 event.id, selected.id, neighborhood_id, turn)
    return event


# =============================================================================
# CITY EVENTS
# =============================================================================

def city_trigger_probability(pulse: CityPulse) -> float:
    # Political cover damps disruption; inertia breeds odd outcomes
    return 0.15 - pulse.political_cover * 0.001 + pulse.bureaucratic_inertia * 0.001


def should_trigger_city_event(
    pulse: CityPulse, rng: Optional[RandomSource] = None
) -> bool:
    rng = resolve_random(rng)
    return rng.random() < city_trigger_probability(pulse)


def select_city_event(
    templates: Sequence[CityEventTemplate],
    pulse: CityPulse,
    turn: int,
    neighborhood_ids: Sequence[str],
    rng: Optional[RandomSource] = None,
    ids: Optional[IdGenerator] = None,
) -> Optional[CityEvent]:
    """Draw a city template by raw weight and materialize it."""
    rng = resolve_random(rng)
    ids = resolve_ids(ids)

    selected = weighted_choice(list(templates), [t.weight for t in templates], rng)
    if selected is None:
        return None

    # 60%: whole city. Otherwise each neighborhood independently at 50%.
    impact_radius = "All"
    if rng.random() >= 0.6:
        subset = [n for n in neighborhood_ids if rng.random() > 0.5]
        if subset:
            impact_radius = subset

    event = CityEvent(
        id=ids.next_id("evt"),
        category=selected.category,
        visibility=random_in_range(selected.visibility_range, rng),
        impact_radius=impact_radius,
        title=selected.title,
        description=selected.description_template,
        start_turn=turn,
        duration_days=random_in_range(selected.duration_range, rng),
        effects=dict(selected.effects),
    )
    logger.debug("City event %s (%s) on turn %d for %s days",
                 event.id, selected.id, turn, event.duration_days)
    return event


# =============================================================================
# GLOBAL EVENTS
# =============================================================================

def global_trigger_probability(pulse: GlobalPulse) -> float:
    """Roughly 2% when calm, up to 8% at maximum volatility."""
    return 0.02 + pulse.political_volatility * 0.0006


def should_trigger_global_event(
    pulse: GlobalPulse, rng: Optional[RandomSource] = None
) -> bool:
    rng = resolve_random(rng)
    return rng.random() < global_trigger_probability(pulse)


def select_global_event(
    pulse: GlobalPulse,
    turn: int,
    rng: Optional[RandomSource] = None,
    ids: Optional[IdGenerator] = None,
    templates: Optional[Sequence[GlobalEventTemplate]] = None,
) -> Optional[GlobalEvent]:
    """
    Draw from the built-in national pool. Magnitude scales with volatility
    and stretches both duration (7 + 7*magnitude days) and every effect.
    """
    rng = resolve_random(rng)
    ids = resolve_ids(ids)
    pool = list(templates) if templates is not None else GLOBAL_EVENT_TEMPLATES

    selected = weighted_choice(pool, [t.weight for t in pool], rng)
    if selected is None:
        return None

    magnitude = random_severity((1, 3 + int(pulse.political_volatility // 30)), rng)
    effects: Dict[str, float] = {
        name: value * magnitude for name, value in selected.effects.items()
    }

    event = GlobalEvent(
        id=ids.next_id("evt"),
        type=selected.type,
        magnitude=magnitude,
        duration_days=7 + magnitude * 7,
        title=selected.title,
        description=selected.description,
        start_turn=turn,
        effects=effects,
    )
    logger.debug("Global event %s (%s) magnitude %d on turn %d",
                 event.id, selected.type.value, magnitude, turn)
    return event


# =============================================================================
# EXPIRY
# =============================================================================

def prune_expired_events(events: ActiveEvents, current_turn: int) -> ActiveEvents:
    """
    Drop events that are no longer active on ``current_turn``.

    Durable events live while ``current_turn < start_turn + duration_days``;
    neighborhood events only on their start turn.
    """
    return ActiveEvents(
        global_events=[
            e for e in events.global_events
            if current_turn < e.start_turn + e.duration_days
        ],
        city=[
            e for e in events.city
            if current_turn < e.start_turn + e.duration_days
        ],
        neighborhood=[
            e for e in events.neighborhood
            if current_turn == e.start_turn
        ],
    )
