"""
Turn State Machine: one in-game day per cycle.

States:
  PLAN → PULSE_UPDATE → EVENT → DECISION → CONSEQUENCE → PLAN (turn + 1)

DECISION is a true suspension point: when a neighborhood event fired this
turn the machine stays there until the caller resumes it with the player's
selected choice ids.

The machine is a pure function of (state, context, random source). It never
mutates the state it is given; each phase returns a new GameState.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence

from sanctuary_engine.events.engine import (
    apply_city_event_effects,
    apply_effects,
    apply_global_event_effects,
    apply_neighborhood_event_effects,
    prune_expired_events,
    select_city_event,
    select_global_event,
    select_neighborhood_event,
    should_trigger_city_event,
    should_trigger_global_event,
    should_trigger_neighborhood_event,
)
from sanctuary_engine.models.decision import ChoiceRecord
from sanctuary_engine.models.event import ActiveEvents
from sanctuary_engine.models.game import (
    GameState,
    NeighborhoodPulseEntry,
    TurnContext,
    TurnPhase,
    WorldPulses,
)
from sanctuary_engine.pulse.engine import update_all_pulses
from sanctuary_engine.randomness.source import (
    IdGenerator,
    RandomSource,
    resolve_ids,
    resolve_random,
)
from sanctuary_engine.turn.decisions import generate_event_decision

logger = logging.getLogger(__name__)

PHASE_ORDER: List[TurnPhase] = [
    TurnPhase.PLAN,
    TurnPhase.PULSE_UPDATE,
    TurnPhase.EVENT,
    TurnPhase.DECISION,
    TurnPhase.CONSEQUENCE,
]


def next_phase(current: TurnPhase) -> TurnPhase:
    idx = PHASE_ORDER.index(current)
    return PHASE_ORDER[(idx + 1) % len(PHASE_ORDER)]


# =============================================================================
# PHASE PROCESSORS
# =============================================================================

def _process_plan(state: GameState, **_) -> GameState:
    # Effort allocation will live here; for now the phase only advances
    return state.model_copy(update={"phase": next_phase(state.phase)})


def _process_pulse_update(
    state: GameState, last_global_update: int, rng: RandomSource, **_
) -> GameState:
    world = WorldPulses(
        global_pulse=state.global_pulse,
        city=state.city.pulse,
        neighborhoods=[
            NeighborhoodPulseEntry(id=n.id, pulse=n.pulse)
            for n in state.city.neighborhoods
        ],
        family=state.family,
    )
    result = update_all_pulses(
        world,
        state.turn,
        last_global_update,
        state.city.current_neighborhood_id,
        rng,
    )

    pulses = {entry.id: entry.pulse for entry in result.neighborhoods}
    neighborhoods = [
        n.model_copy(update={"pulse": pulses[n.id]}) if n.id in pulses else n
        for n in state.city.neighborhoods
    ]

    return state.model_copy(update={
        "global_pulse": result.global_pulse,
        "city": state.city.model_copy(update={
            "pulse": result.city,
            "neighborhoods": neighborhoods,
        }),
        "family": result.family,
        "phase": next_phase(state.phase),
    })


def _process_event(
    state: GameState,
    ctx: TurnContext,
    rng: RandomSource,
    ids: IdGenerator,
    **_,
) -> GameState:
    """
    Prune, roll each layer (global, city, current neighborhood), then apply
    the effects of everything still active to the matching pulses.
    """
    pruned = prune_expired_events(state.active_events, state.turn)
    global_events = list(pruned.global_events)
    city_events = list(pruned.city)
    neighborhood_events = list(pruned.neighborhood)

    if should_trigger_global_event(state.global_pulse, rng):
        event = select_global_event(state.global_pulse, state.turn, rng, ids)
        if event:
            global_events.append(event)

    if should_trigger_city_event(state.city.pulse, rng):
        event = select_city_event(
            ctx.city_event_templates,
            state.city.pulse,
            state.turn,
            [n.id for n in state.city.neighborhoods],
            rng,
            ids,
        )
        if event:
            city_events.append(event)

    current = state.city.current_neighborhood
    if current is not None and should_trigger_neighborhood_event(current.pulse, rng):
        event = select_neighborhood_event(
            ctx.neighborhood_event_templates,
            current.pulse,
            current.id,
            state.turn,
            rng,
            ids,
        )
        if event:
            neighborhood_events.append(event)

    global_pulse = state.global_pulse
    for event in global_events:
        global_pulse = apply_global_event_effects(global_pulse, event.effects)

    city_pulse = state.city.pulse
    for event in city_events:
        city_pulse = apply_city_event_effects(city_pulse, event.effects)

    neighborhoods = []
    for n in state.city.neighborhoods:
        relevant = [e for e in neighborhood_events if e.neighborhood_id == n.id]
        if not relevant:
            neighborhoods.append(n)
            continue
        pulse = n.pulse
        for event in relevant:
            pulse = apply_neighborhood_event_effects(pulse, event.effects)
        neighborhoods.append(n.model_copy(update={"pulse": pulse}))

    return state.model_copy(update={
        "global_pulse": global_pulse,
        "city": state.city.model_copy(update={
            "pulse": city_pulse,
            "neighborhoods": neighborhoods,
        }),
        "active_events": ActiveEvents(
            global_events=global_events,
            city=city_events,
            neighborhood=neighborhood_events,
        ),
        "phase": next_phase(state.phase),
    })


def _process_decision(state: GameState, **_) -> GameState:
    """Suspend on a decision if a neighborhood event started this turn."""
    recent = next(
        (e for e in state.active_events.neighborhood if e.start_turn == state.turn),
        None,
    )
    if recent is not None:
        # Stay in DECISION until the player responds
        return state.model_copy(update={
            "current_decision": generate_event_decision(recent, state),
        })

    return state.model_copy(update={
        "current_decision": None,
        "phase": next_phase(state.phase),
    })


def _process_consequence(
    state: GameState, selected_choice_ids: Sequence[str] = (), **_
) -> GameState:
    """Apply the chosen effects to the family, record them, and close the turn."""
    # Also reached straight from DECISION when a pending choice is submitted
    closing_phase = next_phase(TurnPhase.CONSEQUENCE)
    decision = state.current_decision
    if decision is None:
        return state.model_copy(update={
            "turn": state.turn + 1,
            "phase": closing_phase,
            "current_decision": None,
        })

    # Tolerant lookup: ids that match nothing are dropped
    wanted = set(selected_choice_ids)
    selected = [c for c in decision.choices if c.id in wanted]

    family = state.family
    combined: Dict[str, float] = {}
    for choice in selected:
        family = apply_effects(family, choice.effects)
        for name, delta in choice.effects.items():
            combined[name] = combined.get(name, 0) + delta

    record = ChoiceRecord(
        turn=state.turn,
        decision_id=decision.id,
        choice_ids=[c.id for c in selected],
        effects=combined,
    )
    logger.debug("Turn %d: resolved %s with %s",
                 state.turn, decision.id, record.choice_ids)

    return state.model_copy(update={
        "family": family,
        "choice_history": [*state.choice_history, record],
        "turn": state.turn + 1,
        "phase": closing_phase,
        "current_decision": None,
    })


_PHASE_HANDLERS: Dict[TurnPhase, Callable[..., GameState]] = {
    TurnPhase.PLAN: _process_plan,
    TurnPhase.PULSE_UPDATE: _process_pulse_update,
    TurnPhase.EVENT: _process_event,
    TurnPhase.DECISION: _process_decision,
    TurnPhase.CONSEQUENCE: _process_consequence,
}


# =============================================================================
# PUBLIC API
# =============================================================================

def advance_phase(
    state: GameState,
    ctx: TurnContext,
    last_global_update: int,
    selected_choice_ids: Optional[Sequence[str]] = None,
    rng: Optional[RandomSource] = None,
    ids: Optional[IdGenerator] = None,
) -> GameState:
    """
    Advance the game by one phase.

    Resuming a pending decision (DECISION phase, a current decision, and
    ``selected_choice_ids`` supplied) goes straight to consequence
    processing. An unrecognized phase returns the state unchanged.
    """
    rng = resolve_random(rng)
    ids = resolve_ids(ids)

    if (
        state.phase == TurnPhase.DECISION
        and state.current_decision is not None
        and selected_choice_ids is not None
    ):
        return _process_consequence(state, selected_choice_ids=selected_choice_ids)

    handler = _PHASE_HANDLERS.get(state.phase)
    if handler is None:
        logger.warning("Unrecognized phase %r; state left unchanged", state.phase)
        return state

    result = handler(
        state,
        ctx=ctx,
        last_global_update=last_global_update,
        rng=rng,
        ids=ids,
        selected_choice_ids=selected_choice_ids or (),
    )
    logger.debug("Turn %d: %s -> %s", state.turn, state.phase.value
                 if isinstance(state.phase, TurnPhase) else state.phase,
                 result.phase.value)
    return result


def is_awaiting_decision(state: GameState) -> bool:
    return state.phase == TurnPhase.DECISION and state.current_decision is not None


def run_complete_turn(
    state: GameState,
    ctx: TurnContext,
    last_global_update: int,
    rng: Optional[RandomSource] = None,
    ids: Optional[IdGenerator] = None,
) -> GameState:
    """
    Advance phases until a decision needs the player, the turn completes,
    or a phase fails to change (malformed state).
    """
    rng = resolve_random(rng)
    ids = resolve_ids(ids)
    current = state

    while True:
        previous_phase = current.phase
        current = advance_phase(current, ctx, last_global_update, rng=rng, ids=ids)

        if is_awaiting_decision(current):
            break

        if current.phase == TurnPhase.PLAN and current.turn > state.turn:
            break

        if current.phase == previous_phase:
            logger.warning("Phase stuck at %r on turn %d; stopping", current.phase,
                           current.turn)
            break

    return current
