"""
Ending Evaluator.

Checked after every completed turn. Rules are evaluated in a fixed order and
the first match wins:

  1. failure    family stress >= 95 and cohesion <= 10
  2. outlast    turn >= max_turns while the enforcement climate is below 40
  3. sanctuary  current neighborhood is a safe haven and the family is networked
  4. transform  the city has turned against federal cooperation

Once an ending is recorded the state is terminal and returned as-is.
"""

import logging
from typing import Optional

from sanctuary_engine.models.game import (
    EndingType,
    GameEnding,
    GameState,
    VictoryType,
)

logger = logging.getLogger(__name__)

FAILURE_REASON = "Family could not endure the pressure."


def _failure(state: GameState) -> bool:
    return state.family.stress >= 95 and state.family.cohesion <= 10


def _outlast(state: GameState) -> bool:
    return (
        state.turn >= state.max_turns
        and state.global_pulse.enforcement_climate < 40
    )


def _sanctuary(state: GameState) -> bool:
    current = state.city.current_neighborhood
    if current is None:
        return False
    return (
        current.pulse.trust >= 80
        and current.pulse.community_density >= 70
        and state.family.trust_network_strength >= 80
    )


def _transform(state: GameState) -> bool:
    city = state.city.pulse
    return (
        city.political_cover >= 80
        and city.federal_cooperation <= 20
        and state.global_pulse.media_narrative <= -50
    )


def evaluate_ending(state: GameState) -> Optional[GameEnding]:
    """The ending the state currently qualifies for, without recording it."""
    if _failure(state):
        return GameEnding(type=EndingType.FAILURE, reason=FAILURE_REASON, turn=state.turn)

    for victory, predicate in (
        (VictoryType.OUTLAST, _outlast),
        (VictoryType.SANCTUARY, _sanctuary),
        (VictoryType.TRANSFORM, _transform),
    ):
        if predicate(state):
            return GameEnding(type=EndingType.VICTORY, victory_type=victory, turn=state.turn)

    return None


def check_game_ending(state: GameState) -> GameState:
    """Record an ending on the state if one applies. Idempotent once ended."""
    if state.ending is not None:
        return state

    ending = evaluate_ending(state)
    if ending is None:
        return state

    logger.debug("Game %s ended on turn %d: %s %s", state.session_id, state.turn,
                 ending.type.value,
                 ending.victory_type.value if ending.victory_type else ending.reason)
    return state.model_copy(update={"ending": ending})
