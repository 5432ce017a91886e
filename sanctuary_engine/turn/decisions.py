"""
Decision synthesis: hand-authored choice sets for each neighborhood event type.

Choice sets are fixed here rather than content-driven. Every generated
decision is single-select and points back at the event that caused it.
"""

import logging
from typing import Dict, List, Set

from sanctuary_engine.models.decision import (
    Choice,
    ChoiceUnlockConditions,
    Decision,
)
from sanctuary_engine.models.event import NeighborhoodEvent, NeighborhoodEventType
from sanctuary_engine.models.game import GameState

logger = logging.getLogger(__name__)

LEARN_RIGHTS_BASIC = "learn_rights_basic"
LEARN_RIGHTS_LEGAL = "learn_rights_legal"


def _requires(*knowledge: str) -> ChoiceUnlockConditions:
    return ChoiceUnlockConditions(required_choices=list(knowledge))


CHOICE_SETS: Dict[NeighborhoodEventType, List[Choice]] = {
    NeighborhoodEventType.CHECKPOINT: [
        Choice(
            id="comply",
            label="Comply fully",
            description="Present documentation and answer questions.",
            effects={"visibility": 5, "stress": 10},
        ),
        Choice(
            id="assert_rights",
            label="Assert your rights",
            description="Politely decline to answer questions beyond what's legally required.",
            effects={"visibility": 10, "stress": 15, "cohesion": 5},
            unlock_conditions=_requires(LEARN_RIGHTS_BASIC),
        ),
        Choice(
            id="avoid",
            label="Try to avoid",
            description="Change your route to bypass the checkpoint.",
            effects={"visibility": -5, "stress": 5},
        ),
    ],
    NeighborhoodEventType.RAID_RUMOR: [
        Choice(
            id="stay_home",
            label="Stay home",
            description="Keep a low profile until things calm down.",
            effects={"visibility": -10, "stress": 15, "cohesion": -5},
        ),
        Choice(
            id="warn_others",
            label="Warn your network",
            description="Alert neighbors and community members.",
            effects={"visibility": 5, "trust_network_strength": 10, "cohesion": 5},
        ),
        Choice(
            id="continue_normal",
            label="Continue as normal",
            description="Go about your day without changing routine.",
            effects={"stress": 5},
        ),
    ],
    NeighborhoodEventType.AUDIT: [
        Choice(
            id="provide_documents",
            label="Provide all documents",
            description="Give them everything they ask for.",
            effects={"visibility": 10, "stress": 10},
        ),
        Choice(
            id="request_lawyer",
            label="Request a lawyer",
            description="Ask for legal representation before proceeding.",
            effects={"visibility": 5, "stress": 20, "cohesion": 5},
            unlock_conditions=_requires(LEARN_RIGHTS_LEGAL),
        ),
    ],
    NeighborhoodEventType.MEETING: [
        Choice(
            id="attend",
            label="Attend the meeting",
            description="Participate in the community gathering.",
            effects={
                "visibility": 5,
                "trust_network_strength": 15,
                "stress": -5,
                "cohesion": 5,
            },
        ),
        Choice(
            id="skip",
            label="Skip it",
            description="You have other priorities right now.",
            effects={"trust_network_strength": -5},
        ),
    ],
    NeighborhoodEventType.DETENTION: [
        Choice(
            id="seek_help",
            label="Seek legal help immediately",
            description="Contact a lawyer and community organizations.",
            effects={"stress": 25, "trust_network_strength": 5},
        ),
        Choice(
            id="stay_silent",
            label="Remain silent",
            description="Exercise your right to remain silent.",
            effects={"stress": 30},
            unlock_conditions=_requires(LEARN_RIGHTS_BASIC),
        ),
    ],
}


def generate_event_decision(event: NeighborhoodEvent, state: GameState) -> Decision:
    """Build the player prompt for a neighborhood event."""
    choices = [c.model_copy(deep=True) for c in CHOICE_SETS.get(event.type, [])]
    decision = Decision(
        id=f"decision_{event.id}",
        title=event.title,
        narrative=event.description,
        choices=choices,
        multi_select=False,
        trigger_event_id=event.id,
    )
    logger.debug("Decision %s generated on turn %d with %d choices",
                 decision.id, state.turn, len(choices))
    return decision


def _earned_unlocks(state: GameState) -> Set[str]:
    """Every choice id the player has made, plus recorded rights knowledge."""
    earned = set(state.rights_knowledge)
    for record in state.choice_history:
        earned.update(record.choice_ids)
    return earned


def is_choice_unlocked(choice: Choice, state: GameState) -> bool:
    """
    Evaluate a choice's unlock conditions against the current state.

    Used to flag choices for display. Consequence resolution does not
    consult it: a locked choice id submitted anyway is still applied.
    """
    conditions = choice.unlock_conditions
    if conditions is None:
        return True

    family = state.family
    if conditions.min_turn is not None and state.turn < conditions.min_turn:
        return False
    if conditions.max_stress is not None and family.stress > conditions.max_stress:
        return False
    if conditions.min_cohesion is not None and family.cohesion < conditions.min_cohesion:
        return False
    if (
        conditions.min_trust_network is not None
        and family.trust_network_strength < conditions.min_trust_network
    ):
        return False
    if (
        conditions.max_visibility is not None
        and family.visibility > conditions.max_visibility
    ):
        return False

    earned = _earned_unlocks(state)
    if not all(req in earned for req in conditions.required_choices):
        return False
    if not all(k in state.rights_knowledge for k in conditions.rights_knowledge):
        return False

    return True


def unlocked_choice_ids(decision: Decision, state: GameState) -> List[str]:
    return [c.id for c in decision.choices if is_choice_unlocked(c, state)]
