"""Decisions: player-facing prompts generated in response to neighborhood events."""

from typing import Dict, List, Optional

from pydantic import BaseModel


class ChoiceUnlockConditions(BaseModel):
    """Conditions that must all hold for a choice to be offered as unlocked."""

    min_turn: Optional[int] = None
    max_stress: Optional[float] = None
    min_cohesion: Optional[float] = None
    min_trust_network: Optional[float] = None
    max_visibility: Optional[float] = None
    required_choices: List[str] = []        # Earlier choices or rights knowledge
    rights_knowledge: List[str] = []


class Choice(BaseModel):
    id: str
    label: str
    description: str
    effects: Dict[str, float] = {}          # Additive deltas into FamilyImpact
    unlock_conditions: Optional[ChoiceUnlockConditions] = None


class Decision(BaseModel):
    id: str
    title: str
    narrative: str
    choices: List[Choice]
    multi_select: bool = False
    trigger_event_id: Optional[str] = None


class ChoiceRecord(BaseModel):
    """Append-only history entry for a resolved decision."""

    turn: int
    decision_id: str
    choice_ids: List[str]
    effects: Dict[str, float] = {}
