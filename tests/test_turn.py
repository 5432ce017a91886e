"""Tests for the Turn State Machine and decision synthesis."""

from datetime import datetime

import pytest

from sanctuary_engine.models.decision import Choice, ChoiceUnlockConditions, Decision
from sanctuary_engine.models.event import (
    ActiveEvents,
    CityEvent,
    CityEventCategory,
    GlobalEvent,
    GlobalEventType,
    NeighborhoodEvent,
    NeighborhoodEventTemplate,
    NeighborhoodEventType,
)
from sanctuary_engine.models.game import GameState, TurnContext, TurnPhase
from sanctuary_engine.models.pulse import FamilyImpact
from sanctuary_engine.randomness.source import CounterIdGenerator
from sanctuary_engine.session.factory import (
    CityOptions,
    NeighborhoodOptions,
    create_game_state,
)
from sanctuary_engine.turn.decisions import (
    LEARN_RIGHTS_BASIC,
    generate_event_decision,
    is_choice_unlocked,
    unlocked_choice_ids,
)
from sanctuary_engine.turn.machine import (
    PHASE_ORDER,
    advance_phase,
    next_phase,
    run_complete_turn,
)

EMPTY_CONTEXT = TurnContext()


def _make_state(**updates) -> GameState:
    state = create_game_state(
        "sess_turn",
        CityOptions(
            name="Testville",
            state="CA",
            neighborhoods=[
                NeighborhoodOptions(name="North"),
                NeighborhoodOptions(name="South"),
            ],
        ),
        clock=lambda: datetime(2025, 1, 1),
        ids=CounterIdGenerator(),
    )
    return state.model_copy(update=updates)


def _checkpoint_context() -> TurnContext:
    return TurnContext(neighborhood_event_templates=[
        NeighborhoodEventTemplate(
            id="checkpoint-traffic",
            type=NeighborhoodEventType.CHECKPOINT,
            severity_range=(1, 2),
            targets=["Block"],
            title="Traffic Checkpoint",
            description_template="A checkpoint goes up.",
            weight=3,
            effects={"enforcement_visibility": 15, "suspicion": 5},
        ),
    ])


def _make_neighborhood_event(state: GameState, event_type=NeighborhoodEventType.CHECKPOINT):
    return NeighborhoodEvent(
        id="evt_n",
        type=event_type,
        severity=2,
        target="Block",
        neighborhood_id=state.city.current_neighborhood_id,
        title="Checkpoint",
        description="A checkpoint goes up.",
        start_turn=state.turn,
    )


def _make_pending(state: GameState, choices) -> GameState:
    return state.model_copy(update={
        "phase": TurnPhase.DECISION,
        "current_decision": Decision(
            id="decision_evt_n",
            title="Pick",
            narrative="Something happened",
            choices=choices,
            multi_select=True,
        ),
    })


class TestPhaseOrder:
    def test_next_phase_cycles(self):
        assert next_phase(TurnPhase.PLAN) == TurnPhase.PULSE_UPDATE
        assert next_phase(TurnPhase.CONSEQUENCE) == TurnPhase.PLAN
        assert len(PHASE_ORDER) == 5

    def test_five_calls_close_the_turn(self, quiet_rng):
        state = _make_state()
        seen = []
        for _ in range(5):
            state = advance_phase(state, EMPTY_CONTEXT, 0, rng=quiet_rng)
            seen.append(state.phase)

        assert seen == [
            TurnPhase.PULSE_UPDATE,
            TurnPhase.EVENT,
            TurnPhase.DECISION,
            TurnPhase.CONSEQUENCE,
            TurnPhase.PLAN,
        ]
        assert state.turn == 2
        assert seen == PHASE_ORDER[1:] + PHASE_ORDER[:1]
        assert state.choice_history == []
        assert state.current_decision is None

    def test_input_state_untouched(self, quiet_rng):
        state = _make_state()
        advance_phase(state, EMPTY_CONTEXT, 0, rng=quiet_rng)
        assert state.phase == TurnPhase.PLAN

    def test_unknown_phase_is_a_no_op(self, quiet_rng):
        state = _make_state().model_copy(update={"phase": "bogus"})
        assert advance_phase(state, EMPTY_CONTEXT, 0, rng=quiet_rng) is state


class TestEventPhase:
    def test_neighborhood_event_suspends_on_decision(self, eventful_rng):
        state = _make_state(phase=TurnPhase.EVENT)
        state = advance_phase(
            state, _checkpoint_context(), 0, rng=eventful_rng, ids=CounterIdGenerator()
        )
        assert state.phase == TurnPhase.DECISION
        assert len(state.active_events.neighborhood) == 1

        state = advance_phase(state, _checkpoint_context(), 0, rng=eventful_rng)
        assert state.phase == TurnPhase.DECISION
        decision = state.current_decision
        event = state.active_events.neighborhood[0]
        assert decision.id == f"decision_{event.id}"
        assert decision.trigger_event_id == event.id
        assert [c.id for c in decision.choices] == ["comply", "assert_rights", "avoid"]

    def test_active_durable_events_reapply_each_turn(self, quiet_rng):
        state = _make_state(
            turn=2,
            phase=TurnPhase.EVENT,
            active_events=ActiveEvents(
                global_events=[GlobalEvent(
                    id="evt_g", type=GlobalEventType.EXECUTIVE, magnitude=1,
                    duration_days=14, title="Directive", description="New guidance",
                    start_turn=1, effects={"enforcement_climate": 5},
                )],
                city=[CityEvent(
                    id="evt_c", category=CityEventCategory.POLICY, visibility=50,
                    title="Vote", description="Council votes", start_turn=1,
                    duration_days=10, effects={"political_cover": 10},
                )],
            ),
        )
        after = advance_phase(state, EMPTY_CONTEXT, 0, rng=quiet_rng)
        assert after.global_pulse.enforcement_climate == 55
        assert after.city.pulse.political_cover == 60
        assert after.phase == TurnPhase.DECISION

    def test_stale_neighborhood_events_pruned(self, quiet_rng):
        state = _make_state(turn=3, phase=TurnPhase.EVENT)
        stale = _make_neighborhood_event(state).model_copy(update={"start_turn": 2})
        state = state.model_copy(update={"active_events": ActiveEvents(neighborhood=[stale])})

        after = advance_phase(state, EMPTY_CONTEXT, 0, rng=quiet_rng)
        assert after.active_events.neighborhood == []
        after = advance_phase(after, EMPTY_CONTEXT, 0, rng=quiet_rng)
        assert after.phase == TurnPhase.CONSEQUENCE


class TestConsequence:
    def test_choice_applies_to_family(self, quiet_rng):
        state = _make_pending(_make_state(), [
            Choice(id="comply", label="Comply", description="", effects={"stress": 10}),
        ])
        assert state.family.stress == 20

        after = advance_phase(
            state, EMPTY_CONTEXT, 0, selected_choice_ids=["comply"], rng=quiet_rng
        )
        assert after.family.stress == 30
        assert after.turn == 2
        assert after.phase == TurnPhase.PLAN
        assert after.current_decision is None
        record = after.choice_history[-1]
        assert record.turn == 1
        assert record.decision_id == "decision_evt_n"
        assert record.choice_ids == ["comply"]

    def test_multiple_choices_are_additive(self, quiet_rng):
        state = _make_pending(_make_state(), [
            Choice(id="a", label="A", description="", effects={"stress": 5}),
            Choice(id="b", label="B", description="", effects={"stress": 7, "cohesion": -100}),
        ])
        after = advance_phase(
            state, EMPTY_CONTEXT, 0, selected_choice_ids=["b", "a"], rng=quiet_rng
        )
        assert after.family.stress == 32
        assert after.family.cohesion == 0
        assert after.choice_history[-1].effects == {"stress": 12, "cohesion": -100}

    def test_unknown_choice_ids_ignored(self, quiet_rng):
        state = _make_pending(_make_state(), [
            Choice(id="a", label="A", description="", effects={"stress": 5}),
        ])
        after = advance_phase(
            state, EMPTY_CONTEXT, 0, selected_choice_ids=["nope"], rng=quiet_rng
        )
        assert after.family == state.family
        assert after.choice_history[-1].choice_ids == []
        assert after.turn == 2


class TestRunCompleteTurn:
    def test_quiet_turn_completes(self, quiet_rng):
        state = run_complete_turn(_make_state(), EMPTY_CONTEXT, 0, rng=quiet_rng)
        assert state.turn == 2
        assert state.phase == TurnPhase.PLAN

    def test_stops_for_decision(self, eventful_rng):
        state = run_complete_turn(
            _make_state(), _checkpoint_context(), 0, rng=eventful_rng
        )
        assert state.turn == 1
        assert state.phase == TurnPhase.DECISION
        assert state.current_decision is not None

    def test_stuck_phase_stops(self, quiet_rng):
        state = _make_state().model_copy(update={"phase": "bogus"})
        assert run_complete_turn(state, EMPTY_CONTEXT, 0, rng=quiet_rng) is state


class TestDecisions:
    def test_choice_sets_per_event_type(self):
        state = _make_state()
        expected = {
            NeighborhoodEventType.CHECKPOINT: 3,
            NeighborhoodEventType.RAID_RUMOR: 3,
            NeighborhoodEventType.AUDIT: 2,
            NeighborhoodEventType.MEETING: 2,
            NeighborhoodEventType.DETENTION: 2,
        }
        for event_type, count in expected.items():
            decision = generate_event_decision(_make_neighborhood_event(state, event_type), state)
            assert len(decision.choices) == count
            assert decision.multi_select is False

    def test_rights_gated_choice(self):
        state = _make_state()
        decision = generate_event_decision(_make_neighborhood_event(state), state)
        assert unlocked_choice_ids(decision, state) == ["comply", "avoid"]

        informed = state.model_copy(update={"rights_knowledge": [LEARN_RIGHTS_BASIC]})
        assert "assert_rights" in unlocked_choice_ids(decision, informed)

    def test_family_conditions(self):
        choice = Choice(
            id="organize", label="Organize", description="",
            unlock_conditions=ChoiceUnlockConditions(max_stress=50, min_turn=3),
        )
        state = _make_state(turn=3)
        assert is_choice_unlocked(choice, state)
        assert not is_choice_unlocked(choice, _make_state(turn=2))
        assert not is_choice_unlocked(
            choice, state.model_copy(update={"family": FamilyImpact(stress=60)})
        )
