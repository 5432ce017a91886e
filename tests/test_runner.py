"""Tests for the Simulation Runner."""

import threading
from datetime import datetime, timedelta

import pytest

from sanctuary_engine.content.library import default_turn_context
from sanctuary_engine.models.config import EngineConfig
from sanctuary_engine.models.decision import Choice, ChoiceUnlockConditions, Decision
from sanctuary_engine.models.event import NeighborhoodEventTemplate, NeighborhoodEventType
from sanctuary_engine.models.game import EndingType, GameEnding, TurnContext, TurnPhase
from sanctuary_engine.models.pulse import FamilyImpact
from sanctuary_engine.randomness.source import CounterIdGenerator
from sanctuary_engine.session.factory import CityOptions, NeighborhoodOptions
from sanctuary_engine.session.store import SessionStore
from sanctuary_engine.simulator.runner import (
    GameAlreadyEnded,
    NoPendingDecision,
    SessionExists,
    SessionNotFound,
    SimulationRunner,
    first_unlocked_choice,
)


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


def _make_runner(rng, context=None, config=None) -> SimulationRunner:
    return SimulationRunner(
        SessionStore(),
        context=context if context is not None else TurnContext(),
        config=config,
        rng=rng,
        ids=CounterIdGenerator(),
    )


class TestLifecycle:
    def test_start_demo(self, quiet_rng):
        runner = _make_runner(quiet_rng)
        state = runner.start("sess_1")
        assert state.city.name == "Harbor City"
        assert runner.get("sess_1") == state
        assert runner.store.get_meta("sess_1").last_global_update == 0

    def test_start_custom_city(self, quiet_rng):
        runner = _make_runner(quiet_rng, config=EngineConfig(max_turns=20))
        state = runner.start(
            "sess_1",
            city=CityOptions(name="Elsewhere", neighborhoods=[
                NeighborhoodOptions(name="A"), NeighborhoodOptions(name="B"),
            ]),
            starting_neighborhood_index=1,
        )
        assert state.city.current_neighborhood.name == "B"
        assert state.max_turns == 20

    def test_generated_session_id(self, quiet_rng):
        state = _make_runner(quiet_rng).start()
        assert len(state.session_id) == 32

    def test_missing_session(self, quiet_rng):
        runner = _make_runner(quiet_rng)
        with pytest.raises(SessionNotFound):
            runner.advance("nope")
        with pytest.raises(SessionNotFound):
            runner.get("nope")

    def test_start_refuses_live_session(self, quiet_rng):
        runner = _make_runner(quiet_rng)
        runner.start("sess_1")
        runner.advance("sess_1")
        with pytest.raises(SessionExists):
            runner.start("sess_1")
        assert runner.get("sess_1").phase == TurnPhase.PULSE_UPDATE

    def test_expired_session_is_forgotten(self):
        now = [datetime(2025, 1, 1)]
        store = SessionStore(ttl_seconds=60, clock=lambda: now[0])
        runner = SimulationRunner(store, context=TurnContext(), ids=CounterIdGenerator())
        runner.start("sess_1")
        runner.run_turn("sess_1")
        assert "sess_1" in runner._session_rngs

        now[0] += timedelta(seconds=61)
        with pytest.raises(SessionNotFound):
            runner.run_turn("sess_1")
        assert "sess_1" not in runner._session_rngs
        assert "sess_1" not in runner._session_locks

    def test_delete_and_reset(self, quiet_rng):
        runner = _make_runner(quiet_rng)
        runner.start("a")
        runner.start("b")
        assert runner.delete("a") is True
        assert runner.reset() == 1


class TestStepping:
    def test_advance_one_phase(self, quiet_rng):
        runner = _make_runner(quiet_rng)
        runner.start("sess_1")
        result = runner.advance("sess_1")
        assert result.phase_completed == TurnPhase.PLAN
        assert result.state.phase == TurnPhase.PULSE_UPDATE
        assert runner.get("sess_1").phase == TurnPhase.PULSE_UPDATE

    def test_quiet_turn(self, quiet_rng):
        runner = _make_runner(quiet_rng)
        runner.start("sess_1")
        result = runner.run_turn("sess_1")
        assert result.state.turn == 2
        assert result.decision is None
        assert result.ended is False
        assert result.new_events.neighborhood == []

    def test_decision_flow(self, eventful_rng):
        runner = _make_runner(eventful_rng, context=_checkpoint_context())
        runner.start("sess_1")

        result = runner.run_turn("sess_1")
        assert result.state.phase == TurnPhase.DECISION
        assert result.decision is not None
        assert len(result.new_events.neighborhood) == 1
        assert result.choices_unlocked == ["comply", "avoid"]

        result = runner.choose("sess_1", ["comply"])
        assert result.state.turn == 2
        assert result.state.phase == TurnPhase.PLAN
        assert result.state.choice_history[-1].choice_ids == ["comply"]

    def test_choose_without_pending_decision(self, quiet_rng):
        runner = _make_runner(quiet_rng)
        runner.start("sess_1")
        with pytest.raises(NoPendingDecision):
            runner.choose("sess_1", ["comply"])

    def test_global_update_turn_tracked(self, quiet_rng):
        runner = _make_runner(quiet_rng)
        state = runner.start("sess_1")
        runner.store.set("sess_1", state.model_copy(update={"turn": 30}))

        runner.run_turn("sess_1")
        assert runner.store.get_meta("sess_1").last_global_update == 30

        runner.run_turn("sess_1")
        assert runner.store.get_meta("sess_1").last_global_update == 30

    def test_global_update_tracked_when_stepping(self, quiet_rng):
        runner = _make_runner(quiet_rng)
        state = runner.start("sess_1")
        runner.store.set("sess_1", state.model_copy(update={"turn": 30}))

        runner.advance("sess_1")
        assert runner.store.get_meta("sess_1").last_global_update == 0
        runner.advance("sess_1")
        assert runner.store.get_meta("sess_1").last_global_update == 30


class BarrierStore(SessionStore):
    """Holds each metadata read until a second reader arrives or the wait times out."""

    def __init__(self):
        super().__init__()
        self.barrier = threading.Barrier(2)

    def get_meta(self, session_id):
        meta = super().get_meta(session_id)
        try:
            self.barrier.wait(timeout=0.5)
        except threading.BrokenBarrierError:
            pass
        return meta


class TestConcurrency:
    def test_same_session_calls_are_serialized(self, quiet_rng):
        store = BarrierStore()
        runner = SimulationRunner(
            store, context=TurnContext(), rng=quiet_rng, ids=CounterIdGenerator()
        )
        runner.start("sess_1")

        errors = []

        def step():
            try:
                runner.advance("sess_1")
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=step) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert errors == []
        assert runner.get("sess_1").phase == TurnPhase.EVENT


class TestEndings:
    def test_ending_evaluated_after_turn(self, quiet_rng):
        runner = _make_runner(quiet_rng)
        state = runner.start("sess_1")
        runner.store.set("sess_1", state.model_copy(update={
            "family": FamilyImpact(stress=99, cohesion=5),
        }))

        result = runner.run_turn("sess_1")
        assert result.ended is True
        assert result.state.ending.type == EndingType.FAILURE

    def test_endings_can_be_disabled(self, quiet_rng):
        runner = _make_runner(quiet_rng, config=EngineConfig(auto_check_endings=False))
        state = runner.start("sess_1")
        runner.store.set("sess_1", state.model_copy(update={
            "family": FamilyImpact(stress=99, cohesion=5),
        }))
        assert runner.run_turn("sess_1").ended is False

    def test_ended_game_refuses_to_advance(self, quiet_rng):
        runner = _make_runner(quiet_rng)
        state = runner.start("sess_1")
        runner.store.set("sess_1", state.model_copy(update={
            "ending": GameEnding(type=EndingType.FAILURE, reason="done", turn=1),
        }))
        with pytest.raises(GameAlreadyEnded):
            runner.advance("sess_1")
        with pytest.raises(GameAlreadyEnded):
            runner.run_turn("sess_1")


class TestAutoplay:
    def test_answers_every_decision(self, eventful_rng):
        runner = _make_runner(eventful_rng, context=_checkpoint_context())
        runner.start("sess_1")
        state = runner.autoplay("sess_1", 3)
        assert state.turn == 4
        assert [r.choice_ids for r in state.choice_history] == [["comply"]] * 3

    def test_custom_policy(self, eventful_rng):
        runner = _make_runner(eventful_rng, context=_checkpoint_context())
        runner.start("sess_1")
        state = runner.autoplay("sess_1", 1, policy=lambda decision, state: ["avoid"])
        assert state.choice_history[-1].choice_ids == ["avoid"]

    def test_stops_when_game_ends(self, quiet_rng):
        runner = _make_runner(quiet_rng)
        state = runner.start("sess_1")
        runner.store.set("sess_1", state.model_copy(update={
            "family": FamilyImpact(stress=99, cohesion=5),
        }))
        state = runner.autoplay("sess_1", 10)
        assert state.ending is not None
        assert state.turn == 2

    def test_seeded_runs_replay(self):
        config = EngineConfig(seed=7)
        results = []
        for _ in range(2):
            runner = SimulationRunner(
                SessionStore(),
                context=default_turn_context(),
                config=config,
                ids=CounterIdGenerator(),
            )
            runner.start("sess_1")
            results.append(runner.autoplay("sess_1", 10))

        first, second = results
        assert first.family == second.family
        assert first.global_pulse == second.global_pulse
        assert first.city.pulse == second.city.pulse
        assert first.choice_history == second.choice_history

    def test_seeded_session_resumes_identically(self):
        config = EngineConfig(seed=11)

        def fresh_runner(store):
            return SimulationRunner(
                store, context=default_turn_context(), config=config, ids=CounterIdGenerator()
            )

        straight_store = SessionStore()
        fresh_runner(straight_store).start("sess_1")
        straight = fresh_runner(straight_store).autoplay("sess_1", 8)

        resumed_store = SessionStore()
        fresh_runner(resumed_store).start("sess_1")
        fresh_runner(resumed_store).autoplay("sess_1", 4)
        resumed = fresh_runner(resumed_store).autoplay("sess_1", 4)

        assert resumed.turn == straight.turn
        assert resumed.family == straight.family
        assert resumed.global_pulse == straight.global_pulse
        assert resumed.city.pulse == straight.city.pulse
        assert resumed.city.neighborhoods == straight.city.neighborhoods
        assert [r.choice_ids for r in resumed.choice_history] == [
            r.choice_ids for r in straight.choice_history
        ]


def test_first_unlocked_choice_falls_back(quiet_rng):
    runner = _make_runner(quiet_rng)
    state = runner.start("sess_1")
    locked = Decision(
        id="d", title="t", narrative="n",
        choices=[Choice(
            id="only", label="Only", description="",
            unlock_conditions=ChoiceUnlockConditions(required_choices=["never"]),
        )],
    )
    assert first_unlocked_choice(locked, state) == ["only"]
