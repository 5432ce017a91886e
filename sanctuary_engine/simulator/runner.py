"""
Simulation Runner: the orchestrator around the pure engine.

Loads a session, drives the turn state machine one phase or one turn at a
time, tracks when the global pulse last moved, evaluates endings after each
completed turn and writes the result back to the session store.

States seen by a client:
  RUNNING → AWAITING_DECISION → RUNNING → ... → ENDED
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple
from uuid import uuid4

from pydantic import BaseModel

from sanctuary_engine.content.library import default_turn_context
from sanctuary_engine.endings.evaluator import check_game_ending
from sanctuary_engine.models.config import EngineConfig
from sanctuary_engine.models.decision import Decision
from sanctuary_engine.models.event import ActiveEvents
from sanctuary_engine.models.game import GameState, TurnContext, TurnPhase
from sanctuary_engine.pulse.engine import should_update_global_pulse
from sanctuary_engine.randomness.source import (
    IdGenerator,
    RandomSource,
    UuidIdGenerator,
    make_random,
)
from sanctuary_engine.session.factory import (
    CityOptions,
    create_demo_game_state,
    create_game_state,
)
from sanctuary_engine.session.store import SessionStore
from sanctuary_engine.turn.decisions import unlocked_choice_ids
from sanctuary_engine.turn.machine import (
    advance_phase,
    is_awaiting_decision,
    run_complete_turn,
)

logger = logging.getLogger(__name__)

# Picks choice ids for a pending decision
ChoicePolicy = Callable[[Decision, GameState], List[str]]


class SimulationError(Exception):
    """Base class for refused simulator operations."""


class SessionNotFound(SimulationError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class SessionExists(SimulationError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} already exists")
        self.session_id = session_id


class NoPendingDecision(SimulationError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} has no pending decision")
        self.session_id = session_id


class GameAlreadyEnded(SimulationError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} has already ended")
        self.session_id = session_id


class StepResult(BaseModel):
    """Outcome of one runner call."""

    state: GameState
    phase_completed: TurnPhase
    new_events: ActiveEvents
    decision: Optional[Decision] = None
    choices_unlocked: List[str] = []
    ended: bool = False


def first_unlocked_choice(decision: Decision, state: GameState) -> List[str]:
    """Default autoplay policy: the first unlocked choice, else the first choice."""
    unlocked = unlocked_choice_ids(decision, state)
    if unlocked:
        return unlocked[:1]
    return [decision.choices[0].id] if decision.choices else []


def _new_events(before: ActiveEvents, after: ActiveEvents) -> ActiveEvents:
    seen = {e.id for e in [*before.global_events, *before.city, *before.neighborhood]}
    return ActiveEvents(
        global_events=[e for e in after.global_events if e.id not in seen],
        city=[e for e in after.city if e.id not in seen],
        neighborhood=[e for e in after.neighborhood if e.id not in seen],
    )


class SimulationRunner:
    """
    Drives sessions through the turn state machine.

    Each session gets its own random source unless one is injected. With
    ``config.seed`` set, each step draws from a generator seeded by the seed,
    the session id and the stored turn and phase, so a session resumed after
    a restart replays identically.

    Calls for the same session are serialized; different sessions proceed
    in parallel.
    """

    def __init__(
        self,
        store: SessionStore,
        context: Optional[TurnContext] = None,
        config: Optional[EngineConfig] = None,
        rng: Optional[RandomSource] = None,
        ids: Optional[IdGenerator] = None,
    ):
        self.store = store
        self.context = context if context is not None else default_turn_context()
        self.config = config or EngineConfig()
        self._rng = rng
        self._ids = ids or UuidIdGenerator()
        self._session_rngs: Dict[str, RandomSource] = {}
        self._session_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _rng_for(self, state: GameState) -> RandomSource:
        if self._rng is not None:
            return self._rng
        if self.config.seed is not None:
            return make_random(
                f"{self.config.seed}:{state.session_id}:{state.turn}:{state.phase.value}"
            )
        if state.session_id not in self._session_rngs:
            self._session_rngs[state.session_id] = make_random()
        return self._session_rngs[state.session_id]

    @contextmanager
    def _locked(self, session_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._session_locks.setdefault(session_id, threading.Lock())
        with lock:
            yield

    def _forget(self, session_id: str) -> None:
        self._session_rngs.pop(session_id, None)
        with self._locks_guard:
            self._session_locks.pop(session_id, None)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(
        self,
        session_id: Optional[str] = None,
        city: Optional[CityOptions] = None,
        starting_neighborhood_index: int = 0,
    ) -> GameState:
        """
        Create and store a new game. Without ``city`` the demo city is used.
        A live session with the same id is never replaced.
        """
        session_id = session_id or uuid4().hex
        if city is None:
            state = create_demo_game_state(
                session_id, max_turns=self.config.max_turns, ids=self._ids
            )
        else:
            state = create_game_state(
                session_id,
                city,
                starting_neighborhood_index=starting_neighborhood_index,
                max_turns=self.config.max_turns,
                ids=self._ids,
            )

        with self._locked(session_id):
            if self.store.exists(session_id):
                raise SessionExists(session_id)
            self._session_rngs.pop(session_id, None)
            self.store.set(session_id, state, last_global_update=0)
        logger.info("Started session %s in %s", session_id, state.city.name)
        return state

    def get(self, session_id: str) -> GameState:
        return self._load(session_id)[0]

    def delete(self, session_id: str) -> bool:
        with self._locked(session_id):
            deleted = self.store.delete(session_id)
        self._forget(session_id)
        return deleted

    def reset(self) -> int:
        """Drop every session."""
        self._session_rngs.clear()
        with self._locks_guard:
            self._session_locks.clear()
        return self.store.delete_all()

    def _load(self, session_id: str) -> Tuple[GameState, int]:
        state = self.store.get(session_id)
        meta = self.store.get_meta(session_id)
        if state is None or meta is None:
            # Expired rows vanish from the store without passing through delete
            self._forget(session_id)
            raise SessionNotFound(session_id)
        return state, meta.last_global_update

    def _ensure_running(self, state: GameState) -> None:
        if state.ending is not None:
            logger.warning("Refused to advance ended session %s", state.session_id)
            raise GameAlreadyEnded(state.session_id)

    def _global_update_due(self, state: GameState, last_global_update: int) -> bool:
        return state.phase in (TurnPhase.PLAN, TurnPhase.PULSE_UPDATE) and (
            should_update_global_pulse(
                state.turn, last_global_update, state.global_pulse.political_volatility
            )
        )

    def _commit(
        self,
        before: GameState,
        after: GameState,
        last_global_update: int,
    ) -> StepResult:
        """Evaluate endings on turn completion, persist, and report."""
        if after.turn > before.turn and self.config.auto_check_endings:
            after = check_game_ending(after)
            if after.ending is not None:
                logger.info("Session %s ended on turn %d (%s)", after.session_id,
                            after.ending.turn, after.ending.type.value)

        after = after.model_copy(update={"updated_at": datetime.utcnow()})
        self.store.set(after.session_id, after, last_global_update=last_global_update)

        decision = after.current_decision if is_awaiting_decision(after) else None
        return StepResult(
            state=after,
            phase_completed=before.phase,
            new_events=_new_events(before.active_events, after.active_events),
            decision=decision,
            choices_unlocked=unlocked_choice_ids(decision, after) if decision else [],
            ended=after.ending is not None,
        )

    # =========================================================================
    # STEPPING
    # =========================================================================

    def advance(self, session_id: str) -> StepResult:
        """Advance one phase."""
        with self._locked(session_id):
            state, last = self._load(session_id)
            self._ensure_running(state)

            new_last = state.turn if (
                state.phase == TurnPhase.PULSE_UPDATE and self._global_update_due(state, last)
            ) else last

            after = advance_phase(
                state, self.context, last, rng=self._rng_for(state), ids=self._ids
            )
            return self._commit(state, after, new_last)

    def run_turn(self, session_id: str) -> StepResult:
        """Advance until a decision is pending or the turn completes."""
        with self._locked(session_id):
            state, last = self._load(session_id)
            self._ensure_running(state)

            new_last = state.turn if self._global_update_due(state, last) else last

            after = run_complete_turn(
                state, self.context, last, rng=self._rng_for(state), ids=self._ids
            )
            return self._commit(state, after, new_last)

    def choose(self, session_id: str, choice_ids: Sequence[str]) -> StepResult:
        """Resolve the pending decision with the given choice ids."""
        with self._locked(session_id):
            state, last = self._load(session_id)
            self._ensure_running(state)
            if not is_awaiting_decision(state):
                logger.warning("Choice submitted to session %s with nothing pending",
                               session_id)
                raise NoPendingDecision(session_id)

            after = advance_phase(
                state,
                self.context,
                last,
                selected_choice_ids=list(choice_ids),
                rng=self._rng_for(state),
                ids=self._ids,
            )
            return self._commit(state, after, last)

    def autoplay(
        self,
        session_id: str,
        turns: int,
        policy: Optional[ChoicePolicy] = None,
    ) -> GameState:
        """
        Play up to ``turns`` complete turns, answering decisions with
        ``policy``. Stops early when the game ends.
        """
        policy = policy or first_unlocked_choice
        state = self.get(session_id)

        for _ in range(turns):
            if state.ending is not None:
                break
            result = self.run_turn(session_id)
            if result.decision is not None:
                result = self.choose(session_id, policy(result.decision, result.state))
            state = result.state

        return state
