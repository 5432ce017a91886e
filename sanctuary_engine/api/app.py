"""
Sanctuary Engine API: FastAPI endpoints over the simulation runner.

Exposes session management and step-by-step play:
- Create, inspect and delete sessions
- Advance one phase or one complete turn
- Submit choices for a pending decision
"""

from typing import List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from sanctuary_engine.content.library import default_turn_context
from sanctuary_engine.models.config import EngineConfig
from sanctuary_engine.models.decision import Decision
from sanctuary_engine.models.game import GameState
from sanctuary_engine.session.factory import CityOptions
from sanctuary_engine.session.store import SessionStore
from sanctuary_engine.simulator.runner import (
    GameAlreadyEnded,
    NoPendingDecision,
    SessionExists,
    SessionNotFound,
    SimulationRunner,
    StepResult,
)
from sanctuary_engine.turn.decisions import is_choice_unlocked


# --- Request/Response Models ---

class SessionCreateRequest(BaseModel):
    session_id: Optional[str] = None
    city: Optional[CityOptions] = None
    starting_neighborhood_index: int = 0


class ChooseRequest(BaseModel):
    choice_ids: List[str]


def _decision_view(decision: Optional[Decision], state: GameState) -> Optional[dict]:
    """A decision with each choice flagged as unlocked or not."""
    if decision is None:
        return None
    view = decision.model_dump(mode="json")
    for choice, data in zip(decision.choices, view["choices"]):
        data["unlocked"] = is_choice_unlocked(choice, state)
    return view


def _step_view(result: StepResult) -> dict:
    events = result.new_events
    return {
        "session_id": result.state.session_id,
        "phase_completed": result.phase_completed.value,
        "phase": result.state.phase.value,
        "turn": result.state.turn,
        "decision": _decision_view(result.decision, result.state),
        "new_events": events.model_dump(mode="json"),
        "new_event_counts": {
            "global": len(events.global_events),
            "city": len(events.city),
            "neighborhood": len(events.neighborhood),
        },
        "ended": result.ended,
        "ending": result.state.ending.model_dump(mode="json") if result.state.ending else None,
        "state": result.state.model_dump(mode="json"),
    }


# --- Application Factory ---

def create_app(
    runner: Optional[SimulationRunner] = None,
    config: Optional[EngineConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Sanctuary Engine API",
        description="Turn-based neighborhood simulation",
        version="0.1.0",
    )

    config = config or (runner.config if runner else EngineConfig())
    if runner is None:
        store = SessionStore(
            db_path=config.db_path, ttl_seconds=config.session_ttl_seconds
        )
        runner = SimulationRunner(store, context=default_turn_context(), config=config)

    app.state.runner = runner
    app.state.config = config

    def _call(operation, *args):
        try:
            return operation(*args)
        except SessionNotFound:
            raise HTTPException(404, "Session not found")
        except NoPendingDecision:
            raise HTTPException(400, "No decision pending")
        except GameAlreadyEnded:
            raise HTTPException(409, "Game has already ended")

    # === SESSIONS ===

    @app.post("/sessions", status_code=201)
    def create_session(req: Optional[SessionCreateRequest] = None):
        """Start a new game. Defaults to the demo city."""
        req = req or SessionCreateRequest()
        try:
            state = runner.start(
                session_id=req.session_id,
                city=req.city,
                starting_neighborhood_index=req.starting_neighborhood_index,
            )
        except SessionExists:
            raise HTTPException(409, "Session already exists")
        except ValueError as exc:
            raise HTTPException(400, str(exc))
        return {"session_id": state.session_id, "state": state.model_dump(mode="json")}

    @app.get("/sessions/{session_id}")
    def get_session(session_id: str):
        """Current state, with the pending decision if any."""
        state = _call(runner.get, session_id)
        return {
            "session_id": session_id,
            "state": state.model_dump(mode="json"),
            "decision": _decision_view(state.current_decision, state),
        }

    @app.delete("/sessions/{session_id}")
    def delete_session(session_id: str):
        if not runner.delete(session_id):
            raise HTTPException(404, "Session not found")
        return {"status": "deleted", "session_id": session_id}

    @app.delete("/sessions")
    def reset_sessions():
        """Drop every session."""
        return {"deleted": runner.reset()}

    # === PLAY ===

    @app.post("/sessions/{session_id}/next")
    def next_phase(session_id: str):
        """Advance one phase."""
        return _step_view(_call(runner.advance, session_id))

    @app.post("/sessions/{session_id}/turn")
    def run_turn(session_id: str):
        """Advance until a decision is pending or the turn completes."""
        return _step_view(_call(runner.run_turn, session_id))

    @app.post("/sessions/{session_id}/choose")
    def choose(session_id: str, req: ChooseRequest):
        """Resolve the pending decision."""
        if not req.choice_ids:
            raise HTTPException(400, "choice_ids must not be empty")
        return _step_view(_call(runner.choose, session_id, req.choice_ids))

    # === HEALTH ===

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "sessions": runner.store.count(),
            "config": config.model_dump(),
        }

    return app


# Default application instance
app = create_app()
