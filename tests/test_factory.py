"""Tests for game creation."""

from datetime import datetime

import pytest

from sanctuary_engine.models.game import TurnPhase
from sanctuary_engine.randomness.source import CounterIdGenerator
from sanctuary_engine.session.factory import (
    CityOptions,
    NeighborhoodOptions,
    create_demo_game_state,
    create_game_state,
)


def _make_city(count: int = 2) -> CityOptions:
    return CityOptions(
        name="Testville",
        state="TX",
        pulse={"data_density": 90},
        neighborhoods=[
            NeighborhoodOptions(name=f"Area {i}", pulse={"trust": 10 * (i + 1)})
            for i in range(count)
        ],
    )


class TestCreateGameState:
    def test_fresh_game(self):
        now = datetime(2025, 3, 1, 12, 0)
        state = create_game_state(
            "sess_1", _make_city(), clock=lambda: now, ids=CounterIdGenerator()
        )
        assert state.session_id == "sess_1"
        assert state.created_at == now
        assert state.updated_at == now
        assert state.turn == 1
        assert state.phase == TurnPhase.PLAN
        assert state.choice_history == []
        assert state.active_events.neighborhood == []
        assert state.city.current_neighborhood.name == "Area 0"

    def test_partial_pulses_merge_with_defaults(self):
        state = create_game_state(
            "sess_1",
            _make_city(),
            global_pulse={"political_volatility": 80},
            family={"stress": 45},
        )
        assert state.city.pulse.data_density == 90
        assert state.city.pulse.political_cover == 50
        assert state.city.neighborhoods[1].pulse.trust == 20
        assert state.global_pulse.political_volatility == 80
        assert state.global_pulse.enforcement_climate == 50
        assert state.family.stress == 45
        assert state.family.cohesion == 70

    def test_starting_neighborhood(self):
        state = create_game_state("sess_1", _make_city(3), starting_neighborhood_index=2)
        assert state.city.current_neighborhood.name == "Area 2"

    def test_bad_starting_index(self):
        with pytest.raises(ValueError):
            create_game_state("sess_1", _make_city(2), starting_neighborhood_index=2)

    def test_city_needs_neighborhoods(self):
        with pytest.raises(ValueError):
            create_game_state("sess_1", _make_city(0))

    def test_ids_from_generator(self):
        state = create_game_state("sess_1", _make_city(2), ids=CounterIdGenerator())
        assert [n.id for n in state.city.neighborhoods] == ["nbhd_1", "nbhd_2"]
        assert state.city.id == "city_3"


class TestDemoGame:
    def test_harbor_city(self):
        state = create_demo_game_state("demo")
        assert state.city.name == "Harbor City"
        assert state.city.state == "CA"
        assert [n.name for n in state.city.neighborhoods] == [
            "El Centro", "Riverside Heights", "Mission District",
        ]
        assert state.city.current_neighborhood.name == "El Centro"
        assert state.city.pulse.data_density == 80
        assert state.global_pulse.enforcement_climate == 60
        assert state.city.neighborhoods[0].pulse.community_density == 85

    def test_max_turns(self):
        assert create_demo_game_state("demo", max_turns=10).max_turns == 10
