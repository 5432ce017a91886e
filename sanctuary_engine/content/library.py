"""
Content library: the default authored event pools shipped with the package.

Templates live as JSON next to this module and are validated into template
models on load. A malformed file raises pydantic's ValidationError.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Tuple

from pydantic import TypeAdapter

from sanctuary_engine.models.event import CityEventTemplate, NeighborhoodEventTemplate
from sanctuary_engine.models.game import TurnContext

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"

_neighborhood_adapter = TypeAdapter(List[NeighborhoodEventTemplate])
_city_adapter = TypeAdapter(List[CityEventTemplate])


def _read(name: str):
    with open(DATA_DIR / name, encoding="utf-8") as fh:
        return json.load(fh)


@lru_cache(maxsize=None)
def _neighborhood_pool() -> Tuple[NeighborhoodEventTemplate, ...]:
    templates = _neighborhood_adapter.validate_python(_read("neighborhood_events.json"))
    logger.debug("Loaded %d neighborhood event templates", len(templates))
    return tuple(templates)


@lru_cache(maxsize=None)
def _city_pool() -> Tuple[CityEventTemplate, ...]:
    templates = _city_adapter.validate_python(_read("city_events.json"))
    logger.debug("Loaded %d city event templates", len(templates))
    return tuple(templates)


def load_neighborhood_templates() -> List[NeighborhoodEventTemplate]:
    return [t.model_copy(deep=True) for t in _neighborhood_pool()]


def load_city_templates() -> List[CityEventTemplate]:
    return [t.model_copy(deep=True) for t in _city_pool()]


def default_turn_context() -> TurnContext:
    """A TurnContext carrying both packaged pools."""
    return TurnContext(
        neighborhood_event_templates=load_neighborhood_templates(),
        city_event_templates=load_city_templates(),
    )
