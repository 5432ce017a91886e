"""
Randomness and identity sources injected into the engine.

The engine never reaches for module-level random state or clocks. Callers
pass a RandomSource (anything with ``random() -> float`` in [0, 1), so a
``random.Random`` works directly) and an IdGenerator. Each session owning its
own instances keeps sessions from contending over shared RNG state.
"""

import itertools
import random
from typing import Optional, Protocol, Union
from uuid import uuid4


class RandomSource(Protocol):
    """Uniform [0, 1) draws."""

    def random(self) -> float: ...


class IdGenerator(Protocol):
    """Produces unique identifiers for materialized events."""

    def next_id(self, prefix: str) -> str: ...


class UuidIdGenerator:
    """Default id generator: prefix plus 12 hex chars of a UUID4."""

    def next_id(self, prefix: str) -> str:
        return f"{prefix}_{uuid4().hex[:12]}"


class CounterIdGenerator:
    """Monotonic ids, reproducible across runs. Owned by one session."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)

    def next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._counter)}"


def make_random(seed: Optional[Union[int, str]] = None) -> random.Random:
    """A private generator; seeded when reproducibility is wanted."""
    return random.Random(seed)


def resolve_random(rng: Optional[RandomSource]) -> RandomSource:
    return rng if rng is not None else make_random()


def resolve_ids(ids: Optional[IdGenerator]) -> IdGenerator:
    return ids if ids is not None else UuidIdGenerator()
