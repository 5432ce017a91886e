"""Shared fixtures."""

from typing import Iterable

import pytest


class ScriptedRandom:
    """Replays fixed draws in order, then repeats ``default`` forever."""

    def __init__(self, values: Iterable[float] = (), default: float = 0.99):
        self._values = list(values)
        self.default = default

    def random(self) -> float:
        if self._values:
            return self._values.pop(0)
        return self.default


@pytest.fixture
def scripted():
    """Factory for ScriptedRandom sources."""
    return ScriptedRandom


@pytest.fixture
def quiet_rng():
    """Draws high enough that no event ever triggers."""
    return ScriptedRandom(default=0.99)


@pytest.fixture
def eventful_rng():
    """Draws of zero: every trigger roll fires."""
    return ScriptedRandom(default=0.0)
