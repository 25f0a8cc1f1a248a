"""
Runtime helpers: clocks and random number generation.

Components never read wall time or global randomness directly. They
receive a clock (any callable returning seconds) and a numpy Generator,
so a simulation can be replayed exactly under a fixed seed.
"""

import time
from typing import Callable, List, Optional

import numpy as np


Clock = Callable[[], float]


class SystemClock:
    """Wall clock in seconds."""

    def __call__(self) -> float:
        return time.time()


class ManualClock:
    """
    Simulated clock advanced explicitly.

    Usage:
        clock = ManualClock(start=1000.0)
        clock.advance(5.0)
    """

    def __init__(self, start: float = 0.0):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, dt: float) -> float:
        self.now += dt
        return self.now

    def set(self, value: float):
        self.now = float(value)


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Create the generator used for all creative variation."""
    return np.random.default_rng(seed)


def millis(clock: Clock) -> int:
    """Clock reading in integer milliseconds (used in synthetic concept names)."""
    return int(clock() * 1000)


def spawn_rngs(seed: Optional[int], count: int) -> List[np.random.Generator]:
    """Independent generators, one per component, all derived from one seed."""
    children = np.random.SeedSequence(seed).spawn(count)
    return [np.random.default_rng(child) for child in children]
