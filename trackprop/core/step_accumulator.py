"""Step observer accumulating the true path length of an integration.

Lengths are in native units [mm]; the engine converts on read.
One running total: not safe for interleaved propagations.
"""

from __future__ import annotations


class StepPathAccumulator:
    """Sums the length of every integration step since the last reset."""

    def __init__(self) -> None:
        self._total = 0.0
        self._steps = 0

    def on_step(self, step_length: float) -> None:
        """Integrator callback; backward steps count with their magnitude."""
        self._total += abs(step_length)
        self._steps += 1

    def reset(self) -> None:
        self._total = 0.0
        self._steps = 0

    def total(self) -> float:
        """Accumulated path length [mm]."""
        return self._total

    @property
    def step_count(self) -> int:
        return self._steps
