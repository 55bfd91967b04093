"""StepPathAccumulator — running path length."""

import pytest

from trackprop.core.integrator import StepObserver
from trackprop.core.step_accumulator import StepPathAccumulator


class TestStepPathAccumulator:
    def test_starts_empty(self):
        acc = StepPathAccumulator()
        assert acc.total() == 0.0
        assert acc.step_count == 0

    def test_sums_steps(self):
        acc = StepPathAccumulator()
        for step in (10.0, 2.5, 0.5):
            acc.on_step(step)
        assert acc.total() == pytest.approx(13.0)
        assert acc.step_count == 3

    def test_backward_steps_count_positive(self):
        acc = StepPathAccumulator()
        acc.on_step(-4.0)
        acc.on_step(1.0)
        assert acc.total() == pytest.approx(5.0)

    def test_total_is_monotonic(self):
        acc = StepPathAccumulator()
        previous = 0.0
        for step in (1.0, -2.0, 0.0, 3.0):
            acc.on_step(step)
            assert acc.total() >= previous
            previous = acc.total()

    def test_reset(self):
        acc = StepPathAccumulator()
        acc.on_step(7.0)
        acc.reset()
        assert acc.total() == 0.0
        assert acc.step_count == 0

    def test_is_step_observer(self):
        assert isinstance(StepPathAccumulator(), StepObserver)
