"""
Stability Tests
===============

Tests for the transposition history and the stability evaluator.
"""

import pytest

from stillgate.models.displacement import DisplacementSample
from stillgate.stability import StabilityEvaluator, TranspositionHistory


def _fill(history: TranspositionHistory, dx: float, dy: float, count: int) -> None:
    for _ in range(count):
        history.record(DisplacementSample(dx, dy))


class TestTranspositionHistory:
    """Bounded FIFO behaviour."""

    def test_defaults_to_fifteen(self):
        assert TranspositionHistory().capacity == 15

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            TranspositionHistory(capacity=0)

    def test_never_exceeds_capacity(self):
        history = TranspositionHistory(capacity=15)
        for i in range(40):
            history.record(DisplacementSample(float(i), 0.0))
            assert len(history) <= 15
        assert history.is_full()

    def test_sixteenth_sample_evicts_first(self):
        history = TranspositionHistory(capacity=15)
        for i in range(16):
            history.record(DisplacementSample(float(i), 0.0))

        dxs = [sample.dx for sample in history]
        assert dxs[0] == 1.0
        assert dxs[-1] == 15.0
        assert 0.0 not in dxs

    def test_aggregate_is_raw_sum(self):
        history = TranspositionHistory(capacity=4)
        history.record(DisplacementSample(1.5, -2.0))
        history.record(DisplacementSample(-0.5, -1.0))
        assert history.aggregate() == (1.0, -3.0)

    def test_aggregate_of_empty_history(self):
        assert TranspositionHistory().aggregate() == (0.0, 0.0)

    def test_reset_empties(self):
        history = TranspositionHistory(capacity=3)
        _fill(history, 1.0, 1.0, 3)
        history.reset()
        assert len(history) == 0
        assert not history.is_full()


class TestStabilityEvaluator:
    """Full-window Manhattan threshold rule."""

    def test_rejects_non_positive_threshold(self):
        with pytest.raises(ValueError):
            StabilityEvaluator(threshold=0.0)

    def test_not_stable_until_full(self):
        history = TranspositionHistory(capacity=15)
        evaluator = StabilityEvaluator(threshold=20.0)

        for count in range(1, 15):
            history.record(DisplacementSample(0.0, 0.0))
            assert not evaluator.is_stable(history), f"stable after {count} samples"

        history.record(DisplacementSample(0.0, 0.0))
        assert evaluator.is_stable(history)

    def test_uniform_drift_is_unstable(self):
        history = TranspositionHistory(capacity=15)
        _fill(history, 1.0, 1.0, 15)

        assert StabilityEvaluator.distance(history) == pytest.approx(30.0)
        assert not StabilityEvaluator(threshold=20.0).is_stable(history)

    def test_threshold_is_exclusive(self):
        history = TranspositionHistory(capacity=2)
        _fill(history, 5.0, 5.0, 2)

        assert StabilityEvaluator.distance(history) == pytest.approx(20.0)
        assert not StabilityEvaluator(threshold=20.0).is_stable(history)
        assert StabilityEvaluator(threshold=20.01).is_stable(history)

    def test_opposite_motions_cancel(self):
        # Shake back and forth: the sum, not the path length, is measured
        history = TranspositionHistory(capacity=4)
        history.record(DisplacementSample(10.0, 0.0))
        history.record(DisplacementSample(-10.0, 0.0))
        history.record(DisplacementSample(0.0, 8.0))
        history.record(DisplacementSample(0.0, -8.0))

        assert StabilityEvaluator(threshold=1.0).is_stable(history)

    def test_stale_motion_leaves_window(self):
        history = TranspositionHistory(capacity=15)
        evaluator = StabilityEvaluator()
        _fill(history, 1.0, 1.0, 15)
        _fill(history, 0.0, 0.0, 10)
        # 5 drifting samples left: distance 10
        assert evaluator.is_stable(history)
