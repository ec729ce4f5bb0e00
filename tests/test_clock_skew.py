from __future__ import annotations

import pytest

from livedash.core import ClockSkewEstimator


def test_small_delay_keeps_offset() -> None:
    skew = ClockSkewEstimator(threshold_ms=1000)
    assert skew.update(500) is False
    assert skew.offset_ms == 0


def test_large_delay_snaps_to_delay_minus_threshold() -> None:
    skew = ClockSkewEstimator(threshold_ms=1000)
    assert skew.update(2000) is True
    assert skew.offset_ms == 1000


def test_boundary_is_not_a_change() -> None:
    skew = ClockSkewEstimator(threshold_ms=1000)
    assert skew.update(1000) is False
    assert skew.update(-1000) is False
    assert skew.offset_ms == 0


def test_negative_drift_is_tracked() -> None:
    skew = ClockSkewEstimator(threshold_ms=1000)
    assert skew.update(-5000) is True
    assert skew.offset_ms == -6000


def test_offset_only_moves_on_sustained_shift() -> None:
    skew = ClockSkewEstimator(threshold_ms=1000)
    skew.update(2000)  # offset 1000
    for delay in (1500, 1900, 300, 1100):
        assert skew.update(delay) is False
    assert skew.offset_ms == 1000
    assert skew.update(2500) is True
    assert skew.offset_ms == 1500


def test_time_translation_and_reset() -> None:
    skew = ClockSkewEstimator(threshold_ms=100)
    skew.update(600)
    assert skew.offset_ms == 500
    assert skew.adjusted_now(10_000) == 9_500
    assert skew.to_consumer_time(9_500) == 10_000
    skew.reset()
    assert skew.offset_ms == 0


def test_negative_threshold_rejected() -> None:
    with pytest.raises(ValueError):
        ClockSkewEstimator(threshold_ms=-1)
