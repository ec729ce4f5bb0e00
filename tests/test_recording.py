from __future__ import annotations

from livedash.config import DashboardConfig
from livedash.core import (
    Batch,
    ChannelBufferStore,
    ClockSkewEstimator,
    RecordingBatchProcessor,
    Sample,
)


class FakeClock:
    def __init__(self, now: int = 0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def _build(clock: FakeClock, *, window_seconds: float = 10.0, margin_ms: int = 1000):
    store = ChannelBufferStore()
    skew = ClockSkewEstimator(threshold_ms=1000)
    events: list[tuple[str, str]] = []
    processor = RecordingBatchProcessor(
        store,
        skew,
        DashboardConfig(window_seconds=window_seconds, trim_margin_ms=margin_ms),
        clock=clock,
        on_new_channel=lambda cid, label: events.append((cid, label)),
    )
    return processor, store, skew, events


def _batch(device_id: str, end: int, *samples: tuple[str, int, float]) -> Batch:
    return Batch(
        device_id=device_id,
        start_timestamp=min((s[1] for s in samples), default=end),
        end_timestamp=end,
        samples=tuple(Sample(c, ts, v) for c, ts, v in samples),
    )


def test_small_delay_keeps_offset_and_stores_sample() -> None:
    clock = FakeClock(1500)
    processor, store, skew, events = _build(clock)

    result = processor.process(_batch("d1", 1000, ("gravity", 990, 9.8)), "d1")

    assert result.accepted is True
    assert result.delay_ms == 500
    assert result.offset_changed is False
    assert skew.offset_ms == 0
    assert store.get_samples("gravity") == [Sample("gravity", 990, 9.8)]
    assert events == [("gravity", "gravity")]


def test_large_delay_moves_offset() -> None:
    clock = FakeClock(3000)
    processor, _, skew, _ = _build(clock)

    result = processor.process(_batch("d1", 1000, ("gravity", 990, 9.8)), "d1")

    assert result.delay_ms == 2000
    assert result.offset_changed is True
    assert result.offset_ms == 1000
    assert skew.offset_ms == 1000


def test_foreign_or_unselected_batches_change_nothing() -> None:
    clock = FakeClock(99_000)
    processor, store, skew, events = _build(clock)

    for selected in ("d1", None):
        result = processor.process(_batch("d2", 1000, ("gravity", 990, 9.8)), selected)
        assert result.accepted is False

    assert store.get_channel_ids() == []
    assert skew.offset_ms == 0
    assert events == []


def test_new_channel_fires_once_across_batches() -> None:
    clock = FakeClock(1000)
    processor, _, _, events = _build(clock)

    for end in (1000, 1010, 1020):
        result = processor.process(_batch("d1", end, ("a", end, 1.0), ("b", end, 2.0), ("a", end, 3.0)), "d1")
        clock.now += 10

    assert [cid for cid, _ in events] == ["a", "b"]
    assert result.new_channels == []


def test_trim_keeps_only_the_retention_window() -> None:
    clock = FakeClock(10_000)
    processor, store, _, _ = _build(clock, window_seconds=1.0, margin_ms=0)

    result = processor.process(
        _batch("d1", 10_000, *[("a", ts, 0.0) for ts in (8000, 8999, 9000, 9500, 10_000)]),
        "d1",
    )

    assert result.trimmed == 2
    assert [s.timestamp for s in store.get_samples("a")] == [9000, 9500, 10_000]


def test_retained_samples_stay_inside_window_over_many_batches() -> None:
    clock = FakeClock(0)
    processor, store, skew, _ = _build(clock, window_seconds=2.0, margin_ms=500)
    retention = 2500

    for step in range(50):
        end = step * 200
        clock.now = end + 300 + (step % 3) * 400  # jittery delivery delay
        samples = [("a", end - 150, 1.0), ("a", end - 50, 2.0), ("b", end - 100, 3.0)]
        processor.process(_batch("d1", end, *samples), "d1")

        now_adjusted = skew.adjusted_now(clock.now)
        for channel in store.get_channel_ids():
            stamps = [s.timestamp for s in store.get_samples(channel)]
            assert stamps == sorted(stamps)
            assert all(ts >= now_adjusted - retention for ts in stamps)
            assert all(ts <= now_adjusted for ts in stamps)


def test_producer_clock_running_ahead_keeps_future_samples_within_threshold() -> None:
    clock = FakeClock(1000)
    processor, store, skew, _ = _build(clock, window_seconds=2.0, margin_ms=500)

    # Negative delay inside the threshold leaves the offset alone.
    result = processor.process(_batch("d1", 1400, ("a", 1390, 1.0), ("a", 1400, 2.0)), "d1")
    assert result.delay_ms == -400
    assert skew.offset_ms == 0
    now_adjusted = skew.adjusted_now(clock.now)
    assert now_adjusted == 1000
    assert [s.timestamp for s in store.get_samples("a")] == [1390, 1400]

    # Beyond the threshold the offset snaps and "now" catches up with the producer.
    clock.now = 1100
    processor.process(_batch("d1", 2600, ("a", 2590, 3.0)), "d1")
    assert skew.offset_ms == -1500 - 1000
    now_adjusted = skew.adjusted_now(clock.now)
    stamps = [s.timestamp for s in store.get_samples("a")]
    assert stamps == [1390, 1400, 2590]
    assert all(ts <= now_adjusted + skew.threshold_ms for ts in stamps)
    assert all(ts <= now_adjusted for ts in stamps)


def test_duplicate_batches_are_not_deduplicated() -> None:
    clock = FakeClock(1000)
    processor, store, _, _ = _build(clock)
    batch = _batch("d1", 1000, ("a", 990, 1.0), ("a", 995, 2.0))

    processor.process(batch, "d1")
    processor.process(batch, "d1")

    assert [s.timestamp for s in store.get_samples("a")] == [990, 990, 995, 995]


def test_failing_callback_does_not_stop_ingestion() -> None:
    clock = FakeClock(1000)
    store = ChannelBufferStore()

    def _boom(channel_id: str, label: str) -> None:
        raise RuntimeError("listener failure")

    processor = RecordingBatchProcessor(store, ClockSkewEstimator(), clock=clock, on_new_channel=_boom)
    result = processor.process(_batch("d1", 1000, ("a", 990, 1.0)), "d1")

    assert result.inserted == 1
    assert store.sample_count("a") == 1


def test_reset_clears_store_and_skew() -> None:
    clock = FakeClock(5000)
    processor, store, skew, _ = _build(clock)
    processor.process(_batch("d1", 1000, ("a", 990, 1.0)), "d1")
    assert skew.offset_ms != 0

    processor.reset()

    assert store.get_channel_ids() == []
    assert skew.offset_ms == 0


def test_processor_counts_batches_and_samples_until_reset() -> None:
    clock = FakeClock(1000)
    processor, _, _, _ = _build(clock, window_seconds=1.0, margin_ms=0)

    processor.process(_batch("d1", 1000, ("a", 990, 1.0), ("b", 995, 2.0)), "d1")
    processor.process(_batch("d2", 1000, ("c", 990, 1.0)), "d1")
    clock.now = 2500
    processor.process(_batch("d1", 2500, ("a", 2490, 3.0)), "d1")

    assert processor.counters.as_dict() == {
        "batches_accepted": 2,
        "batches_rejected": 1,
        "samples_inserted": 3,
        "samples_trimmed": 2,
        "channels_discovered": 2,
    }

    processor.reset()
    assert processor.counters.batches_accepted == 0
    assert processor.counters.samples_inserted == 0
