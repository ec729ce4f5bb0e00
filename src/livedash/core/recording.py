"""Recording batch processor: the single writer of buffered samples."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..config import DashboardConfig
from ..tools.debug import IngestCounters, time_block
from .channel_store import ChannelBufferStore
from .clock_skew import ClockSkewEstimator
from .models import Batch

logger = logging.getLogger(__name__)

Clock = Callable[[], int]
NewChannelCallback = Callable[[str, str], None]


def wall_clock_ms() -> int:
    """Current consumer time in integer milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


@dataclass(slots=True)
class BatchResult:
    """Outcome of :meth:`RecordingBatchProcessor.process`."""

    accepted: bool
    delay_ms: Optional[int] = None
    offset_ms: Optional[int] = None
    offset_changed: bool = False
    inserted: int = 0
    trimmed: int = 0
    new_channels: List[str] = field(default_factory=list)


class RecordingBatchProcessor:
    """
    Validate and merge inbound batches into the channel store.

    Batches are applied strictly one at a time, samples in their given order.
    Identical batches are not deduplicated: a retransmission appends its
    samples again and only windowing bounds the growth.
    """

    def __init__(
        self,
        store: ChannelBufferStore,
        skew: ClockSkewEstimator,
        config: DashboardConfig | None = None,
        *,
        clock: Clock = wall_clock_ms,
        on_new_channel: NewChannelCallback | None = None,
    ) -> None:
        self._store = store
        self._skew = skew
        self._config = (config or DashboardConfig()).sanitized()
        self._clock = clock
        self._on_new_channel = on_new_channel
        self.counters = IngestCounters()

    @property
    def retention_ms(self) -> int:
        return self._config.retention_ms()

    def process(self, batch: Batch, selected_device_id: str | None) -> BatchResult:
        if selected_device_id is None or batch.device_id != selected_device_id:
            logger.debug("Not processing batch from device %s", batch.device_id)
            self.counters.record_rejected()
            return BatchResult(accepted=False)

        now = int(self._clock())
        delay = now - int(batch.end_timestamp)
        changed = self._skew.update(delay)

        result = BatchResult(accepted=True, delay_ms=delay, offset_changed=changed)
        with time_block(f"apply batch of {len(batch.samples)} samples"):
            for sample in batch.samples:
                if not self._store.has_channel(sample.channel_id):
                    self._notify_new_channel(sample.channel_id)
                    result.new_channels.append(sample.channel_id)
                self._store.add_sample(sample)
                result.inserted += 1

            result.trimmed = self._store.trim(self._skew.adjusted_now(now), self.retention_ms)

        result.offset_ms = self._skew.offset_ms
        self.counters.record_accepted(result.inserted, result.trimmed, len(result.new_channels))
        logger.debug(
            "Processed batch from %s: %d samples, %d ms delay, %d trimmed",
            batch.device_id,
            result.inserted,
            delay,
            result.trimmed,
        )
        return result

    def reset(self) -> None:
        """Discard all buffered samples and return the skew to its initial state."""
        self._store.clear()
        self._skew.reset()
        self.counters.reset()

    def _notify_new_channel(self, channel_id: str) -> None:
        logger.info("Received first recording of data with ID: %s", channel_id)
        if self._on_new_channel is None:
            return
        try:
            self._on_new_channel(channel_id, self._store.readable_label(channel_id))
        except Exception:
            logger.exception("New-channel callback failed for %s", channel_id)
