"""Producer/consumer clock offset tracking with a hysteresis filter."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_MS = 1000


class ClockSkewEstimator:
    """
    Track ``offset_ms`` = consumer receipt time minus producer timestamp.

    Each new delay is compared against the current offset. Only when they
    differ by more than ``threshold_ms`` does the offset snap to
    ``delay - threshold_ms``; smaller differences are ignored so network
    jitter never moves the rolling window.
    """

    __slots__ = ("_threshold_ms", "_initial_offset_ms", "_offset_ms")

    def __init__(self, threshold_ms: int = DEFAULT_THRESHOLD_MS, initial_offset_ms: int = 0) -> None:
        if threshold_ms < 0:
            raise ValueError("threshold_ms must be non-negative")
        self._threshold_ms = int(threshold_ms)
        self._initial_offset_ms = int(initial_offset_ms)
        self._offset_ms = self._initial_offset_ms

    @property
    def offset_ms(self) -> int:
        return self._offset_ms

    @property
    def threshold_ms(self) -> int:
        return self._threshold_ms

    def update(self, delay_ms: int) -> bool:
        """Feed one observed delay; return ``True`` when the offset changed."""
        delay = int(delay_ms)
        if abs(self._offset_ms - delay) > self._threshold_ms:
            self._offset_ms = delay - self._threshold_ms
            logger.info("Updated timestamp offset to %d ms", self._offset_ms)
            return True
        return False

    def adjusted_now(self, consumer_now_ms: int) -> int:
        """Translate the consumer clock into the producer's timeline."""
        return int(consumer_now_ms) - self._offset_ms

    def to_consumer_time(self, producer_ts_ms: int) -> int:
        """Translate a producer timestamp into consumer-local display time."""
        return int(producer_ts_ms) + self._offset_ms

    def reset(self) -> None:
        self._offset_ms = self._initial_offset_ms
