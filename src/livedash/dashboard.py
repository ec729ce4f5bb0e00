"""Facade that owns the streaming core and serializes access to it.

Transport adapters hand every inbound message to :meth:`DashboardCore.handle_message`;
the presentation layer polls :meth:`DashboardCore.query` at its own cadence and
the picker UI issues :meth:`select_device` / :meth:`select_channel`. One
re-entrant lock covers all of them, so a reader observes the state either
before or after a batch, never a partially applied one.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List, Mapping, Optional, Tuple

import numpy as np

from .config import DashboardConfig
from .core import (
    Batch,
    BatchResult,
    ChannelBufferStore,
    ClockSkewEstimator,
    Device,
    RecordingBatchProcessor,
    Sample,
    SessionController,
    samples_to_arrays,
    wall_clock_ms,
)
from .protocol import DataBatch, DashboardMessage, DeviceAnnounce, MalformedMessage, parse_message

logger = logging.getLogger(__name__)

DeviceListener = Callable[[Device], None]
ChannelListener = Callable[[str, str], None]


class DashboardCore:
    """Streaming data-recording buffer for one dashboard instance."""

    def __init__(
        self,
        config: DashboardConfig | None = None,
        *,
        clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        self._config = (config or DashboardConfig()).sanitized()
        self._clock = clock
        self._lock = threading.RLock()

        self._session = SessionController(default_channel=self._config.default_channel)
        self._store = ChannelBufferStore()
        self._skew = ClockSkewEstimator(threshold_ms=self._config.skew_threshold_ms)
        self._processor = RecordingBatchProcessor(
            self._store,
            self._skew,
            self._config,
            clock=clock,
            on_new_channel=self._queue_channel_event,
        )

        self._pending_channels: List[Tuple[str, str]] = []
        self._device_listeners: List[DeviceListener] = []
        self._channel_listeners: List[ChannelListener] = []

    @property
    def config(self) -> DashboardConfig:
        return self._config

    # ------------------------------------------------------------- listeners
    def add_device_listener(self, listener: DeviceListener) -> None:
        """Call ``listener(device)`` once for every newly announced device id."""
        self._device_listeners.append(listener)

    def add_channel_listener(self, listener: ChannelListener) -> None:
        """Call ``listener(channel_id, label)`` once per channel per selected session."""
        self._channel_listeners.append(listener)

    def remove_listener(self, listener: Callable[..., None]) -> None:
        for listeners in (self._device_listeners, self._channel_listeners):
            if listener in listeners:
                listeners.remove(listener)

    # --------------------------------------------------------------- inbound
    def handle_message(
        self, message: DashboardMessage | str | bytes | Mapping[str, Any]
    ) -> Optional[BatchResult]:
        """
        Dispatch one transport message.

        Raw text or mappings are validated first. Returns the
        :class:`BatchResult` for data batches and ``None`` otherwise.
        """
        if not isinstance(message, (DeviceAnnounce, DataBatch, MalformedMessage)):
            message = parse_message(message)

        if isinstance(message, DeviceAnnounce):
            self.announce_device(message.device)
            return None
        if isinstance(message, DataBatch):
            return self.process_batch(message.batch)
        logger.warning("Unable to handle message: %s", message.reason)
        return None

    def handle_messages(self, messages: List[Any]) -> List[BatchResult]:
        results: List[BatchResult] = []
        for message in messages:
            result = self.handle_message(message)
            if result is not None:
                results.append(result)
        return results

    def announce_device(self, device: Device) -> bool:
        with self._lock:
            is_new = self._session.announce(device)
        if is_new:
            self._emit(self._device_listeners, device)
        return is_new

    def process_batch(self, batch: Batch) -> BatchResult:
        with self._lock:
            result = self._processor.process(batch, self._session.selected_device_id)
            discovered, self._pending_channels = self._pending_channels, []
        for channel_id, label in discovered:
            self._emit(self._channel_listeners, channel_id, label)
        return result

    # -------------------------------------------------------------- commands
    def select_device(self, device_id: str | None) -> Optional[Device]:
        """
        Switch the focused device and discard every buffered sample.

        The reset also happens when ``device_id`` is already selected. Once
        this returns, batches for the previous device are rejected.
        """
        with self._lock:
            device = self._session.select_device(device_id)
            self._processor.reset()
            self._pending_channels = []
        return device

    def select_channel(self, channel_id: str | None) -> None:
        with self._lock:
            self._session.select_channel(channel_id)

    # --------------------------------------------------------------- queries
    def query(self, channel_id: str, window_seconds: float | None = None) -> List[Sample]:
        """Return samples of ``channel_id`` inside the trailing display window."""
        window_ms = self._resolve_window_ms(window_seconds)
        with self._lock:
            start = self._skew.adjusted_now(self._clock()) - window_ms
            return self._store.get_samples_since(channel_id, start)

    def query_series(
        self, channel_id: str, window_seconds: float | None = None
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Like :meth:`query` but as ``(timestamps, values)`` NumPy arrays."""
        return samples_to_arrays(self.query(channel_id, window_seconds))

    def query_selected(self, window_seconds: float | None = None) -> List[Sample]:
        channel_id = self.selected_channel_id
        if channel_id is None:
            return []
        return self.query(channel_id, window_seconds)

    def list_channel_ids(self) -> List[str]:
        with self._lock:
            return self._store.get_channel_ids()

    def list_channel_options(self) -> List[Tuple[str, str]]:
        """Sorted ``(channel_id, label)`` pairs for a channel picker."""
        return [(cid, self._store.readable_label(cid)) for cid in sorted(self.list_channel_ids())]

    def list_known_devices(self) -> List[Device]:
        with self._lock:
            return self._session.known_devices()

    def readable_label(self, channel_id: str) -> str:
        return self._store.readable_label(channel_id)

    @property
    def selected_device(self) -> Optional[Device]:
        with self._lock:
            return self._session.selected_device

    @property
    def selected_channel_id(self) -> Optional[str]:
        with self._lock:
            return self._session.selected_channel_id

    @property
    def offset_ms(self) -> int:
        with self._lock:
            return self._skew.offset_ms

    def latest_timestamp(self, channel_id: str | None = None) -> Optional[int]:
        """Newest buffered producer timestamp for a channel, or across all channels."""
        with self._lock:
            return self._store.latest_timestamp(channel_id)

    def to_display_time(self, producer_ts_ms: int) -> int:
        """Map a producer timestamp onto the consumer's clock."""
        with self._lock:
            return self._skew.to_consumer_time(producer_ts_ms)

    def stats(self) -> dict:
        with self._lock:
            return {
                "selected_device": self._session.selected_device_id,
                "known_devices": len(self._session.known_devices()),
                "channels": len(self._store.get_channel_ids()),
                "samples": self._store.sample_count(),
                "latest_timestamp": self._store.latest_timestamp(),
                "offset_ms": self._skew.offset_ms,
                **self._processor.counters.as_dict(),
            }

    # --------------------------------------------------------------- helpers
    def _resolve_window_ms(self, window_seconds: float | None) -> int:
        if window_seconds is None:
            return self._config.window_ms()
        try:
            return max(0, int(round(float(window_seconds) * 1000.0)))
        except (TypeError, ValueError):
            return self._config.window_ms()

    def _queue_channel_event(self, channel_id: str, label: str) -> None:
        self._pending_channels.append((channel_id, label))

    @staticmethod
    def _emit(listeners: List[Callable[..., None]], *args: Any) -> None:
        for listener in list(listeners):
            try:
                listener(*args)
            except Exception:
                logger.exception("Dashboard listener %r failed", listener)


__all__ = ["DashboardCore", "DeviceListener", "ChannelListener"]
