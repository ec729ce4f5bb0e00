"""Per-channel rolling sample storage keyed by channel id."""

from __future__ import annotations

import bisect
import logging
import re
import threading
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

import numpy as np

from .models import Sample

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_LABEL_SUFFIX = "Data"


def _sample_key(sample: Sample) -> int:
    return sample.timestamp


def _empty_series() -> Tuple[np.ndarray, np.ndarray]:
    return np.empty(0, dtype=np.int64), np.empty(0, dtype=np.float64)


class ChannelBuffer:
    """Timestamp-ordered deque of samples for one channel.

    Samples usually arrive in order and are appended; late samples are
    inserted after every sample with an equal or smaller timestamp so ties
    keep arrival order.
    """

    __slots__ = ("_samples",)

    def __init__(self) -> None:
        self._samples: Deque[Sample] = deque()

    def insert(self, sample: Sample) -> None:
        buf = self._samples
        if not buf or buf[-1].timestamp <= sample.timestamp:
            buf.append(sample)
            return
        idx = bisect.bisect_right(buf, sample.timestamp, key=_sample_key)
        buf.insert(idx, sample)

    def drop_older_than(self, cutoff: int) -> int:
        """Drop the expired prefix (``timestamp < cutoff``) and return its size."""
        buf = self._samples
        dropped = 0
        while buf and buf[0].timestamp < cutoff:
            buf.popleft()
            dropped += 1
        return dropped

    def snapshot(self) -> List[Sample]:
        return list(self._samples)

    def since(self, start: int) -> List[Sample]:
        """Return samples with ``timestamp >= start`` in order."""
        buf = self._samples
        if not buf or buf[0].timestamp >= start:
            return list(buf)
        result: List[Sample] = []
        for sample in reversed(buf):
            if sample.timestamp < start:
                break
            result.append(sample)
        result.reverse()
        return result

    def latest(self) -> Optional[Sample]:
        return self._samples[-1] if self._samples else None

    def __len__(self) -> int:
        return len(self._samples)


class ChannelBufferStore:
    """Mapping of channel id -> :class:`ChannelBuffer`.

    Channels are created lazily on their first sample and stay known after
    being trimmed empty, so the "new channel" event fires once per channel
    for the lifetime of the store (until :meth:`clear`).
    """

    def __init__(self) -> None:
        self._buffers: Dict[str, ChannelBuffer] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ ingest
    def add_sample(self, sample: Sample) -> bool:
        """Insert ``sample``; return ``True`` when its channel is new."""
        with self._lock:
            buf = self._buffers.get(sample.channel_id)
            is_new = buf is None
            if buf is None:
                buf = ChannelBuffer()
                self._buffers[sample.channel_id] = buf
            buf.insert(sample)
            return is_new

    def trim(self, now_adjusted_ms: int, window_ms: int) -> int:
        """Drop samples older than ``now_adjusted_ms - window_ms`` in every channel.

        Only the expired prefix goes. Samples stamped after ``now_adjusted_ms``
        (a producer clock running ahead by less than the skew threshold) are
        kept, so a buffer may reach up to one threshold past "now".
        """
        cutoff = int(now_adjusted_ms) - int(window_ms)
        dropped = 0
        with self._lock:
            for buf in self._buffers.values():
                dropped += buf.drop_older_than(cutoff)
        if dropped:
            logger.debug("Trimmed %d samples older than %d", dropped, cutoff)
        return dropped

    def clear(self) -> None:
        with self._lock:
            self._buffers.clear()

    # ------------------------------------------------------------------- query
    def get_samples(self, channel_id: str) -> List[Sample]:
        """Return a copy of the ordered samples for ``channel_id`` (``[]`` if unknown)."""
        with self._lock:
            buf = self._buffers.get(channel_id)
            return buf.snapshot() if buf is not None else []

    def get_samples_since(self, channel_id: str, start_ms: int) -> List[Sample]:
        with self._lock:
            buf = self._buffers.get(channel_id)
            return buf.since(int(start_ms)) if buf is not None else []

    def get_channel_ids(self) -> List[str]:
        """Return every known channel id in first-seen order."""
        with self._lock:
            return list(self._buffers.keys())

    def has_channel(self, channel_id: str) -> bool:
        with self._lock:
            return channel_id in self._buffers

    def sample_count(self, channel_id: str | None = None) -> int:
        with self._lock:
            if channel_id is not None:
                buf = self._buffers.get(channel_id)
                return len(buf) if buf is not None else 0
            return sum(len(buf) for buf in self._buffers.values())

    def latest_timestamp(self, channel_id: str | None = None) -> Optional[int]:
        """Return the newest timestamp for a channel or across all channels."""
        with self._lock:
            if channel_id is not None:
                buf = self._buffers.get(channel_id)
                latest = buf.latest() if buf is not None else None
                return latest.timestamp if latest is not None else None
            stamps = [buf.latest().timestamp for buf in self._buffers.values() if len(buf)]
            return max(stamps) if stamps else None

    # ----------------------------------------------------------------- helpers
    @staticmethod
    def readable_label(channel_id: str) -> str:
        """
        Derive a short display label from a fully-qualified channel id.

        ``com.example.sensor.data.GravitySensorData`` becomes ``Gravity Sensor``.
        """
        name = str(channel_id).strip().rsplit(".", 1)[-1]
        if name.endswith(_LABEL_SUFFIX) and len(name) > len(_LABEL_SUFFIX):
            name = name[: -len(_LABEL_SUFFIX)]
        label = _CAMEL_BOUNDARY.sub(" ", name).replace("_", " ").strip()
        return " ".join(label.split()) or str(channel_id)


def _value_width(sample: Sample) -> int:
    value = sample.value
    return len(value) if isinstance(value, tuple) else 0


def samples_to_arrays(samples: List[Sample]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert ordered samples into ``(timestamps, values)`` arrays.

    A channel whose readings changed shape (scalar vs. tuple, or tuples of a
    different length) keeps only the samples shaped like the newest one.
    """
    if not samples:
        return _empty_series()
    width = _value_width(samples[-1])
    shaped = [s for s in samples if _value_width(s) == width]
    if len(shaped) != len(samples):
        logger.warning(
            "Skipping %d samples of %s whose value shape differs from the newest reading",
            len(samples) - len(shaped),
            samples[-1].channel_id,
        )
        samples = shaped
    count = len(samples)
    times = np.fromiter((s.timestamp for s in samples), dtype=np.int64, count=count)
    values = np.asarray([s.value for s in samples], dtype=np.float64)
    return times, values


__all__ = ["ChannelBuffer", "ChannelBufferStore", "samples_to_arrays"]
