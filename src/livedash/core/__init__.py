"""Core streaming state: channel buffers, clock skew, session and batches.

This package sits between the transport adapters and the presentation layer.
The :class:`~livedash.dashboard.DashboardCore` facade composes these pieces
and is the only object that mutates them.
"""

from .models import Batch, Device, Sample
from .channel_store import ChannelBuffer, ChannelBufferStore, samples_to_arrays
from .clock_skew import ClockSkewEstimator
from .recording import BatchResult, RecordingBatchProcessor, wall_clock_ms
from .session import SessionController

__all__ = [
    "Batch",
    "Device",
    "Sample",
    "ChannelBuffer",
    "ChannelBufferStore",
    "samples_to_arrays",
    "ClockSkewEstimator",
    "BatchResult",
    "RecordingBatchProcessor",
    "wall_clock_ms",
    "SessionController",
]
