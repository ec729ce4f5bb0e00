"""Opt-in ingest instrumentation for the recording pipeline.

Set ``LIVEDASH_DEBUG=1`` to time each applied batch and to log a running
summary of :class:`IngestCounters` every ``summary_every`` accepted batches.
The counters themselves are always kept; they back ``DashboardCore.stats()``.
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator

DEBUG_LIVEDASH = os.getenv("LIVEDASH_DEBUG", "").lower() in {"1", "true", "yes", "on"}

logger = logging.getLogger(__name__)


def debug_enabled() -> bool:
    """Return True when lightweight instrumentation should run."""
    return DEBUG_LIVEDASH


@dataclass(slots=True)
class IngestCounters:
    """Running totals reported by the batch processor since the last reset."""

    batches_accepted: int = 0
    batches_rejected: int = 0
    samples_inserted: int = 0
    samples_trimmed: int = 0
    channels_discovered: int = 0
    summary_every: int = 100

    def record_rejected(self) -> None:
        self.batches_rejected += 1

    def record_accepted(self, inserted: int, trimmed: int, new_channels: int) -> None:
        self.batches_accepted += 1
        self.samples_inserted += inserted
        self.samples_trimmed += trimmed
        self.channels_discovered += new_channels
        if DEBUG_LIVEDASH and self.summary_every > 0 and self.batches_accepted % self.summary_every == 0:
            logger.debug("[DEBUG] ingest %s", self.as_dict())

    def reset(self) -> None:
        self.batches_accepted = 0
        self.batches_rejected = 0
        self.samples_inserted = 0
        self.samples_trimmed = 0
        self.channels_discovered = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "batches_accepted": self.batches_accepted,
            "batches_rejected": self.batches_rejected,
            "samples_inserted": self.samples_inserted,
            "samples_trimmed": self.samples_trimmed,
            "channels_discovered": self.channels_discovered,
        }


@contextmanager
def time_block(label: str) -> Iterator[None]:
    """Log how long the wrapped block took, only when debugging is enabled."""
    if not DEBUG_LIVEDASH:
        yield
        return

    start = time.perf_counter()
    try:
        yield
    finally:
        logger.debug("[DEBUG] %s took %.3f ms", label, (time.perf_counter() - start) * 1000.0)
