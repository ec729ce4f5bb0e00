"""Developer tooling helpers (opt-in instrumentation)."""

from .debug import IngestCounters, debug_enabled, time_block

__all__ = ["IngestCounters", "debug_enabled", "time_block"]
