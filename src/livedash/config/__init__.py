"""Configuration objects and helpers for LiveDash.

A single YAML file (optionally nested under a ``dashboard:`` key) tunes the
rolling window, the clock-skew hysteresis and the Qt ingest batching. The
typed dataclass in :mod:`runtime` is imported everywhere else so the core,
the transport adapters and the CLI agree on the same limits.
"""

from .runtime import DashboardConfig, GRAVITY_CHANNEL_ID, config_from_mapping, load_config

__all__ = ["DashboardConfig", "GRAVITY_CHANNEL_ID", "config_from_mapping", "load_config"]
