"""Runtime configuration helpers for the ingestion/query core."""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

GRAVITY_CHANNEL_ID = (
    "com.nexenio.behaviourauthentication.core.internal.behaviour.data.sensor.data.GravitySensorData"
)


@dataclass(slots=True)
class DashboardConfig:
    """
    Tuning knobs for how batches are buffered, aligned, and queried.

    ``skew_threshold_ms`` drives the clock-skew hysteresis while
    ``trim_margin_ms`` widens the retention window beyond the displayed one.
    They share a default but are configured independently.
    """

    window_seconds: float = 10.0
    skew_threshold_ms: int = 1000
    trim_margin_ms: int = 1000
    default_channel: str = GRAVITY_CHANNEL_ID
    dashboard_name: str = "LiveDash"

    # Qt worker batching
    ingest_batch_size: int = 50
    ingest_max_latency_ms: int = 100

    def sanitized(self) -> DashboardConfig:
        """Return a copy with derived limits applied."""
        return DashboardConfig(
            window_seconds=max(0.1, float(self.window_seconds)),
            skew_threshold_ms=max(0, int(self.skew_threshold_ms)),
            trim_margin_ms=max(0, int(self.trim_margin_ms)),
            default_channel=str(self.default_channel or ""),
            dashboard_name=str(self.dashboard_name or "LiveDash"),
            ingest_batch_size=max(1, int(self.ingest_batch_size)),
            ingest_max_latency_ms=max(0, int(self.ingest_max_latency_ms)),
        )

    def window_ms(self) -> int:
        """Displayed window length in milliseconds."""
        return int(round(float(self.window_seconds) * 1000.0))

    def retention_ms(self) -> int:
        """How far back (in producer ms) samples are kept after each trim."""
        return self.window_ms() + int(self.trim_margin_ms)


def _recognized_fields() -> set[str]:
    """Return the dataclass field names accepted by :class:`DashboardConfig`."""
    return {f.name for f in fields(DashboardConfig)}


def _normalize_mapping(data: Mapping[str, Any]) -> MutableMapping[str, Any]:
    """Flatten a top-level ``dashboard`` block into the root mapping."""
    if "dashboard" in data and isinstance(data["dashboard"], Mapping):
        merged: MutableMapping[str, Any] = {}
        for key, value in data.items():
            if key == "dashboard":
                merged.update(value)
            else:
                merged[key] = value
        return merged
    return dict(data)


def config_from_mapping(data: Mapping[str, Any] | None) -> DashboardConfig:
    """Build :class:`DashboardConfig` from ``data`` (ignoring unknown keys)."""
    if not data:
        return DashboardConfig()
    normalized = _normalize_mapping(data)
    known = _recognized_fields()
    payload = {key: normalized[key] for key in normalized.keys() & known}
    return DashboardConfig(**payload).sanitized()


def load_config(path: str | Path | None) -> DashboardConfig:
    """
    Load configuration from ``path``.

    Missing files fall back to default :class:`DashboardConfig`.
    """
    if path is None:
        return DashboardConfig()
    cfg_path = Path(path)
    if not cfg_path.exists():
        return DashboardConfig()
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping in {cfg_path}, got {type(raw).__name__}")
    return config_from_mapping(raw)


__all__ = ["DashboardConfig", "GRAVITY_CHANNEL_ID", "config_from_mapping", "load_config"]
