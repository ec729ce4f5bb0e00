"""Shared dataclasses for devices, samples and delivered batches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

SampleValue = Union[float, Tuple[float, ...]]


@dataclass(frozen=True, slots=True)
class Device:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class Sample:
    """One reading of one channel; ``timestamp`` is producer-clock milliseconds."""

    channel_id: str
    timestamp: int
    value: SampleValue


@dataclass(frozen=True, slots=True)
class Batch:
    """One network delivery for one device, possibly spanning several channels."""

    device_id: str
    start_timestamp: int
    end_timestamp: int
    samples: Tuple[Sample, ...] = ()
