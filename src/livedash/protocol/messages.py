"""
The relay server forwards JSON messages shaped like::

    {"key": "device_announce", "data": {"id": "d1", "name": "Pixel 7"}}
    {"key": "data_batch", "data": {
        "deviceId": "d1", "startTimestamp": 980, "endTimestamp": 1000,
        "samples": [{"channelId": "gravity", "timestamp": 990, "value": 9.8}]}}

``parse_message()`` validates one message (text or already-decoded mapping)
and returns a tagged variant: :class:`DeviceAnnounce`, :class:`DataBatch` or
:class:`MalformedMessage`. It never raises for bad input. The legacy keys
``initialize_device`` / ``data_recording`` and their payload field names
(``deviceInfo.id``, ``recordings``, ``dataId``, ``values``) are accepted too.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Union

from ..core.models import Batch, Device, Sample, SampleValue

logger = logging.getLogger(__name__)

MESSAGE_DEVICE_ANNOUNCE = "device_announce"
MESSAGE_DATA_BATCH = "data_batch"
MESSAGE_INITIALIZE_DASHBOARD = "initialize_dashboard"

_ANNOUNCE_KEYS = {MESSAGE_DEVICE_ANNOUNCE, "initialize_device"}
_BATCH_KEYS = {MESSAGE_DATA_BATCH, "data_recording"}
# Timestamps must fit the int64 arrays handed to plotting code.
_MAX_TIMESTAMP = float(2**63 - 1024)


class MessageError(ValueError):
    """Raised internally when a payload fails validation."""


@dataclass(frozen=True, slots=True)
class DeviceAnnounce:
    device: Device


@dataclass(frozen=True, slots=True)
class DataBatch:
    batch: Batch


@dataclass(frozen=True, slots=True)
class MalformedMessage:
    reason: str
    raw: Any = None


DashboardMessage = Union[DeviceAnnounce, DataBatch, MalformedMessage]


def parse_message(raw: str | bytes | Mapping[str, Any]) -> DashboardMessage:
    """Validate ``raw`` and return the matching message variant."""
    message: Any = raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            message = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            return MalformedMessage(f"undecodable payload ({exc})", raw)
    if isinstance(message, str):
        try:
            message = json.loads(message)
        except ValueError as exc:
            # JSONDecodeError, or an integer literal past the digit limit
            return MalformedMessage(f"invalid JSON ({exc})", raw)

    if not isinstance(message, Mapping):
        return MalformedMessage(f"expected a JSON object, got {type(message).__name__}", raw)

    key = message.get("key")
    data = message.get("data")
    if not isinstance(key, str):
        return MalformedMessage(f"message key must be a string, got {type(key).__name__}", raw)
    try:
        if key in _ANNOUNCE_KEYS:
            return DeviceAnnounce(_parse_device(data))
        if key in _BATCH_KEYS:
            return DataBatch(_parse_batch(data))
    except MessageError as exc:
        return MalformedMessage(f"invalid {key} payload: {exc}", raw)
    return MalformedMessage(f"unknown message key {key!r}", raw)


def build_dashboard_hello(name: str) -> str:
    """Return the handshake line a dashboard sends once connected to the relay."""
    return json.dumps({"key": MESSAGE_INITIALIZE_DASHBOARD, "data": {"name": name}})


def _parse_device(data: Any) -> Device:
    if not isinstance(data, Mapping):
        raise MessageError("payload must be an object")
    device_id = _require_text(data, "id")
    name = data.get("name")
    name_text = str(name).strip() if name is not None else ""
    return Device(id=device_id, name=name_text or device_id)


def _parse_batch(data: Any) -> Batch:
    if not isinstance(data, Mapping):
        raise MessageError("payload must be an object")

    device_id = data.get("deviceId")
    if device_id is None:
        info = data.get("deviceInfo")
        if isinstance(info, Mapping):
            device_id = info.get("id")
    if device_id is None or not str(device_id).strip():
        raise MessageError("missing deviceId")

    end_ts = _coerce_timestamp(data.get("endTimestamp"))
    if end_ts is None:
        raise MessageError("missing or invalid endTimestamp")

    raw_samples = data.get("samples", data.get("recordings"))
    if raw_samples is None:
        raise MessageError("missing samples")
    if isinstance(raw_samples, (str, bytes)) or not isinstance(raw_samples, (list, tuple)):
        raise MessageError("samples must be a list")
    samples = tuple(_parse_sample(item, idx) for idx, item in enumerate(raw_samples))

    start_ts = _coerce_timestamp(data.get("startTimestamp"))
    if start_ts is None:
        start_ts = min((s.timestamp for s in samples), default=end_ts)

    return Batch(
        device_id=str(device_id).strip(),
        start_timestamp=start_ts,
        end_timestamp=end_ts,
        samples=samples,
    )


def _parse_sample(item: Any, index: int) -> Sample:
    if not isinstance(item, Mapping):
        raise MessageError(f"sample {index} must be an object")
    channel_id = item.get("channelId", item.get("dataId"))
    if channel_id is None or not str(channel_id).strip():
        raise MessageError(f"sample {index} is missing channelId")
    timestamp = _coerce_timestamp(item.get("timestamp"))
    if timestamp is None:
        raise MessageError(f"sample {index} has no usable timestamp")
    value = _coerce_value(item.get("value", item.get("values")))
    if value is None:
        raise MessageError(f"sample {index} has no numeric value")
    return Sample(channel_id=str(channel_id).strip(), timestamp=timestamp, value=value)


def _require_text(data: Mapping[str, Any], field: str) -> str:
    value = data.get(field)
    if value is None or not str(value).strip():
        raise MessageError(f"missing {field}")
    return str(value).strip()


def _coerce_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _coerce_timestamp(value: Any) -> Optional[int]:
    number = _coerce_number(value)
    if number is None or abs(number) > _MAX_TIMESTAMP:
        return None
    return int(number)


def _coerce_value(value: Any) -> Optional[SampleValue]:
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        items: List[float] = []
        for part in value:
            number = _coerce_number(part)
            if number is None:
                return None
            items.append(number)
        return tuple(items)
    return _coerce_number(value)


__all__ = [
    "DashboardMessage",
    "DataBatch",
    "DeviceAnnounce",
    "MalformedMessage",
    "MESSAGE_DATA_BATCH",
    "MESSAGE_DEVICE_ANNOUNCE",
    "MESSAGE_INITIALIZE_DASHBOARD",
    "build_dashboard_hello",
    "parse_message",
]
