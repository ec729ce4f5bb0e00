from __future__ import annotations

import io
import json
import time

from livedash import DashboardCore
from livedash.remote import reader_loop, start_reader


def _line(key: str, **data) -> str:
    return json.dumps({"key": key, "data": data})


def _selecting_core() -> DashboardCore:
    core = DashboardCore(clock=lambda: 1500)
    core.add_device_listener(lambda device: core.select_device(device.id))
    return core


def test_reader_loop_populates_core() -> None:
    core = _selecting_core()
    lines = [
        _line("device_announce", id="d1", name="Pixel"),
        _line(
            "data_batch",
            deviceId="d1",
            startTimestamp=980,
            endTimestamp=1000,
            samples=[{"channelId": "gravity", "timestamp": 990, "value": 9.8}],
        ),
    ]
    assert reader_loop(lines, core) == 2
    assert [s.timestamp for s in core.query("gravity")] == [990]


def test_reader_loop_ignores_invalid_lines() -> None:
    core = _selecting_core()
    lines = [
        "not-json",
        "",
        "   ",
        json.dumps({"key": "unknown", "data": {}}),
        _line("data_batch", deviceId="d1"),
        _line("device_announce", id="d1"),
    ]
    assert reader_loop(lines, core) == 1
    assert [d.id for d in core.list_known_devices()] == ["d1"]


def test_start_reader_background_thread() -> None:
    core = _selecting_core()
    text = "\n".join(
        [
            _line("device_announce", id="d3"),
            _line(
                "data_batch",
                deviceId="d3",
                endTimestamp=1000,
                samples=[{"channelId": "ax", "timestamp": 999, "value": 1.5}],
            ),
        ]
    )
    handle = start_reader(io.StringIO(text + "\n"), core)

    # Allow background thread to process both lines
    timeout = time.time() + 1.0
    while time.time() < timeout:
        if core.query("ax"):
            break
        time.sleep(0.01)

    handle.stop(join=True, timeout=1.0)

    assert [s.value for s in core.query("ax")] == [1.5]
    assert not handle.is_alive()


def test_reader_loop_survives_bad_key_and_parser_failure(monkeypatch) -> None:
    from livedash.remote import message_reader

    real_parse = message_reader.parse_message

    def _flaky_parse(line):
        if "explode" in line:
            raise RuntimeError("parser blew up")
        return real_parse(line)

    monkeypatch.setattr(message_reader, "parse_message", _flaky_parse)

    core = _selecting_core()
    lines = [
        json.dumps({"key": [1], "data": {}}),
        _line("device_announce", id="explode"),
        _line("device_announce", id="d1"),
    ]
    assert reader_loop(lines, core) == 1
    assert [d.id for d in core.list_known_devices()] == ["d1"]
