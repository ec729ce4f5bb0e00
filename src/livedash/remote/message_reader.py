"""
Utilities for ingesting JSON Lines relay messages and dispatching them into
a :class:`~livedash.dashboard.DashboardCore` from a single reader thread.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from ..dashboard import DashboardCore
from ..protocol import MalformedMessage, parse_message

logger = logging.getLogger(__name__)


def reader_loop(
    stream: Iterable[str],
    core: DashboardCore,
    *,
    stop_event: Optional[threading.Event] = None,
) -> int:
    """Read one message per line from ``stream`` and apply it to ``core``.

    Blank lines are skipped; malformed lines are logged and dropped. Returns
    the number of messages that were dispatched.
    """
    dispatched = 0
    for raw_line in stream:
        if stop_event is not None and stop_event.is_set():
            break

        line = raw_line.strip()
        if not line:
            continue

        try:
            message = parse_message(line)
            if isinstance(message, MalformedMessage):
                logger.warning("Dropping malformed message line: %s (%s)", line, message.reason)
                continue
            core.handle_message(message)
        except Exception:
            logger.exception("Failed to dispatch message line: %s", line)
            continue
        dispatched += 1
    return dispatched


@dataclass
class StreamReaderHandle:
    thread: threading.Thread
    stop_event: threading.Event
    core: DashboardCore

    def stop(self, *, join: bool = False, timeout: Optional[float] = None) -> None:
        self.stop_event.set()
        if join:
            self.thread.join(timeout)

    def is_alive(self) -> bool:
        return self.thread.is_alive()


def start_reader(
    stream: Iterable[str],
    core: DashboardCore,
    *,
    thread_name: Optional[str] = None,
) -> StreamReaderHandle:
    """
    Start a background thread that feeds JSON lines from *stream* into *core*.

    The single thread is the only writer, so batches are applied in arrival
    order.
    """
    stop_event = threading.Event()

    def _target() -> None:
        reader_loop(stream, core, stop_event=stop_event)

    thread = threading.Thread(
        target=_target,
        name=thread_name or "LiveDashMessageReader",
        daemon=True,
    )
    thread.start()
    return StreamReaderHandle(thread=thread, stop_event=stop_event, core=core)
