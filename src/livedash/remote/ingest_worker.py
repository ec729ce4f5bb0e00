"""Threaded worker that reads relay messages and emits batched Qt signals."""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional

from PySide6.QtCore import QObject, Signal, Slot

from ..protocol import DashboardMessage, MalformedMessage, build_dashboard_hello, parse_message
from ..tools.debug import debug_enabled

logger = logging.getLogger(__name__)


class MessageIngestWorker(QObject):
    """QObject-based worker that pulls lines from a relay stream and batches messages.

    It is meant to live in its own QThread: lines are parsed in the worker
    thread and emitted as small batches via the messages_batch signal, so the
    receiving thread applies them one after another.
    """

    messages_batch = Signal(list)  # list[DashboardMessage]
    error = Signal(str)
    finished = Signal()

    def __init__(
        self,
        stream_factory: Callable[[], Iterable[str]],
        *,
        batch_size: int = 50,
        max_latency_ms: int = 100,
        send_line: Callable[[str], None] | None = None,
        dashboard_name: str = "LiveDash",
        parent: QObject | None = None,
        stream_label: str | None = None,
    ) -> None:
        super().__init__(parent)
        self._stream_factory = stream_factory
        self._batch_size = max(1, int(batch_size))
        self._max_latency_ms = max(0.0, float(max_latency_ms))
        self._send_line = send_line
        self._dashboard_name = dashboard_name
        self._running = False
        self._stream_label = stream_label or "relay"
        self.malformed_count = 0

    @Slot()
    def start(self) -> None:
        """Entry point for the QThread: consume the relay stream and emit batches."""
        self._running = True
        buffer: list[DashboardMessage] = []
        last_emit = time.monotonic()
        debug_on = debug_enabled()
        total_messages = 0

        try:
            try:
                lines = self._stream_factory()
            except Exception as exc:
                self.error.emit(f"Failed to open relay stream: {exc}")
                return

            self._say_hello()

            for line in lines:
                if not self._running:
                    break
                if not line or not line.strip():
                    continue

                try:
                    message = parse_message(line.strip())
                except Exception:
                    logger.exception("Unable to parse line from %s", self._stream_label)
                    message = MalformedMessage("parser error", line)
                if isinstance(message, MalformedMessage):
                    self.malformed_count += 1
                    logger.warning("Unable to handle message: %s", message.reason)
                    continue

                buffer.append(message)
                total_messages += 1

                now = time.monotonic()
                latency_elapsed = (now - last_emit) * 1000.0
                # Emit when the batch is full or the oldest message has
                # waited longer than max_latency_ms.
                should_emit = len(buffer) >= self._batch_size
                if not should_emit and self._max_latency_ms > 0.0:
                    should_emit = latency_elapsed >= self._max_latency_ms

                if should_emit and buffer:
                    self.messages_batch.emit(list(buffer))
                    buffer.clear()
                    last_emit = now

            if buffer:
                self.messages_batch.emit(list(buffer))
        except Exception as exc:
            logger.exception("Relay stream %s failed", self._stream_label)
            self.error.emit(str(exc))
        finally:
            self._running = False
            if debug_on:
                logger.debug(
                    "stream=%s messages=%d malformed=%d",
                    self._stream_label,
                    total_messages,
                    self.malformed_count,
                )
            self.finished.emit()

    @Slot()
    def stop(self) -> None:
        """Request the reading loop to terminate."""
        self._running = False

    def is_running(self) -> bool:
        return self._running

    def _say_hello(self) -> None:
        if self._send_line is None:
            return
        try:
            self._send_line(build_dashboard_hello(self._dashboard_name))
        except Exception as exc:
            logger.warning("Failed to send dashboard handshake: %s", exc)
