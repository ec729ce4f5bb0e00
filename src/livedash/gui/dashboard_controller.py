from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional

from PySide6.QtCore import QMetaObject, QObject, QThread, Qt, Signal, Slot

from ..config import DashboardConfig
from ..core import BatchResult, Device, Sample
from ..dashboard import DashboardCore
from ..remote.ingest_worker import MessageIngestWorker

logger = logging.getLogger(__name__)


class DashboardController(QObject):
    """Non-visual controller that bridges the dashboard core to Qt widgets.

    Core notifications are re-emitted as Qt signals; relay messages arrive in
    batches from a :class:`MessageIngestWorker` running in its own QThread and
    are applied on the controller's thread, one batch at a time.
    """

    device_connected = Signal(object)  # Device
    channel_discovered = Signal(str, str)  # channel_id, label
    batch_applied = Signal(object)  # BatchResult
    device_selected = Signal(object)  # Device | None
    streaming_started = Signal()
    streaming_stopped = Signal()
    error_reported = Signal(str)

    def __init__(
        self,
        config: DashboardConfig | None = None,
        *,
        core: DashboardCore | None = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._config = (config or DashboardConfig()).sanitized()
        self._core = core or DashboardCore(self._config)
        self._core.add_device_listener(self.device_connected.emit)
        self._core.add_channel_listener(self.channel_discovered.emit)

        self._ingest_thread: Optional[QThread] = None
        self._ingest_worker: Optional[MessageIngestWorker] = None
        self._stop_requested = False
        self._ingest_had_error = False

    @property
    def core(self) -> DashboardCore:
        return self._core

    # --------------------------------------------------------------- commands
    def select_device(self, device_id: str | None) -> Optional[Device]:
        device = self._core.select_device(device_id)
        self.device_selected.emit(device)
        return device

    def select_channel(self, channel_id: str | None) -> None:
        self._core.select_channel(channel_id)

    def visible_samples(self, window_seconds: float | None = None) -> List[Sample]:
        """Samples of the selected channel for the next plot refresh."""
        return self._core.query_selected(window_seconds)

    # --------------------------------------------------------------- streaming
    def start_live_stream(
        self,
        stream_factory: Callable[[], Iterable[str]],
        *,
        send_line: Callable[[str], None] | None = None,
    ) -> None:
        if self._ingest_worker is not None:
            raise RuntimeError("Relay streaming is already running.")

        self._stop_requested = False
        self._ingest_had_error = False

        thread = QThread(self)
        worker = MessageIngestWorker(
            stream_factory,
            batch_size=self._config.ingest_batch_size,
            max_latency_ms=self._config.ingest_max_latency_ms,
            send_line=send_line,
            dashboard_name=self._config.dashboard_name,
            stream_label="relay",
        )
        worker.moveToThread(thread)
        thread.started.connect(worker.start)
        worker.messages_batch.connect(self._on_messages_batch)
        worker.error.connect(self._on_ingest_error)
        worker.finished.connect(self._on_ingest_finished)
        worker.finished.connect(worker.deleteLater)
        worker.finished.connect(thread.quit)
        thread.finished.connect(thread.deleteLater)
        thread.start()

        self._ingest_thread = thread
        self._ingest_worker = worker
        logger.info("Connected to the relay stream")
        self.streaming_started.emit()

    def stop_live_stream(self, *, wait: bool = False, wait_timeout_ms: int | None = 5000) -> None:
        thread = self._ingest_thread
        worker = self._ingest_worker
        if worker is None:
            return
        self._stop_requested = True
        QMetaObject.invokeMethod(worker, "stop", Qt.QueuedConnection)

        if wait and thread is not None:
            if wait_timeout_ms is None:
                thread.wait()
            else:
                thread.wait(max(0, int(wait_timeout_ms)))

    def is_streaming(self) -> bool:
        return self._ingest_worker is not None

    # --------------------------------------------------------------- ingest callbacks
    @Slot(list)
    def _on_messages_batch(self, messages: list[object]) -> None:
        for message in messages:
            try:
                result = self._core.handle_message(message)
            except Exception:
                logger.exception("DashboardController: failed to apply message")
                continue
            if isinstance(result, BatchResult) and result.accepted:
                self.batch_applied.emit(result)

    @Slot(str)
    def _on_ingest_error(self, message: str) -> None:
        self._ingest_had_error = True
        self._emit_error(message)

    @Slot()
    def _on_ingest_finished(self) -> None:
        if not self._stop_requested and not self._ingest_had_error:
            self._emit_error("Relay stream stopped unexpectedly (no stop request)")
        self._stop_requested = False
        self._ingest_worker = None
        self._ingest_thread = None
        self.streaming_stopped.emit()

    def _emit_error(self, message: str) -> None:
        logger.error("DashboardController error: %s", message)
        self.error_reported.emit(str(message))
