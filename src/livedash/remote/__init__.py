"""Transport adapters that feed relay messages into the dashboard core.

:func:`start_reader` drains a JSON Lines stream on a plain thread, while
:class:`MessageIngestWorker` does the same inside a QThread and hands batches
to the Qt side through signals. Neither touches sockets: callers pass an
iterable of already-received lines.
"""

from .message_reader import StreamReaderHandle, reader_loop, start_reader
from .ingest_worker import MessageIngestWorker

__all__ = ["StreamReaderHandle", "reader_loop", "start_reader", "MessageIngestWorker"]
