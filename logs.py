"""
In-memory log buffer: keeps the most recent formatted records of a run so they can
be dumped on demand without a log file.
"""
import logging
import threading
from collections import deque
from typing import List

DEFAULT_ENTRIES = 512
DEFAULT_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


class CyclicBufferHandler(logging.Handler):
    """Logging handler that retains only the last `entries` records."""

    def __init__(self, entries: int = DEFAULT_ENTRIES, level=logging.NOTSET):
        super().__init__(level)
        self.entries_max = max(1, int(entries))
        self._buffer = deque(maxlen=self.entries_max)
        self._buffer_lock = threading.Lock()
        self.setFormatter(logging.Formatter(DEFAULT_FORMAT))

    def emit(self, record: logging.LogRecord):
        try:
            msg = self.format(record)
        except Exception:
            self.handleError(record)
            return
        with self._buffer_lock:
            self._buffer.append(msg)

    def entries(self) -> List[str]:
        with self._buffer_lock:
            return list(self._buffer)

    def clear(self):
        with self._buffer_lock:
            self._buffer.clear()


def attach_buffer(entries: int = DEFAULT_ENTRIES, logger_name: str = '', level=logging.INFO) -> CyclicBufferHandler:
    """Attach a CyclicBufferHandler to a logger (root by default) and return it."""
    handler = CyclicBufferHandler(entries, level=level)
    target = logging.getLogger(logger_name)
    target.addHandler(handler)
    if target.level == logging.NOTSET or target.level > level:
        target.setLevel(level)
    return handler
