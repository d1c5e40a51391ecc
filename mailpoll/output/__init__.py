"""Record sinks.

A sink is any callable taking an EventRecord. Sinks are called from
several fetch workers at once and must be thread-safe.
"""

import json
import sys
import threading
from typing import TextIO

from mailpoll.decode.models import EventRecord

__all__ = ["JsonLinesSink"]


class JsonLinesSink:
    """Writes each record as one JSON object per line.

    Example:
        sink = JsonLinesSink(sys.stdout)
        scheduler.run_cycle(client, sink)
    """

    def __init__(self, stream: TextIO | None = None, *, include_metadata: bool = False):
        """Initialize the sink.

        Args:
            stream: Text stream to write to. Defaults to sys.stdout.
            include_metadata: Keep the "@metadata" namespace in the output.
        """
        self._stream = stream or sys.stdout
        self._include_metadata = include_metadata
        self._lock = threading.Lock()
        self.count = 0

    def __call__(self, record: EventRecord) -> None:
        self.emit(record)

    def emit(self, record: EventRecord) -> None:
        data = record.to_dict()
        if not self._include_metadata:
            data.pop("@metadata", None)
        line = json.dumps(data, ensure_ascii=False, default=str)

        with self._lock:
            self._stream.write(line + "\n")
            self._stream.flush()
            self.count += 1
