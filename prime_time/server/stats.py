from __future__ import annotations

import threading
import time
from typing import Any


class ServerStats:
    """Process-wide counters. Read-only from the protocol's point of view."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started_at = int(time.time())
        self._next_connection_id = 0
        self._connections_active = 0
        self._requests_answered = 0
        self._malformed_lines = 0
        self._oversized_lines = 0
        self._io_faults = 0

    def connection_opened(self) -> int:
        with self._lock:
            self._next_connection_id += 1
            self._connections_active += 1
            return self._next_connection_id

    def connection_closed(self) -> None:
        with self._lock:
            self._connections_active = max(0, self._connections_active - 1)

    def record_answers(self, count: int) -> None:
        if count <= 0:
            return
        with self._lock:
            self._requests_answered += int(count)

    def record_malformed(self) -> None:
        with self._lock:
            self._malformed_lines += 1

    def record_oversized(self) -> None:
        with self._lock:
            self._oversized_lines += 1

    def record_io_fault(self) -> None:
        with self._lock:
            self._io_faults += 1

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "started_at": self._started_at,
                "connections_total": self._next_connection_id,
                "connections_active": self._connections_active,
                "requests_answered": self._requests_answered,
                "malformed_lines": self._malformed_lines,
                "oversized_lines": self._oversized_lines,
                "io_faults": self._io_faults,
            }
