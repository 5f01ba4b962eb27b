from __future__ import annotations

from enum import StrEnum
from typing import Final


class SessionState(StrEnum):
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    FAULTED = "FAULTED"


class FaultReason(StrEnum):
    MALFORMED = "malformed"
    LINE_TOO_LONG = "line_too_long"
    IO_ERROR = "io_error"
    IDLE_TIMEOUT = "idle_timeout"


METHOD_IS_PRIME: Final[str] = "isPrime"

DEFAULT_HOST: Final[str] = "0.0.0.0"
DEFAULT_PORT: Final[int] = 40000

# Cap on bytes buffered for a single unterminated line.
MAX_LINE_BYTES: Final[int] = 1024 * 1024
RECV_BYTES: Final[int] = 64 * 1024

DEFAULT_MALFORMED_REPLY: Final[str] = "malformed"
