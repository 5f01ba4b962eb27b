from __future__ import annotations

from loguru import logger

from prime_time.server.constants import (
    DEFAULT_MALFORMED_REPLY,
    MAX_LINE_BYTES,
    FaultReason,
    SessionState,
)
from prime_time.server.protocol import (
    Malformed,
    decode_request_line,
    encode_malformed,
    encode_response,
    evaluate,
)


class PrimeSession:
    """Line-protocol state for one connection, independent of any socket.

    Bytes go in through ``feed``; reply lines come out in request order. The
    first malformed line faults the session and everything after it, buffered
    or not, is dropped.
    """

    def __init__(
        self,
        *,
        max_line_bytes: int = MAX_LINE_BYTES,
        malformed_reply: str = DEFAULT_MALFORMED_REPLY,
        label: str = "-",
    ) -> None:
        self._max_line_bytes = int(max_line_bytes)
        self._malformed_reply = encode_malformed(malformed_reply)
        self._label = label
        self._buffer = bytearray()
        self._lines_processed = 0
        self._state = SessionState.OPEN
        self._fault_kind: FaultReason | None = None
        self._fault_reason: str | None = None
        self._answered = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is not SessionState.OPEN

    @property
    def lines_processed(self) -> int:
        return self._lines_processed

    @property
    def answered(self) -> int:
        return self._answered

    @property
    def fault_kind(self) -> FaultReason | None:
        return self._fault_kind

    @property
    def fault_reason(self) -> str | None:
        return self._fault_reason

    @property
    def pending_bytes(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> list[bytes]:
        if self.closed:
            return []
        self._buffer.extend(chunk)

        replies: list[bytes] = []
        start = 0
        while not self.closed:
            end = self._buffer.find(b"\n", start)
            if end < 0:
                break
            line = bytes(self._buffer[start:end])
            start = end + 1
            replies.extend(self._handle_line(line))

        if self.closed:
            return replies
        del self._buffer[:start]

        if len(self._buffer) > self._max_line_bytes:
            logger.info(
                f"[{self._label}] pending line exceeds {self._max_line_bytes} bytes"
            )
            self._set_fault(FaultReason.LINE_TOO_LONG)
            replies.extend(self._malformed_replies())
        return replies

    def finish(self) -> list[bytes]:
        """Peer closed its write side; a trailing unterminated line still counts."""
        if self.closed:
            return []
        replies: list[bytes] = []
        if self._buffer:
            line = bytes(self._buffer)
            self._buffer.clear()
            replies.extend(self._handle_line(line))
        if not self.closed:
            self._state = SessionState.CLOSING
        return replies

    def fault(self, reason: FaultReason) -> None:
        if self.closed:
            return
        self._set_fault(reason)

    def _handle_line(self, line: bytes) -> list[bytes]:
        self._lines_processed += 1
        decoded = decode_request_line(line)
        if isinstance(decoded, Malformed):
            logger.info(
                f"[{self._label}] malformed request #{self._lines_processed}: "
                f"{decoded.reason}"
            )
            self._set_fault(FaultReason.MALFORMED, detail=decoded.reason)
            return self._malformed_replies()
        self._answered += 1
        return [encode_response(evaluate(decoded))]

    def _malformed_replies(self) -> list[bytes]:
        return [self._malformed_reply] if self._malformed_reply else []

    def _set_fault(self, reason: FaultReason, *, detail: str | None = None) -> None:
        self._state = SessionState.FAULTED
        self._fault_kind = reason
        self._fault_reason = f"{reason}: {detail}" if detail else str(reason)
        self._buffer.clear()
