from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Protocol


class LineTransport(Protocol):
    def roundtrip(self, payload: bytes, *, expect_lines: int = 1) -> bytes: ...

    def describe(self) -> str: ...


@dataclass(frozen=True)
class TcpTransport:
    host: str
    port: int
    timeout_s: float = 5.0

    def roundtrip(self, payload: bytes, *, expect_lines: int = 1) -> bytes:
        """Send ``payload`` and read until ``expect_lines`` lines arrive or EOF."""
        with socket.create_connection(
            (self.host, int(self.port)), timeout=float(self.timeout_s)
        ) as s:
            s.sendall(payload)

            buf = b""
            while buf.count(b"\n") < expect_lines:
                chunk = s.recv(64 * 1024)
                if not chunk:
                    break
                buf += chunk
            return buf

    def describe(self) -> str:
        return f"tcp:{self.host}:{self.port}"
