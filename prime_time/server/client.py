from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from prime_time.server.protocol import decode_response_line, encode_request
from prime_time.server.transport import LineTransport, TcpTransport

Number = int | float | Decimal | str


class PrimeTimeClient:
    def __init__(
        self,
        *,
        host: str,
        port: int,
        timeout_s: float = 5.0,
        transport: LineTransport | None = None,
    ) -> None:
        self._transport = transport or TcpTransport(host, int(port), timeout_s)

    @property
    def transport(self) -> LineTransport:
        return self._transport

    def check(self, number: Number) -> dict[str, Any]:
        return self.check_many([number])[0]

    def check_many(self, numbers: Iterable[Number]) -> list[dict[str, Any]]:
        """Ask about every number over a single connection, answers in order.

        If the server hangs up early (e.g. after a malformed request) the
        missing answers come back as ``{"ok": False, "error": "no_response"}``.
        """
        items = list(numbers)
        if not items:
            return []
        try:
            payload = b"".join(encode_request(n) for n in items)
            buf = self._transport.roundtrip(payload, expect_lines=len(items))
        except OSError as exc:
            err = {
                "ok": False,
                "error": "connect_failed",
                "message": str(exc),
                "address": self._transport.describe(),
            }
            return [dict(err) for _ in items]

        lines = [line for line in buf.split(b"\n") if line.strip()]
        out = [decode_response_line(line) for line in lines[: len(items)]]
        out.extend({"ok": False, "error": "no_response"} for _ in items[len(out) :])
        return out
