from __future__ import annotations

from dataclasses import dataclass, field

from prime_time.server.client import PrimeTimeClient
from prime_time.server.transport import TcpTransport


@dataclass
class _FakeTransport:
    reply: bytes = b""
    error: OSError | None = None
    sent: list[tuple[bytes, int]] = field(default_factory=list)

    def roundtrip(self, payload: bytes, *, expect_lines: int = 1) -> bytes:
        self.sent.append((payload, expect_lines))
        if self.error is not None:
            raise self.error
        return self.reply

    def describe(self) -> str:
        return "fake"


def test_check_many_sends_one_payload() -> None:
    transport = _FakeTransport(
        reply=b'{"method":"isPrime","prime":true}\n{"method":"isPrime","prime":false}\n'
    )
    client = PrimeTimeClient(host="unused", port=0, transport=transport)
    results = client.check_many([7, "8"])
    assert results == [
        {"ok": True, "method": "isPrime", "prime": True},
        {"ok": True, "method": "isPrime", "prime": False},
    ]
    assert transport.sent == [
        (
            b'{"method":"isPrime","number":7}\n{"method":"isPrime","number":8}\n',
            2,
        )
    ]


def test_check_connect_failure() -> None:
    transport = _FakeTransport(error=ConnectionRefusedError("refused"))
    client = PrimeTimeClient(host="unused", port=0, transport=transport)
    resp = client.check(7)
    assert resp["ok"] is False
    assert resp["error"] == "connect_failed"
    assert resp["address"] == "fake"


def test_check_many_empty() -> None:
    transport = _FakeTransport()
    assert PrimeTimeClient(host="x", port=1, transport=transport).check_many([]) == []
    assert transport.sent == []


def test_default_transport_is_tcp() -> None:
    client = PrimeTimeClient(host="127.0.0.1", port=40000, timeout_s=1.5)
    assert isinstance(client.transport, TcpTransport)
    assert client.transport.describe() == "tcp:127.0.0.1:40000"
