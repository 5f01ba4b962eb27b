from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from prime_time.server.constants import METHOD_IS_PRIME
from prime_time.server.primality import is_prime


@dataclass(frozen=True)
class ProtocolError(Exception):
    code: str


@dataclass(frozen=True)
class PrimeRequest:
    method: str
    number: int | Decimal


@dataclass(frozen=True)
class PrimeResponse:
    method: str
    prime: bool


@dataclass(frozen=True)
class Malformed:
    reason: str


def _parse_int(literal: str) -> int | Decimal:
    try:
        return int(literal)
    except ValueError:
        # Past the interpreter's int/str digit limit.
        return Decimal(literal)


def _reject_constant(literal: str) -> Any:
    raise ProtocolError(f"invalid_constant: {literal}")


def _loads(text: str) -> Any:
    return json.loads(
        text,
        parse_float=Decimal,
        parse_int=_parse_int,
        parse_constant=_reject_constant,
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, Decimal)) and not isinstance(value, bool)


def decode_request_line(raw: bytes) -> PrimeRequest | Malformed:
    """Validate one request line (terminator already stripped).

    Returns a ``PrimeRequest`` only when the line is a JSON object carrying
    ``method == "isPrime"`` and a numeric ``number``; anything else is a
    ``Malformed`` with a short reason code. Extra fields are ignored.
    """
    if not raw.strip():
        return Malformed("empty_request")
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return Malformed("invalid_encoding")
    try:
        req = _loads(text)
    except ProtocolError:
        return Malformed("invalid_number")
    except (ValueError, RecursionError):
        return Malformed("invalid_json")
    if not isinstance(req, dict):
        return Malformed("invalid_request")

    if "method" not in req:
        return Malformed("missing_method")
    method = req["method"]
    if not isinstance(method, str) or method != METHOD_IS_PRIME:
        return Malformed("invalid_method")

    if "number" not in req:
        return Malformed("missing_number")
    number = req["number"]
    if not _is_number(number):
        return Malformed("invalid_number")

    return PrimeRequest(method=method, number=number)


def evaluate(request: PrimeRequest) -> PrimeResponse:
    return PrimeResponse(method=request.method, prime=is_prime(request.number))


def encode_response(resp: PrimeResponse) -> bytes:
    data = json.dumps(
        {"method": resp.method, "prime": bool(resp.prime)}, separators=(",", ":")
    )
    return (data + "\n").encode("utf-8")


def encode_malformed(reply: str) -> bytes:
    if not reply:
        return b""
    return (reply.rstrip("\n") + "\n").encode("utf-8")


def _number_literal(number: int | float | Decimal | str) -> str:
    if isinstance(number, str):
        return number.strip()
    if isinstance(number, Decimal):
        if not number.is_finite():
            raise ValueError(f"Not a JSON number: {number}")
        return str(number)
    if isinstance(number, bool) or not isinstance(number, (int, float)):
        raise TypeError(f"Not a number: {number!r}")
    return json.dumps(number, allow_nan=False)


def encode_request(number: int | float | Decimal | str) -> bytes:
    """Build one request line.

    A ``str`` is sent verbatim as the number literal, so big or oddly formatted
    numbers reach the server exactly as typed.
    """
    literal = _number_literal(number)
    return f'{{"method":"{METHOD_IS_PRIME}","number":{literal}}}\n'.encode("utf-8")


def decode_response_line(raw: bytes) -> dict[str, Any]:
    line = raw.split(b"\n", 1)[0].strip()
    if not line:
        return {"ok": False, "error": "empty_response"}
    try:
        out = json.loads(line.decode("utf-8", errors="replace"))
    except json.JSONDecodeError:
        return {
            "ok": False,
            "error": "invalid_response",
            "raw": line.decode("utf-8", errors="replace"),
        }
    if not isinstance(out, dict):
        return {"ok": False, "error": "invalid_response_type", "raw": out}
    if out.get("method") != METHOD_IS_PRIME or not isinstance(out.get("prime"), bool):
        return {"ok": False, "error": "invalid_response_shape", "raw": out}
    return {"ok": True, **out}
