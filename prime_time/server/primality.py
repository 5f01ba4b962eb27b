from __future__ import annotations

import math
from decimal import Decimal
from typing import Any

import sympy


def integral_value(value: Any) -> int | None:
    """Return the exact integer ``value`` denotes, or None if it is not integral.

    Booleans are not numbers here even though ``bool`` subclasses ``int``.
    Decimals are converted without going through the decimal context, so no
    digits are rounded away.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        return int(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        sign, digits, exponent = value.as_tuple()
        if exponent >= 0:
            return int(Decimal((sign, digits, 0))) * 10**exponent
        if any(digits[exponent:]):
            return None
        return int(Decimal((sign, digits[:exponent] or (0,), 0)))
    return None


def _is_multiple_of_ten(value: Decimal) -> bool:
    # c * 10**e with e > 0; expanding it could be arbitrarily expensive.
    _, _, exponent = value.as_tuple()
    return value.is_finite() and exponent > 0


def is_prime_int(n: int) -> bool:
    if n < 2:
        return False
    return bool(sympy.isprime(n))


def is_prime(value: Any) -> bool:
    """Judge primality of any JSON-derived numeric value.

    Non-numbers, non-integral values and anything below 2 are not prime.
    Never raises.
    """
    if isinstance(value, Decimal) and _is_multiple_of_ten(value):
        return False
    n = integral_value(value)
    if n is None:
        return False
    return is_prime_int(n)
