"""
Full-precision fixed-point arithmetic.

Операнды ограничены uint256, промежуточный результат — 512 бит,
результат снова должен помещаться в uint256. Выход за границы — OverflowError,
а не тихое усечение.

Основные формулы:
- mul_div(a, b, d) = floor(a * b / d)
- sqrt(x) = floor(sqrt(x)) для x < 2^512
"""

import math

Q96 = 2 ** 96
Q192 = 2 ** 192

MAX_UINT256 = 2 ** 256 - 1
MAX_UINT512 = 2 ** 512 - 1


def _check_uint256(value: int, name: str):
    if value < 0 or value > MAX_UINT256:
        raise OverflowError(f"{name} out of uint256 range: {value}")


def mul_div(a: int, b: int, denominator: int) -> int:
    """
    floor(a * b / denominator) с 512-битным промежуточным произведением.

    Raises:
        ZeroDivisionError: denominator == 0
        OverflowError: операнд или результат не помещается в uint256
    """
    _check_uint256(a, "a")
    _check_uint256(b, "b")
    _check_uint256(denominator, "denominator")
    if denominator == 0:
        raise ZeroDivisionError("mul_div: denominator is zero")

    result = (a * b) // denominator
    if result > MAX_UINT256:
        raise OverflowError(f"mul_div result exceeds uint256: {a} * {b} / {denominator}")
    return result


def sqrt(x: int) -> int:
    """
    Целочисленный квадратный корень (floor) для 512-битного аргумента.

    Результат всегда помещается в uint256.
    """
    if x < 0 or x > MAX_UINT512:
        raise OverflowError(f"sqrt argument out of uint512 range: {x}")
    return math.isqrt(x)


def mul_sqrt(a: int, b: int) -> int:
    """floor(sqrt(a * b)) for uint256 operands, product kept at 512 bits."""
    _check_uint256(a, "a")
    _check_uint256(b, "b")
    return sqrt(a * b)
