"""
Canonical token ordering.

В Uniswap V3 токены пула всегда отсортированы по адресу (token0 < token1).
Пользователь может назвать пару в любом порядке — флаг `swapped`
вычисляется один раз на вызов и затем прогоняет через reorder_amounts
все парные поля (desired, min, max collect, результаты).
"""

from dataclasses import dataclass
from typing import Tuple

from web3 import Web3

from .exceptions import InvalidInputError, PrecisionViolationError


@dataclass(frozen=True)
class CanonicalPair:
    """Пара токенов в порядке пула."""
    token0: str
    token1: str
    swapped: bool  # True если пользователь назвал пару как (token1, token0)


def canonicalize_pair(token_a: str, token_b: str) -> CanonicalPair:
    """
    Сортировка пары по адресу.

    Raises:
        InvalidInputError: адреса совпадают
    """
    addr_a = Web3.to_checksum_address(token_a)
    addr_b = Web3.to_checksum_address(token_b)

    if int(addr_a, 16) == int(addr_b, 16):
        raise InvalidInputError(f"Token pair must be two distinct tokens, got {addr_a} twice")

    if int(addr_a, 16) < int(addr_b, 16):
        return CanonicalPair(token0=addr_a, token1=addr_b, swapped=False)
    return CanonicalPair(token0=addr_b, token1=addr_a, swapped=True)


def reorder_amounts(swapped: bool, amount_a: int, amount_b: int) -> Tuple[int, int]:
    """
    Перестановка пары значений по флагу swapped.

    Перестановка — инволюция, поэтому одна функция работает в обе стороны:
    из порядка пользователя в порядок пула и обратно.
    """
    if swapped:
        return amount_b, amount_a
    return amount_a, amount_b


def compute_refund(desired: int, consumed: int) -> int:
    """
    Возврат неиспользованной части.

    Raises:
        PrecisionViolationError: consumed > desired (ошибка расчёта, не пользователя)
    """
    if consumed > desired:
        raise PrecisionViolationError(
            f"Consumed amount {consumed} exceeds desired amount {desired}"
        )
    return desired - consumed
