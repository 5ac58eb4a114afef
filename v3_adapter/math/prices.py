"""
Price <-> sqrtPriceX96 <-> tick conversions.

Цены на стороне пользователя — целые числа с 18 знаками:
"сколько единиц второго токена за 1 единицу первого" в порядке,
в котором пользователь назвал пару. Пул хранит цену token1/token0
в сырых единицах (с учётом decimals каждого токена).

Флаг `invert` всегда означает одно: первый токен пользователя —
это token1 пула, поэтому цену нужно перевернуть (1/price), а границы
диапазона поменять местами.
"""

import logging
from typing import Tuple

from ..exceptions import InvalidInputError
from .full_math import Q96, mul_div, mul_sqrt
from .ticks import (
    TickRange,
    align_tick_range,
    get_sqrt_ratio_at_tick,
    get_tick_at_sqrt_ratio,
)

logger = logging.getLogger(__name__)

# Цены пользователя масштабированы на 10^18
PRICE_DECIMALS = 18
PRICE_SCALE = 10 ** PRICE_DECIMALS


def price_to_price_x96(
    price: int,
    token0_decimals: int,
    token1_decimals: int,
    invert: bool = False
) -> int:
    """
    Перевод цены пользователя в сырое отношение token1/token0 в Q96.

    Args:
        price: Цена * 10^18. token1 за 1 token0, или token0 за 1 token1 если invert=True
        token0_decimals: Decimals token0 пула
        token1_decimals: Decimals token1 пула
        invert: Пользователь назвал пару в обратном порядке

    Returns:
        priceX96 = (raw token1 / raw token0) * 2^96
    """
    if price <= 0:
        raise InvalidInputError("Price must be positive")

    if invert:
        # (10^18 / price) * 10^d1 / 10^d0
        price_x96 = mul_div(Q96 * PRICE_SCALE, 10 ** token1_decimals, price * 10 ** token0_decimals)
    else:
        # price * 10^d1 / (10^d0 * 10^18)
        price_x96 = mul_div(price, Q96 * 10 ** token1_decimals, 10 ** token0_decimals * PRICE_SCALE)

    if price_x96 == 0:
        raise InvalidInputError(f"Price {price} is below the representable range")
    return price_x96


def price_to_sqrt_price_x96(
    price: int,
    token0_decimals: int,
    token1_decimals: int,
    invert: bool = False
) -> int:
    """
    Конвертация цены пользователя в sqrtPriceX96.

    sqrtPriceX96 = sqrt(priceX96 * 2^96), произведение считается в 512 битах.
    """
    price_x96 = price_to_price_x96(price, token0_decimals, token1_decimals, invert)
    return mul_sqrt(price_x96, Q96)


def price_to_tick(
    price: int,
    token0_decimals: int,
    token1_decimals: int,
    invert: bool = False
) -> int:
    """
    Конвертация цены пользователя в (невыровненный) тик пула.

    Returns:
        Наибольший тик, цена которого не превышает цену пользователя
        (в терминах token1/token0).
    """
    sqrt_price_x96 = price_to_sqrt_price_x96(price, token0_decimals, token1_decimals, invert)
    tick = get_tick_at_sqrt_ratio(sqrt_price_x96)
    logger.debug(f"price {price} (invert={invert}) -> sqrtPriceX96 {sqrt_price_x96} -> tick {tick}")
    return tick


def price_range_to_ticks(
    price_lower: int,
    price_upper: int,
    token0_decimals: int,
    token1_decimals: int,
    tick_spacing: int,
    invert: bool = False
) -> TickRange:
    """
    Диапазон цен пользователя -> выровненный диапазон тиков.

    При invert=True инверсия переворачивает порядок границ:
    верхняя цена пользователя даёт нижний тик пула и наоборот.

    Выравнивание идёт наружу, поэтому диапазон никогда не уже запрошенного
    (кроме краёв шкалы, см. align_tick_range).
    Схлопнувшийся диапазон здесь не исправляется, add_liquidity отклоняет его
    до перевода средств.
    """
    if invert:
        raw_lower = price_to_tick(price_upper, token0_decimals, token1_decimals, invert=True)
        raw_upper = price_to_tick(price_lower, token0_decimals, token1_decimals, invert=True)
    else:
        raw_lower = price_to_tick(price_lower, token0_decimals, token1_decimals)
        raw_upper = price_to_tick(price_upper, token0_decimals, token1_decimals)

    tick_range = align_tick_range(raw_lower, raw_upper, tick_spacing)

    if tick_range.is_empty:
        logger.warning(
            f"Aligned tick range is empty: raw ({raw_lower}, {raw_upper}) -> "
            f"({tick_range.tick_lower}, {tick_range.tick_upper}), spacing {tick_spacing}"
        )
    else:
        logger.debug(
            f"Tick range: raw ({raw_lower}, {raw_upper}) -> "
            f"({tick_range.tick_lower}, {tick_range.tick_upper}), spacing {tick_spacing}"
        )
    return tick_range


def sqrt_price_x96_to_price(
    sqrt_price_x96: int,
    decimals_in: int,
    decimals_out: int,
    in_is_token0: bool = True
) -> int:
    """
    Конвертация sqrtPriceX96 пула в цену для пользователя.

    Args:
        sqrt_price_x96: sqrtPriceX96 из пула
        decimals_in: Decimals токена, цену которого считаем
        decimals_out: Decimals токена, в котором выражаем цену
        in_is_token0: Токен "in" — token0 пула

    Returns:
        Сколько token_out за 1 token_in, * 10^18
    """
    if in_is_token0:
        ratio_x96 = mul_div(sqrt_price_x96, sqrt_price_x96, Q96)
    else:
        # token_in = token1: Q96^2 / sqrt / sqrt, без промежуточного sqrt^2
        ratio_x96 = mul_div(mul_div(Q96, Q96, sqrt_price_x96), Q96, sqrt_price_x96)

    return mul_div(ratio_x96, 10 ** decimals_in * PRICE_SCALE, Q96 * 10 ** decimals_out)


def tick_to_price(
    tick: int,
    decimals_in: int,
    decimals_out: int,
    in_is_token0: bool = True
) -> int:
    """Цена тика для пользователя, * 10^18 (см. sqrt_price_x96_to_price)."""
    return sqrt_price_x96_to_price(get_sqrt_ratio_at_tick(tick), decimals_in, decimals_out, in_is_token0)


def tick_range_to_prices(
    tick_range: TickRange,
    token0_decimals: int,
    token1_decimals: int,
    invert: bool = False
) -> Tuple[int, int]:
    """
    Обратный перевод диапазона тиков в цены пользователя.

    Returns:
        (price_lower, price_upper) в порядке пары пользователя, * 10^18
    """
    if invert:
        return (
            tick_to_price(tick_range.tick_upper, token1_decimals, token0_decimals, in_is_token0=False),
            tick_to_price(tick_range.tick_lower, token1_decimals, token0_decimals, in_is_token0=False),
        )
    return (
        tick_to_price(tick_range.tick_lower, token0_decimals, token1_decimals),
        tick_to_price(tick_range.tick_upper, token0_decimals, token1_decimals),
    )
