"""
Uniswap V3 Tick Mathematics

Основные формулы:
- price(i) = 1.0001^i
- sqrtPriceX96 = sqrt(price) * 2^96

Все вычисления целочисленные и совпадают с TickMath.sol побитно.

Tick spacing по fee tier:
- 0.01% (100) -> spacing 1
- 0.05% (500) -> spacing 10
- 0.25% (2500) -> spacing 50 (PancakeSwap)
- 0.30% (3000) -> spacing 60
- 1.00% (10000) -> spacing 200
"""

from dataclasses import dataclass

from ..exceptions import InvalidInputError
from .full_math import MAX_UINT256

# Константы
MIN_TICK = -887272
MAX_TICK = 887272
MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

# Fee tier -> tick spacing
FEE_TO_TICK_SPACING = {
    100: 1,      # 0.01%
    500: 10,     # 0.05%
    2500: 50,    # 0.25% (PancakeSwap)
    3000: 60,    # 0.30% (Uniswap)
    10000: 200,  # 1.00%
}

# sqrt(1.0001)^(-2^i) в формате Q128.128, i = 1..19
_TICK_MULTIPLIERS = (
    (0x2, 0xfff97272373d413259a46990580e213a),
    (0x4, 0xfff2e50f5f656932ef12357cf3c7fdcc),
    (0x8, 0xffe5caca7e10e4e61c3624eaa0941cd0),
    (0x10, 0xffcb9843d60f6159c9db58835c926644),
    (0x20, 0xff973b41fa98c081472e6896dfb254c0),
    (0x40, 0xff2ea16466c96a3843ec78b326b52861),
    (0x80, 0xfe5dee046a99a2a811c461f1969c3053),
    (0x100, 0xfcbe86c7900a88aedcffc83b479aa3a4),
    (0x200, 0xf987a7253ac413176f2b074cf7815e54),
    (0x400, 0xf3392b0822b70005940c7a398e4b70f3),
    (0x800, 0xe7159475a2c29b7443b29c7fa6e889d9),
    (0x1000, 0xd097f3bdfd2022b8845ad8f792aa5825),
    (0x2000, 0xa9f746462d870fdf8a65dc1f90e061e5),
    (0x4000, 0x70d869a156d2a1b890bb3df62baf32f7),
    (0x8000, 0x31be135f97d08fd981231505542fcfa6),
    (0x10000, 0x9aa508b5b7a84e1c677de54f3e99bc9),
    (0x20000, 0x5d6af8dedb81196699c329225ee604),
    (0x40000, 0x2216e584f5fa1ea926041bedfe98),
    (0x80000, 0x48a170391f7dc42444e8fa2),
)


@dataclass(frozen=True)
class TickRange:
    """Диапазон тиков позиции (оба конца кратны spacing после выравнивания)."""
    tick_lower: int
    tick_upper: int

    @property
    def width(self) -> int:
        return self.tick_upper - self.tick_lower

    @property
    def is_empty(self) -> bool:
        """Нулевая (или отрицательная) ширина — position manager такой отклонит."""
        return self.tick_lower >= self.tick_upper


def get_sqrt_ratio_at_tick(tick: int) -> int:
    """
    Конвертация тика в sqrtPriceX96 (TickMath.getSqrtRatioAtTick).

    Args:
        tick: Номер тика в [MIN_TICK, MAX_TICK]

    Returns:
        sqrtPriceX96 (Q64.96), округлённый вверх
    """
    if tick < MIN_TICK or tick > MAX_TICK:
        raise InvalidInputError(f"Tick out of range: {tick} (valid {MIN_TICK}..{MAX_TICK})")

    abs_tick = abs(tick)
    ratio = 0xfffcb933bd6fad37aa2d162d1a594001 if abs_tick & 0x1 \
        else 0x100000000000000000000000000000000

    for bit, multiplier in _TICK_MULTIPLIERS:
        if abs_tick & bit:
            ratio = (ratio * multiplier) >> 128

    if tick > 0:
        ratio = MAX_UINT256 // ratio

    # Q128.128 -> Q64.96, round up
    return (ratio >> 32) + (1 if ratio % (1 << 32) else 0)


def get_tick_at_sqrt_ratio(sqrt_price_x96: int) -> int:
    """
    Конвертация sqrtPriceX96 в тик (TickMath.getTickAtSqrtRatio).

    Возвращает наибольший тик, для которого
    get_sqrt_ratio_at_tick(tick) <= sqrt_price_x96.

    Raises:
        InvalidInputError: sqrtPriceX96 вне [MIN_SQRT_RATIO, MAX_SQRT_RATIO)
    """
    if sqrt_price_x96 < MIN_SQRT_RATIO or sqrt_price_x96 >= MAX_SQRT_RATIO:
        raise InvalidInputError(f"sqrtPriceX96 out of range: {sqrt_price_x96}")

    ratio = sqrt_price_x96 << 32
    msb = ratio.bit_length() - 1

    if msb >= 128:
        r = ratio >> (msb - 127)
    else:
        r = ratio << (127 - msb)

    log_2 = (msb - 128) << 64

    for i in range(14):
        r = (r * r) >> 127
        f = r >> 128
        log_2 |= f << (63 - i)
        r >>= f

    log_sqrt10001 = log_2 * 255738958999603826347141

    tick_low = (log_sqrt10001 - 3402992956809132418596140100660247210) >> 128
    tick_high = (log_sqrt10001 + 291339464771989622907027621153398088495) >> 128

    if tick_low == tick_high:
        return tick_low
    if get_sqrt_ratio_at_tick(tick_high) <= sqrt_price_x96:
        return tick_high
    return tick_low


def align_tick_to_spacing(tick: int, tick_spacing: int, round_down: bool = True) -> int:
    """
    Выравнивание тика к tick_spacing.

    В Uniswap V3 можно использовать только тики, кратные tick_spacing.

    Args:
        tick: Исходный тик
        tick_spacing: Шаг тиков (зависит от fee tier)
        round_down: True = округление вниз (к -∞), False = вверх (к +∞)

    Returns:
        Выровненный тик
    """
    if tick_spacing <= 0:
        raise InvalidInputError(f"Tick spacing must be positive: {tick_spacing}")

    if tick % tick_spacing == 0:
        return tick

    if round_down:
        # Floor division works correctly for both positive and negative
        return (tick // tick_spacing) * tick_spacing
    return ((tick // tick_spacing) + 1) * tick_spacing


def usable_tick_bounds(tick_spacing: int) -> TickRange:
    """Крайние тики, кратные tick_spacing и не выходящие за [MIN_TICK, MAX_TICK]."""
    if tick_spacing <= 0:
        raise InvalidInputError(f"Tick spacing must be positive: {tick_spacing}")
    max_usable = (MAX_TICK // tick_spacing) * tick_spacing
    return TickRange(tick_lower=-max_usable, tick_upper=max_usable)


def align_tick_range(tick_lower: int, tick_upper: int, tick_spacing: int) -> TickRange:
    """
    Выравнивание диапазона наружу: lower вниз, upper вверх.

    Итоговый диапазон никогда не уже запрошенного, кроме краёв шкалы:
    там концы прижимаются к крайним допустимым тикам сетки.
    Если оба конца попадают в одну точку сетки, диапазон схлопывается
    и здесь не исправляется.
    """
    bounds = usable_tick_bounds(tick_spacing)
    lower = align_tick_to_spacing(tick_lower, tick_spacing, round_down=True)
    upper = align_tick_to_spacing(tick_upper, tick_spacing, round_down=False)
    return TickRange(
        tick_lower=max(lower, bounds.tick_lower),
        tick_upper=min(upper, bounds.tick_upper),
    )
