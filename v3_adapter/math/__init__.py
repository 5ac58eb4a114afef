from .full_math import Q96, Q192, mul_div, mul_sqrt, sqrt
from .ticks import (
    TickRange,
    align_tick_range,
    align_tick_to_spacing,
    get_sqrt_ratio_at_tick,
    get_tick_at_sqrt_ratio,
    usable_tick_bounds,
)
from .prices import (
    PRICE_SCALE,
    price_to_sqrt_price_x96,
    price_to_tick,
    price_range_to_ticks,
    sqrt_price_x96_to_price,
    tick_to_price,
    tick_range_to_prices,
)
