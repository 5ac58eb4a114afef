"""
Uniswap V3 liquidity adapter.

Пул, позиции и свопы в терминах пользователя: пара в любом порядке,
цены с 18 знаками, желаемые суммы. Адаптер сам приводит всё к
каноническому порядку токенов, выровненным тикам и sqrtPriceX96.
"""

from .adapter import (
    LiquidityAdapter,
    AddLiquidityParams,
    IncreaseLiquidityParams,
    DecreaseLiquidityParams,
    CollectParams,
    SwapParams,
    LiquidityResult,
    AmountsResult,
    SwapResult,
)
from .config import AdapterConfig, V3Deployment, V3_DEPLOYMENTS, get_deployment, load_config
from .exceptions import (
    AdapterError,
    InvalidInputError,
    PoolNotFoundError,
    PrecisionViolationError,
    TransactionRevertedError,
)
from .ordering import CanonicalPair, canonicalize_pair, reorder_amounts, compute_refund
from .settlement import RefundFailure

__version__ = "0.1.0"
