"""
Liquidity adapter: операции с пулами Uniswap V3 в терминах пользователя.

Пользователь называет пару в любом порядке, задаёт цены с 18 знаками
и желаемые суммы. Каждая операция:
1. канонизирует пару (один раз на вызов)
2. при необходимости переводит цены в выровненные тики
3. вызывает position manager / router / quoter в каноническом порядке
4. считает возвраты и возвращает результат в порядке пользователя
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .config import AdapterConfig
from .contracts.oracle import PoolOracle
from .contracts.pool_registry import PoolRegistry, PoolSnapshot
from .contracts.position_manager import MAX_UINT128, MintParams, PositionInfo, PositionManager
from .contracts.swap_router import ExactInputSingleParams, Quoter, SwapRouter
from .contracts.token import ERC20Token
from .exceptions import AdapterError, InvalidInputError, PoolNotFoundError
from .math.full_math import MAX_UINT256
from .math.prices import price_range_to_ticks, tick_to_price
from .math.ticks import TickRange
from .ordering import CanonicalPair, canonicalize_pair, reorder_amounts
from .settlement import RefundFailure, Settlement, SettlementLeg, legs_for
from .utils import DecimalsCache, GasEstimator, NonceManager

logger = logging.getLogger(__name__)


# ============================================================
# PARAMS / RESULTS (порядок токенов пользователя)
# ============================================================

@dataclass
class AddLiquidityParams:
    """
    Новая позиция.

    price_lower / price_upper: сколько token_b за 1 token_a, * 10^18.
    deadline: абсолютный unix timestamp, передаётся контракту как есть.
    payer: откуда забрать средства (None = оператор адаптера).
    """
    token_a: str
    token_b: str
    fee: int
    price_lower: int
    price_upper: int
    amount_a_desired: int
    amount_b_desired: int
    deadline: int
    amount_a_min: int = 0
    amount_b_min: int = 0
    recipient: Optional[str] = None
    payer: Optional[str] = None


@dataclass
class IncreaseLiquidityParams:
    token_id: int
    token_a: str
    token_b: str
    amount_a_desired: int
    amount_b_desired: int
    deadline: int
    amount_a_min: int = 0
    amount_b_min: int = 0
    payer: Optional[str] = None


@dataclass
class DecreaseLiquidityParams:
    token_id: int
    token_a: str
    token_b: str
    liquidity: int
    deadline: int
    amount_a_min: int = 0
    amount_b_min: int = 0


@dataclass
class CollectParams:
    token_id: int
    token_a: str
    token_b: str
    amount_a_max: int = MAX_UINT128
    amount_b_max: int = MAX_UINT128
    recipient: Optional[str] = None


@dataclass
class SwapParams:
    token_in: str
    token_out: str
    fee: int
    amount_in: int
    amount_out_minimum: int
    deadline: int
    recipient: Optional[str] = None
    payer: Optional[str] = None
    sqrt_price_limit_x96: int = 0


@dataclass
class LiquidityResult:
    """Результат add / increase: потреблено и возвращено по каждому токену."""
    token_id: int
    liquidity: int
    amount_a: int
    amount_b: int
    refund_a: int
    refund_b: int
    tick_lower: Optional[int] = None
    tick_upper: Optional[int] = None
    tx_hash: Optional[str] = None
    refund_failures: List[RefundFailure] = field(default_factory=list)


@dataclass
class AmountsResult:
    """Результат decrease / collect."""
    token_id: int
    amount_a: int
    amount_b: int
    tx_hash: Optional[str] = None


@dataclass
class SwapResult:
    amount_in: int
    amount_out: int
    tx_hash: Optional[str] = None
    refund_failures: List[RefundFailure] = field(default_factory=list)


def _check_amount(name: str, value: int):
    if value < 0 or value > MAX_UINT256:
        raise InvalidInputError(f"{name} must be an unsigned 256-bit integer, got {value}")


# ============================================================
# ADAPTER
# ============================================================

class LiquidityAdapter:
    """
    Фасад над registry / oracle / position manager / router / quoter.

    Использование:
        adapter = LiquidityAdapter.from_config(load_config(56))

        price = adapter.get_price(WBNB, USDT, 500)

        result = adapter.add_liquidity(AddLiquidityParams(
            token_a=USDT, token_b=WBNB, fee=500,
            price_lower=..., price_upper=...,
            amount_a_desired=..., amount_b_desired=...,
            deadline=int(time.time()) + 600,
        ))
    """

    def __init__(
        self,
        w3: Web3,
        config: AdapterConfig,
        account: LocalAccount = None,
        nonce_manager: NonceManager = None,
        decimals_cache: DecimalsCache = None
    ):
        self.w3 = w3
        self.config = config
        self.account = account
        self.decimals_cache = decimals_cache or DecimalsCache(w3)

        if account and nonce_manager is None:
            nonce_manager = NonceManager(w3, account.address)

        client_kwargs = dict(
            account=account,
            nonce_manager=nonce_manager,
            gas_estimator=GasEstimator(w3, buffer_percent=config.gas_buffer_percent),
            tx_timeout=config.tx_timeout,
        )

        self.registry = PoolRegistry(
            w3,
            config.factory,
            init_code_hash=config.pool_init_code_hash or None,
            pool_deployer=config.pool_deployer or None
        )
        self.oracle = PoolOracle(w3)
        self.quoter = Quoter(w3, config.quoter)
        self.position_manager = PositionManager(w3, config.position_manager, **client_kwargs)
        self.swap_router = SwapRouter(w3, config.swap_router, **client_kwargs) if config.swap_router else None
        self.settlement = Settlement(
            w3,
            account,
            token_factory=lambda address: ERC20Token(w3, address, **client_kwargs)
        ) if account else None

    @classmethod
    def from_config(cls, config: AdapterConfig) -> 'LiquidityAdapter':
        """Web3 по HTTP RPC + аккаунт из config.private_key (если задан)."""
        w3 = Web3(Web3.HTTPProvider(config.rpc_url, request_kwargs={'timeout': 30}))
        account = Account.from_key(config.private_key) if config.private_key else None
        return cls(w3, config, account=account)

    # ------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------

    @property
    def operator(self) -> str:
        if not self.account:
            raise AdapterError("Account not configured, write operations are unavailable")
        return self.account.address

    def _require_settlement(self) -> Settlement:
        if self.settlement is None:
            raise AdapterError("Account not configured, write operations are unavailable")
        return self.settlement

    def _require_pool(self, pair: CanonicalPair, fee: int) -> str:
        pool = self.registry.get_pool_address(pair.token0, pair.token1, fee)
        if pool is None:
            raise PoolNotFoundError(pair.token0, pair.token1, fee)
        return pool

    def _require_position_pair(self, token_id: int, pair: CanonicalPair) -> PositionInfo:
        position = self.position_manager.get_position(token_id)
        if position.token0.lower() != pair.token0.lower() or position.token1.lower() != pair.token1.lower():
            raise InvalidInputError(
                f"Position #{token_id} is {position.token0}/{position.token1}, "
                f"not {pair.token0}/{pair.token1}"
            )
        return position

    def _pair_decimals(self, pair: CanonicalPair):
        return (
            self.decimals_cache.get_decimals(pair.token0),
            self.decimals_cache.get_decimals(pair.token1),
        )

    # ------------------------------------------------------------
    # read-only
    # ------------------------------------------------------------

    def get_pool(self, token_a: str, token_b: str, fee: int, derive: bool = False) -> Optional[str]:
        """
        Адрес пула (tokenA, tokenB, fee) в любом порядке токенов.

        derive=True: адрес через CREATE2 без запроса к фабрике
        (существование пула при этом не проверяется).
        """
        canonicalize_pair(token_a, token_b)
        if derive:
            return self.registry.compute_pool_address(token_a, token_b, fee)
        return self.registry.get_pool_address(token_a, token_b, fee)

    def get_pool_snapshot(self, token_a: str, token_b: str, fee: int) -> PoolSnapshot:
        pair = canonicalize_pair(token_a, token_b)
        return self.registry.get_pool_snapshot(self._require_pool(pair, fee))

    def get_positions(self, owner: str) -> List[PositionInfo]:
        return self.position_manager.get_positions(owner)

    def quote_amount_out(self, token_in: str, token_out: str, fee: int, amount_in: int) -> int:
        """Ожидаемый выход свопа (QuoterV2, без побочных эффектов)."""
        _check_amount("amount_in", amount_in)
        pair = canonicalize_pair(token_in, token_out)
        self._require_pool(pair, fee)
        return self.quoter.quote_exact_input_single(token_in, token_out, fee, amount_in)

    def get_price(self, token_in: str, token_out: str, fee: int) -> int:
        """
        Цена token_in в token_out, * 10^18.

        Тик берётся из оракула: TWAP за config.twap_window, если история
        наблюдений пула покрывает окно, иначе spot.
        """
        pair = canonicalize_pair(token_in, token_out)
        pool = self._require_pool(pair, fee)
        oracle_tick = self.oracle.select_tick(pool, self.config.twap_window)

        # token_in это token0, если пара не переставлена
        in_is_token0 = not pair.swapped
        decimals_in = self.decimals_cache.get_decimals(token_in)
        decimals_out = self.decimals_cache.get_decimals(token_out)

        price = tick_to_price(oracle_tick.tick, decimals_in, decimals_out, in_is_token0=in_is_token0)
        logger.debug(
            f"Price {token_in[:10]}.../{token_out[:10]}... fee={fee}: {price} "
            f"(tick {oracle_tick.tick}, {'TWAP' if oracle_tick.is_twap else 'spot'})"
        )
        return price

    def preview_ticks(
        self,
        token_a: str,
        token_b: str,
        fee: int,
        price_lower: int,
        price_upper: int
    ) -> TickRange:
        """Выровненный диапазон тиков для цен пользователя, без транзакций."""
        pair = canonicalize_pair(token_a, token_b)
        return self._ticks_for(pair, fee, price_lower, price_upper)

    def _ticks_for(self, pair: CanonicalPair, fee: int, price_lower: int, price_upper: int) -> TickRange:
        decimals0, decimals1 = self._pair_decimals(pair)
        return price_range_to_ticks(
            price_lower,
            price_upper,
            decimals0,
            decimals1,
            self.registry.get_tick_spacing(fee),
            invert=pair.swapped
        )

    # ------------------------------------------------------------
    # liquidity
    # ------------------------------------------------------------

    def add_liquidity(self, params: AddLiquidityParams) -> LiquidityResult:
        """
        Создание позиции в диапазоне цен пользователя.

        Пустой после выравнивания диапазон отклоняется до перевода
        средств: расширять его молча нельзя, а mint всё равно откатится.
        """
        for name in ('amount_a_desired', 'amount_b_desired', 'amount_a_min', 'amount_b_min'):
            _check_amount(name, getattr(params, name))

        pair = canonicalize_pair(params.token_a, params.token_b)
        self._require_pool(pair, params.fee)
        settlement = self._require_settlement()

        tick_range = self._ticks_for(pair, params.fee, params.price_lower, params.price_upper)
        if tick_range.is_empty:
            raise InvalidInputError(
                f"Price range collapses to an empty tick range "
                f"[{tick_range.tick_lower}, {tick_range.tick_upper}]; widen the range"
            )
        amount0_desired, amount1_desired = reorder_amounts(pair.swapped, params.amount_a_desired, params.amount_b_desired)
        amount0_min, amount1_min = reorder_amounts(pair.swapped, params.amount_a_min, params.amount_b_min)

        legs = legs_for((pair.token0, pair.token1), (amount0_desired, amount1_desired))
        settlement.prepare(params.payer, self.position_manager.address, legs)

        minted = self.position_manager.mint(MintParams(
            token0=pair.token0,
            token1=pair.token1,
            fee=params.fee,
            tick_lower=tick_range.tick_lower,
            tick_upper=tick_range.tick_upper,
            amount0_desired=amount0_desired,
            amount1_desired=amount1_desired,
            amount0_min=amount0_min,
            amount1_min=amount1_min,
            recipient=params.recipient or params.payer or self.operator,
            deadline=params.deadline,
        ))

        outcome = settlement.refund(params.payer, legs, (minted.amount0, minted.amount1))
        amount_a, amount_b = reorder_amounts(pair.swapped, minted.amount0, minted.amount1)
        refund_a, refund_b = reorder_amounts(pair.swapped, *outcome.refunds)

        logger.info(
            f"Position #{minted.token_id} opened: liquidity={minted.liquidity}, "
            f"used=({amount_a}, {amount_b}), refunded=({refund_a}, {refund_b})"
        )
        return LiquidityResult(
            token_id=minted.token_id,
            liquidity=minted.liquidity,
            amount_a=amount_a,
            amount_b=amount_b,
            refund_a=refund_a,
            refund_b=refund_b,
            tick_lower=tick_range.tick_lower,
            tick_upper=tick_range.tick_upper,
            tx_hash=minted.tx_hash,
            refund_failures=outcome.failures,
        )

    def increase_liquidity(self, params: IncreaseLiquidityParams) -> LiquidityResult:
        for name in ('amount_a_desired', 'amount_b_desired', 'amount_a_min', 'amount_b_min'):
            _check_amount(name, getattr(params, name))

        pair = canonicalize_pair(params.token_a, params.token_b)
        position = self._require_position_pair(params.token_id, pair)
        settlement = self._require_settlement()

        amount0_desired, amount1_desired = reorder_amounts(pair.swapped, params.amount_a_desired, params.amount_b_desired)
        amount0_min, amount1_min = reorder_amounts(pair.swapped, params.amount_a_min, params.amount_b_min)

        legs = legs_for((pair.token0, pair.token1), (amount0_desired, amount1_desired))
        settlement.prepare(params.payer, self.position_manager.address, legs)

        increased = self.position_manager.increase_liquidity(
            params.token_id,
            amount0_desired,
            amount1_desired,
            amount0_min,
            amount1_min,
            params.deadline
        )

        outcome = settlement.refund(params.payer, legs, (increased.amount0, increased.amount1))
        amount_a, amount_b = reorder_amounts(pair.swapped, increased.amount0, increased.amount1)
        refund_a, refund_b = reorder_amounts(pair.swapped, *outcome.refunds)

        return LiquidityResult(
            token_id=params.token_id,
            liquidity=increased.liquidity,
            amount_a=amount_a,
            amount_b=amount_b,
            refund_a=refund_a,
            refund_b=refund_b,
            tick_lower=position.tick_lower,
            tick_upper=position.tick_upper,
            tx_hash=increased.tx_hash,
            refund_failures=outcome.failures,
        )

    def decrease_liquidity(self, params: DecreaseLiquidityParams) -> AmountsResult:
        """
        Снятие ликвидности.

        Снятые токены начисляются позиции и забираются через collect_fees.
        """
        for name in ('liquidity', 'amount_a_min', 'amount_b_min'):
            _check_amount(name, getattr(params, name))

        pair = canonicalize_pair(params.token_a, params.token_b)
        self._require_position_pair(params.token_id, pair)
        self._require_settlement()

        amount0_min, amount1_min = reorder_amounts(pair.swapped, params.amount_a_min, params.amount_b_min)
        decreased = self.position_manager.decrease_liquidity(
            params.token_id,
            params.liquidity,
            amount0_min,
            amount1_min,
            params.deadline
        )

        amount_a, amount_b = reorder_amounts(pair.swapped, decreased.amount0, decreased.amount1)
        return AmountsResult(token_id=params.token_id, amount_a=amount_a, amount_b=amount_b, tx_hash=decreased.tx_hash)

    def collect_fees(self, params: CollectParams) -> AmountsResult:
        for name in ('amount_a_max', 'amount_b_max'):
            _check_amount(name, getattr(params, name))

        pair = canonicalize_pair(params.token_a, params.token_b)
        self._require_position_pair(params.token_id, pair)
        self._require_settlement()

        amount0_max, amount1_max = reorder_amounts(pair.swapped, params.amount_a_max, params.amount_b_max)
        collected = self.position_manager.collect(
            params.token_id,
            params.recipient or self.operator,
            amount0_max,
            amount1_max
        )

        amount_a, amount_b = reorder_amounts(pair.swapped, collected.amount0, collected.amount1)
        return AmountsResult(token_id=params.token_id, amount_a=amount_a, amount_b=amount_b, tx_hash=collected.tx_hash)

    # ------------------------------------------------------------
    # swap
    # ------------------------------------------------------------

    def swap_exact_input_single(self, params: SwapParams) -> SwapResult:
        """
        Своп ровно amount_in через один пул.

        amount_out_minimum и deadline проверяет роутер.
        """
        _check_amount("amount_in", params.amount_in)
        _check_amount("amount_out_minimum", params.amount_out_minimum)

        pair = canonicalize_pair(params.token_in, params.token_out)
        self._require_pool(pair, params.fee)
        settlement = self._require_settlement()
        if self.swap_router is None:
            raise AdapterError(f"Swap router is not configured for chain {self.config.chain_id}")

        token_in = Web3.to_checksum_address(params.token_in)
        legs = [SettlementLeg(token=token_in, desired=params.amount_in)]
        settlement.prepare(params.payer, self.swap_router.address, legs)

        amount_out, tx_hash = self.swap_router.exact_input_single(ExactInputSingleParams(
            token_in=token_in,
            token_out=params.token_out,
            fee=params.fee,
            recipient=params.recipient or params.payer or self.operator,
            deadline=params.deadline,
            amount_in=params.amount_in,
            amount_out_minimum=params.amount_out_minimum,
            sqrt_price_limit_x96=params.sqrt_price_limit_x96,
        ))

        # exactInput расходует весь amount_in, возврат всегда 0
        outcome = settlement.refund(params.payer, legs, (params.amount_in,))
        return SwapResult(
            amount_in=params.amount_in,
            amount_out=amount_out,
            tx_hash=tx_hash,
            refund_failures=outcome.failures,
        )
