"""
Uniswap V3 Pool Registry

Поиск пула через фабрику (getPool) или детерминированный вывод адреса
через CREATE2, плюс чтение состояния пула (slot0, liquidity).
"""

import logging
from dataclasses import dataclass
from typing import Optional

from eth_abi import encode
from eth_abi.exceptions import DecodingError
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput

from ..exceptions import InvalidInputError
from ..math.ticks import FEE_TO_TICK_SPACING
from ..ordering import canonicalize_pair
from .abis import FACTORY_ABI, POOL_ABI

logger = logging.getLogger(__name__)

# slot0() selector
SLOT0_SELECTOR = bytes.fromhex('3850c7bd')


@dataclass
class PoolSnapshot:
    """Состояние пула на момент чтения."""
    address: str
    token0: str
    token1: str
    fee: int
    tick_spacing: int
    sqrt_price_x96: int
    tick: int
    liquidity: int
    observation_index: int
    observation_cardinality: int

    @property
    def initialized(self) -> bool:
        return self.sqrt_price_x96 > 0


def _to_int24(word: int) -> int:
    return word - 2 ** 256 if word >= 2 ** 255 else word


def read_slot0(w3: Web3, pool_address: str) -> tuple:
    """
    slot0 -> (sqrtPriceX96, tick, observationIndex, observationCardinality).

    PancakeSwap V3 slot0 возвращает feeProtocol:uint32 вместо uint8,
    ABI-декодирование может упасть, тогда читаем сырые слова.
    Ошибки RPC и откаты пробрасываются как есть.
    """
    pool_address = Web3.to_checksum_address(pool_address)
    pool = w3.eth.contract(address=pool_address, abi=POOL_ABI)
    try:
        slot0 = pool.functions.slot0().call()
        return slot0[0], slot0[1], slot0[2], slot0[3]
    except (BadFunctionCallOutput, DecodingError) as e:
        logger.debug(f"slot0 ABI decode failed, trying raw eth_call: {e}")

    raw = w3.eth.call({'to': pool_address, 'data': SLOT0_SELECTOR})
    if len(raw) < 128:
        raise InvalidInputError(f"Unexpected slot0 response from {pool_address}: {len(raw)} bytes")

    words = [int.from_bytes(raw[i * 32:(i + 1) * 32], 'big') for i in range(4)]
    return words[0], _to_int24(words[1]), words[2], words[3]


def compute_pool_address(
    deployer: str,
    token_a: str,
    token_b: str,
    fee: int,
    init_code_hash: str
) -> str:
    """
    CREATE2-адрес пула (PoolAddress.computeAddress).

    address = keccak256(0xff ++ deployer ++ keccak256(abi.encode(token0, token1, fee)) ++ initCodeHash)[12:]

    Args:
        deployer: Фабрика (Uniswap) или PoolDeployer (PancakeSwap)
        token_a: Адрес первого токена (любой порядок)
        token_b: Адрес второго токена
        fee: Fee tier
        init_code_hash: keccak256 init-кода пула, hex

    Returns:
        Checksum-адрес пула (существует ли он — не проверяется)
    """
    pair = canonicalize_pair(token_a, token_b)
    salt = Web3.keccak(encode(['address', 'address', 'uint24'], [pair.token0, pair.token1, fee]))
    raw = Web3.keccak(
        b'\xff'
        + bytes.fromhex(Web3.to_checksum_address(deployer)[2:])
        + salt
        + bytes.fromhex(init_code_hash[2:] if init_code_hash.startswith('0x') else init_code_hash)
    )
    return Web3.to_checksum_address(raw[12:])


class PoolRegistry:
    """
    Работа с Uniswap V3 Factory (только чтение).

    Позволяет:
    - Получать адреса существующих пулов
    - Выводить адрес пула без RPC (CREATE2)
    - Узнавать tick spacing для fee tier
    - Читать снимок состояния пула
    """

    def __init__(
        self,
        w3: Web3,
        factory_address: str,
        init_code_hash: str = None,
        pool_deployer: str = None
    ):
        self.w3 = w3
        self.factory_address = Web3.to_checksum_address(factory_address)
        self.init_code_hash = init_code_hash
        # PancakeSwap V3 деплоит пулы отдельным контрактом, Uniswap сама фабрика
        self.pool_deployer = Web3.to_checksum_address(pool_deployer) if pool_deployer else self.factory_address
        self.factory = w3.eth.contract(address=self.factory_address, abi=FACTORY_ABI)

    def get_pool_address(self, token_a: str, token_b: str, fee: int) -> Optional[str]:
        """
        Получение адреса существующего пула.

        Returns:
            Адрес пула или None если пул не существует
        """
        pair = canonicalize_pair(token_a, token_b)
        pool_address = self.factory.functions.getPool(pair.token0, pair.token1, fee).call()

        if int(pool_address, 16) == 0:
            logger.debug(f"No pool for {pair.token0[:10]}.../{pair.token1[:10]}... fee={fee}")
            return None
        return Web3.to_checksum_address(pool_address)

    def compute_pool_address(self, token_a: str, token_b: str, fee: int) -> str:
        """Адрес пула через CREATE2, без обращения к фабрике."""
        if not self.init_code_hash:
            raise InvalidInputError("Pool init code hash not configured, cannot derive pool address")
        return compute_pool_address(self.pool_deployer, token_a, token_b, fee, self.init_code_hash)

    def get_tick_spacing(self, fee: int) -> int:
        """
        Tick spacing для fee tier.

        Стандартные tier'ы берутся из таблицы, остальные — у фабрики.
        Фабрика возвращает 0 для неизвестного tier'а.

        Raises:
            InvalidInputError: fee tier не включён в фабрике
        """
        if fee in FEE_TO_TICK_SPACING:
            return FEE_TO_TICK_SPACING[fee]

        tick_spacing = self.factory.functions.feeAmountTickSpacing(fee).call()
        if tick_spacing <= 0:
            raise InvalidInputError(f"Fee tier {fee} is not enabled in factory {self.factory_address}")
        return tick_spacing

    def get_pool_snapshot(self, pool_address: str) -> PoolSnapshot:
        """
        Получение информации о пуле.

        Args:
            pool_address: Адрес пула

        Returns:
            PoolSnapshot
        """
        address = Web3.to_checksum_address(pool_address)
        pool = self.w3.eth.contract(address=address, abi=POOL_ABI)

        token0 = pool.functions.token0().call()
        token1 = pool.functions.token1().call()
        fee = pool.functions.fee().call()
        tick_spacing = pool.functions.tickSpacing().call()
        liquidity = pool.functions.liquidity().call()
        sqrt_price_x96, tick, observation_index, observation_cardinality = read_slot0(self.w3, address)

        return PoolSnapshot(
            address=address,
            token0=Web3.to_checksum_address(token0),
            token1=Web3.to_checksum_address(token1),
            fee=fee,
            tick_spacing=tick_spacing,
            sqrt_price_x96=sqrt_price_x96,
            tick=tick,
            liquidity=liquidity,
            observation_index=observation_index,
            observation_cardinality=observation_cardinality,
        )
