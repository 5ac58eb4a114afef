"""
Pool oracle: spot tick, observation history and time-weighted mean tick.

Политика выбора цены бинарная:
- история наблюдений короче окна TWAP -> spot tick из slot0
- иначе -> средний тик за ровно TWAP окно (observe)
Равенство возраста и окна идёт по пути TWAP.
"""

import logging
from dataclasses import dataclass

from web3 import Web3

from ..config import DEFAULT_TWAP_WINDOW
from ..exceptions import InvalidInputError
from .abis import POOL_ABI
from .pool_registry import read_slot0

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OracleTick:
    """Тик, выбранный для отчёта о цене."""
    tick: int
    is_twap: bool
    window: int
    oldest_observation_age: int


def should_use_twap(oldest_observation_age: int, window: int) -> bool:
    """
    TWAP возможен только если история покрывает всё окно.

    Строго `<`: возраст == окно -> TWAP.
    """
    return not oldest_observation_age < window


class PoolOracle:
    """Чтение оракула пула Uniswap V3."""

    def __init__(self, w3: Web3):
        self.w3 = w3

    def _pool(self, pool_address: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(pool_address), abi=POOL_ABI)

    def spot_tick(self, pool_address: str) -> int:
        """Текущий тик из slot0."""
        _, tick, _, _ = read_slot0(self.w3, pool_address)
        return tick

    def oldest_observation_age(self, pool_address: str) -> int:
        """
        Возраст самого старого наблюдения в секундах
        (OracleLibrary.getOldestObservationSecondsAgo).

        Самое старое наблюдение лежит сразу после текущего индекса
        в кольцевом буфере; если этот слот ещё не заполнен, буфер
        не сделал полного круга и самое старое — слот 0.

        Raises:
            InvalidInputError: пул не инициализирован (cardinality == 0)
        """
        _, _, observation_index, observation_cardinality = read_slot0(self.w3, pool_address)
        if observation_cardinality == 0:
            raise InvalidInputError(f"Pool {pool_address} is not initialized")

        pool = self._pool(pool_address)
        timestamp, _, _, initialized = pool.functions.observations(
            (observation_index + 1) % observation_cardinality
        ).call()
        if not initialized:
            timestamp, _, _, _ = pool.functions.observations(0).call()

        now = self.w3.eth.get_block('latest')['timestamp']
        # Метки времени пула uint32, вычитание по модулю 2^32
        return (now - timestamp) % 2 ** 32

    def consult(self, pool_address: str, seconds_ago: int) -> int:
        """
        Средний арифметический тик за последние seconds_ago секунд
        (OracleLibrary.consult).

        Округление к -∞, как в OracleLibrary.
        """
        if seconds_ago <= 0:
            raise InvalidInputError(f"TWAP window must be positive: {seconds_ago}")

        tick_cumulatives, _ = self._pool(pool_address).functions.observe([seconds_ago, 0]).call()
        delta = tick_cumulatives[1] - tick_cumulatives[0]
        return delta // seconds_ago

    def select_tick(self, pool_address: str, window: int = DEFAULT_TWAP_WINDOW) -> OracleTick:
        """Spot или TWAP тик в зависимости от накопленной истории."""
        age = self.oldest_observation_age(pool_address)

        if should_use_twap(age, window):
            tick = self.consult(pool_address, window)
            logger.info(f"Oracle {pool_address[:10]}...: TWAP tick {tick} over {window}s (history {age}s)")
            return OracleTick(tick=tick, is_twap=True, window=window, oldest_observation_age=age)

        tick = self.spot_tick(pool_address)
        logger.info(f"Oracle {pool_address[:10]}...: spot tick {tick}, history {age}s < window {window}s")
        return OracleTick(tick=tick, is_twap=False, window=window, oldest_observation_age=age)
