"""
Uniswap V3 Position Manager Integration

Работа с NonfungiblePositionManager: mint, increaseLiquidity,
decreaseLiquidity, collect и чтение позиций.

Все параметры здесь уже в каноническом порядке (token0 < token1),
перестановкой занимается адаптер.
"""

import logging
from dataclasses import dataclass
from typing import List

from web3 import Web3
from web3.contract import Contract
from web3.logs import DISCARD

from ..exceptions import AdapterError
from .abis import POSITION_MANAGER_ABI
from .base import ContractClient

logger = logging.getLogger(__name__)

MAX_UINT128 = 2 ** 128 - 1


@dataclass
class MintParams:
    """Параметры для создания позиции (канонический порядок)."""
    token0: str
    token1: str
    fee: int
    tick_lower: int
    tick_upper: int
    amount0_desired: int
    amount1_desired: int
    amount0_min: int
    amount1_min: int
    recipient: str
    deadline: int

    def to_tuple(self) -> tuple:
        """Конвертация в tuple для контракта."""
        return (
            Web3.to_checksum_address(self.token0),
            Web3.to_checksum_address(self.token1),
            self.fee,
            self.tick_lower,
            self.tick_upper,
            self.amount0_desired,
            self.amount1_desired,
            self.amount0_min,
            self.amount1_min,
            Web3.to_checksum_address(self.recipient),
            self.deadline
        )


@dataclass
class MintResult:
    """Результат mint / increaseLiquidity."""
    token_id: int
    liquidity: int
    amount0: int
    amount1: int
    tx_hash: str


@dataclass
class PositionAmounts:
    """Результат decreaseLiquidity / collect (канонический порядок)."""
    token_id: int
    amount0: int
    amount1: int
    tx_hash: str


@dataclass
class PositionInfo:
    """Позиция NonfungiblePositionManager."""
    token_id: int
    token0: str
    token1: str
    fee: int
    tick_lower: int
    tick_upper: int
    liquidity: int
    tokens_owed0: int
    tokens_owed1: int
    operator: str = None


class PositionManager(ContractClient):
    """
    Класс для работы с Uniswap V3 NonfungiblePositionManager.

    Поддерживает:
    - Создание позиций (mint)
    - Добавление ликвидности (increaseLiquidity)
    - Удаление ликвидности (decreaseLiquidity)
    - Сбор токенов (collect)
    - Перечисление позиций владельца
    """

    def __init__(self, w3: Web3, position_manager_address: str, **kwargs):
        super().__init__(w3, **kwargs)
        self.address = Web3.to_checksum_address(position_manager_address)
        self.contract: Contract = w3.eth.contract(address=self.address, abi=POSITION_MANAGER_ABI)

    def _parse_event(self, receipt, event_name: str) -> dict:
        """
        Аргументы первого события event_name из receipt.

        Raises:
            AdapterError: событие не найдено (результат неизвестен)
        """
        events = getattr(self.contract.events, event_name)().process_receipt(receipt, errors=DISCARD)
        if not events:
            raise AdapterError(
                f"{event_name} event not found in receipt {self.tx_hash_of(receipt)}"
            )
        return events[0]['args']

    def mint(self, params: MintParams) -> MintResult:
        """
        Создание позиции.

        Диапазон тиков не проверяется: tickLower >= tickUpper
        отклоняется самим контрактом.
        """
        logger.info(
            f"Mint {params.token0[:10]}.../{params.token1[:10]}... fee={params.fee} "
            f"ticks=[{params.tick_lower}, {params.tick_upper}] "
            f"desired=({params.amount0_desired}, {params.amount1_desired})"
        )
        receipt = self._send_transaction(self.contract.functions.mint(params.to_tuple()), 'mint')
        args = self._parse_event(receipt, 'IncreaseLiquidity')

        return MintResult(
            token_id=args['tokenId'],
            liquidity=args['liquidity'],
            amount0=args['amount0'],
            amount1=args['amount1'],
            tx_hash=self.tx_hash_of(receipt)
        )

    def increase_liquidity(
        self,
        token_id: int,
        amount0_desired: int,
        amount1_desired: int,
        amount0_min: int,
        amount1_min: int,
        deadline: int
    ) -> MintResult:
        """Добавление ликвидности в существующую позицию."""
        params = (token_id, amount0_desired, amount1_desired, amount0_min, amount1_min, deadline)
        logger.info(f"Increase liquidity #{token_id}: desired=({amount0_desired}, {amount1_desired})")
        receipt = self._send_transaction(
            self.contract.functions.increaseLiquidity(params),
            'increase_liquidity'
        )
        args = self._parse_event(receipt, 'IncreaseLiquidity')

        return MintResult(
            token_id=token_id,
            liquidity=args['liquidity'],
            amount0=args['amount0'],
            amount1=args['amount1'],
            tx_hash=self.tx_hash_of(receipt)
        )

    def decrease_liquidity(
        self,
        token_id: int,
        liquidity: int,
        amount0_min: int,
        amount1_min: int,
        deadline: int
    ) -> PositionAmounts:
        """
        Удаление ликвидности.

        Токены не переводятся, а начисляются позиции (tokensOwed),
        забрать их можно через collect.
        """
        params = (token_id, liquidity, amount0_min, amount1_min, deadline)
        logger.info(f"Decrease liquidity #{token_id}: liquidity={liquidity}")
        receipt = self._send_transaction(
            self.contract.functions.decreaseLiquidity(params),
            'decrease_liquidity'
        )
        args = self._parse_event(receipt, 'DecreaseLiquidity')

        return PositionAmounts(
            token_id=token_id,
            amount0=args['amount0'],
            amount1=args['amount1'],
            tx_hash=self.tx_hash_of(receipt)
        )

    def collect(
        self,
        token_id: int,
        recipient: str,
        amount0_max: int = MAX_UINT128,
        amount1_max: int = MAX_UINT128
    ) -> PositionAmounts:
        """Сбор начисленных токенов (fees + снятая ликвидность) на recipient."""
        params = (token_id, Web3.to_checksum_address(recipient), amount0_max, amount1_max)
        logger.info(f"Collect #{token_id} to {recipient[:10]}...")
        receipt = self._send_transaction(self.contract.functions.collect(params), 'collect')
        args = self._parse_event(receipt, 'Collect')

        return PositionAmounts(
            token_id=token_id,
            amount0=args['amount0'],
            amount1=args['amount1'],
            tx_hash=self.tx_hash_of(receipt)
        )

    def get_position(self, token_id: int) -> PositionInfo:
        """Получение информации о позиции."""
        result = self.contract.functions.positions(token_id).call()

        return PositionInfo(
            token_id=token_id,
            operator=result[1],
            token0=Web3.to_checksum_address(result[2]),
            token1=Web3.to_checksum_address(result[3]),
            fee=result[4],
            tick_lower=result[5],
            tick_upper=result[6],
            liquidity=result[7],
            tokens_owed0=result[10],
            tokens_owed1=result[11]
        )

    def get_position_token_ids(self, owner: str) -> List[int]:
        """
        Получение списка всех token_id позиций для адреса.

        Использует ERC721Enumerable.tokenOfOwnerByIndex.
        """
        owner = Web3.to_checksum_address(owner)
        balance = self.contract.functions.balanceOf(owner).call()
        logger.info(f"Wallet {owner[:8]}... has {balance} positions")

        return [
            self.contract.functions.tokenOfOwnerByIndex(owner, i).call()
            for i in range(balance)
        ]

    def get_positions(self, owner: str) -> List[PositionInfo]:
        """Все позиции владельца."""
        return [self.get_position(token_id) for token_id in self.get_position_token_ids(owner)]
