"""
SwapRouter (exactInputSingle) and QuoterV2 wrappers.
"""

import logging
from dataclasses import dataclass

from web3 import Web3
from web3.contract import Contract

from ..exceptions import AdapterError
from .abis import SWAP_ROUTER_ABI, QUOTER_ABI
from .base import ContractClient

logger = logging.getLogger(__name__)

# ERC20 Transfer(address,address,uint256) event topic
TRANSFER_TOPIC = Web3.keccak(text="Transfer(address,address,uint256)")


@dataclass
class ExactInputSingleParams:
    token_in: str
    token_out: str
    fee: int
    recipient: str
    deadline: int
    amount_in: int
    amount_out_minimum: int
    sqrt_price_limit_x96: int = 0

    def to_tuple(self) -> tuple:
        return (
            Web3.to_checksum_address(self.token_in),
            Web3.to_checksum_address(self.token_out),
            self.fee,
            Web3.to_checksum_address(self.recipient),
            self.deadline,
            self.amount_in,
            self.amount_out_minimum,
            self.sqrt_price_limit_x96
        )


def parse_transfer_amount(receipt, token: str, recipient: str) -> int:
    """
    Сумма Transfer событий token -> recipient из receipt.

    Args:
        receipt: Transaction receipt
        token: Адрес токена
        recipient: Адрес получателя

    Returns:
        Сумма переводов (0 если не найдено)
    """
    token_lower = token.lower()
    recipient_lower = recipient.lower()
    total = 0

    for log_entry in receipt.get('logs', []):
        if log_entry.get('address', '').lower() != token_lower:
            continue

        topics = log_entry.get('topics', [])
        if len(topics) < 3 or topics[0] != TRANSFER_TOPIC:
            continue

        # Topic[2] = recipient (padded address)
        if ('0x' + bytes(topics[2]).hex()[-40:]) != recipient_lower:
            continue

        data = log_entry.get('data', b'')
        if isinstance(data, (bytes, bytearray)):
            total += int.from_bytes(data, 'big')
        else:
            total += int(data, 16)

    return total


class SwapRouter(ContractClient):
    """Uniswap V3 SwapRouter, только single-hop exact input."""

    def __init__(self, w3: Web3, router_address: str, **kwargs):
        super().__init__(w3, **kwargs)
        self.address = Web3.to_checksum_address(router_address)
        self.contract: Contract = w3.eth.contract(address=self.address, abi=SWAP_ROUTER_ABI)

    def exact_input_single(self, params: ExactInputSingleParams) -> tuple:
        """
        Своп ровно amount_in токена token_in.

        amountOutMinimum и deadline проверяет роутер; здесь они
        передаются как есть. Нет Transfer к получателю, значит amount_out = 0.

        Returns:
            (amount_out, tx_hash)
        """
        logger.info(
            f"Swap {params.amount_in} {params.token_in[:10]}... -> {params.token_out[:10]}... "
            f"fee={params.fee} min_out={params.amount_out_minimum}"
        )
        receipt = self._send_transaction(
            self.contract.functions.exactInputSingle(params.to_tuple()),
            'swap'
        )
        tx_hash = self.tx_hash_of(receipt)

        if not receipt.get('logs'):
            raise AdapterError(f"Swap {tx_hash} receipt has no logs, output unknown")

        # Нулевой выход при amountOutMinimum=0 допустим: роутер не шлёт Transfer
        amount_out = parse_transfer_amount(receipt, params.token_out, params.recipient)

        logger.info(f"Swap output: {amount_out}")
        return amount_out, tx_hash


class Quoter:
    """QuoterV2: симуляция свопа через eth_call."""

    def __init__(self, w3: Web3, quoter_address: str):
        self.w3 = w3
        self.address = Web3.to_checksum_address(quoter_address)
        self.contract: Contract = w3.eth.contract(address=self.address, abi=QUOTER_ABI)

    def quote_exact_input_single(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        amount_in: int,
        sqrt_price_limit_x96: int = 0
    ) -> int:
        """Ожидаемый amountOut. Ошибки квотера пробрасываются."""
        params = (
            Web3.to_checksum_address(token_in),
            Web3.to_checksum_address(token_out),
            amount_in,
            fee,
            sqrt_price_limit_x96
        )
        result = self.contract.functions.quoteExactInputSingle(params).call()
        amount_out = result[0]
        logger.debug(f"Quote fee={fee}: {amount_in} -> {amount_out}")
        return amount_out
