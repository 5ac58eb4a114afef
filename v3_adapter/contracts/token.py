"""
ERC20 token wrapper.
"""

import logging

from web3 import Web3
from web3.contract import Contract

from .abis import ERC20_ABI
from .base import ContractClient

logger = logging.getLogger(__name__)


class ERC20Token(ContractClient):
    """
    Минимальный ERC20: балансы, allowance, approve, transfer, transferFrom.

    Отправитель транзакций — self.account (оператор адаптера).
    """

    def __init__(self, w3: Web3, token_address: str, **kwargs):
        super().__init__(w3, **kwargs)
        self.address = Web3.to_checksum_address(token_address)
        self.contract: Contract = w3.eth.contract(address=self.address, abi=ERC20_ABI)

    def allowance(self, owner: str, spender: str) -> int:
        return self.contract.functions.allowance(
            Web3.to_checksum_address(owner),
            Web3.to_checksum_address(spender)
        ).call()

    def decimals(self) -> int:
        return self.contract.functions.decimals().call()

    def approve(self, spender: str, amount: int) -> dict:
        """
        Approve ровно на amount (не на максимум).

        Если текущий allowance уже равен amount, транзакция не отправляется.

        Returns:
            receipt или {} если approve не понадобился
        """
        account = self._require_account()
        spender = Web3.to_checksum_address(spender)

        if self.allowance(account.address, spender) == amount:
            logger.debug(f"Allowance for {spender[:10]}... already {amount}")
            return {}

        logger.info(f"Approving {amount} of {self.address[:10]}... for {spender[:10]}...")
        return self._send_transaction(self.contract.functions.approve(spender, amount), 'approve')

    def transfer(self, to: str, amount: int) -> dict:
        logger.info(f"Transfer {amount} of {self.address[:10]}... to {to[:10]}...")
        return self._send_transaction(
            self.contract.functions.transfer(Web3.to_checksum_address(to), amount),
            'transfer'
        )

    def transfer_from(self, owner: str, to: str, amount: int) -> dict:
        logger.info(f"TransferFrom {amount} of {self.address[:10]}... from {owner[:10]}...")
        return self._send_transaction(
            self.contract.functions.transferFrom(
                Web3.to_checksum_address(owner),
                Web3.to_checksum_address(to),
                amount
            ),
            'transfer_from'
        )
