"""
Base class for contract wrappers that send transactions.
"""

import logging
from typing import Optional

from web3 import Web3
from eth_account.signers.local import LocalAccount

from ..exceptions import AdapterError, TransactionRevertedError
from ..utils import NonceManager, GasEstimator

logger = logging.getLogger(__name__)


class ContractClient:
    """
    Общая логика отправки транзакций: nonce, газ, подпись, ожидание receipt.

    Никаких повторов: любая ошибка RPC или контракта пробрасывается как есть,
    откат (status=0) превращается в TransactionRevertedError.
    """

    def __init__(
        self,
        w3: Web3,
        account: LocalAccount = None,
        nonce_manager: NonceManager = None,
        gas_estimator: GasEstimator = None,
        tx_timeout: int = 300
    ):
        self.w3 = w3
        self.account = account
        self.nonce_manager = nonce_manager
        self.gas_estimator = gas_estimator or GasEstimator(w3)
        self.tx_timeout = tx_timeout

    def _require_account(self) -> LocalAccount:
        if not self.account:
            raise AdapterError("Account not configured")
        return self.account

    def _get_gas_params(self) -> dict:
        """Параметры газа: EIP-1559 если поддерживается, иначе legacy."""
        try:
            max_priority_fee = self.w3.eth.max_priority_fee
            base_fee = self.w3.eth.get_block('latest')['baseFeePerGas']
            return {
                'maxPriorityFeePerGas': max_priority_fee,
                'maxFeePerGas': base_fee * 2 + max_priority_fee,
            }
        except Exception:
            return {'gasPrice': self.w3.eth.gas_price}

    def _send_transaction(self, contract_function, operation: str, value: int = 0) -> dict:
        """
        Подписать, отправить и дождаться транзакции.

        Args:
            contract_function: contract.functions.method(...)
            operation: Тип операции (для газа и логов)
            value: Нативная сумма

        Returns:
            receipt

        Raises:
            TransactionRevertedError: receipt.status != 1
        """
        account = self._require_account()
        gas = self.gas_estimator.estimate(contract_function, account.address, operation, value)

        nonce = self.nonce_manager.get_next_nonce() if self.nonce_manager else \
                self.w3.eth.get_transaction_count(account.address, 'pending')

        tx_sent = False
        try:
            tx_params = {
                'from': account.address,
                'nonce': nonce,
                'gas': gas,
                'value': value,
            }
            tx_params.update(self._get_gas_params())
            tx = contract_function.build_transaction(tx_params)

            signed = account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            tx_sent = True
            logger.info(f"{operation} TX sent: {tx_hash.hex()}")

            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.tx_timeout)

            # TX mined, nonce consumed even if reverted
            if self.nonce_manager:
                self.nonce_manager.confirm_transaction(nonce)

            if receipt['status'] != 1:
                raise TransactionRevertedError(operation, tx_hash.hex())

            logger.info(f"{operation} TX confirmed, gas used: {receipt.get('gasUsed')}")
            return receipt

        except Exception:
            if self.nonce_manager:
                if tx_sent:
                    self.nonce_manager.confirm_transaction(nonce)
                else:
                    self.nonce_manager.release_nonce(nonce)
            raise

    @staticmethod
    def tx_hash_of(receipt) -> Optional[str]:
        tx_hash = receipt.get('transactionHash')
        if tx_hash is None:
            return None
        return tx_hash.hex() if isinstance(tx_hash, (bytes, bytearray)) else str(tx_hash)
