"""
Utility classes for transaction management.

Includes:
- NonceManager: Thread-safe nonce tracking for sequential transactions
- DecimalsCache: Caching token decimals to reduce RPC calls
- GasEstimator: Gas estimation with per-operation fallbacks
"""

import logging
import threading
import time
from typing import Dict, Optional

from web3 import Web3
from web3.exceptions import ContractLogicError

from .contracts.abis import ERC20_ABI

logger = logging.getLogger(__name__)


class NonceManager:
    """
    Thread-safe nonce manager.

    Одна операция адаптера может отправить до пяти транзакций подряд
    (два transferFrom, два approve, mint). `get_transaction_count('pending')`
    на части RPC отстаёт, поэтому nonce считаются локально.

    Usage:
        nonce_mgr = NonceManager(w3, account_address)
        nonce = nonce_mgr.get_next_nonce()
        ...
        nonce_mgr.confirm_transaction(nonce)   # TX mined
        nonce_mgr.release_nonce(nonce)         # TX never sent
    """

    def __init__(self, w3: Web3, account_address: str, sync_interval: float = 30.0):
        self.w3 = w3
        self.account_address = Web3.to_checksum_address(account_address)
        self._lock = threading.Lock()
        self._current_nonce: Optional[int] = None
        self._pending_nonces: set = set()
        self._last_sync_time: float = 0
        self._sync_interval = sync_interval

    def _sync_nonce(self) -> int:
        """Sync nonce with blockchain."""
        return self.w3.eth.get_transaction_count(self.account_address, 'pending')

    def get_next_nonce(self, force_sync: bool = False) -> int:
        """
        Get the next available nonce.

        Args:
            force_sync: Force sync with blockchain even if recently synced

        Returns:
            Next nonce to use
        """
        with self._lock:
            current_time = time.time()

            if (self._current_nonce is None or
                force_sync or
                current_time - self._last_sync_time > self._sync_interval):

                blockchain_nonce = self._sync_nonce()

                # nonces below blockchain_nonce are already mined
                self._pending_nonces = {n for n in self._pending_nonces if n >= blockchain_nonce}

                if self._current_nonce is None:
                    self._current_nonce = blockchain_nonce
                else:
                    # External transactions may have advanced the chain nonce
                    self._current_nonce = max(self._current_nonce, blockchain_nonce)

                self._last_sync_time = current_time
                logger.debug(f"Synced nonce with blockchain: {self._current_nonce}")

            nonce = self._current_nonce
            self._current_nonce += 1
            self._pending_nonces.add(nonce)

            logger.debug(f"Allocated nonce: {nonce}, pending: {len(self._pending_nonces)}")
            return nonce

    def confirm_transaction(self, nonce: int):
        """Mark a nonce as confirmed (transaction included in block)."""
        with self._lock:
            self._pending_nonces.discard(nonce)
            logger.debug(f"Confirmed nonce: {nonce}")

    def release_nonce(self, nonce: int):
        """
        Release a nonce that wasn't used (transaction failed before sending).

        Reclaims it if it was the most recently allocated one.
        """
        with self._lock:
            self._pending_nonces.discard(nonce)
            if self._current_nonce is not None and nonce == self._current_nonce - 1:
                self._current_nonce = nonce
            logger.debug(f"Released nonce: {nonce}, current: {self._current_nonce}")


class DecimalsCache:
    """
    Cache for token decimals.

    decimals() у ERC-20 не меняется, поэтому кэш живёт всё время работы
    процесса. Ошибка RPC не подменяется значением по умолчанию —
    неверные decimals дают ошибку цены в 10^k раз.

    Usage:
        cache = DecimalsCache(w3)
        decimals = cache.get_decimals(token_address)
    """

    def __init__(self, w3: Web3, known: Dict[str, int] = None):
        self.w3 = w3
        self._lock = threading.Lock()
        self._cache: Dict[str, int] = {}
        if known:
            self._cache.update({addr.lower(): dec for addr, dec in known.items()})

    def get_decimals(self, token_address: str) -> int:
        """
        Get token decimals (cached).

        Raises:
            RuntimeError: decimals() could not be read
        """
        address_lower = token_address.lower()

        with self._lock:
            if address_lower in self._cache:
                return self._cache[address_lower]

        try:
            token = self.w3.eth.contract(
                address=Web3.to_checksum_address(token_address),
                abi=ERC20_ABI
            )
            decimals = token.functions.decimals().call()
        except Exception as e:
            logger.error(f"Failed to get decimals for {token_address[:10]}...: {e}")
            raise RuntimeError(
                f"Cannot determine decimals for token {token_address}: {e}"
            ) from e

        with self._lock:
            self._cache[address_lower] = decimals

        logger.debug(f"Fetched decimals for {token_address[:10]}...: {decimals}")
        return decimals


class GasEstimator:
    """
    Gas estimation with fallbacks.

    Tries to estimate gas, falls back to a per-operation default if
    estimation fails. Applies a configurable buffer.

    Usage:
        estimator = GasEstimator(w3, buffer_percent=20)
        gas_limit = estimator.estimate(contract.functions.mint(...), from_address, 'mint')
    """

    # Default gas limits by operation type
    DEFAULTS = {
        'approve': 60000,
        'transfer': 65000,
        'transfer_from': 80000,
        'mint': 500000,
        'increase_liquidity': 300000,
        'decrease_liquidity': 250000,
        'collect': 200000,
        'swap': 300000,
    }

    def __init__(self, w3: Web3, buffer_percent: int = 20, max_gas: int = 3000000):
        self.w3 = w3
        self.buffer_percent = buffer_percent
        self.max_gas = max_gas

    def estimate(self, contract_function, from_address: str, operation: str, value: int = 0) -> int:
        """
        Estimate gas for a contract function call.

        Args:
            contract_function: Web3 contract function (e.g., contract.functions.approve(...))
            from_address: Transaction sender address
            operation: Operation type, used for the fallback default
            value: Native value to send

        Returns:
            Estimated gas with buffer applied
        """
        try:
            estimated = contract_function.estimate_gas({
                'from': Web3.to_checksum_address(from_address),
                'value': value
            })
        except ContractLogicError as e:
            # Revert during estimation is the downstream rejection itself
            logger.error(f"{operation} rejected by contract: {e}")
            raise
        except Exception as e:
            logger.warning(f"Gas estimation failed: {e}, using default for '{operation}'")
            return self.DEFAULTS.get(operation, 200000)

        with_buffer = int(estimated * (1 + self.buffer_percent / 100))
        result = min(with_buffer, self.max_gas)
        logger.debug(f"Gas estimated for {operation}: {estimated}, with buffer: {result}")
        return result
