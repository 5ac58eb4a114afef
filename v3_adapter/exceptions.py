"""
Исключения адаптера.

Иерархия:
    AdapterError
    ├── InvalidInputError (ValueError)      — некорректный ввод, ничего не отправлено
    │   └── PoolNotFoundError               — пула (tokenA, tokenB, fee) нет в фабрике
    ├── PrecisionViolationError (ArithmeticError) — consumed > desired, баг ядра
    └── TransactionRevertedError            — транзакция смайнена со status != 1

Ошибки контрактов (ContractLogicError и т.п.) пробрасываются без обёртки.
"""


class AdapterError(Exception):
    """Базовая ошибка адаптера."""
    pass


class InvalidInputError(AdapterError, ValueError):
    """Некорректные входные данные."""
    pass


class PoolNotFoundError(InvalidInputError):
    """Пул для пары и fee tier не существует."""

    def __init__(self, token_a: str, token_b: str, fee: int):
        self.token_a = token_a
        self.token_b = token_b
        self.fee = fee
        super().__init__(f"No pool for {token_a}/{token_b} with fee {fee}")


class PrecisionViolationError(AdapterError, ArithmeticError):
    """Потреблено больше, чем было предложено. Никогда не клэмпится."""
    pass


class TransactionRevertedError(AdapterError):
    """Транзакция включена в блок, но откатилась."""

    def __init__(self, operation: str, tx_hash: str):
        self.operation = operation
        self.tx_hash = tx_hash
        super().__init__(f"{operation} transaction reverted! TX: {tx_hash}")
