"""
Settlement: перемещение средств вокруг одной операции адаптера.

Порядок для каждой операции, забирающей средства у плательщика:
1. transferFrom полной desired суммы каждого токена (плательщик -> оператор)
2. approve полной desired суммы на контракт-получатель
3. сама операция (mint / increaseLiquidity / swap)
4. возврат desired - consumed по каждому токену отдельно

Ошибка на шаге 1 пробрасывается сразу, без компенсации уже
переведённого. Ошибка возврата на шаге 4 не отменяет успешную
операцию: она записывается в результат (RefundFailure).
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from eth_account.signers.local import LocalAccount
from web3 import Web3

from .contracts.token import ERC20Token
from .ordering import compute_refund

logger = logging.getLogger(__name__)


@dataclass
class SettlementLeg:
    """Один токен операции."""
    token: str
    desired: int


@dataclass
class RefundFailure:
    """Не удалось вернуть неиспользованную часть одного токена."""
    token: str
    recipient: str
    amount: int
    error: str


@dataclass
class RefundOutcome:
    refunds: List[int]
    failures: List[RefundFailure]


class Settlement:
    """
    Перемещение токенов от имени оператора (self.account).

    Если плательщик и есть оператор, средства уже на месте:
    transferFrom и возврат пропускаются, approve остаётся.
    """

    def __init__(
        self,
        w3: Web3,
        account: LocalAccount,
        token_factory: Callable[[str], ERC20Token] = None
    ):
        self.w3 = w3
        self.account = account
        self._token_factory = token_factory or (lambda address: ERC20Token(w3, address, account=account))

    def token(self, address: str) -> ERC20Token:
        return self._token_factory(address)

    def _is_operator(self, payer: Optional[str]) -> bool:
        return payer is None or payer.lower() == self.account.address.lower()

    def pull(self, payer: Optional[str], legs: Sequence[SettlementLeg]):
        """
        Забрать полные desired суммы у плательщика.

        Fail fast: первая ошибка пробрасывается, уже переведённое
        не возвращается.
        """
        if self._is_operator(payer):
            return

        for leg in legs:
            if leg.desired == 0:
                continue
            self.token(leg.token).transfer_from(payer, self.account.address, leg.desired)

    def approve(self, spender: str, legs: Sequence[SettlementLeg]):
        """Approve ровно desired суммы на spender."""
        for leg in legs:
            if leg.desired == 0:
                continue
            self.token(leg.token).approve(spender, leg.desired)

    def refund(
        self,
        payer: Optional[str],
        legs: Sequence[SettlementLeg],
        consumed: Sequence[int]
    ) -> RefundOutcome:
        """
        Вернуть desired - consumed по каждому токену.

        Refund считается всегда (PrecisionViolationError при consumed > desired),
        перевод делается только для ненулевого возврата чужому плательщику.
        """
        refunds = [compute_refund(leg.desired, used) for leg, used in zip(legs, consumed)]
        failures: List[RefundFailure] = []

        if self._is_operator(payer):
            return RefundOutcome(refunds=refunds, failures=failures)

        for leg, amount in zip(legs, refunds):
            if amount == 0:
                continue
            try:
                self.token(leg.token).transfer(payer, amount)
            except Exception as e:
                # Основная операция уже прошла, откатывать нечего
                logger.error(f"Refund of {amount} {leg.token[:10]}... to {payer[:10]}... failed: {e}")
                failures.append(RefundFailure(token=leg.token, recipient=payer, amount=amount, error=str(e)))

        return RefundOutcome(refunds=refunds, failures=failures)

    def prepare(self, payer: Optional[str], spender: str, legs: Sequence[SettlementLeg]):
        """pull + approve."""
        self.pull(payer, legs)
        self.approve(spender, legs)


def legs_for(tokens: Tuple[str, str], amounts: Tuple[int, int]) -> List[SettlementLeg]:
    return [SettlementLeg(token=t, desired=a) for t, a in zip(tokens, amounts)]
